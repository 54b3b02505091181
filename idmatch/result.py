"""
Result and state types exposed to callers of the comparison pipeline.

ComparisonResult is the pipeline's only externally visible output.
ProcessingState is the read-only progress snapshot a caller polls (or
receives through events) while a comparison runs.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional

from idmatch.image import ExtractedFace


class Status(str, Enum):
    """Recognition status of the pipeline."""

    IDLE = "idle"
    PROCESSING = "processing"
    MATCH = "match"
    NO_MATCH = "no-match"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (Status.MATCH, Status.NO_MATCH, Status.ERROR)


class Step(IntEnum):
    """Processing steps, executed strictly in this order."""

    LOAD_IMAGES = 1
    EXTRACT_FACES = 2
    ANALYZE_FEATURES = 3
    COMPARE_RESULTS = 4

    @property
    def label(self) -> str:
        return _STEP_LABELS[self]


_STEP_LABELS = {
    Step.LOAD_IMAGES: "Upload Images",
    Step.EXTRACT_FACES: "Extract Faces",
    Step.ANALYZE_FEATURES: "Analyze Features",
    Step.COMPARE_RESULTS: "Compare Results",
}


class ImageRole(str, Enum):
    """Which of the two compared images a value belongs to."""

    ID = "id"
    PROFILE = "profile"

    @property
    def label(self) -> str:
        return "ID" if self is ImageRole.ID else "Profile"


@dataclass(frozen=True)
class ProcessingState:
    """Progress snapshot: current step and status."""

    step: Step = Step.LOAD_IMAGES
    status: Status = Status.IDLE

    def to_dict(self) -> dict:
        return {"step": int(self.step), "status": self.status.value}


@dataclass(frozen=True)
class QualityAssessment:
    """Outcome of the identity-document quality gate.

    Attributes:
        is_acceptable: True when every check passed.
        reason: Human-readable reason of the first failing check.
    """

    is_acceptable: bool
    reason: Optional[str] = None

    @classmethod
    def accepted(cls) -> "QualityAssessment":
        return cls(is_acceptable=True)

    @classmethod
    def rejected(cls, reason: str) -> "QualityAssessment":
        return cls(is_acceptable=False, reason=reason)


@dataclass(frozen=True, eq=False)
class ComparisonResult:
    """Outcome of one comparison run.

    Attributes:
        status: Terminal status (match, no-match or error), or idle for
                the empty result.
        confidence: Similarity score in [0, 1]; 0 on error.
        id_face: Face extracted from the identity-document image.
        profile_face: Face extracted from the profile image.
        error: Human-readable error message when status is error.
        error_code: Stable machine-readable error code when status is error.
    """

    status: Status = Status.IDLE
    confidence: float = 0.0
    id_face: Optional[ExtractedFace] = None
    profile_face: Optional[ExtractedFace] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def idle(cls) -> "ComparisonResult":
        return cls()

    @classmethod
    def failed(cls, message: str, code: str = "unknown_error") -> "ComparisonResult":
        return cls(status=Status.ERROR, confidence=0.0, error=message, error_code=code)

    @property
    def is_match(self) -> bool:
        return self.status is Status.MATCH

    def to_dict(self, include_faces: bool = False) -> dict:
        """Return a plain dict suitable for JSON serialization.

        Args:
            include_faces: Also embed both face crops as JPEG data URLs.
        """
        from idmatch.decoder import encode_data_url

        payload = {
            "status": self.status.value,
            "confidence": round(self.confidence, 4),
            "error": self.error,
            "error_code": self.error_code,
        }
        for key, face in (("id_face", self.id_face), ("profile_face", self.profile_face)):
            if face is None:
                payload[key] = None
                continue
            entry = face.to_dict()
            if include_faces:
                entry["data_url"] = encode_data_url(face.image)
            payload[key] = entry
        return payload
