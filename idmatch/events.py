"""
Structured notifications emitted by the comparison pipeline.

Listeners receive PipelineEvent objects synchronously; how they are shown
(toast, log line, progress bar) is up to the caller.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from idmatch.result import ImageRole, Step


class EventKind(str, Enum):
    MODEL_LOADING = "model_loading"
    MODEL_LOADED = "model_loaded"
    MODEL_LOAD_FAILED = "model_load_failed"
    STEP_CHANGED = "step_changed"
    MULTIPLE_FACES = "multiple_faces"
    MATCH = "match"
    NO_MATCH = "no_match"
    ERROR = "error"


@dataclass(frozen=True)
class PipelineEvent:
    kind: EventKind
    message: str
    step: Optional[Step] = None
    role: Optional[ImageRole] = None


EventListener = Callable[[PipelineEvent], None]
