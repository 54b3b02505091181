"""
Identity Face Comparison CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, gate the
    identity-document image on quality, run one comparison and route the
    result to the configured outputs.

Usage:
    python main.py --id id_card.jpg --profile selfie.jpg
    python main.py --id id_card.jpg --profile selfie.jpg --threshold 0.8
    python main.py --id id_card.jpg --profile selfie.jpg --output-mode log,save_json,save_faces
    python main.py --config my_config.yaml --id id_card.jpg --profile selfie.jpg

Exit codes:
    0 faces match, 2 faces do not match, 1 error or rejected ID image.

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from idmatch.config import AppConfig, get_project_root, load_config, validate_config
from idmatch.detector import FaceDetector
from idmatch.errors import ImageDecodeError
from idmatch.events import EventKind, PipelineEvent
from idmatch.pipeline import ComparisonPipeline
from idmatch.result import ComparisonResult, Status
from idmatch.serializer import save_faces, save_json
from idmatch.session import VerificationSession

EXIT_MATCH = 0
EXIT_ERROR = 1
EXIT_NO_MATCH = 2


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Compare the face on an identity document with a profile photo",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--id",
        dest="id_image",
        type=str,
        required=True,
        help="Path to the identity-document image (quality-gated).",
    )
    parser.add_argument(
        "--profile",
        dest="profile_image",
        type=str,
        required=True,
        help="Path to the profile image.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        help="Match threshold on similarity (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--confidence",
        type=float,
        help="Face detection confidence threshold (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--backend",
        type=str,
        choices=["cpu", "cuda"],
        help="Compute backend preference. Overrides config.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s), comma-separated: log, save_json, save_faces. "
             "Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Directory for output artifacts. Overrides config.",
    )

    return parser.parse_args(argv)


def apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return a copy of config with command-line overrides applied.

    Raises:
        ValueError: If an override leaves the configuration invalid.
    """
    if args.threshold is not None:
        config = dataclasses.replace(
            config,
            comparison=dataclasses.replace(config.comparison, match_threshold=args.threshold),
        )
    if args.confidence is not None:
        config = dataclasses.replace(
            config,
            detection=dataclasses.replace(config.detection, confidence_threshold=args.confidence),
        )
    if args.backend is not None:
        config = dataclasses.replace(
            config, model=dataclasses.replace(config.model, backend=args.backend)
        )
    if args.output_mode is not None:
        config = dataclasses.replace(
            config, output=dataclasses.replace(config.output, mode=args.output_mode)
        )
    if args.output_path is not None:
        config = dataclasses.replace(
            config, output=dataclasses.replace(config.output, save_path=args.output_path)
        )
    validate_config(config)
    return config


def log_event(event: PipelineEvent) -> None:
    """Render pipeline events as log lines."""
    if event.kind is EventKind.STEP_CHANGED:
        logger.info("Step %d/4: %s", event.step, event.message)
    elif event.kind in (EventKind.MULTIPLE_FACES, EventKind.NO_MATCH):
        logger.warning(event.message)
    elif event.kind in (EventKind.ERROR, EventKind.MODEL_LOAD_FAILED):
        logger.error(event.message)
    else:
        logger.info(event.message)


def write_outputs(result: ComparisonResult, config: AppConfig) -> None:
    """Route the result to the configured output sinks."""
    modes = set(m.strip() for m in config.output.mode.split(","))

    save_path = Path(config.output.save_path)
    if not save_path.is_absolute():
        save_path = get_project_root() / save_path

    if "log" in modes:
        logger.info(
            "Result: %s (confidence=%.2f%%)", result.status.value, result.confidence * 100
        )
    if "save_json" in modes:
        save_json(result, str(save_path / "result.json"))
    if "save_faces" in modes:
        save_faces(result, str(save_path))


async def run(args: argparse.Namespace, config: AppConfig) -> int:
    """Quality-gate the ID image, compare, and write outputs."""
    pipeline = ComparisonPipeline(detector=FaceDetector(config=config), config=config)
    pipeline.add_listener(log_event)
    session = VerificationSession(pipeline)

    assessment = await session.set_id_image(args.id_image)
    if not assessment.is_acceptable:
        logger.error("ID image rejected: %s", assessment.reason)
        return EXIT_ERROR

    try:
        await session.set_profile_image(args.profile_image)
    except ImageDecodeError as e:
        logger.error("Profile image rejected: %s", e)
        return EXIT_ERROR

    result = await session.start()
    write_outputs(result, config)

    if result.status is Status.MATCH:
        return EXIT_MATCH
    if result.status is Status.NO_MATCH:
        return EXIT_NO_MATCH
    return EXIT_ERROR


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = apply_cli_overrides(load_config(args.config), args)
        logger.info("Configuration active for this run.")
    except (FileNotFoundError, ValueError) as e:
        logger.error("Configuration error: %s", e)
        return EXIT_ERROR

    # 2. Compare
    try:
        return asyncio.run(run(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        return EXIT_ERROR
    except Exception as e:
        logger.exception("Runtime error during comparison: %s", e)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
