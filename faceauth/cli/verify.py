"""CLI tool for verifying a face against the enrolled identities."""
import argparse
import sys
from typing import List, Optional

from faceauth.cli import add_source_arguments, build_source
from faceauth.core.config import settings
from faceauth.core.container import build_engine
from faceauth.core.exceptions import FaceAuthError
from faceauth.core.logging import get_logger, setup_logging
from faceauth.domain.entities.identity import EnrollmentSource
from faceauth.domain.interfaces.progress import LoggingProgressReporter

logger = get_logger(__name__)


def verify(args: argparse.Namespace) -> int:
    """Run one verification attempt. Exit code 0 only on accept."""
    engine = build_engine(settings)
    if not engine.initialize():
        logger.error("Models failed to load", detection=settings.DETECTION_MODEL_PATH,
                     recognition=settings.RECOGNITION_MODEL_PATH)
        return 1

    try:
        decision = engine.verify(build_source(args, EnrollmentSource.CAMERA), LoggingProgressReporter())
    except FaceAuthError as e:
        logger.error("Verification failed", error=e.code, reason=str(e), details=e.details)
        return 1

    logger.info(
        "Verification completed",
        outcome=decision.outcome.value,
        reason=decision.reason_code.value,
        identity_id=decision.identity_id,
        display_name=decision.display_name,
        best_score=f"{decision.best_score:.3f}",
        runner_up_score=f"{decision.runner_up_score:.3f}",
        processing_time_ms=f"{decision.processing_time_ms:.1f}"
    )
    return 0 if decision.accepted else 1


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Verify a face against enrolled identities")
    add_source_arguments(parser)
    args = parser.parse_args(argv)

    setup_logging(settings)
    sys.exit(verify(args))


if __name__ == "__main__":
    main()
