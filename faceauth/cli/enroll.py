"""CLI tool for enrolling an identity from photos or a camera."""
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


def enroll(identity_id: str, display_name: str, args: argparse.Namespace) -> int:
    """
    Enroll one identity and report the result.

    Args:
        identity_id: Identity to create or replace
        display_name: Name shown on a match
        args: Parsed arguments holding the image source options

    Returns:
        Process exit code
    """
    engine = build_engine(settings)
    if not engine.initialize():
        logger.error("Models failed to load", detection=settings.DETECTION_MODEL_PATH,
                     recognition=settings.RECOGNITION_MODEL_PATH)
        return 1

    kind = EnrollmentSource.CAMERA if args.camera is not None else EnrollmentSource.GALLERY
    try:
        record = engine.enroll(
            identity_id,
            display_name,
            build_source(args, kind),
            LoggingProgressReporter(),
        )
    except FaceAuthError as e:
        logger.error("Enrollment failed", identity_id=identity_id, error=e.code,
                     reason=str(e), details=e.details)
        return 1

    logger.info(
        "Enrollment completed",
        identity_id=record.identity_id,
        display_name=record.display_name,
        samples=record.sample_count,
        store=settings.IDENTITY_STORE_PATH
    )
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Enroll a face identity")
    parser.add_argument("identity_id", help="Unique identity key, e.g. an employee number")
    parser.add_argument("display_name", help="Name reported on a successful match")
    add_source_arguments(parser)
    args = parser.parse_args(argv)

    setup_logging(settings)
    sys.exit(enroll(args.identity_id, args.display_name, args))


if __name__ == "__main__":
    main()
