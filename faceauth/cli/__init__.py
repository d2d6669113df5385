"""Command line tools for enrollment and verification."""
import argparse

from faceauth.domain.entities.identity import EnrollmentSource
from faceauth.domain.interfaces.capture.image_source import ImageSource
from faceauth.infrastructure.capture import CameraImageSource, DirectoryImageSource


def add_source_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the mutually exclusive --images/--camera options."""
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--images", metavar="DIR", help="Directory of face photos")
    group.add_argument("--camera", metavar="INDEX", type=int, help="Camera device index")
    parser.add_argument(
        "--interval",
        type=float,
        default=0.5,
        help="Seconds between camera captures (default: 0.5)"
    )


def build_source(args: argparse.Namespace, kind: EnrollmentSource) -> ImageSource:
    if args.camera is not None:
        return CameraImageSource(device_index=args.camera, interval_seconds=args.interval)
    return DirectoryImageSource(args.images, kind=kind)
