"""Image sources: in-memory batches, image directories and a local camera."""
import time
from pathlib import Path
from typing import Iterator, Optional, Sequence

import cv2

from faceauth.core.exceptions import CaptureError
from faceauth.core.logging import get_logger
from faceauth.domain.entities.identity import EnrollmentSource
from faceauth.domain.interfaces.capture.image_source import ImageSource

logger = get_logger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp", ".webp")


class InMemoryImageSource(ImageSource):
    """Serves a fixed list of encoded images, e.g. an HTTP multipart upload."""

    def __init__(self, images: Sequence[bytes], kind: EnrollmentSource = EnrollmentSource.GALLERY) -> None:
        self.images = list(images)
        self.kind = kind

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.images)


class DirectoryImageSource(ImageSource):
    """Reads image files from a directory in name order, one at a time."""

    def __init__(self, directory: str, kind: EnrollmentSource = EnrollmentSource.GALLERY) -> None:
        self.directory = Path(directory)
        self.kind = kind

    def __iter__(self) -> Iterator[bytes]:
        try:
            entries = list(self.directory.iterdir())
        except OSError as e:
            raise CaptureError(f"Cannot read image directory {self.directory}: {e}") from e
        paths = sorted(
            p for p in entries
            if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
        )
        for path in paths:
            yield path.read_bytes()


class CameraImageSource(ImageSource):
    """Grabs frames from a local camera through OpenCV and yields them as PNG bytes.

    Frames are captured lazily, only when the engine asks for the next image,
    with `interval_seconds` between captures so the samples are not identical.
    """

    kind = EnrollmentSource.CAMERA

    def __init__(
        self,
        device_index: int = 0,
        max_frames: Optional[int] = None,
        interval_seconds: float = 0.5,
        warmup_frames: int = 5,
    ) -> None:
        self.device_index = device_index
        self.max_frames = max_frames
        self.interval_seconds = interval_seconds
        self.warmup_frames = warmup_frames

    def __iter__(self) -> Iterator[bytes]:
        capture = cv2.VideoCapture(self.device_index)
        if not capture.isOpened():
            capture.release()
            raise CaptureError(f"Cannot open camera {self.device_index}")

        try:
            # Let auto-exposure settle.
            for _ in range(self.warmup_frames):
                capture.read()

            produced = 0
            while self.max_frames is None or produced < self.max_frames:
                if produced:
                    time.sleep(self.interval_seconds)
                ok, frame = capture.read()
                if not ok or frame is None:
                    logger.warning("Camera frame grab failed", device=self.device_index)
                    return
                ok, buffer = cv2.imencode(".png", frame)
                if not ok:
                    logger.warning("Camera frame encode failed", device=self.device_index)
                    continue
                produced += 1
                yield buffer.tobytes()
        finally:
            capture.release()
