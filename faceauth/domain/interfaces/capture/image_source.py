"""Capture collaborator interface."""
from abc import ABC, abstractmethod
from typing import Iterator

from ...entities.identity import EnrollmentSource


class ImageSource(ABC):
    """Supplies raw encoded image bytes on demand.

    A live camera and a batch file picker are handled identically by the
    engine once bytes are decoded; `kind` is only recorded for provenance.
    Iteration must be lazy: the engine pulls one image at a time and may stop
    early.
    """

    kind: EnrollmentSource = EnrollmentSource.GALLERY

    @abstractmethod
    def __iter__(self) -> Iterator[bytes]:
        pass
