"""Shared fixtures: in-process fake models, synthetic face photos and embedding builders."""
from collections import deque
from typing import Deque, List, Optional, Sequence, Union

import numpy as np
import pytest

from faceauth.core.config import Settings
from faceauth.core.exceptions import ModelLoadError
from faceauth.core.utils.image import rgb_array_to_png
from faceauth.domain.interfaces.recognition.models import DetectionModel, RecognitionModel
from faceauth.domain.value_objects.recognition import DetectionOutput, ExtractionResult
from faceauth.domain.entities.face import FaceRegion
from faceauth.infrastructure.storage import InMemoryIdentityRepository
from faceauth.services.engine import FaceAuthEngine

NUM_ANCHORS = 896
# Anchor 136 sits at (68, 68) on the 128 px detection canvas.
CENTER_ANCHOR = 136


class FakeDetectionModel(DetectionModel):
    """Reports one confident anchor with an anchor-relative box."""

    def __init__(
        self,
        anchor: int = CENTER_ANCHOR,
        logit: float = 5.0,
        box: Sequence[float] = (0.0, 0.0, float(np.log(2.0)), float(np.log(2.0))),
        fail_load: bool = False,
    ) -> None:
        self.anchor = anchor
        self.logit = logit
        self.box = box
        self.fail_load = fail_load
        self.loaded = False
        self.tensors: List[np.ndarray] = []

    @property
    def is_loaded(self) -> bool:
        return self.loaded

    def load(self) -> None:
        if self.fail_load:
            raise ModelLoadError("fake detector missing")
        self.loaded = True

    def run(self, tensor: np.ndarray) -> DetectionOutput:
        self.tensors.append(tensor)
        scores = np.full(NUM_ANCHORS, -10.0, dtype=np.float32)
        scores[self.anchor] = self.logit
        boxes = np.zeros((NUM_ANCHORS, 16), dtype=np.float32)
        boxes[self.anchor, :4] = self.box
        return DetectionOutput(scores=scores, boxes=boxes)


class FakeRecognitionModel(RecognitionModel):
    """Returns queued embeddings in order, then a fixed fallback vector."""

    def __init__(self, fallback: Optional[np.ndarray] = None) -> None:
        self.queue: Deque[np.ndarray] = deque()
        self.fallback = fallback if fallback is not None else unit_vector(seed=999)
        self.loaded = False
        self.tensors: List[np.ndarray] = []

    @property
    def is_loaded(self) -> bool:
        return self.loaded

    def load(self) -> None:
        self.loaded = True

    def push(self, *embeddings: np.ndarray) -> None:
        self.queue.extend(embeddings)

    def run(self, tensor: np.ndarray) -> np.ndarray:
        self.tensors.append(tensor)
        if self.queue:
            return self.queue.popleft()
        return self.fallback


class StubExtractor:
    """Stands in for EmbeddingExtractor: plays back embeddings or raises queued errors."""

    def __init__(self, items: Sequence[Union[np.ndarray, Exception]] = ()) -> None:
        self.items: Deque[Union[np.ndarray, Exception]] = deque(items)
        self.calls = 0

    def extract(self, image_bytes: bytes) -> ExtractionResult:
        self.calls += 1
        item = self.items.popleft()
        if isinstance(item, Exception):
            raise item
        return ExtractionResult(
            embedding=item,
            confidence=0.95,
            face_region=FaceRegion(x=0, y=0, width=10, height=10, confidence=0.95),
        )


def unit_vector(seed: int, size: int = 512) -> np.ndarray:
    vec = np.random.default_rng(seed).normal(size=size)
    return vec / np.linalg.norm(vec)


def at_score(base: np.ndarray, score: float, seed: int, max_distance: float = 1.2) -> np.ndarray:
    """Unit vector whose similarity score against `base` is exactly `score`."""
    distance = max_distance * (1.0 - score)
    theta = 2.0 * np.arcsin(distance / 2.0)
    other = np.random.default_rng(seed).normal(size=base.size)
    other -= other.dot(base) * base
    other /= np.linalg.norm(other)
    return np.cos(theta) * base + np.sin(theta) * other


def skin_photo(width: int = 200, height: int = 200, seed: int = 0, noise: int = 25, block: int = 8) -> np.ndarray:
    """Skin-toned RGB image with blocky brightness noise."""
    rng = np.random.default_rng(seed)
    rows = -(-height // block)
    cols = -(-width // block)
    shift = rng.integers(-noise, noise + 1, size=(rows, cols)) if noise else np.zeros((rows, cols), dtype=int)
    shift = np.kron(shift, np.ones((block, block), dtype=int))[:height, :width]
    base = np.array([200, 150, 120])
    return np.clip(base[None, None, :] + shift[..., None], 0, 255).astype(np.uint8)


@pytest.fixture
def config(tmp_path) -> Settings:
    return Settings(IDENTITY_STORE_PATH=str(tmp_path / "identities.json"))


@pytest.fixture
def detection_model() -> FakeDetectionModel:
    return FakeDetectionModel()


@pytest.fixture
def recognition_model() -> FakeRecognitionModel:
    return FakeRecognitionModel()


@pytest.fixture
def face_png() -> bytes:
    return rgb_array_to_png(skin_photo())


@pytest.fixture
def engine(detection_model, recognition_model, config) -> FaceAuthEngine:
    face_engine = FaceAuthEngine(
        detection_model=detection_model,
        recognition_model=recognition_model,
        repository=InMemoryIdentityRepository(),
        config=config,
    )
    assert face_engine.initialize()
    return face_engine


class Vectors:
    unit = staticmethod(unit_vector)
    at_score = staticmethod(at_score)


@pytest.fixture
def vectors() -> Vectors:
    return Vectors()


@pytest.fixture
def photo():
    return skin_photo


@pytest.fixture
def stub_extractor():
    return StubExtractor
