"""
onnxruntime-backed detection and recognition models.

Both adapters take the engine's HWC float32 tensors, add a batch dimension and
(optionally) transpose to NCHW for models exported channels-first. They do not
alter normalization.
"""
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np
import onnxruntime as ort

from faceauth.core.exceptions import ModelLoadError, ModelNotLoadedError, NoFaceDetectedError
from faceauth.core.logging import get_logger
from faceauth.domain.interfaces.recognition.models import DetectionModel, RecognitionModel
from faceauth.domain.value_objects.recognition import DetectionOutput

logger = get_logger(__name__)


class OnnxModel:
    """Shared session handling for the two adapters."""

    def __init__(
        self,
        model_path: str,
        providers: Optional[Sequence[str]] = None,
        channels_first: bool = False,
    ) -> None:
        self.model_path = Path(model_path)
        self.providers = list(providers or ["CPUExecutionProvider"])
        self.channels_first = channels_first
        self._session: Optional[ort.InferenceSession] = None
        self._input_name: Optional[str] = None

    @property
    def is_loaded(self) -> bool:
        return self._session is not None

    def load(self) -> None:
        if not self.model_path.exists():
            raise ModelLoadError(f"Model file not found: {self.model_path}")
        try:
            self._session = ort.InferenceSession(str(self.model_path), providers=self.providers)
        except Exception as e:
            self._session = None
            raise ModelLoadError(f"Failed to load {self.model_path.name}: {e}") from e

        self._input_name = self._session.get_inputs()[0].name
        logger.info(
            "Loaded ONNX model",
            model=self.model_path.name,
            providers=self.providers,
            input=self._input_name,
        )

    def _run(self, tensor: np.ndarray) -> List[np.ndarray]:
        if self._session is None:
            raise ModelNotLoadedError(f"Model {self.model_path.name} not loaded")
        batch = np.asarray(tensor, dtype=np.float32)[None, ...]
        if self.channels_first:
            batch = np.transpose(batch, (0, 3, 1, 2))
        return self._session.run(None, {self._input_name: np.ascontiguousarray(batch)})


class OnnxDetectionModel(OnnxModel, DetectionModel):
    """BlazeFace-style detector returning (regressors, classificators)."""

    def run(self, tensor: np.ndarray) -> DetectionOutput:
        outputs = [np.asarray(out) for out in self._run(tensor)]
        if len(outputs) < 2:
            raise NoFaceDetectedError(
                "Detection model must return box and score outputs",
                {"outputs": len(outputs)},
            )

        # One value per anchor marks the score tensor; default to the
        # regressors-first order BlazeFace exports use.
        score_index = next(
            (i for i, out in enumerate(outputs) if out.shape and out.shape[-1] == 1),
            1,
        )
        box_index = 0 if score_index != 0 else 1
        num_anchors = outputs[score_index].size
        return DetectionOutput(
            scores=outputs[score_index].reshape(num_anchors),
            boxes=outputs[box_index].reshape(num_anchors, -1),
        )


class OnnxRecognitionModel(OnnxModel, RecognitionModel):
    """FaceNet-style recognizer returning one embedding per crop."""

    def run(self, tensor: np.ndarray) -> np.ndarray:
        outputs = self._run(tensor)
        return np.asarray(outputs[0], dtype=np.float32).reshape(-1)
