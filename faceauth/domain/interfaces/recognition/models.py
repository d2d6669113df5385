"""Interfaces for the external neural-network models.

The engine treats the detector and recognizer as opaque tensor-in/tensor-out
services. Implementations own model loading and execution; they must not
change the tensor layout or normalization the engine hands them.
"""
from abc import ABC, abstractmethod

import numpy as np

from ...value_objects.recognition import DetectionOutput


class DetectionModel(ABC):
    """Single-shot face detector with a fixed anchor layout."""

    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        """Whether `load` has completed successfully."""
        pass

    @abstractmethod
    def load(self) -> None:
        """
        Load the model weights.

        Raises:
            ModelLoadError: If the model cannot be loaded
        """
        pass

    @abstractmethod
    def run(self, tensor: np.ndarray) -> DetectionOutput:
        """
        Run detection on one image tensor.

        Args:
            tensor: float32 array of shape (S, S, 3) with values in [0, 1]

        Returns:
            DetectionOutput with per-anchor raw scores and box regressions

        Raises:
            ModelNotLoadedError: If called before `load`
        """
        pass


class RecognitionModel(ABC):
    """Face recognizer producing a fixed-length embedding."""

    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        """Whether `load` has completed successfully."""
        pass

    @abstractmethod
    def load(self) -> None:
        """
        Load the model weights.

        Raises:
            ModelLoadError: If the model cannot be loaded
        """
        pass

    @abstractmethod
    def run(self, tensor: np.ndarray) -> np.ndarray:
        """
        Compute the raw (unnormalized) embedding of one face crop.

        Args:
            tensor: float32 array of shape (R, R, 3) with values in [-1, 1]

        Returns:
            1D float array (e.g. 512 values)

        Raises:
            ModelNotLoadedError: If called before `load`
        """
        pass
