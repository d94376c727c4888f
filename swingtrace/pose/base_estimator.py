"""Inference primitive interface.

The pose model is a black box: given an image, return the 17 COCO keypoints
normalized to that image. Analyzer workers receive a factory for estimators
rather than a shared global instance, so each worker owns its own model
context.
"""

from abc import ABC, abstractmethod
from typing import Callable, List

import numpy as np

from swingtrace.pose.keypoints import COCO_17_KEYPOINTS, Keypoint


class BasePoseEstimator(ABC):
    """Abstract base class for pose estimators."""

    def __init__(
        self,
        model_name: str,
        device: str = "cpu",
        confidence: float = 0.5,
    ):
        """Initialize pose estimator.

        Args:
            model_name: Name/path of the model.
            device: Device to run on (cpu, cuda, mps).
            confidence: Detection confidence threshold.
        """
        self.model_name = model_name
        self.device = device
        self.confidence = confidence
        self.model = None

    @property
    def model_id(self) -> str:
        """Identifier recorded in persisted sequence metadata."""
        return self.model_name

    @abstractmethod
    def load_model(self):
        """Load the pose estimation model.

        Raises:
            ModelUnavailableError: If the model cannot be loaded.
        """
        pass

    @abstractmethod
    def infer(self, image: np.ndarray) -> List[Keypoint]:
        """Estimate the keypoints of the most prominent person in an image.

        Args:
            image: Input image (BGR format).

        Returns:
            17 keypoints in COCO order, coordinates normalized to image.
            Keypoints of an image without a person have zero confidence.

        Raises:
            InferenceError: If the model call fails.
        """
        pass

    def is_loaded(self) -> bool:
        return self.model is not None

    def close(self) -> None:
        """Release model resources."""
        self.model = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


EstimatorFactory = Callable[[], BasePoseEstimator]


def keypoints_from_array(keypoints: np.ndarray) -> List[Keypoint]:
    """Build COCO-17 keypoints from an (17, 3) array of [x, y, confidence].

    Rows missing from a shorter array are filled with zero-confidence
    keypoints so callers always receive the full layout.

    Args:
        keypoints: Array of normalized [x, y, confidence] rows.

    Returns:
        17 keypoints in COCO order.
    """
    result = []
    for i, label in enumerate(COCO_17_KEYPOINTS):
        if i < len(keypoints):
            x, y, conf = (float(v) for v in keypoints[i][:3])
        else:
            x, y, conf = 0.0, 0.0, 0.0
        result.append(Keypoint(label=label, x=x, y=y, confidence=conf))
    return result
