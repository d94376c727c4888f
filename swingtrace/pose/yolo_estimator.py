"""YOLO11 pose estimation wrapper."""

import logging
from typing import List, Optional

import numpy as np
from ultralytics import YOLO

from swingtrace.exceptions import InferenceError, ModelUnavailableError
from swingtrace.pose.base_estimator import BasePoseEstimator, keypoints_from_array
from swingtrace.pose.keypoints import Keypoint
from swingtrace.utils.config import load_pose_config
from swingtrace.utils.device_utils import get_optimal_device

logger = logging.getLogger(__name__)


class YOLOPoseEstimator(BasePoseEstimator):
    """YOLO11 pose estimator returning the most confident person."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: str = "auto",
        confidence: Optional[float] = None,
    ):
        """Initialize YOLO pose estimator.

        Args:
            model_name: YOLO model name (e.g., 'yolo11n-pose.pt').
            device: Device to run on ('cpu', 'cuda', 'mps', 'auto').
            confidence: Minimum person detection confidence (0-1).
        """
        # Load configuration
        config = load_pose_config()
        yolo_config = config.get("yolo", {})

        model_name = model_name or yolo_config.get("model", "yolo11n-pose.pt")
        confidence = confidence if confidence is not None else yolo_config.get("confidence", 0.25)

        super().__init__(model_name, get_optimal_device(preferred=device), confidence)

        self.iou = yolo_config.get("iou", 0.7)
        self.max_det = yolo_config.get("max_det", 1)
        self.imgsz = yolo_config.get("imgsz", 640)

        # Load model
        self.load_model()

    def load_model(self):
        """Load YOLO model."""
        try:
            self.model = YOLO(self.model_name)
            self.model.to(self.device)
        except Exception as e:
            raise ModelUnavailableError(f"Failed to load YOLO model {self.model_name}: {e}") from e
        logger.info(f"Loaded {self.model_name} on {self.device}")

    def infer(self, image: np.ndarray) -> List[Keypoint]:
        """Estimate keypoints of the most confident person in the image.

        Args:
            image: Input image (BGR format).

        Returns:
            17 COCO keypoints normalized to the image.
        """
        if self.model is None:
            raise InferenceError("YOLO model is not loaded")

        try:
            results = self.model.predict(
                image,
                conf=self.confidence,
                iou=self.iou,
                max_det=self.max_det,
                imgsz=self.imgsz,
                verbose=False,
            )
        except Exception as e:
            raise InferenceError(f"YOLO inference failed: {e}") from e

        if len(results) == 0 or results[0].keypoints is None:
            logger.debug("No pose detected")
            return keypoints_from_array(np.zeros((0, 3)))

        result = results[0]
        if len(result.keypoints.data) == 0:
            return keypoints_from_array(np.zeros((0, 3)))

        # Pick the person with the highest box confidence
        person = 0
        if result.boxes is not None and len(result.boxes.conf) > 1:
            person = int(result.boxes.conf.cpu().numpy().argmax())

        xyn = result.keypoints.xyn[person].cpu().numpy()  # (17, 2), normalized
        if result.keypoints.conf is not None:
            conf = result.keypoints.conf[person].cpu().numpy()
        else:
            conf = np.ones(len(xyn))

        return keypoints_from_array(np.column_stack([xyn, conf]))
