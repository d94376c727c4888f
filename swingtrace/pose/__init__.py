"""Pose data model, validation and estimation."""

from swingtrace.pose.base_estimator import BasePoseEstimator, EstimatorFactory
from swingtrace.pose.keypoints import (
    COCO_17_KEYPOINTS,
    MIN_KEYPOINT_CONFIDENCE,
    SWING_KEYPOINTS,
    Keypoint,
    PoseFrame,
    PoseSequence,
    SequenceMetadata,
)
from swingtrace.pose.validator import is_body_present, is_frame_usable, quality_score

# Optional imports with graceful fallback
try:
    from swingtrace.pose.yolo_estimator import YOLOPoseEstimator
except ImportError:
    YOLOPoseEstimator = None

__all__ = [
    "BasePoseEstimator",
    "EstimatorFactory",
    "COCO_17_KEYPOINTS",
    "MIN_KEYPOINT_CONFIDENCE",
    "SWING_KEYPOINTS",
    "Keypoint",
    "PoseFrame",
    "PoseSequence",
    "SequenceMetadata",
    "is_body_present",
    "is_frame_usable",
    "quality_score",
    "YOLOPoseEstimator",
]
