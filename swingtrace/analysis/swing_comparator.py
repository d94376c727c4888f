"""Swing comparison against a reference recording."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np

from swingtrace.pose.keypoints import SWING_KEYPOINTS, Keypoint, PoseFrame, PoseSequence
from swingtrace.utils.config import load_analysis_config
from swingtrace.utils.geometry import euclidean_distance, midpoint

logger = logging.getLogger(__name__)

# Advice shown when a keypoint scores below the threshold
RECOMMENDATIONS = {
    "left_shoulder": "Left shoulder: turn it further under the chin in the backswing",
    "right_shoulder": "Right shoulder: keep it back longer and bring it through at impact",
    "left_elbow": "Left elbow: keep the lead arm straighter and closer to the body",
    "right_elbow": "Right elbow: tuck it towards the hip in the downswing",
    "left_wrist": "Left wrist: hold the hinge longer and release later",
    "right_wrist": "Right wrist: improve the timing of the release through impact",
    "left_hip": "Left hip: clear the lead hip earlier for more rotation and power",
    "right_hip": "Right hip: rotate the trail hip instead of sliding it",
    "left_knee": "Left knee: keep the lead knee flex stable until impact",
    "right_knee": "Right knee: maintain the trail knee flex in the backswing",
}

POSITIVE_MESSAGE = "Excellent swing! Very close to the reference."
FOCUS_MESSAGE = "Focus on the top issues first before working on the rest."


@dataclass
class ComparisonResult:
    """Similarity of a user swing to a reference swing.

    Attributes:
        overall_score: Mean of the per-keypoint scores (0-100).
        keypoint_scores: Score per keypoint with at least one valid sample.
        recommendations: Advice text, worst keypoints first.
        best_keypoints: Up to three highest-scoring keypoints.
        worst_keypoints: Up to three lowest-scoring keypoints.
        sample_counts: Number of aligned pairs scored per keypoint.
        user_frame_count: Frames in the user sequence.
        reference_frame_count: Frames in the reference sequence.
        error: Reason the comparison could not be made, if any.
    """

    overall_score: float = 0.0
    keypoint_scores: Dict[str, float] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)
    best_keypoints: List[str] = field(default_factory=list)
    worst_keypoints: List[str] = field(default_factory=list)
    sample_counts: Dict[str, int] = field(default_factory=dict)
    user_frame_count: int = 0
    reference_frame_count: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict:
        if self.error is not None:
            return {"error": self.error}
        return {
            "overall_score": self.overall_score,
            "keypoint_scores": dict(self.keypoint_scores),
            "best_keypoints": list(self.best_keypoints),
            "worst_keypoints": list(self.worst_keypoints),
            "recommendations": list(self.recommendations),
            "sample_counts": dict(self.sample_counts),
            "user_frame_count": self.user_frame_count,
            "reference_frame_count": self.reference_frame_count,
        }


def normalize_sequence(frames: Sequence[PoseFrame]) -> List[PoseFrame]:
    """Express every frame relative to the first frame's body.

    Subtracts the first frame's hip center and divides by its vertical
    shoulder-to-hip distance, removing position and body-size/camera-distance
    differences. Returns the frames unchanged when the first frame lacks hips
    or shoulders, or the distance is zero.

    Args:
        frames: Time-ordered pose frames.

    Returns:
        Normalized copies of the frames.
    """
    if not frames:
        return list(frames)

    first = frames[0].keypoints
    left_hip, right_hip = first.get("left_hip"), first.get("right_hip")
    left_shoulder, right_shoulder = first.get("left_shoulder"), first.get("right_shoulder")

    if left_hip is None or right_hip is None:
        logger.debug("First frame has no hips, skipping normalization")
        return list(frames)
    if left_shoulder is None or right_shoulder is None:
        logger.debug("First frame has no shoulders, skipping normalization")
        return list(frames)

    hip_x, hip_y = midpoint(left_hip.position, right_hip.position)
    shoulder_y = (left_shoulder.y + right_shoulder.y) / 2
    body_scale = abs(shoulder_y - hip_y)

    if body_scale == 0:
        logger.debug("Zero body scale, skipping normalization")
        return list(frames)

    normalized = []
    for frame in frames:
        keypoints = {
            label: Keypoint(
                label=label,
                x=(kp.x - hip_x) / body_scale,
                y=(kp.y - hip_y) / body_scale,
                confidence=kp.confidence,
            )
            for label, kp in frame.keypoints.items()
        }
        normalized.append(frame.with_keypoints(keypoints))
    return normalized


def map_to_reference_index(index: int, user_total: int, reference_total: int) -> int:
    """Proportionally map a user frame index onto the reference sequence."""
    if user_total <= 1 or reference_total <= 1:
        return 0
    ratio = index / (user_total - 1)
    return int(np.clip(round(ratio * (reference_total - 1)), 0, reference_total - 1))


class SwingComparator:
    """Score a user swing against a reference swing per keypoint."""

    def __init__(
        self,
        keypoints: Optional[List[str]] = None,
        min_confidence: Optional[float] = None,
        low_score_threshold: Optional[float] = None,
        max_recommendations: Optional[int] = None,
    ):
        """Initialize comparator.

        Args:
            keypoints: Keypoint labels to score (default: the 10 swing keypoints).
            min_confidence: Both keypoints of a pair must exceed this confidence.
            low_score_threshold: Scores below this trigger a recommendation.
            max_recommendations: Upper bound on returned entries, closing message included.
        """
        config = load_analysis_config()
        comparison_config = config.get("comparison", {})

        self.keypoints = keypoints or list(SWING_KEYPOINTS)
        self.min_confidence = (
            min_confidence
            if min_confidence is not None
            else comparison_config.get("min_confidence", 0.5)
        )
        self.low_score_threshold = (
            low_score_threshold
            if low_score_threshold is not None
            else comparison_config.get("low_score_threshold", 70)
        )
        self.max_recommendations = (
            max_recommendations
            if max_recommendations is not None
            else comparison_config.get("max_recommendations", 6)
        )

    def compare(self, user: PoseSequence, reference: PoseSequence) -> ComparisonResult:
        """Compare a user swing with a reference swing.

        Args:
            user: User pose sequence.
            reference: Reference pose sequence.

        Returns:
            ComparisonResult; its error field is set instead of raising when
            either sequence is empty or no keypoint pair is confident enough.
        """
        if len(user) == 0 or len(reference) == 0:
            return ComparisonResult(
                error="No pose data to compare",
                user_frame_count=len(user),
                reference_frame_count=len(reference),
            )

        user_frames = normalize_sequence(user.frames)
        reference_frames = normalize_sequence(reference.frames)

        distances = self._keypoint_distances(user_frames, reference_frames)

        scores = {}
        counts = {}
        for label in self.keypoints:
            values = distances[label]
            if not values:
                continue
            avg_distance = float(np.mean(values))
            scores[label] = max(0.0, 1.0 - avg_distance) * 100
            counts[label] = len(values)

        if not scores:
            logger.warning("No keypoint pair above the confidence threshold")
            return ComparisonResult(
                error="No comparable keypoints",
                user_frame_count=len(user),
                reference_frame_count=len(reference),
            )

        overall = float(np.mean(list(scores.values())))

        ranked = sorted(scores, key=lambda label: scores[label], reverse=True)

        logger.info(
            f"Compared {len(user)} user frames with {len(reference)} reference frames: "
            f"overall {overall:.1f} over {len(scores)} keypoints"
        )

        return ComparisonResult(
            overall_score=overall,
            keypoint_scores=scores,
            recommendations=self.generate_recommendations(scores),
            best_keypoints=ranked[:3],
            worst_keypoints=list(reversed(ranked))[:3],
            sample_counts=counts,
            user_frame_count=len(user),
            reference_frame_count=len(reference),
        )

    def compare_files(self, user_path: str | Path, reference_path: str | Path) -> ComparisonResult:
        """Load two persisted sequences and compare them."""
        from swingtrace.utils.serialization import load_sequence

        try:
            user = load_sequence(user_path)
            reference = load_sequence(reference_path)
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Failed to load pose data for comparison: {e}")
            return ComparisonResult(error=f"Pose data could not be loaded: {e}")

        return self.compare(user, reference)

    def _keypoint_distances(
        self, user_frames: List[PoseFrame], reference_frames: List[PoseFrame]
    ) -> Dict[str, List[float]]:
        distances: Dict[str, List[float]] = {label: [] for label in self.keypoints}

        for i, user_frame in enumerate(user_frames):
            j = map_to_reference_index(i, len(user_frames), len(reference_frames))
            reference_frame = reference_frames[j]

            for label in self.keypoints:
                user_kp = user_frame.get_keypoint(label)
                reference_kp = reference_frame.get_keypoint(label)
                if user_kp is None or reference_kp is None:
                    continue
                if user_kp.confidence <= self.min_confidence:
                    continue
                if reference_kp.confidence <= self.min_confidence:
                    continue
                distances[label].append(euclidean_distance(user_kp.position, reference_kp.position))

        return distances

    def generate_recommendations(self, scores: Dict[str, float]) -> List[str]:
        """Turn low keypoint scores into advice, worst first."""
        low = [
            label
            for label in self.keypoints
            if label in scores and scores[label] < self.low_score_threshold
        ]
        if not low:
            return [POSITIVE_MESSAGE]

        low.sort(key=lambda label: scores[label])
        advice = [
            f"{RECOMMENDATIONS.get(label, label.replace('_', ' ').capitalize())} "
            f"(currently {scores[label]:.0f}%)"
            for label in low
        ]

        # The closing message counts toward the limit
        if len(advice) >= self.max_recommendations:
            advice = advice[: self.max_recommendations - 1]
            advice.append(FOCUS_MESSAGE)

        return advice
