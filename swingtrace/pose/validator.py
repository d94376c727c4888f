"""Pose validation: decide which detected poses are trustworthy.

All checks are pure functions of a keypoint mapping (label -> Keypoint).
"""

from dataclasses import dataclass
from typing import Mapping, Optional

from swingtrace.pose.keypoints import MIN_KEYPOINT_CONFIDENCE, Keypoint

# Mean confidence required over the visible critical keypoints
MIN_AVERAGE_CONFIDENCE = 0.65

# Critical keypoints that must be visible for a frame to be usable
MIN_VISIBLE_CRITICAL = 4

ESSENTIAL_KEYPOINTS = ("left_shoulder", "right_shoulder")

CRITICAL_KEYPOINTS = (
    "left_shoulder",
    "right_shoulder",
    "left_hip",
    "right_hip",
    "left_elbow",
    "right_elbow",
)


@dataclass(frozen=True)
class UsabilityReport:
    """Outcome of the usability check, with the first failed rule."""

    usable: bool
    visible_critical: int
    average_confidence: float
    reason: Optional[str] = None


def is_keypoint_visible(keypoint: Optional[Keypoint]) -> bool:
    """Check if a single keypoint is present and confident enough."""
    return keypoint is not None and keypoint.confidence >= MIN_KEYPOINT_CONFIDENCE


def _visible_critical(keypoints: Mapping[str, Keypoint]) -> list[Keypoint]:
    visible = []
    for label in CRITICAL_KEYPOINTS:
        keypoint = keypoints.get(label)
        if is_keypoint_visible(keypoint):
            visible.append(keypoint)
    return visible


def usability_report(keypoints: Mapping[str, Keypoint]) -> UsabilityReport:
    """Run the usability rules and report which one failed.

    A frame is usable if:
    1. Every essential keypoint (both shoulders) is visible.
    2. At least 4 of the 6 critical keypoints are visible.
    3. The mean confidence of the visible critical keypoints is >= 0.65.

    Args:
        keypoints: Keypoints by label.

    Returns:
        UsabilityReport describing the decision.
    """
    visible = _visible_critical(keypoints)
    average = sum(kp.confidence for kp in visible) / len(visible) if visible else 0.0

    for label in ESSENTIAL_KEYPOINTS:
        if not is_keypoint_visible(keypoints.get(label)):
            return UsabilityReport(False, len(visible), average, f"essential {label} not visible")

    if len(visible) < MIN_VISIBLE_CRITICAL:
        return UsabilityReport(
            False, len(visible), average, f"only {len(visible)} critical keypoints visible"
        )

    if average < MIN_AVERAGE_CONFIDENCE:
        return UsabilityReport(
            False, len(visible), average, f"average confidence {average:.2f} too low"
        )

    return UsabilityReport(True, len(visible), average)


def is_frame_usable(keypoints: Mapping[str, Keypoint]) -> bool:
    """Check if a keypoint set is trustworthy enough to keep."""
    return usability_report(keypoints).usable


def quality_score(keypoints: Mapping[str, Keypoint]) -> float:
    """Mean confidence over the visible critical keypoints (0.0 if none)."""
    visible = _visible_critical(keypoints)
    if not visible:
        return 0.0
    return sum(kp.confidence for kp in visible) / len(visible)


def is_body_present(keypoints: Mapping[str, Keypoint]) -> bool:
    """Weaker check used to suppress overlay rendering.

    Both shoulders must be visible and at least one hip.
    """
    has_shoulders = is_keypoint_visible(keypoints.get("left_shoulder")) and is_keypoint_visible(
        keypoints.get("right_shoulder")
    )
    has_hip = is_keypoint_visible(keypoints.get("left_hip")) or is_keypoint_visible(
        keypoints.get("right_hip")
    )
    return has_shoulders and has_hip
