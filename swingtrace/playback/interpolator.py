"""Playback interpolation of a non-uniform pose sequence.

The renderer calls PlaybackInterpolator.update() once per displayed frame
with the current video position. The interpolator shifts the lookup forward
by the measured rendering latency, linearly interpolates between the two
bracketing pose frames, and smooths the result per keypoint so markers stay
steady between sparse samples.

One interpolator belongs to one playback session; its latency and smoothing
state must not be shared between renderer threads.
"""

import bisect
import logging
from collections import deque
from typing import Dict, Iterable, Optional, Tuple

from swingtrace.pose.keypoints import PoseFrame, PoseSequence
from swingtrace.pose.validator import is_body_present
from swingtrace.utils.config import load_analysis_config
from swingtrace.utils.geometry import clamp, lerp_point

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


class LatencyEstimator:
    """Rolling average of measured render latency."""

    def __init__(
        self,
        window: int = 20,
        min_latency_ms: float = 0.0,
        max_latency_ms: float = 200.0,
    ):
        """Initialize estimator.

        Args:
            window: Number of recent samples averaged.
            min_latency_ms: Samples below this are discarded.
            max_latency_ms: Samples above this are discarded.
        """
        self.min_latency_ms = min_latency_ms
        self.max_latency_ms = max_latency_ms
        self._samples: deque = deque(maxlen=window)
        self._total = 0.0

    @property
    def average_ms(self) -> float:
        if not self._samples:
            return 0.0
        return self._total / len(self._samples)

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def record(self, latency_ms: float) -> bool:
        """Add a latency sample.

        Returns:
            True if the sample was in range and recorded.
        """
        if not self.min_latency_ms <= latency_ms <= self.max_latency_ms:
            logger.debug(f"Discarding latency sample {latency_ms:.1f}ms")
            return False

        if len(self._samples) == self._samples.maxlen:
            self._total -= self._samples[0]
        self._samples.append(latency_ms)
        self._total += latency_ms
        return True

    def measure(self, rendered_at_ms: float, computed_for_ms: float) -> bool:
        """Record the delay between the position a frame was computed for
        and the position at which it was actually displayed."""
        return self.record(rendered_at_ms - computed_for_ms)

    def reset(self) -> None:
        self._samples.clear()
        self._total = 0.0


class KeypointSmoother:
    """Exponential moving average per keypoint label."""

    def __init__(self, alpha: float = 0.1):
        """Initialize smoother.

        Args:
            alpha: Weight of the previous smoothed value (0 = no smoothing).
        """
        if not 0.0 <= alpha < 1.0:
            raise ValueError(f"alpha must be in [0, 1), got {alpha}")
        self.alpha = alpha
        self._state: Dict[str, Point] = {}

    def update(self, points: Dict[str, Point]) -> Dict[str, Point]:
        """Smooth a new set of raw points.

        The first observation of a label seeds its average unchanged.
        """
        smoothed = {}
        for label, (x, y) in points.items():
            previous = self._state.get(label)
            if previous is None:
                value = (x, y)
            else:
                value = (
                    previous[0] * self.alpha + x * (1 - self.alpha),
                    previous[1] * self.alpha + y * (1 - self.alpha),
                )
            self._state[label] = value
            smoothed[label] = value
        return smoothed

    def reset(self) -> None:
        self._state.clear()


def find_bracketing_frames(
    sequence: PoseSequence, at_ms: float
) -> Optional[Tuple[PoseFrame, PoseFrame]]:
    """Locate the frames surrounding a playback position.

    Returns (before, after) where before is the last frame with
    timestamp <= at_ms and after the first frame with timestamp >= at_ms.
    Positions outside the sequence clamp to the first or last frame (both
    elements are then the same frame). Returns None for an empty sequence.
    """
    if sequence.is_empty():
        return None

    timestamps = sequence.timestamps
    if at_ms <= timestamps[0]:
        return sequence[0], sequence[0]
    if at_ms >= timestamps[-1]:
        return sequence[-1], sequence[-1]

    after_index = bisect.bisect_left(timestamps, at_ms)
    if timestamps[after_index] == at_ms:
        return sequence[after_index], sequence[after_index]
    return sequence[after_index - 1], sequence[after_index]


def interpolate_pose(
    sequence: PoseSequence,
    at_ms: float,
    labels: Optional[Iterable[str]] = None,
) -> Dict[str, Point]:
    """Linearly interpolate keypoint positions at a playback position.

    Never extrapolates: positions before the first or after the last frame
    return that frame's keypoints. Keypoints missing from either bracketing
    frame are omitted.

    Args:
        sequence: Pose sequence to sample.
        at_ms: Playback position in milliseconds.
        labels: Restrict the output to these keypoint labels.

    Returns:
        Mapping of label to normalized (x, y).
    """
    bracket = find_bracketing_frames(sequence, at_ms)
    if bracket is None:
        return {}

    before, after = bracket
    wanted = set(labels) if labels is not None else None

    if before is after:
        return {
            label: kp.position
            for label, kp in before.keypoints.items()
            if wanted is None or label in wanted
        }

    span = after.timestamp_ms - before.timestamp_ms
    t = 0.0 if span == 0 else clamp((at_ms - before.timestamp_ms) / span, 0.0, 1.0)

    points = {}
    for label, start in before.keypoints.items():
        if wanted is not None and label not in wanted:
            continue
        end = after.keypoints.get(label)
        if end is None:
            continue
        points[label] = lerp_point(start.position, end.position, t)
    return points


class PlaybackInterpolator:
    """
    Per-session keypoint positions for overlay rendering.

    Example:
        interpolator = PlaybackInterpolator()
        for position_ms, latency_ms in player_ticks():
            points = interpolator.update(sequence, position_ms, latency_ms)
            renderer.draw(to_pixels(points, width, height))
    """

    def __init__(
        self,
        smoothing_alpha: Optional[float] = None,
        latency_estimator: Optional[LatencyEstimator] = None,
        labels: Optional[Iterable[str]] = None,
        require_body: bool = False,
    ):
        """
        Initialize interpolator.

        Args:
            smoothing_alpha: EMA weight of the previous position.
            latency_estimator: Latency state; a new one is built from config if None.
            labels: Keypoint labels to output (all labels if None).
            require_body: Output nothing while the nearest frame shows no body.
        """
        config = load_analysis_config()
        playback_config = config.get("playback", {})

        alpha = (
            smoothing_alpha
            if smoothing_alpha is not None
            else playback_config.get("smoothing_alpha", 0.1)
        )
        self.smoother = KeypointSmoother(alpha)
        self.latency = latency_estimator or LatencyEstimator(
            window=playback_config.get("latency_window", 20),
            min_latency_ms=playback_config.get("latency_min_ms", 0),
            max_latency_ms=playback_config.get("latency_max_ms", 200),
        )
        self.labels = list(labels) if labels is not None else None
        self.require_body = require_body
        self._sequence: Optional[PoseSequence] = None

    def load(self, sequence: PoseSequence) -> None:
        """Start a new playback session on a sequence (resets all state)."""
        self._sequence = sequence
        self.reset()
        logger.debug(f"Playback session loaded: {sequence!r}")

    def reset(self) -> None:
        """Clear smoothing and latency state."""
        self.smoother.reset()
        self.latency.reset()

    def predicted_position(self, current_ms: float) -> float:
        """Lookup position compensated for rendering latency."""
        return current_ms + self.latency.average_ms

    def update(
        self,
        sequence: PoseSequence,
        current_ms: float,
        latency_ms: Optional[float] = None,
    ) -> Dict[str, Point]:
        """
        Compute the keypoint positions to render for the current position.

        Args:
            sequence: Sequence being played. Passing a different sequence
                object than the previous call starts a new session.
            current_ms: Current video position in milliseconds.
            latency_ms: Latency measured for the previous render, if known.

        Returns:
            Mapping of label to smoothed, normalized (x, y). Empty when the
            sequence has no frames.
        """
        if sequence is not self._sequence:
            self.load(sequence)

        if latency_ms is not None:
            self.latency.record(latency_ms)

        if sequence.is_empty():
            return {}

        predicted_ms = self.predicted_position(current_ms)

        if self.require_body:
            bracket = find_bracketing_frames(sequence, predicted_ms)
            nearest = bracket[0]
            if bracket[1].timestamp_ms - predicted_ms < predicted_ms - bracket[0].timestamp_ms:
                nearest = bracket[1]
            if not is_body_present(nearest.keypoints):
                return {}

        raw = interpolate_pose(sequence, predicted_ms, self.labels)
        return self.smoother.update(raw)
