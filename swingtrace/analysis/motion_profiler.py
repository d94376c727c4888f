"""Motion profiling for motion-adaptive pose sampling.

A swing spends most of its duration almost still (address, finish) and a few
hundred milliseconds moving very fast (downswing, impact). The profiler scans
the video coarsely, measures how much each sample differs from the previous
one, and turns the resulting motion curve into a plan of segments, each
carrying the sampling rate the pose analyzer should use inside it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

import cv2
import numpy as np
from scipy.ndimage import median_filter

from swingtrace.cameras.base_camera import BaseCamera
from swingtrace.utils.config import load_analysis_config

logger = logging.getLogger(__name__)


class SwingPhase(Enum):
    """Coarse motion-pattern classification used to choose sampling density.

    Not a biomechanical detector: the phase only encodes how intense the
    motion around a sample is.
    """

    ADDRESS = "address"
    TAKEAWAY = "takeaway"
    BACKSWING = "backswing"
    TOP = "top"
    TRANSITION = "transition"
    DOWNSWING = "downswing"
    IMPACT = "impact"
    FOLLOW_THROUGH = "follow_through"
    FINISH = "finish"


HIGH_DENSITY_PHASES = frozenset({SwingPhase.DOWNSWING, SwingPhase.IMPACT})
MEDIUM_DENSITY_PHASES = frozenset(
    {SwingPhase.TRANSITION, SwingPhase.BACKSWING, SwingPhase.FOLLOW_THROUGH}
)


@dataclass(frozen=True)
class MotionSegment:
    """A timeline interval tagged with a phase and a sampling rate.

    Attributes:
        start_ms: Inclusive start of the interval.
        end_ms: Exclusive end of the interval (always > start_ms).
        motion_level: Average normalized motion inside the interval (0-1).
        phase: Motion phase of the interval.
        recommended_fps: Sampling rate the analyzer should use.
    """

    start_ms: int
    end_ms: int
    motion_level: float
    phase: SwingPhase
    recommended_fps: int

    def __post_init__(self):
        if self.end_ms <= self.start_ms:
            raise ValueError(
                f"Segment end ({self.end_ms}) must be after start ({self.start_ms})"
            )

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def sample_times(self) -> List[int]:
        """Sample instants inside [start_ms, end_ms) spaced by 1000/fps ms."""
        step = 1000.0 / self.recommended_fps
        times = []
        k = 0
        while True:
            t = self.start_ms + k * step
            if t >= self.end_ms:
                break
            times.append(int(t))
            k += 1
        return times

    def to_dict(self) -> Dict:
        return {
            "start_ms": self.start_ms,
            "end_ms": self.end_ms,
            "motion_level": self.motion_level,
            "phase": self.phase.value,
            "recommended_fps": self.recommended_fps,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "MotionSegment":
        return cls(
            start_ms=int(data["start_ms"]),
            end_ms=int(data["end_ms"]),
            motion_level=float(data.get("motion_level", 0.0)),
            phase=SwingPhase(data["phase"]),
            recommended_fps=int(data["recommended_fps"]),
        )


def merge_segments(segments: List[MotionSegment]) -> List[MotionSegment]:
    """Collapse consecutive segments sharing phase and sampling rate.

    The merged motion level is the mean of the motion levels of the
    segments that were collapsed.

    Args:
        segments: Time-ordered, contiguous segments.

    Returns:
        Plan in which no two adjacent segments share (phase, recommended_fps).

    Example:
        >>> a = MotionSegment(0, 1000, 0.0, SwingPhase.ADDRESS, 30)
        >>> b = MotionSegment(1000, 2000, 0.0, SwingPhase.ADDRESS, 30)
        >>> merge_segments([a, b])
        [MotionSegment(start_ms=0, end_ms=2000, motion_level=0.0, ...)]
    """
    merged: List[MotionSegment] = []
    levels: List[float] = []

    for segment in segments:
        if merged and (
            merged[-1].phase == segment.phase
            and merged[-1].recommended_fps == segment.recommended_fps
        ):
            levels.append(segment.motion_level)
            last = merged[-1]
            merged[-1] = MotionSegment(
                start_ms=last.start_ms,
                end_ms=segment.end_ms,
                motion_level=float(np.mean(levels)),
                phase=last.phase,
                recommended_fps=last.recommended_fps,
            )
        else:
            merged.append(segment)
            levels = [segment.motion_level]

    return merged


class MotionProfiler:
    """Scan a video coarsely and build a motion-adaptive sampling plan."""

    def __init__(
        self,
        interval_ms: Optional[int] = None,
        stride: Optional[int] = None,
        normalize_to_peak: Optional[bool] = None,
    ):
        """Initialize motion profiler.

        Args:
            interval_ms: Coarse sampling interval in milliseconds.
            stride: Pixel stride used to subsample each frame.
            normalize_to_peak: Rescale the motion series by its peak value.
        """
        # Load configuration
        config = load_analysis_config()
        profiler_config = config.get("motion_profiler", {})

        self.interval_ms = (
            interval_ms if interval_ms is not None else profiler_config.get("interval_ms", 100)
        )
        self.stride = stride if stride is not None else profiler_config.get("stride", 4)
        self.normalize_to_peak = (
            normalize_to_peak
            if normalize_to_peak is not None
            else profiler_config.get("normalize_to_peak", True)
        )
        self.median_window = profiler_config.get("median_window", 3)
        self.trailing_window = profiler_config.get("trailing_window", 3)

        thresholds = profiler_config.get("thresholds", {})
        self.impact_threshold = thresholds.get("impact", 0.9)
        self.downswing_threshold = thresholds.get("downswing", 0.75)
        self.transition_threshold = thresholds.get("transition", 0.6)
        self.backswing_threshold = thresholds.get("backswing", 0.4)
        self.takeaway_threshold = thresholds.get("takeaway", 0.1)
        self.address_threshold = thresholds.get("address", 0.15)

        fps_config = profiler_config.get("fps", {})
        self.high_fps = fps_config.get("high", 120)
        self.medium_fps = fps_config.get("medium", 60)
        self.low_fps = fps_config.get("low", 30)
        self.default_fps = profiler_config.get("default_fps", self.low_fps)

    def profile(self, source: BaseCamera, duration_ms: Optional[int] = None) -> List[MotionSegment]:
        """Build a sampling plan for a video.

        Args:
            source: Frame source supporting seek_ms()/capture_frame().
            duration_ms: Video duration. Defaults to the source's duration.

        Returns:
            Merged list of motion segments covering [0, duration_ms), or an
            empty list if the video has no duration or cannot be sampled.
            Callers fall back to fallback_plan() in that case.
        """
        if not source.is_opened() and not source.open():
            logger.warning("Video source could not be opened for motion profiling")
            return []

        if duration_ms is None:
            duration_ms = source.get_duration_ms()

        if duration_ms <= 0:
            logger.warning("Video has zero duration, no motion plan produced")
            return []

        sample_times = list(range(0, int(duration_ms), int(self.interval_ms)))
        raw_motion = self.measure_motion(source, sample_times)
        if raw_motion is None:
            logger.warning("No frame could be sampled, no motion plan produced")
            return []

        smoothed = self.smooth_motion(raw_motion)
        phases = self.classify_phases(smoothed)

        segments = []
        for i, t in enumerate(sample_times):
            end = min(t + int(self.interval_ms), int(duration_ms))
            segments.append(
                MotionSegment(
                    start_ms=t,
                    end_ms=end,
                    motion_level=float(smoothed[i]),
                    phase=phases[i],
                    recommended_fps=self.fps_for_phase(phases[i]),
                )
            )

        plan = merge_segments(segments)
        logger.info(
            f"Motion profile: {len(sample_times)} samples -> {len(plan)} segments "
            f"over {duration_ms}ms"
        )
        return plan

    def fallback_plan(self, duration_ms: int) -> List[MotionSegment]:
        """Single default-rate segment spanning the whole video."""
        if duration_ms <= 0:
            return []
        return [
            MotionSegment(
                start_ms=0,
                end_ms=int(duration_ms),
                motion_level=0.0,
                phase=SwingPhase.ADDRESS,
                recommended_fps=self.default_fps,
            )
        ]

    def measure_motion(self, source: BaseCamera, sample_times: List[int]) -> Optional[np.ndarray]:
        """Measure frame-difference motion at each sample time.

        Args:
            source: Opened frame source.
            sample_times: Sample instants in milliseconds.

        Returns:
            Motion array (n_samples,) in [0, 1], or None if no frame could
            be captured at all.
        """
        motion = np.zeros(len(sample_times))
        previous: Optional[np.ndarray] = None
        captured = 0

        for i, t in enumerate(sample_times):
            buffer = self._capture_luminance(source, t)

            if buffer is None:
                # Hold the previous value so one bad sample does not look like a stop
                motion[i] = motion[i - 1] if i > 0 else 0.0
                logger.debug(f"Motion sample at {t}ms could not be captured")
                continue

            captured += 1
            if previous is not None and previous.shape == buffer.shape:
                diff = np.abs(buffer - previous)
                motion[i] = float(np.mean(diff)) / 255.0
            previous = buffer

        if captured == 0:
            return None

        if self.normalize_to_peak:
            peak = motion.max()
            if peak > 0:
                motion = motion / peak

        return np.clip(motion, 0.0, 1.0)

    def _capture_luminance(self, source: BaseCamera, t: int) -> Optional[np.ndarray]:
        """Capture the frame at t as a stride-subsampled grayscale buffer."""
        try:
            if not source.seek_ms(t):
                return None
            frame = source.capture_frame()
        except Exception as e:
            logger.debug(f"Capture failed at {t}ms: {e}")
            return None

        if frame is None:
            return None

        if frame.ndim == 3:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)

        return frame[:: self.stride, :: self.stride].astype(np.float32)

    def smooth_motion(self, motion: np.ndarray) -> np.ndarray:
        """Suppress single-sample noise with a short median filter."""
        if len(motion) < self.median_window:
            return motion.copy()
        return median_filter(motion, size=self.median_window, mode="nearest")

    def classify_phases(self, motion: np.ndarray) -> List[SwingPhase]:
        """Classify every sample of a smoothed motion series.

        Rules are evaluated in order; the first match wins.

        Args:
            motion: Smoothed motion series in [0, 1].

        Returns:
            One SwingPhase per sample.
        """
        phases = []
        swing_started = False

        for i, level in enumerate(motion):
            phase = self._classify_sample(motion, i, swing_started)
            if level >= self.backswing_threshold:
                swing_started = True
            phases.append(phase)

        return phases

    def _classify_sample(self, motion: np.ndarray, i: int, swing_started: bool) -> SwingPhase:
        level = motion[i]

        if self._is_top(motion, i):
            return SwingPhase.TOP
        if level >= self.impact_threshold:
            return SwingPhase.IMPACT
        if level >= self.downswing_threshold:
            return SwingPhase.DOWNSWING
        if level >= self.transition_threshold:
            return SwingPhase.TRANSITION
        if level >= self.backswing_threshold:
            return SwingPhase.BACKSWING
        if level >= self.takeaway_threshold:
            return SwingPhase.TAKEAWAY
        if level < self.address_threshold and not swing_started:
            return SwingPhase.ADDRESS

        # Low motion after the swing: still decaying means follow-through
        trailing = motion[max(0, i - self.trailing_window) : i]
        if len(trailing) > 0 and float(np.mean(trailing)) >= self.takeaway_threshold:
            return SwingPhase.FOLLOW_THROUGH
        return SwingPhase.FINISH

    def _is_top(self, motion: np.ndarray, i: int) -> bool:
        """Local minimum reached right after rising motion."""
        if i < 2 or i >= len(motion) - 1:
            return False
        rising = motion[i - 1] > motion[i - 2] and motion[i - 1] >= self.takeaway_threshold
        local_min = motion[i] < motion[i - 1] and motion[i] <= motion[i + 1]
        return bool(rising and local_min)

    def fps_for_phase(self, phase: SwingPhase) -> int:
        """Sampling rate for a motion phase."""
        if phase in HIGH_DENSITY_PHASES:
            return self.high_fps
        if phase in MEDIUM_DENSITY_PHASES:
            return self.medium_fps
        return self.low_fps
