"""Pose data model shared by analysis, playback and comparison.

Coordinates are normalized to the source video frame (0.0 = left/top edge,
1.0 = right/bottom edge). Frames and sequences are immutable once built, so a
loaded PoseSequence can be shared by any number of readers without locking.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from swingtrace.analysis.motion_profiler import MotionSegment, SwingPhase

# Confidence at or above which a keypoint counts as visible
MIN_KEYPOINT_CONFIDENCE = 0.6

# COCO-17 keypoint order returned by the inference primitive
COCO_17_KEYPOINTS = [
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
]

# Keypoints followed during playback overlay and swing comparison
SWING_KEYPOINTS = [
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
]


@dataclass(frozen=True)
class Keypoint:
    """A single named body keypoint.

    Attributes:
        label: Keypoint name (e.g. 'left_shoulder').
        x: Horizontal position, normalized to the source frame.
        y: Vertical position, normalized to the source frame.
        confidence: Detection confidence (0.0 to 1.0).
    """

    label: str
    x: float
    y: float
    confidence: float

    @property
    def is_visible(self) -> bool:
        return self.confidence >= MIN_KEYPOINT_CONFIDENCE

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def lerp(self, other: "Keypoint", t: float) -> "Keypoint":
        """Interpolate position and confidence towards other (t in [0, 1])."""
        return Keypoint(
            label=self.label,
            x=self.x + (other.x - self.x) * t,
            y=self.y + (other.y - self.y) * t,
            confidence=self.confidence + (other.confidence - self.confidence) * t,
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "score": self.confidence}

    @classmethod
    def from_dict(cls, label: str, data: Mapping[str, Any]) -> "Keypoint":
        # Older exports used 'confidence' instead of 'score'
        score = data.get("score", data.get("confidence", 0.0))
        return cls(
            label=label,
            x=float(data["x"]),
            y=float(data["y"]),
            confidence=float(score),
        )


@dataclass(frozen=True)
class PoseFrame:
    """Keypoints detected at one sampled video instant.

    Attributes:
        timestamp_ms: Video position of the sample.
        frame_index: Source video frame index of the sample.
        keypoints: Keypoints by label.
        quality_score: Mean confidence over the visible critical keypoints.
        phase: Motion phase of the segment the sample came from.
        sample_fps: Sampling rate of the segment the sample came from.
    """

    timestamp_ms: int
    frame_index: int
    keypoints: Mapping[str, Keypoint]
    quality_score: float = 0.0
    phase: Optional[SwingPhase] = None
    sample_fps: Optional[int] = None

    @classmethod
    def create(
        cls,
        timestamp_ms: int,
        frame_index: int,
        keypoints: Mapping[str, Keypoint],
        phase: Optional[SwingPhase] = None,
        sample_fps: Optional[int] = None,
    ) -> "PoseFrame":
        """Build a frame, computing its quality score from the keypoints."""
        from swingtrace.pose.validator import quality_score

        return cls(
            timestamp_ms=int(timestamp_ms),
            frame_index=int(frame_index),
            keypoints=dict(keypoints),
            quality_score=quality_score(keypoints),
            phase=phase,
            sample_fps=sample_fps,
        )

    def get_keypoint(self, label: str) -> Optional[Keypoint]:
        return self.keypoints.get(label)

    def with_keypoints(self, keypoints: Mapping[str, Keypoint]) -> "PoseFrame":
        """Copy of this frame with the keypoints replaced (quality kept)."""
        return PoseFrame(
            timestamp_ms=self.timestamp_ms,
            frame_index=self.frame_index,
            keypoints=dict(keypoints),
            quality_score=self.quality_score,
            phase=self.phase,
            sample_fps=self.sample_fps,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp_ms": self.timestamp_ms,
            "frame_index": self.frame_index,
            "quality_score": self.quality_score,
            "phase": self.phase.value if self.phase is not None else None,
            "sample_fps": self.sample_fps,
            "keypoints": {label: kp.to_dict() for label, kp in self.keypoints.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PoseFrame":
        keypoints = {
            label: Keypoint.from_dict(label, value)
            for label, value in (data.get("keypoints") or {}).items()
            if isinstance(value, Mapping)
        }
        phase = data.get("phase")
        sample_fps = data.get("sample_fps")
        return cls(
            timestamp_ms=int(data["timestamp_ms"]),
            frame_index=int(data.get("frame_index", 0)),
            keypoints=keypoints,
            quality_score=float(data.get("quality_score") or 0.0),
            phase=SwingPhase(phase) if phase else None,
            sample_fps=int(sample_fps) if sample_fps is not None else None,
        )


@dataclass(frozen=True)
class SequenceMetadata:
    """Provenance of a pose sequence."""

    model: str = "unknown"
    analysis_method: str = "unknown"
    video_path: Optional[str] = None
    analyzed_at: Optional[str] = None
    segments: Tuple[MotionSegment, ...] = ()
    stats: Mapping[str, Any] = field(default_factory=dict)


class PoseSequence:
    """Time-ordered, immutable list of pose frames for one recording."""

    def __init__(
        self,
        frames: List[PoseFrame] | Tuple[PoseFrame, ...] = (),
        metadata: Optional[SequenceMetadata] = None,
    ):
        """Initialize sequence.

        Args:
            frames: Frames in strictly increasing timestamp order.
            metadata: Sequence provenance.

        Raises:
            ValueError: If timestamps are not strictly increasing.
        """
        frames = tuple(frames)
        for previous, current in zip(frames, frames[1:]):
            if current.timestamp_ms <= previous.timestamp_ms:
                raise ValueError(
                    "PoseSequence timestamps must be strictly increasing "
                    f"({previous.timestamp_ms}ms followed by {current.timestamp_ms}ms)"
                )

        self._frames = frames
        self._timestamps = tuple(frame.timestamp_ms for frame in frames)
        self._metadata = metadata or SequenceMetadata()

    @property
    def frames(self) -> Tuple[PoseFrame, ...]:
        return self._frames

    @property
    def metadata(self) -> SequenceMetadata:
        return self._metadata

    @property
    def timestamps(self) -> Tuple[int, ...]:
        return self._timestamps

    @property
    def duration_ms(self) -> int:
        if not self._frames:
            return 0
        return self._timestamps[-1] - self._timestamps[0]

    def is_empty(self) -> bool:
        return not self._frames

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[PoseFrame]:
        return iter(self._frames)

    def __getitem__(self, index: int) -> PoseFrame:
        return self._frames[index]

    def __repr__(self) -> str:
        return (
            f"PoseSequence(frames={len(self._frames)}, duration_ms={self.duration_ms}, "
            f"model={self.metadata.model!r})"
        )
