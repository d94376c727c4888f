"""Persisted pose sequence format (JSON)."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping

from swingtrace.analysis.motion_profiler import MotionSegment
from swingtrace.pose.keypoints import PoseFrame, PoseSequence, SequenceMetadata

logger = logging.getLogger(__name__)

POSE_FILE_SUFFIX = "_pose.json"
SHOULDER_FILE_SUFFIX = "_shoulders.json"


def sequence_to_dict(sequence: PoseSequence) -> Dict[str, Any]:
    """Convert a sequence and its metadata to a JSON-ready dict."""
    metadata = sequence.metadata
    return {
        "video_path": metadata.video_path,
        "analyzed_at": metadata.analyzed_at,
        "model": metadata.model,
        "analysis_method": metadata.analysis_method,
        "frame_count": len(sequence),
        "segments": [segment.to_dict() for segment in metadata.segments],
        "stats": dict(metadata.stats),
        "frames": [frame.to_dict() for frame in sequence],
    }


def sequence_from_dict(data: Mapping[str, Any]) -> PoseSequence:
    """Rebuild a sequence from its persisted dict.

    Frames are sorted by timestamp on load, so files written by other tools
    in arbitrary order are accepted.

    Raises:
        KeyError: If a frame has no timestamp.
        ValueError: If the data is not a pose file object, a frame is
            malformed, or two frames share a timestamp.
    """
    if not isinstance(data, Mapping):
        raise ValueError(f"Pose data must be a JSON object, got {type(data).__name__}")

    items = data.get("frames") or []
    if not isinstance(items, list):
        raise ValueError(f"'frames' must be a list, got {type(items).__name__}")

    frames = []
    for i, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ValueError(f"Frame {i} must be an object, got {type(item).__name__}")
        try:
            frames.append(PoseFrame.from_dict(item))
        except (TypeError, AttributeError) as e:
            raise ValueError(f"Frame {i} is malformed: {e}") from e
    frames.sort(key=lambda f: f.timestamp_ms)

    metadata = SequenceMetadata(
        model=data.get("model") or "unknown",
        analysis_method=data.get("analysis_method") or "unknown",
        video_path=data.get("video_path"),
        analyzed_at=data.get("analyzed_at"),
        segments=tuple(MotionSegment.from_dict(s) for s in data.get("segments") or []),
        stats=dict(data.get("stats") or {}),
    )

    frame_count = data.get("frame_count")
    if frame_count is not None and frame_count != len(frames):
        logger.warning(f"frame_count says {frame_count} but {len(frames)} frames were found")

    return PoseSequence(frames=frames, metadata=metadata)


def save_sequence(sequence: PoseSequence, path: str | Path) -> Path:
    """Write a sequence to a JSON file, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        json.dump(sequence_to_dict(sequence), f, indent=2)

    logger.info(f"Saved {len(sequence)} frames to {path}")
    return path


def load_sequence(path: str | Path) -> PoseSequence:
    """Read a sequence written by save_sequence."""
    path = Path(path)
    with open(path) as f:
        data = json.load(f)

    sequence = sequence_from_dict(data)
    logger.info(f"Loaded {len(sequence)} frames from {path}")
    return sequence


def export_shoulder_track(sequence: PoseSequence, path: str | Path) -> Path:
    """Write the shoulders-only track used by older overlay players.

    Each entry is {timestamp_ms, left: {x, y}, right: {x, y}}; frames missing
    either shoulder are skipped.
    """
    track = []
    for frame in sequence:
        left = frame.get_keypoint("left_shoulder")
        right = frame.get_keypoint("right_shoulder")
        if left is None or right is None:
            continue
        track.append(
            {
                "timestamp_ms": frame.timestamp_ms,
                "left": {"x": left.x, "y": left.y},
                "right": {"x": right.x, "y": right.y},
            }
        )

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(track, f, indent=2)

    logger.info(f"Exported {len(track)} shoulder positions to {path}")
    return path


def default_output_path(
    video_path: str | Path,
    output_dir: str | Path | None = None,
    suffix: str = POSE_FILE_SUFFIX,
) -> Path:
    """Path of the pose file written next to (or for) a video."""
    video_path = Path(video_path)
    directory = Path(output_dir) if output_dir is not None else video_path.parent
    return directory / f"{video_path.stem}{suffix}"
