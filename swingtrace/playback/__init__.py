"""Playback reconstruction of pose sequences for overlay rendering."""

from swingtrace.playback.interpolator import (
    KeypointSmoother,
    LatencyEstimator,
    PlaybackInterpolator,
    find_bracketing_frames,
    interpolate_pose,
)

__all__ = [
    "PlaybackInterpolator",
    "LatencyEstimator",
    "KeypointSmoother",
    "find_bracketing_frames",
    "interpolate_pose",
]
