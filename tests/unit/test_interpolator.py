"""Unit tests for playback interpolation."""

import pytest
from conftest import make_keypoints

from swingtrace.playback.interpolator import (
    KeypointSmoother,
    LatencyEstimator,
    PlaybackInterpolator,
    find_bracketing_frames,
    interpolate_pose,
)
from swingtrace.pose.keypoints import Keypoint, PoseFrame, PoseSequence


def shoulder_sequence():
    """10 frames at 0..900 ms, left shoulder moving by (+0.01, -0.01) per frame."""
    frames = []
    for i in range(10):
        keypoints = make_keypoints()
        keypoints["left_shoulder"] = Keypoint("left_shoulder", 0.30 + 0.01 * i, 0.30 - 0.01 * i, 0.9)
        frames.append(PoseFrame.create(i * 100, i, keypoints))
    return PoseSequence(frames)


class TestFindBracketingFrames:
    """Test bracketing frame lookup."""

    def test_between_frames(self):
        before, after = find_bracketing_frames(shoulder_sequence(), 450)
        assert (before.timestamp_ms, after.timestamp_ms) == (400, 500)

    def test_exact_hit(self):
        before, after = find_bracketing_frames(shoulder_sequence(), 300)
        assert before is after
        assert before.timestamp_ms == 300

    def test_clamped_to_ends(self):
        sequence = shoulder_sequence()

        before, after = find_bracketing_frames(sequence, -50)
        assert before is after is sequence[0]

        before, after = find_bracketing_frames(sequence, 5000)
        assert before is after is sequence[-1]

    def test_empty_sequence(self):
        assert find_bracketing_frames(PoseSequence(), 100) is None


class TestInterpolatePose:
    """Test linear interpolation between frames."""

    def test_midpoint_example(self):
        points = interpolate_pose(shoulder_sequence(), 450)
        assert points["left_shoulder"] == pytest.approx((0.345, 0.255))

    def test_exact_frame_returns_frame(self):
        sequence = shoulder_sequence()
        points = interpolate_pose(sequence, 300)
        assert points["left_shoulder"] == sequence[3].get_keypoint("left_shoulder").position

    def test_no_extrapolation(self):
        sequence = shoulder_sequence()

        assert interpolate_pose(sequence, -100)["left_shoulder"] == pytest.approx((0.30, 0.30))
        assert interpolate_pose(sequence, 2000)["left_shoulder"] == pytest.approx((0.39, 0.21))

    def test_labels_filter(self):
        points = interpolate_pose(shoulder_sequence(), 450, labels=["left_shoulder"])
        assert list(points) == ["left_shoulder"]

    def test_keypoint_missing_in_one_frame_omitted(self):
        first = make_keypoints()
        second = make_keypoints()
        del second["nose"]
        sequence = PoseSequence([PoseFrame.create(0, 0, first), PoseFrame.create(100, 1, second)])

        points = interpolate_pose(sequence, 50)

        assert "nose" not in points
        assert "left_hip" in points

    def test_empty(self):
        assert interpolate_pose(PoseSequence(), 100) == {}


class TestKeypointSmoother:
    """Test EMA smoothing."""

    def test_first_observation_unsmoothed(self):
        smoother = KeypointSmoother(alpha=0.1)
        assert smoother.update({"nose": (0.5, 0.5)}) == {"nose": (0.5, 0.5)}

    def test_ema(self):
        smoother = KeypointSmoother(alpha=0.1)
        smoother.update({"nose": (0.0, 0.0)})

        smoothed = smoother.update({"nose": (1.0, 0.5)})

        assert smoothed["nose"] == pytest.approx((0.9, 0.45))

    def test_reset(self):
        smoother = KeypointSmoother(alpha=0.5)
        smoother.update({"nose": (0.0, 0.0)})
        smoother.reset()

        assert smoother.update({"nose": (1.0, 1.0)}) == {"nose": (1.0, 1.0)}

    def test_invalid_alpha(self):
        with pytest.raises(ValueError):
            KeypointSmoother(alpha=1.0)


class TestLatencyEstimator:
    """Test the rolling latency average."""

    def test_average(self):
        estimator = LatencyEstimator()
        estimator.record(40)
        estimator.record(60)

        assert estimator.average_ms == pytest.approx(50)

    def test_out_of_range_discarded(self):
        estimator = LatencyEstimator()

        assert not estimator.record(-5)
        assert not estimator.record(250)
        assert estimator.sample_count == 0
        assert estimator.average_ms == 0.0

    def test_window(self):
        estimator = LatencyEstimator(window=3)
        for latency in (10, 20, 30, 40):
            estimator.record(latency)

        assert estimator.sample_count == 3
        assert estimator.average_ms == pytest.approx(30)

    def test_measure(self):
        estimator = LatencyEstimator()
        estimator.measure(rendered_at_ms=1030, computed_for_ms=1000)
        assert estimator.average_ms == pytest.approx(30)


class TestPlaybackInterpolator:
    """Test per-session playback updates."""

    def test_first_update_matches_interpolation(self):
        interpolator = PlaybackInterpolator()
        points = interpolator.update(shoulder_sequence(), 450)
        assert points["left_shoulder"] == pytest.approx((0.345, 0.255))

    def test_latency_shifts_lookup(self):
        interpolator = PlaybackInterpolator()
        points = interpolator.update(shoulder_sequence(), 450, latency_ms=50)

        assert interpolator.latency.average_ms == pytest.approx(50)
        assert points["left_shoulder"] == pytest.approx((0.35, 0.25))

    def test_smoothing_across_calls(self):
        sequence = shoulder_sequence()
        interpolator = PlaybackInterpolator(smoothing_alpha=0.1)

        interpolator.update(sequence, 0)
        points = interpolator.update(sequence, 900)

        expected_x = 0.30 * 0.1 + 0.39 * 0.9
        assert points["left_shoulder"][0] == pytest.approx(expected_x)

    def test_new_sequence_resets_state(self):
        interpolator = PlaybackInterpolator(smoothing_alpha=0.5)
        interpolator.update(shoulder_sequence(), 0, latency_ms=100)

        other = shoulder_sequence()
        points = interpolator.update(other, 900)

        assert interpolator.latency.sample_count == 0
        assert points["left_shoulder"] == pytest.approx((0.39, 0.21))

    def test_empty_sequence(self):
        assert PlaybackInterpolator().update(PoseSequence(), 100) == {}

    def test_require_body_suppresses_output(self):
        keypoints = make_keypoints(overrides={"left_hip": 0.1, "right_hip": 0.1})
        sequence = PoseSequence([PoseFrame.create(0, 0, keypoints)])

        assert PlaybackInterpolator(require_body=True).update(sequence, 0) == {}
        assert PlaybackInterpolator().update(sequence, 0) != {}
