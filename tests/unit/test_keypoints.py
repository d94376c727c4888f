"""Unit tests for the pose data model."""

import pytest
from conftest import make_keypoints, make_sequence

from swingtrace.analysis.motion_profiler import SwingPhase
from swingtrace.pose.keypoints import Keypoint, PoseFrame, PoseSequence, SequenceMetadata


class TestKeypoint:
    """Test single keypoints."""

    def test_visibility_threshold(self):
        assert Keypoint("nose", 0.5, 0.5, 0.6).is_visible
        assert not Keypoint("nose", 0.5, 0.5, 0.59).is_visible

    def test_lerp(self):
        a = Keypoint("left_wrist", 0.0, 0.0, 0.6)
        b = Keypoint("left_wrist", 1.0, 0.5, 1.0)

        mid = a.lerp(b, 0.5)

        assert mid.position == pytest.approx((0.5, 0.25))
        assert mid.confidence == pytest.approx(0.8)
        assert mid.label == "left_wrist"

    def test_dict_uses_score(self):
        kp = Keypoint("nose", 0.1, 0.2, 0.9)
        assert kp.to_dict() == {"x": 0.1, "y": 0.2, "score": 0.9}

    def test_from_dict_accepts_confidence(self):
        kp = Keypoint.from_dict("nose", {"x": 0.1, "y": 0.2, "confidence": 0.7})
        assert kp.confidence == 0.7


class TestPoseFrame:
    """Test pose frame construction."""

    def test_create_computes_quality(self, good_keypoints):
        frame = PoseFrame.create(100, 3, good_keypoints)

        assert frame.quality_score == pytest.approx(0.9)
        assert frame.timestamp_ms == 100
        assert frame.frame_index == 3

    def test_quality_ignores_invisible(self):
        keypoints = make_keypoints(confidence=0.8, overrides={"left_elbow": 0.1})
        frame = PoseFrame.create(0, 0, keypoints)
        assert frame.quality_score == pytest.approx(0.8)

    def test_dict_round_trip(self, good_keypoints):
        frame = PoseFrame.create(
            250, 8, good_keypoints, phase=SwingPhase.DOWNSWING, sample_fps=120
        )

        restored = PoseFrame.from_dict(frame.to_dict())

        assert restored.timestamp_ms == 250
        assert restored.phase == SwingPhase.DOWNSWING
        assert restored.sample_fps == 120
        assert restored.get_keypoint("left_hip") == good_keypoints["left_hip"]

    def test_with_keypoints_keeps_timing(self, good_keypoints):
        frame = PoseFrame.create(250, 8, good_keypoints)
        moved = frame.with_keypoints({"nose": Keypoint("nose", 0.0, 0.0, 1.0)})

        assert moved.timestamp_ms == 250
        assert list(moved.keypoints) == ["nose"]
        assert frame.get_keypoint("left_hip") is not None


class TestPoseSequence:
    """Test ordering guarantees of sequences."""

    def test_strictly_increasing(self):
        sequence = make_sequence([0, 100, 250])

        assert sequence.timestamps == (0, 100, 250)
        assert sequence.duration_ms == 250
        assert len(sequence) == 3

    def test_rejects_unsorted(self):
        keypoints = make_keypoints()
        frames = [PoseFrame.create(100, 0, keypoints), PoseFrame.create(50, 1, keypoints)]

        with pytest.raises(ValueError):
            PoseSequence(frames)

    def test_rejects_duplicate_timestamp(self):
        keypoints = make_keypoints()
        frames = [PoseFrame.create(100, 0, keypoints), PoseFrame.create(100, 1, keypoints)]

        with pytest.raises(ValueError):
            PoseSequence(frames)

    def test_empty(self):
        sequence = PoseSequence()

        assert sequence.is_empty()
        assert sequence.duration_ms == 0
        assert sequence.metadata == SequenceMetadata()

    def test_frames_are_immutable_view(self):
        sequence = make_sequence([0, 100])
        assert isinstance(sequence.frames, tuple)

    def test_metadata_is_read_only(self):
        sequence = make_sequence([0, 100])

        with pytest.raises(AttributeError):
            sequence.metadata = SequenceMetadata(model="other")
