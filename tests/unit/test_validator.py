"""Unit tests for pose validation."""

import pytest
from conftest import make_keypoints

from swingtrace.pose.keypoints import Keypoint
from swingtrace.pose.validator import (
    CRITICAL_KEYPOINTS,
    is_body_present,
    is_frame_usable,
    quality_score,
    usability_report,
)


def shoulders_only(confidence=0.9):
    return {
        "left_shoulder": Keypoint("left_shoulder", 0.6, 0.3, confidence),
        "right_shoulder": Keypoint("right_shoulder", 0.4, 0.3, confidence),
    }


class TestFrameUsability:
    """Test the usability rules."""

    def test_full_pose_usable(self, good_keypoints):
        assert is_frame_usable(good_keypoints)

    def test_shoulders_only_rejected(self):
        """Shoulders alone are only 2 of the 4 required critical keypoints."""
        report = usability_report(shoulders_only())

        assert not report.usable
        assert report.visible_critical == 2

    def test_missing_shoulder_rejected(self):
        keypoints = make_keypoints(overrides={"left_shoulder": 0.2})
        report = usability_report(keypoints)

        assert not report.usable
        assert "left_shoulder" in report.reason

    def test_four_critical_enough(self):
        keypoints = make_keypoints(overrides={"left_elbow": 0.1, "right_elbow": 0.1})
        assert is_frame_usable(keypoints)

    def test_three_critical_not_enough(self):
        keypoints = make_keypoints(
            overrides={"left_elbow": 0.1, "right_elbow": 0.1, "left_hip": 0.1}
        )
        assert not is_frame_usable(keypoints)

    def test_low_average_rejected(self):
        """All critical keypoints visible but averaging below 0.65."""
        keypoints = make_keypoints(confidence=0.62)
        report = usability_report(keypoints)

        assert not report.usable
        assert report.visible_critical == len(CRITICAL_KEYPOINTS)
        assert report.average_confidence == pytest.approx(0.62)

    def test_non_critical_keypoints_ignored(self):
        keypoints = make_keypoints(
            overrides={"nose": 0.0, "left_ankle": 0.0, "left_wrist": 0.0, "right_knee": 0.0}
        )
        assert is_frame_usable(keypoints)

    def test_raising_visible_confidence_keeps_usable(self):
        base = make_keypoints(confidence=0.7, overrides={"left_elbow": 0.1})
        assert is_frame_usable(base)

        for label in CRITICAL_KEYPOINTS:
            if label == "left_elbow":
                continue
            raised = dict(base)
            kp = raised[label]
            raised[label] = Keypoint(label, kp.x, kp.y, 0.99)
            assert is_frame_usable(raised)

    def test_raising_to_high_confidence_keeps_usable(self):
        base = make_keypoints(confidence=0.7, overrides={"left_elbow": 0.1})
        kp = base["left_elbow"]
        raised = dict(base)
        raised["left_elbow"] = Keypoint("left_elbow", kp.x, kp.y, 0.8)

        assert is_frame_usable(raised)


class TestQualityAndPresence:
    """Test quality score and body presence."""

    def test_quality_score_mean_of_visible(self):
        keypoints = make_keypoints(
            confidence=0.8, overrides={"left_shoulder": 1.0, "right_elbow": 0.2}
        )
        # Visible critical: 1.0, 0.8, 0.8, 0.8, 0.8
        assert quality_score(keypoints) == pytest.approx(0.84)

    def test_quality_score_none_visible(self):
        assert quality_score({}) == 0.0

    def test_body_present(self, good_keypoints):
        assert is_body_present(good_keypoints)

    def test_body_present_one_hip(self):
        keypoints = make_keypoints(overrides={"left_hip": 0.1})
        assert is_body_present(keypoints)

    def test_body_absent_without_hips(self):
        assert not is_body_present(shoulders_only())
