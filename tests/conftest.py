"""Pytest configuration and fixtures."""

import threading
from typing import Callable, Dict, List, Optional

import numpy as np
import pytest

from swingtrace.cameras.base_camera import BaseCamera
from swingtrace.exceptions import InferenceError
from swingtrace.pose.base_estimator import BasePoseEstimator
from swingtrace.pose.keypoints import COCO_17_KEYPOINTS, Keypoint, PoseFrame, PoseSequence

# Standing golfer, normalized image coordinates
BASE_POSE = {
    "nose": (0.50, 0.15),
    "left_eye": (0.52, 0.13),
    "right_eye": (0.48, 0.13),
    "left_ear": (0.54, 0.14),
    "right_ear": (0.46, 0.14),
    "left_shoulder": (0.60, 0.30),
    "right_shoulder": (0.40, 0.30),
    "left_elbow": (0.62, 0.42),
    "right_elbow": (0.38, 0.42),
    "left_wrist": (0.55, 0.52),
    "right_wrist": (0.45, 0.52),
    "left_hip": (0.57, 0.60),
    "right_hip": (0.43, 0.60),
    "left_knee": (0.58, 0.78),
    "right_knee": (0.42, 0.78),
    "left_ankle": (0.58, 0.95),
    "right_ankle": (0.42, 0.95),
}


def make_keypoints(
    confidence: float = 0.9,
    overrides: Optional[Dict[str, float]] = None,
    offset: tuple = (0.0, 0.0),
    scale: float = 1.0,
) -> Dict[str, Keypoint]:
    """Build a full COCO-17 keypoint mapping around BASE_POSE."""
    overrides = overrides or {}
    return {
        label: Keypoint(
            label=label,
            x=x * scale + offset[0],
            y=y * scale + offset[1],
            confidence=overrides.get(label, confidence),
        )
        for label, (x, y) in BASE_POSE.items()
    }


def make_sequence(timestamps: List[int], **kwargs) -> PoseSequence:
    """Build a sequence with identical poses at the given timestamps."""
    keypoints = make_keypoints(**kwargs)
    return PoseSequence([PoseFrame.create(t, i, keypoints) for i, t in enumerate(timestamps)])


class FakeFrameSource(BaseCamera):
    """In-memory frame source whose pixels are a function of time."""

    def __init__(
        self,
        duration_ms: int = 1000,
        fps: float = 30.0,
        width: int = 64,
        height: int = 48,
        intensity: Optional[Callable[[int], float]] = None,
        fail_at: Optional[set] = None,
        can_open: bool = True,
    ):
        super().__init__()
        self.duration_ms = duration_ms
        self._fps = fps
        self.width = width
        self.height = height
        self.intensity = intensity or (lambda ms: 0.0)
        self.fail_at = fail_at or set()
        self.can_open = can_open
        self.position_ms: Optional[int] = None
        self.released = False
        self.seeks: List[int] = []

    def open(self) -> bool:
        self._is_opened = self.can_open
        return self._is_opened

    def read(self):
        if not self._is_opened or self.position_ms is None:
            return False, None
        if self.position_ms in self.fail_at:
            return False, None
        value = int(np.clip(self.intensity(self.position_ms), 0, 255))
        frame = np.full((self.height, self.width, 3), value, dtype=np.uint8)
        return True, frame

    def release(self) -> None:
        self._is_opened = False
        self.released = True

    def is_opened(self) -> bool:
        return self._is_opened

    def get_fps(self) -> float:
        return self._fps

    def get_resolution(self):
        return (self.width, self.height)

    def get_duration_ms(self) -> int:
        return self.duration_ms

    def seek_ms(self, timestamp_ms: int) -> bool:
        if timestamp_ms >= self.duration_ms:
            return False
        self.position_ms = timestamp_ms
        self.seeks.append(timestamp_ms)
        return True


class FakeEstimator(BasePoseEstimator):
    """Estimator returning a fixed pose, optionally failing on chosen calls."""

    def __init__(
        self,
        keypoints: Optional[Dict[str, Keypoint]] = None,
        fail_when: Optional[Callable[[np.ndarray], bool]] = None,
        loaded: bool = True,
    ):
        super().__init__("fake-pose", device="cpu", confidence=0.5)
        self.keypoints = keypoints if keypoints is not None else make_keypoints()
        self.fail_when = fail_when
        self.calls = 0
        self.closed = False
        if loaded:
            self.load_model()

    def load_model(self):
        self.model = object()

    def infer(self, image: np.ndarray) -> List[Keypoint]:
        self.calls += 1
        if self.fail_when is not None and self.fail_when(image):
            raise InferenceError("fake inference failure")
        return [self.keypoints[label] for label in COCO_17_KEYPOINTS if label in self.keypoints]

    def close(self) -> None:
        self.closed = True
        super().close()


class FactoryRecorder:
    """Callable factory that remembers every instance it created."""

    def __init__(self, build: Callable[[], object]):
        self.build = build
        self.created: List[object] = []
        self._lock = threading.Lock()

    def __call__(self):
        instance = self.build()
        with self._lock:
            self.created.append(instance)
        return instance


@pytest.fixture
def sample_frame():
    """Create a sample BGR frame for testing.

    Returns:
        Numpy array representing a 640x480 BGR image.
    """
    return np.zeros((480, 640, 3), dtype=np.uint8)


@pytest.fixture
def good_keypoints():
    """Full keypoint set that passes validation."""
    return make_keypoints(confidence=0.9)


@pytest.fixture
def estimator_factory():
    """Recording factory of fake estimators with a valid pose."""
    return FactoryRecorder(lambda: FakeEstimator())


@pytest.fixture
def source_factory():
    """Recording factory of 1 s fake sources."""
    return FactoryRecorder(lambda: FakeFrameSource(duration_ms=1000))
