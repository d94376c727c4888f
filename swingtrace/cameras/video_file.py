"""Video file frame source implementation."""

import logging
from pathlib import Path

import cv2
import numpy as np

from swingtrace.cameras.base_camera import BaseCamera

logger = logging.getLogger(__name__)


class VideoFileCamera(BaseCamera):
    """Video file reader with millisecond seeking, using OpenCV."""

    def __init__(self, video_path: str | Path):
        """Initialize video file source.

        Args:
            video_path: Path to video file.

        Raises:
            FileNotFoundError: If the video file does not exist.
        """
        super().__init__()

        self.video_path = Path(video_path)

        if not self.video_path.exists():
            raise FileNotFoundError(f"Video file not found: {video_path}")

        self._cap: cv2.VideoCapture | None = None
        self._total_frames = 0
        self._resolution = (0, 0)

    def open(self) -> bool:
        """Open video file.

        Returns:
            True if successful, False otherwise.
        """
        try:
            self._cap = cv2.VideoCapture(str(self.video_path))

            if not self._cap.isOpened():
                return False

            # Get video properties
            self._total_frames = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT))
            self._fps = self._cap.get(cv2.CAP_PROP_FPS)
            width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
            self._resolution = (width, height)

            self._is_opened = True
            return True

        except cv2.error as e:
            logger.error(f"Error opening video file {self.video_path}: {e}")
            return False

    def read(self) -> tuple[bool, np.ndarray | None]:
        """Read the next frame from the video file.

        Returns:
            Tuple of (success, frame).
        """
        if not self.is_opened() or self._cap is None:
            return False, None

        success, frame = self._cap.read()
        if not success:
            return False, None
        return True, frame

    def release(self) -> None:
        """Release video file resources."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        self._is_opened = False

    def is_opened(self) -> bool:
        """Check if video file is opened."""
        return self._is_opened and self._cap is not None and self._cap.isOpened()

    def get_fps(self) -> float:
        """Get video FPS."""
        return self._fps

    def get_resolution(self) -> tuple[int, int]:
        """Get video resolution as (width, height)."""
        return self._resolution

    def get_duration_ms(self) -> int:
        """Get video duration in milliseconds."""
        if self._fps > 0:
            return int(self._total_frames / self._fps * 1000)
        return 0

    def seek_ms(self, timestamp_ms: int) -> bool:
        """Seek to the frame displayed at timestamp_ms.

        Seeking by frame number is exact for constant-frame-rate files, so
        the timestamp is converted when the frame rate is known.

        Args:
            timestamp_ms: Target position in milliseconds.

        Returns:
            True if successful.
        """
        if not self.is_opened() or self._cap is None:
            return False

        if timestamp_ms < 0:
            return False

        if self._fps > 0:
            frame_number = int(round(timestamp_ms * self._fps / 1000.0))
            if frame_number >= self._total_frames > 0:
                return False
            return bool(self._cap.set(cv2.CAP_PROP_POS_FRAMES, frame_number))

        return bool(self._cap.set(cv2.CAP_PROP_POS_MSEC, float(timestamp_ms)))
