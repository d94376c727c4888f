"""Base frame source interface for SwingTrace.

A frame source is the video decode/seek primitive used by the motion
profiler and the segment analyzer workers. Instances are not reentrant:
each worker opens its own.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np


class BaseCamera(ABC):
    """Abstract base class for frame sources."""

    def __init__(self):
        """Initialize frame source."""
        self._is_opened = False
        self._fps = 0.0

    @abstractmethod
    def open(self) -> bool:
        """Open the source.

        Returns:
            True if successful, False otherwise.
        """
        pass

    @abstractmethod
    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        """Read the next frame.

        Returns:
            Tuple of (success, frame). Frame is None if read fails.
        """
        pass

    @abstractmethod
    def release(self) -> None:
        """Release source resources."""
        pass

    @abstractmethod
    def is_opened(self) -> bool:
        """Check if source is opened."""
        pass

    @abstractmethod
    def get_fps(self) -> float:
        """Get source frame rate."""
        pass

    @abstractmethod
    def get_resolution(self) -> Tuple[int, int]:
        """Get source resolution.

        Returns:
            Tuple of (width, height).
        """
        pass

    @abstractmethod
    def get_duration_ms(self) -> int:
        """Get source duration in milliseconds (0 if unknown)."""
        pass

    @abstractmethod
    def seek_ms(self, timestamp_ms: int) -> bool:
        """Position the source so the next capture returns the frame at timestamp_ms.

        Returns:
            True if successful.
        """
        pass

    def capture_frame(self) -> Optional[np.ndarray]:
        """Decode the frame at the current position.

        Returns:
            Frame as numpy array (BGR format), or None if decoding failed.
        """
        success, frame = self.read()
        if not success:
            return None
        return frame

    def __enter__(self):
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.release()
        return False
