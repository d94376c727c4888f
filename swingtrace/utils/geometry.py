"""Geometry utilities for pose analysis."""

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np


def euclidean_distance(
    point1: Tuple[float, float], point2: Tuple[float, float]
) -> float:
    """Calculate Euclidean distance between two 2D points.

    Args:
        point1: First point (x, y).
        point2: Second point (x, y).

    Returns:
        Distance between points.
    """
    return float(np.sqrt((point1[0] - point2[0]) ** 2 + (point1[1] - point2[1]) ** 2))


def midpoint(point1: Tuple[float, float], point2: Tuple[float, float]) -> Tuple[float, float]:
    """Calculate midpoint between two 2D points.

    Args:
        point1: First point (x, y).
        point2: Second point (x, y).

    Returns:
        Midpoint (x, y).
    """
    return ((point1[0] + point2[0]) / 2, (point1[1] + point2[1]) / 2)


def lerp_point(
    point1: Tuple[float, float], point2: Tuple[float, float], t: float
) -> Tuple[float, float]:
    """Linearly interpolate between two points.

    Args:
        point1: Start point (x, y), returned for t=0.
        point2: End point (x, y), returned for t=1.
        t: Interpolation factor.

    Returns:
        Interpolated point (x, y).

    Example:
        >>> lerp_point((0.0, 0.0), (1.0, 2.0), 0.5)
        (0.5, 1.0)
    """
    return (
        point1[0] * (1 - t) + point2[0] * t,
        point1[1] * (1 - t) + point2[1] * t,
    )


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


@dataclass(frozen=True)
class CropRect:
    """Pixel rectangle cut out of a source frame before inference."""

    x: int
    y: int
    width: int
    height: int

    def apply(self, image: np.ndarray) -> np.ndarray:
        """Return the cropped view of image."""
        return image[self.y : self.y + self.height, self.x : self.x + self.width]


def center_square_crop(width: int, height: int) -> CropRect:
    """Compute the centered square crop of a frame.

    Square-input pose models expect the subject undistorted, so the frame is
    cropped to its shorter side rather than stretched.

    Args:
        width: Source frame width in pixels.
        height: Source frame height in pixels.

    Returns:
        CropRect of side min(width, height), centered in the frame.
    """
    side = min(width, height)
    return CropRect(
        x=(width - side) // 2,
        y=(height - side) // 2,
        width=side,
        height=side,
    )


def remap_to_source(
    x: float,
    y: float,
    crop: CropRect,
    source_width: int,
    source_height: int,
) -> Tuple[float, float]:
    """Map coordinates normalized to a crop back to source-normalized coordinates.

    Args:
        x: X normalized to the crop (0-1).
        y: Y normalized to the crop (0-1).
        crop: Crop that was fed to the model.
        source_width: Source frame width in pixels.
        source_height: Source frame height in pixels.

    Returns:
        (x, y) normalized to the full source frame.
    """
    x = clamp(x, 0.0, 1.0)
    y = clamp(y, 0.0, 1.0)
    return (
        (crop.x + x * crop.width) / source_width,
        (crop.y + y * crop.height) / source_height,
    )


def to_pixels(
    points: Dict[str, Tuple[float, float]], width: int, height: int
) -> Dict[str, Tuple[int, int]]:
    """Convert normalized points to pixel coordinates for a renderer.

    Args:
        points: Mapping of label to normalized (x, y).
        width: Target surface width.
        height: Target surface height.

    Returns:
        Mapping of label to integer pixel (x, y).
    """
    return {
        label: (int(round(x * width)), int(round(y * height)))
        for label, (x, y) in points.items()
    }
