"""
Device Utilities
Inference device selection for CUDA, Apple Silicon MPS, and CPU.

Each analyzer worker builds its own estimator, so detection is cached and
only logged once per process.
"""

import logging
import threading
from typing import Literal, Optional

import torch

logger = logging.getLogger(__name__)

DeviceType = Literal["cuda", "mps", "cpu"]

_detected_device: Optional[DeviceType] = None
_detect_lock = threading.Lock()


def detect_device() -> DeviceType:
    """
    Detect the best available device.

    Order of preference: NVIDIA GPU (CUDA), Apple Silicon (MPS), CPU.

    Returns:
        Device type: "cuda", "mps", or "cpu"
    """
    global _detected_device

    with _detect_lock:
        if _detected_device is not None:
            return _detected_device

        if torch.cuda.is_available():
            _detected_device = "cuda"
            logger.info(f"CUDA available: {torch.cuda.get_device_name(0)}")
        elif torch.backends.mps.is_available():
            _detected_device = "mps"
            logger.info("MPS available")
        else:
            _detected_device = "cpu"
            logger.info("No GPU detected, using CPU")

        return _detected_device


def get_optimal_device(preferred: Optional[str] = None) -> str:
    """
    Resolve the device to run inference on.

    Args:
        preferred: Requested device ("cuda", "mps", "cpu", "auto" or None).
            Unavailable devices fall back to the detected one.

    Returns:
        Device string usable by torch/ultralytics (e.g. "cuda:0", "mps", "cpu")
    """
    detected = detect_device()

    if preferred in (None, "auto"):
        device: str = detected
    elif preferred.startswith("cuda") and not torch.cuda.is_available():
        logger.warning("CUDA requested but not available, falling back")
        device = detected
    elif preferred == "mps" and not torch.backends.mps.is_available():
        logger.warning("MPS requested but not available, falling back")
        device = detected
    else:
        device = preferred

    if device == "cuda":
        return "cuda:0"
    return device
