# Vision Module
from .core import (
    EncodedFrame,
    CaptureSession,
    FrameCapturer,
    get_frame_capturer,
)

__all__ = [
    "EncodedFrame",
    "CaptureSession",
    "FrameCapturer",
    "get_frame_capturer",
]
