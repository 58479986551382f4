"""
Frame Capture
=============

Camera access and frame encoding for capturing peers.

Frames go on the wire as JPEG data URLs ("data:image/jpeg;base64,..."),
the same form browsers produce with ``canvas.toDataURL('image/jpeg', 0.5)``,
so browser peers can render Python-captured frames directly.

Design Rules:
    - This is the ONLY place in the codebase that encodes images
    - Camera calls are blocking; callers run them in a worker thread
"""

import base64
import logging
from typing import Optional, Protocol

import cv2
import numpy as np


logger = logging.getLogger(__name__)


DATA_URL_PREFIX = "data:image/jpeg;base64,"


class CaptureUnavailable(Exception):
    """Raised when the local capture device cannot be acquired."""
    pass


class CameraSource(Protocol):
    """
    Protocol for local capture devices.

    Implemented by:
        - OpenCVCamera (real webcams)
        - test fakes
    """

    def open(self) -> None:
        """Acquire the device. Raises CaptureUnavailable on failure."""
        ...

    def read(self) -> Optional[np.ndarray]:
        """Grab the current frame as a BGR array, or None if unavailable."""
        ...

    def release(self) -> None:
        """Release the device. Safe to call more than once."""
        ...


class OpenCVCamera:
    """
    Webcam backed by ``cv2.VideoCapture``.

    Attributes:
        index: OpenCV device index
    """

    def __init__(self, index: int = 0) -> None:
        self.index = index
        self._capture: Optional[cv2.VideoCapture] = None

    def open(self) -> None:
        capture = cv2.VideoCapture(self.index)
        if not capture.isOpened():
            capture.release()
            raise CaptureUnavailable(f"Could not open camera {self.index}")
        self._capture = capture
        logger.info(f"Camera {self.index} opened")

    def read(self) -> Optional[np.ndarray]:
        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        return frame if ok else None

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"Camera {self.index} released")


def encode_frame(image: np.ndarray, quality: int = 50) -> str:
    """
    Encode a BGR image as a JPEG data URL.

    Args:
        image: BGR image, dtype uint8
        quality: JPEG quality 1-100

    Returns:
        "data:image/jpeg;base64,..." string

    Raises:
        ValueError: If OpenCV refuses to encode the image
    """
    ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise ValueError(f"JPEG encoding failed for image of shape {image.shape}")
    return DATA_URL_PREFIX + base64.b64encode(buffer.tobytes()).decode("ascii")


class SyntheticCamera:
    """
    Camera that renders a moving test pattern.

    Used by headless peers (``--synthetic``) and load scripts where no real
    webcam exists.
    """

    def __init__(self, width: int = 320, height: int = 240, label: str = "") -> None:
        self.width = width
        self.height = height
        self.label = label
        self.frames_read: int = 0
        self._opened: bool = False

    @property
    def opened(self) -> bool:
        return self._opened

    def open(self) -> None:
        self._opened = True

    def read(self) -> Optional[np.ndarray]:
        if not self._opened:
            return None

        self.frames_read += 1
        image = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        x = (self.frames_read * 4) % self.width
        cv2.rectangle(image, (x, 0), (min(x + 20, self.width - 1), self.height - 1), (0, 200, 255), -1)
        if self.label:
            cv2.putText(image, self.label, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (255, 255, 255), 2)
        return image

    def release(self) -> None:
        self._opened = False
