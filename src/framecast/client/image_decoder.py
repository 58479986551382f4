"""
Image Decoder
=============

Decodes relayed frame payloads into OpenCV matrices for rendering.

Design Rules:
    - This is the ONLY place in the codebase that decodes images
    - Accepts data URLs or bare base64
    - Validates shape and dtype
    - Fails fast on corrupt frames
"""

import base64
import binascii
import logging

import cv2
import numpy as np


logger = logging.getLogger(__name__)


class ImageDecodeError(Exception):
    """Raised when image decoding fails."""
    pass


def strip_data_url(payload: str) -> str:
    """Return the base64 part of a data URL (or the payload unchanged)."""
    if payload.startswith("data:"):
        _, _, payload = payload.partition(",")
    return payload


def decode_frame(payload: str) -> np.ndarray:
    """
    Decode a JPEG data URL to a BGR numpy array.

    Args:
        payload: "data:image/jpeg;base64,..." or bare base64 JPEG

    Returns:
        BGR image as np.ndarray (H, W, 3), dtype=uint8

    Raises:
        ImageDecodeError: If decoding fails or image is invalid
    """
    try:
        image_bytes = base64.b64decode(strip_data_url(payload), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Base64 decode failed: {e}") from e

    nparr = np.frombuffer(image_bytes, np.uint8)
    if nparr.size == 0:
        raise ImageDecodeError("Empty image payload")

    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    if bgr is None:
        raise ImageDecodeError("cv2.imdecode returned None")

    if len(bgr.shape) != 3 or bgr.shape[2] != 3:
        raise ImageDecodeError(f"Invalid image shape: {bgr.shape}")

    if bgr.dtype != np.uint8:
        raise ImageDecodeError(f"Invalid dtype: {bgr.dtype}")

    return bgr
