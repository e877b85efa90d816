"""
Webcam frame source and preview window.
"""

import logging
from collections.abc import Generator
from contextlib import suppress

import cv2
import numpy as np

from greeter import config
from greeter.errors import DeviceAccessError

logger = logging.getLogger(__name__)


class CameraFrameSource:
    """Context manager over ``cv2.VideoCapture`` yielding frames until the camera stops."""

    def __init__(self, index: int | None = None, width: int | None = None, height: int | None = None):
        self.index = config.CAMERA_INDEX if index is None else index
        self.width = width
        self.height = height
        self.cap = None

    def __enter__(self):
        logger.info("Initializing webcam (index %s)...", self.index)
        self.cap = cv2.VideoCapture(self.index)
        if self.width:
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        if not self.cap.isOpened():
            self.cap.release()
            self.cap = None
            raise DeviceAccessError(f"Could not open webcam (index {self.index}). Try a different index.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.cap is not None:
            with suppress(cv2.error):
                self.cap.release()
            self.cap = None

    def frames(self) -> Generator[np.ndarray, None, None]:
        while True:
            ok, frame = self.cap.read()
            if not ok:
                logger.warning("Webcam returned no frame; stopping capture")
                return
            yield frame


class PreviewWindow:
    """OpenCV window; ``show`` returns False once 'q' is pressed."""

    def __init__(self, title: str | None = None):
        self.title = title or config.WINDOW_TITLE

    def show(self, image) -> bool:
        cv2.imshow(self.title, image)
        return (cv2.waitKey(1) & 0xFF) != ord("q")

    def close(self) -> None:
        with suppress(cv2.error):
            cv2.destroyWindow(self.title)
