from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import cv2
import numpy as np

from utils.config import VisionConfig

logger = logging.getLogger(__name__)


class WebcamCapture:
    """Threaded webcam reader that keeps the freshest frame in memory."""

    def __init__(self, config: VisionConfig) -> None:
        self._width = config.width
        self._height = config.height
        self._fps = config.camera_fps
        self._camera_index = config.camera_index
        self._capture: Optional[cv2.VideoCapture] = None
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._running:
            return
        capture = cv2.VideoCapture(self._camera_index)
        if not capture.isOpened():
            capture.release()
            raise RuntimeError(f"Unable to access webcam {self._camera_index}.")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        capture.set(cv2.CAP_PROP_FPS, self._fps)
        self._capture = capture
        self._running = True
        self._thread = threading.Thread(target=self._reader_loop, daemon=True)
        self._thread.start()
        logger.info("Webcam %d opened at %dx%d", self._camera_index, self._width, self._height)

    def stop(self) -> None:
        self._running = False
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)
        self._thread = None
        if self._capture is not None and self._capture.isOpened():
            self._capture.release()
        self._capture = None
        with self._lock:
            self._frame = None

    def _reader_loop(self) -> None:
        while self._running:
            ok, frame = self._capture.read()
            if not ok:
                time.sleep(0.01)
                continue
            with self._lock:
                self._frame = frame

    def get_frame(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._frame is None:
                return None
            return self._frame.copy()
