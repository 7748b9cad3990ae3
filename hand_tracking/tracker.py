from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

import cv2

from camera.webcam import WebcamCapture
from hand_tracking.gestures import GestureClassifier
from ui.hud import HUDOverlay
from utils.config import GestureConfig, HUDConfig, SharedState, VisionConfig
from utils.fps import FPSCounter

logger = logging.getLogger(__name__)


def _default_detector(config: VisionConfig):
    # mediapipe is heavy to import, only pay for it once the camera is switched on
    from hand_tracking.detector import HandDetector

    return HandDetector(config)


class HandTracker:
    """Runs webcam capture and hand detection on its own thread.

    Everything it learns is written into the shared state; the render loop
    never waits on it.
    """

    join_timeout = 2.0

    def __init__(
        self,
        shared_state: SharedState,
        vision_config: VisionConfig,
        gesture_config: GestureConfig,
        hud_config: HUDConfig,
        webcam_factory: Callable[[VisionConfig], WebcamCapture] = WebcamCapture,
        detector_factory: Callable[[VisionConfig], object] = _default_detector,
    ) -> None:
        self._state = shared_state
        self._config = vision_config
        self._classifier = GestureClassifier(gesture_config)
        self._hud = HUDOverlay(hud_config)
        self._webcam_factory = webcam_factory
        self._detector_factory = detector_factory
        self._webcam: Optional[WebcamCapture] = None
        self._detector = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        # held by the loop while it writes to the shared state
        self._publish_lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def enable(self) -> bool:
        with self._lock:
            if self.active:
                return True
            try:
                if self._detector is None:
                    self._detector = self._detector_factory(self._config)
                self._webcam = self._webcam_factory(self._config)
                self._webcam.start()
            except (RuntimeError, ValueError, OSError):
                logger.exception("Hand tracking unavailable, staying in tree mode")
                self._release_webcam()
                self._state.reset_hand()
                return False
            self._classifier.reset()
            # a fresh event per thread, a straggler from a timed-out join stays stopped
            self._stop_event = threading.Event()
            self._thread = threading.Thread(target=self._vision_loop, args=(self._stop_event,), daemon=True)
            self._state.set_camera_active(True)
            self._thread.start()
            logger.info("Hand tracking enabled")
            return True

    def disable(self) -> None:
        """Stop the detection loop synchronously and neutralise the signal."""
        with self._lock:
            self._stop_event.set()
            if self._thread is not None and self._thread is not threading.current_thread():
                self._thread.join(timeout=self.join_timeout)
                if self._thread.is_alive():
                    logger.warning("Detection thread did not stop within %.1fs", self.join_timeout)
            self._thread = None
            # wait out a write already in flight, later ones see the stop event
            with self._publish_lock:
                pass
            self._release_webcam()
            self._classifier.reset()
            self._state.reset_hand()
            logger.info("Hand tracking disabled")

    def toggle(self) -> bool:
        if self.active:
            self.disable()
            return False
        return self.enable()

    def close(self) -> None:
        self.disable()
        if self._detector is not None:
            self._detector.close()
            self._detector = None

    def _release_webcam(self) -> None:
        if self._webcam is not None:
            self._webcam.stop()
            self._webcam = None

    def _vision_loop(self, stop_event: threading.Event) -> None:
        fps = FPSCounter()
        webcam, detector = self._webcam, self._detector
        while not stop_event.is_set() and not self._state.shutdown_requested():
            frame = webcam.get_frame()
            if frame is None:
                time.sleep(0.002)
                continue
            detection = detector.process(frame)
            if detection is None:
                metrics, landmarks = None, None
                gesture = self._classifier.classify(None)
            else:
                metrics, landmarks = detection.metrics, detection.landmarks
                gesture = self._classifier.classify(metrics.openness, landmarks)
            with self._publish_lock:
                if stop_event.is_set():
                    break
                if metrics is not None:
                    self._state.set_hand_position(metrics.position)
                    self._state.set_hand_openness(metrics.openness)
                    self._state.set_hand_rotation(metrics.rotation)
                self._state.set_gesture(gesture)
                hud_frame = self._hud.apply(frame, landmarks, gesture, self._state.hand_openness, fps.tick())
                self._state.publish_preview(cv2.cvtColor(hud_frame, cv2.COLOR_BGR2RGB))
            time.sleep(self._config.detection_interval)
