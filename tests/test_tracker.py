import threading
import time
from types import SimpleNamespace

import numpy as np
import pytest

from hand_tracking.landmarks import measure
from hand_tracking.tracker import HandTracker
from utils.config import Gesture, GestureConfig, HUDConfig, SharedState, VisionConfig


class FakeWebcam:
    def __init__(self, config, fail=False):
        self.fail = fail
        self.started = False
        self.stopped = False

    def start(self):
        if self.fail:
            raise RuntimeError("no camera")
        self.started = True

    def stop(self):
        self.stopped = True

    def get_frame(self):
        return np.zeros((240, 320, 3), dtype=np.uint8)


class FakeDetector:
    def __init__(self, landmarks):
        self.landmarks = landmarks
        self.closed = False

    def process(self, frame):
        if self.landmarks is None:
            return None
        return SimpleNamespace(landmarks=self.landmarks, metrics=measure(self.landmarks))

    def close(self):
        self.closed = True


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


def _tracker(state, landmarks, webcams, fail=False):
    def webcam_factory(config):
        webcam = FakeWebcam(config, fail=fail)
        webcams.append(webcam)
        return webcam

    detector = FakeDetector(landmarks)
    tracker = HandTracker(
        state,
        VisionConfig(detection_interval=0.001),
        GestureConfig(stability_frames=1),
        HUDConfig(),
        webcam_factory=webcam_factory,
        detector_factory=lambda config: detector,
    )
    return tracker, detector


def test_enable_publishes_hand_signals(open_hand):
    state, webcams = SharedState(), []
    tracker, _ = _tracker(state, open_hand, webcams)
    assert tracker.enable()
    try:
        assert state.camera_active
        assert _wait_for(lambda: state.gesture is Gesture.OPEN_PALM)
        assert state.hand_openness == 1.0
        assert state.hand_position[0] == pytest.approx(0.525, abs=1e-6)
        assert _wait_for(lambda: state.consume_preview() is not None)
        assert state.consume_preview().shape == (240, 320, 3)
    finally:
        tracker.close()


def test_disable_resets_signals_synchronously(open_hand):
    state, webcams = SharedState(), []
    tracker, detector = _tracker(state, open_hand, webcams)
    tracker.enable()
    assert _wait_for(lambda: state.gesture is Gesture.OPEN_PALM)
    tracker.disable()
    assert not tracker.active
    assert not state.camera_active
    assert state.gesture is Gesture.NONE
    assert state.hand_openness == 0.0
    assert state.hand_rotation == (0.0, 0.0, 0.0)
    assert state.consume_preview() is None
    assert webcams[0].stopped
    # nothing trickles in after disable returns
    time.sleep(0.05)
    assert state.gesture is Gesture.NONE
    tracker.close()
    assert detector.closed


def test_lost_hand_reports_no_gesture():
    state, webcams = SharedState(), []
    tracker, _ = _tracker(state, None, webcams)
    state.set_gesture(Gesture.OPEN_PALM)
    tracker.enable()
    try:
        assert _wait_for(lambda: state.gesture is Gesture.NONE)
        assert state.camera_active
    finally:
        tracker.close()


def test_unavailable_camera_keeps_tree_mode(open_hand):
    state, webcams = SharedState(), []
    tracker, _ = _tracker(state, open_hand, webcams, fail=True)
    state.set_hand_openness(0.7)
    assert not tracker.enable()
    assert not tracker.active
    assert not state.camera_active
    assert state.hand_openness == 0.0
    assert webcams[0].stopped


def test_toggle_switches_tracking(open_hand):
    state, webcams = SharedState(), []
    tracker, _ = _tracker(state, open_hand, webcams)
    assert tracker.toggle()
    assert tracker.active
    assert not tracker.toggle()
    assert not tracker.active
    assert not state.camera_active
    tracker.close()


@pytest.mark.parametrize("error", [ValueError("bad model file"), OSError("model unreadable")])
def test_broken_model_keeps_tree_mode(open_hand, error):
    state = SharedState()

    def detector_factory(config):
        raise error

    tracker = HandTracker(
        state,
        VisionConfig(),
        GestureConfig(stability_frames=1),
        HUDConfig(),
        webcam_factory=FakeWebcam,
        detector_factory=detector_factory,
    )
    state.set_gesture(Gesture.OPEN_PALM)
    assert not tracker.enable()
    assert not tracker.active
    assert not state.camera_active
    assert state.gesture is Gesture.NONE


class StalledDetector(FakeDetector):
    """Blocks inside process() until released."""

    def __init__(self, landmarks):
        super().__init__(landmarks)
        self.entered = threading.Event()
        self.release = threading.Event()

    def process(self, frame):
        self.entered.set()
        self.release.wait(timeout=5.0)
        return super().process(frame)


def test_late_detection_after_timed_out_stop_is_dropped(open_hand):
    state = SharedState()
    detector = StalledDetector(open_hand)
    tracker = HandTracker(
        state,
        VisionConfig(detection_interval=0.001),
        GestureConfig(stability_frames=1),
        HUDConfig(),
        webcam_factory=FakeWebcam,
        detector_factory=lambda config: detector,
    )
    tracker.join_timeout = 0.05
    assert tracker.enable()
    assert detector.entered.wait(timeout=2.0)
    tracker.disable()
    assert not state.camera_active

    detector.release.set()
    time.sleep(0.1)
    assert state.gesture is Gesture.NONE
    assert state.hand_openness == 0.0
    assert state.consume_preview() is None
    assert not state.camera_active
