import time

import numpy as np
import pytest

from camera import webcam
from camera.webcam import WebcamCapture
from utils.config import VisionConfig


class FakeCapture:
    instances = []

    def __init__(self, index, opened=True):
        self.index = index
        self.opened = opened
        self.released = False
        self.props = {}
        FakeCapture.instances.append(self)

    def isOpened(self):
        return self.opened and not self.released

    def set(self, prop, value):
        self.props[prop] = value

    def read(self):
        time.sleep(0.001)
        return True, np.full((4, 6, 3), 7, dtype=np.uint8)

    def release(self):
        self.released = True


@pytest.fixture
def fake_capture(monkeypatch):
    FakeCapture.instances = []
    monkeypatch.setattr(webcam.cv2, "VideoCapture", FakeCapture)
    return FakeCapture


def test_frames_flow_until_stopped(fake_capture):
    capture = WebcamCapture(VisionConfig(camera_index=2, width=6, height=4))
    assert capture.get_frame() is None
    capture.start()
    deadline = time.monotonic() + 2.0
    frame = None
    while frame is None and time.monotonic() < deadline:
        frame = capture.get_frame()
        time.sleep(0.005)
    assert frame is not None and frame.shape == (4, 6, 3)
    # callers get a copy
    frame[:] = 0
    assert capture.get_frame().any()

    device = fake_capture.instances[0]
    assert device.index == 2
    assert device.props[webcam.cv2.CAP_PROP_FRAME_WIDTH] == 6
    capture.stop()
    assert device.released
    assert capture.get_frame() is None


def test_unopened_camera_raises(monkeypatch):
    created = []

    def closed_capture(index):
        device = FakeCapture(index, opened=False)
        created.append(device)
        return device

    monkeypatch.setattr(webcam.cv2, "VideoCapture", closed_capture)
    with pytest.raises(RuntimeError):
        WebcamCapture(VisionConfig()).start()
    assert created[0].released
