from __future__ import annotations

import time

import numpy as np
import pytest

import livescan.core.video_sources.base as base


class FakeCap:
    def __init__(self, *args, opened=True, frames=None):
        self.args = args
        self.opened = opened
        self.frames = list(frames) if frames is not None else None
        self.released = False
        self.props = {}

    def isOpened(self):
        return self.opened

    def read(self):
        if self.frames is None:
            return True, np.zeros((36, 64, 3), dtype=np.uint8)
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def release(self):
        self.released = True


def test_opencv_source_reports_size_after_first_frame(monkeypatch):
    frame = np.zeros((48, 80, 3), dtype=np.uint8)
    monkeypatch.setattr(base.cv2, "VideoCapture", lambda *a: FakeCap(*a, frames=[frame]))

    src = base.OpenCVSource("clip.mp4")
    assert src.is_ready() is False
    assert src.read() is frame
    assert (src.width, src.height) == (80, 48)
    assert src.is_ready() is True

    assert src.read() is None
    src.close()
    assert src.cap.released is True


def test_opencv_source_open_failure(monkeypatch):
    monkeypatch.setattr(base.cv2, "VideoCapture", lambda *a: FakeCap(*a, opened=False))
    with pytest.raises(RuntimeError):
        base.OpenCVSource(3)


def test_webcam_source_keeps_latest_frame(monkeypatch):
    caps = []

    def factory(*args):
        cap = FakeCap(*args)
        caps.append(cap)
        return cap

    monkeypatch.setattr(base.cv2, "VideoCapture", factory)
    src = base.WebcamSource(0, width=640, height=360)
    try:
        deadline = time.time() + 2.0
        while src.read() is None and time.time() < deadline:
            time.sleep(0.01)
        frame = src.read()
        assert frame is not None
        assert frame.shape == (36, 64, 3)
        assert src.is_ready()
        assert src.cap.props[base.cv2.CAP_PROP_FRAME_WIDTH] == 640
        assert src.cap.props[base.cv2.CAP_PROP_FRAME_HEIGHT] == 360
    finally:
        src.close()
    assert src.cap.released is True
    assert not src._reader_thread.is_alive()


def test_webcam_source_tries_next_backend(monkeypatch):
    attempts = []

    def factory(*args):
        attempts.append(args)
        return FakeCap(*args, opened=len(attempts) > 1)

    monkeypatch.setattr(base.cv2, "VideoCapture", factory)
    src = base.WebcamSource(1)
    src.close()
    assert len(attempts) == 2
    assert all(a[0] == 1 for a in attempts)


def test_webcam_source_no_camera(monkeypatch):
    monkeypatch.setattr(base.cv2, "VideoCapture", lambda *a: FakeCap(*a, opened=False))
    with pytest.raises(RuntimeError):
        base.WebcamSource(0)
