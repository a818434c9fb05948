"""Frame source abstractions.

The sampling loop consumes frames through a small interface (`FrameSource`) so
the capture implementation can be swapped without affecting decoding.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod

import cv2

from livescan.core.types import Frame

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Base interface for anything that can produce live video frames."""

    @abstractmethod
    def read(self) -> Frame | None:
        """Return the current frame, or `None` when unavailable."""

        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release any underlying resources."""

        raise NotImplementedError

    @property
    def width(self) -> int:
        return 0

    @property
    def height(self) -> int:
        return 0

    def is_ready(self) -> bool:
        """True once the source reports a native resolution."""

        return self.width > 0 and self.height > 0


class OpenCVSource(FrameSource):
    """A `FrameSource` backed by `cv2.VideoCapture`."""

    def __init__(self, source: str | int) -> None:
        self.cap = cv2.VideoCapture(source)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video source: {source}")
        self._size = (0, 0)

    def _remember_size(self, frame: Frame | None) -> None:
        if frame is not None and frame.size:
            h, w = frame.shape[:2]
            self._size = (int(w), int(h))

    @property
    def width(self) -> int:
        return self._size[0]

    @property
    def height(self) -> int:
        return self._size[1]

    def read(self) -> Frame | None:
        """Read the next frame from the underlying OpenCV capture."""

        ok, frame = self.cap.read()
        if not ok:
            return None
        self._remember_size(frame)
        return frame

    def close(self) -> None:
        """Release the underlying OpenCV capture."""

        self.cap.release()


class WebcamSource(OpenCVSource):
    """Webcam capture that always exposes the newest frame."""

    def __init__(self, index: int = 0, width: int = 1280, height: int = 720) -> None:
        """Create a webcam source.

        Tries a short list of capture backends to find a working camera, asks for
        `width` x `height` (drivers may pick something else), then spawns a reader
        thread that drains the driver buffer and keeps only the latest frame.
        """

        self.cap = None
        self._size = (0, 0)

        candidates = [
            (index, getattr(cv2, "CAP_DSHOW", None)),
            (index, getattr(cv2, "CAP_V4L2", None)),
            (index, cv2.CAP_ANY),
        ]
        for idx, backend in candidates:
            if backend is None:
                continue
            try:
                cap = cv2.VideoCapture(idx, backend)
            except cv2.error:
                continue
            if cap.isOpened():
                self.cap = cap
                logger.info("Opened camera index=%s backend=%s", idx, backend)
                break
            cap.release()

        if self.cap is None:
            raise RuntimeError(f"Failed to open camera {index}")

        try:
            self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except cv2.error:
            pass
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

        self._lock = threading.Lock()
        self._running = True
        self._latest_frame: Frame | None = None
        self._reader_thread = threading.Thread(target=self._reader_loop, daemon=True)
        self._reader_thread.start()

    def _reader_loop(self) -> None:
        """Continuously drain the driver buffer and keep only the newest frame."""

        while self._running and self.cap is not None:
            ok, frame = self.cap.read()
            if not ok:
                time.sleep(0.01)
                continue
            with self._lock:
                self._latest_frame = frame
                self._remember_size(frame)

    def read(self) -> Frame | None:
        """Return the most recent frame captured by the background reader."""

        with self._lock:
            return self._latest_frame

    def close(self) -> None:
        """Stop the background reader thread and release the camera."""

        self._running = False
        try:
            if self._reader_thread.is_alive():
                self._reader_thread.join(timeout=1)
        finally:
            if self.cap is not None:
                self.cap.release()
