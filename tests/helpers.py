"""Test doubles for the camera device and the face detector."""

import asyncio
import threading
import time

import numpy as np

from face_detector import DetectionResult


class FakeVideoCapture:
    """Stands in for cv2.VideoCapture: solid-color frames at a fixed size."""

    def __init__(self, index=0, width=800, height=600, opened=True, fail_after=None, raise_after=None,
                 set_error=None, read_delay=0.002):
        self.index = index
        self.width = width
        self.height = height
        self.opened = opened
        self.fail_after = fail_after
        self.raise_after = raise_after
        self.set_error = set_error
        self.read_delay = read_delay
        self.reads = 0
        self.released = False
        self.props = {}

    def isOpened(self):
        return self.opened and not self.released

    def set(self, prop, value):
        if self.set_error is not None:
            raise self.set_error
        self.props[prop] = value
        return True

    def read(self):
        time.sleep(self.read_delay)
        if self.released:
            return False, None
        self.reads += 1
        if self.raise_after is not None and self.reads > self.raise_after:
            raise OSError("read from device failed")
        if self.fail_after is not None and self.reads > self.fail_after:
            return False, None
        frame = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        frame[:, : self.width // 2] = (0, 0, 255)
        return True, frame

    def release(self):
        self.released = True


class CaptureFactory:
    """Callable passed as capture_factory; remembers every device it opened."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.devices = []

    def __call__(self, index):
        capture = FakeVideoCapture(index, **self.kwargs)
        self.devices.append(capture)
        return capture


class ScriptedDetector:
    """
    Detector double. result is returned from every detect() call (or raised if it
    is an exception). Setting block_detect / block_load makes the matching call
    wait on a threading.Event until released.
    """

    def __init__(self, result=None, load_error=None, block_load=False, block_detect=False):
        self.result = result
        self.load_error = load_error
        self.load_gate = threading.Event()
        self.detect_gate = threading.Event()
        if not block_load:
            self.load_gate.set()
        if not block_detect:
            self.detect_gate.set()
        self.loads = 0
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def load(self):
        self.loads += 1
        self.load_gate.wait(5.0)
        if self.load_error is not None:
            raise self.load_error

    def detect(self, frame):
        with self._lock:
            self.calls += 1
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.detect_gate.wait(5.0)
            if isinstance(self.result, Exception):
                raise self.result
            return self.result
        finally:
            with self._lock:
                self.in_flight -= 1

    def release(self):
        self.load_gate.set()
        self.detect_gate.set()


def centered_box(width, height, size=200, offset_x=0.0, offset_y=0.0):
    """Detection whose center sits offset_x/offset_y px from the center of a width x height frame."""
    return DetectionResult(width / 2.0 - size / 2.0 + offset_x, height / 2.0 - size / 2.0 + offset_y,
                           size, size, 0.9)


async def wait_until(predicate, timeout=2.0, interval=0.005):
    """Polls predicate on the event loop until it holds or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()
