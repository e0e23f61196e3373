# camera_session.py

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import cv2

import capture_constants as const

logger = logging.getLogger(__name__)


class CameraError(RuntimeError):
    """Camera could not be started. The message is meant for the user."""


@dataclass(frozen=True)
class CameraConstraints:
    device_index: int = const.CAMERA_INDEX
    facing_mode: str = const.CAMERA_FACING_MODE
    width: int = const.CAMERA_PREFERRED_WIDTH
    height: int = const.CAMERA_PREFERRED_HEIGHT
    audio: bool = False

    @property
    def mirror(self):
        return self.facing_mode == "user"


class VideoSink:
    """Latest frame of the live stream, at the camera's native resolution."""

    def __init__(self):
        self.frame = None
        self.frame_index = 0
        self.ended = False

    @property
    def has_frame(self):
        return self.frame is not None

    @property
    def video_size(self):
        if self.frame is None:
            return 0, 0
        h, w = self.frame.shape[:2]
        return w, h

    def attach(self):
        self.frame = None
        self.ended = False

    def push(self, frame):
        self.frame = frame
        self.frame_index += 1

    def end(self):
        self.ended = True

    def detach(self):
        self.frame = None


def _release_devices(devices):
    while devices:
        capture = devices.pop()
        try:
            capture.release()
        except Exception:
            logger.exception("Error releasing camera device")


class CameraSession:
    """
    Owns one OpenCV video device and the task pumping its frames into a VideoSink.

    Every device call runs on a single worker thread owned by the session, so a
    release issued by stop() always runs after a read or open that is still in
    flight. stop() itself never blocks and is safe to call at any time.
    """

    def __init__(self, capture_factory=cv2.VideoCapture, sink=None):
        self._capture_factory = capture_factory
        self.sink = sink if sink is not None else VideoSink()
        self.constraints = None
        self._executor = None
        self._devices = []
        self._pump_task = None
        self._running = False

    @property
    def running(self):
        return self._running

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.stop()

    async def start(self, constraints=None):
        """
        Opens the device and waits for its first frame. Returns the live sink.
        Raises CameraError if the device is denied, missing or silent.
        """
        constraints = constraints or CameraConstraints()
        self.stop()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="camera")
        devices = []
        self._executor, self._devices = executor, devices
        self.constraints = constraints
        loop = asyncio.get_running_loop()
        try:
            first_frame = await loop.run_in_executor(executor, self._open_device, constraints, devices)
        except BaseException:
            if self._executor is executor:
                self.stop()
            raise
        if self._executor is not executor:
            # stop() ran while the device was opening and already queued its release
            raise CameraError("Camera session was stopped during startup")

        self.sink.attach()
        self.sink.push(first_frame)
        self._running = True
        self._pump_task = loop.create_task(self._pump(executor, devices[0], constraints.mirror))
        w, h = self.sink.video_size
        logger.info("Camera %d started at %dx%d (requested %dx%d)",
                    constraints.device_index, w, h, constraints.width, constraints.height)
        return self.sink

    def stop(self):
        executor, devices = self._executor, self._devices
        self._executor, self._devices = None, []
        was_running = self._running
        self._running = False
        if self._pump_task is not None:
            self._pump_task.cancel()
            self._pump_task = None
        self.sink.detach()
        if executor is not None:
            executor.submit(_release_devices, devices)
            executor.shutdown(wait=False)
        if was_running:
            logger.info("Camera stopped")

    def _open_device(self, constraints, devices):
        try:
            capture = self._capture_factory(constraints.device_index)
        except Exception as e:
            raise CameraError(str(e) or const.CAMERA_ERROR_FALLBACK) from e
        if not capture.isOpened():
            capture.release()
            raise CameraError(f"Unable to access camera {constraints.device_index}: "
                              "permission denied or device unavailable")
        devices.append(capture)
        try:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width)
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height)
            ok, frame = capture.read()
        except Exception as e:
            raise CameraError(str(e) or const.CAMERA_ERROR_FALLBACK) from e
        if not ok or frame is None:
            raise CameraError(f"Camera {constraints.device_index} opened but delivered no video")
        return self._orient(frame, constraints.mirror)

    @staticmethod
    def _orient(frame, mirror):
        return cv2.flip(frame, 1) if mirror else frame

    async def _pump(self, executor, capture, mirror):
        loop = asyncio.get_running_loop()
        failures = 0
        while self._executor is executor:
            try:
                ok, frame = await loop.run_in_executor(executor, capture.read)
            except Exception as e:
                logger.debug("Camera read raised: %s", e)
                ok, frame = False, None
            if self._executor is not executor:
                break
            if not ok or frame is None:
                failures += 1
                if failures >= const.MAX_CONSECUTIVE_READ_FAILURES:
                    logger.warning("Camera stream lost after %d failed reads", failures)
                    self._pump_task = None
                    self.stop()
                    self.sink.end()
                    break
                continue
            failures = 0
            self.sink.push(self._orient(frame, mirror))
