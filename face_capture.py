# face_capture.py

import asyncio
import base64
import logging
from dataclasses import dataclass

import cv2

import capture_constants as const
from camera_session import CameraConstraints, CameraError, CameraSession
from capture_state import CaptureState, CaptureStateMachine
from detection_loop import DetectionLoop
from face_detector import MediaPipeFaceDetector
from model_gate import GateStatus, ModelGate
from viewport_tracker import ViewportTracker

logger = logging.getLogger(__name__)

GUIDE_COLORS = {
    CaptureState.NONE: const.COLOR_NONE,
    CaptureState.READY: const.COLOR_READY,
    CaptureState.CAPTURED: const.COLOR_CAPTURED,
}


class CaptureError(RuntimeError):
    """The still frame could not be encoded."""


@dataclass(frozen=True)
class CapturedImage:
    mime_type: str
    data: bytes
    width: int
    height: int

    @property
    def base64(self):
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self):
        return f"data:{self.mime_type};base64,{self.base64}"


def encode_still(frame, quality=const.JPEG_QUALITY):
    """Encodes a BGR frame as JPEG at its own resolution."""
    ok, encoded = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise CaptureError("JPEG encoding failed")
    h, w = frame.shape[:2]
    return CapturedImage(const.CAPTURE_MIME_TYPE, encoded.tobytes(), w, h)


class FaceCaptureSurface:
    """
    The capture surface: model gate, camera, viewport and detection loop for one
    open/close cycle, plus the capture / retake / commit actions.

    Every open() starts a new epoch. Startup work checks its epoch after each
    await and drops its result if the surface was closed or reopened meanwhile.
    close() tears everything down on every path and is idempotent.

    Must be opened from within a running event loop.
    """

    def __init__(self, on_captured, on_close=None, title=None, detector=None, camera=None,
                 constraints=None, viewport=None, jpeg_quality=const.JPEG_QUALITY):
        self.on_captured = on_captured
        self.on_close = on_close
        self.title = title or const.DEFAULT_TITLE
        self.detector = detector if detector is not None else MediaPipeFaceDetector()
        self.camera = camera if camera is not None else CameraSession()
        self.constraints = constraints or CameraConstraints()
        self.viewport = viewport if viewport is not None else ViewportTracker()
        self.jpeg_quality = jpeg_quality

        self.state_machine = CaptureStateMachine()
        self.gate = ModelGate(self.detector)
        self.detection_loop = DetectionLoop(self.camera.sink, self.detector, self.viewport, self.state_machine)

        self.loading_model = False
        self.error = None
        self.still_frame = None
        self._captured = None
        self._epoch = 0
        self._open = False
        self._startup_task = None

    # --- Lifecycle ---

    @property
    def is_open(self):
        return self._open

    @property
    def epoch(self):
        return self._epoch

    async def __aenter__(self):
        self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self._open:
            return
        self._epoch += 1
        self._open = True
        self.error = None
        self.loading_model = True
        logger.info("Capture surface opened (epoch %d)", self._epoch)
        self._startup_task = asyncio.get_running_loop().create_task(self._startup(self._epoch))

    def close(self):
        was_open = self._open
        self._epoch += 1
        self._open = False
        if self._startup_task is not None:
            self._startup_task.cancel()
            self._startup_task = None
        self.detection_loop.stop()
        self.camera.stop()
        self.viewport.close()
        self.state_machine.reset()
        self._captured = None
        self.still_frame = None
        self.loading_model = False
        if was_open:
            logger.info("Capture surface closed")
            if self.on_close is not None:
                self.on_close()

    async def _startup(self, epoch):
        status = await self.gate.prepare()
        if epoch != self._epoch:
            return
        self.loading_model = False
        if status is GateStatus.FAILED:
            logger.warning("Face model unavailable, capture will stay disabled")
        await self._start_camera(epoch)

    async def _start_camera(self, epoch):
        try:
            await self.camera.start(self.constraints)
        except CameraError as e:
            if epoch != self._epoch:
                return
            logger.error("Camera start failed: %s", e)
            self.error = str(e) or const.CAMERA_ERROR_FALLBACK
            self.camera.stop()
            return
        if epoch != self._epoch:
            self.camera.stop()
            return
        self.detection_loop.start()

    # --- Presentation ---

    @property
    def state(self) -> CaptureState:
        return self.state_machine.state

    @property
    def captured_image(self):
        return self._captured

    @property
    def can_capture(self):
        return not self.loading_model and self.state is CaptureState.READY

    @property
    def guide_color(self):
        return GUIDE_COLORS[self.state]

    @property
    def status_text(self):
        if self.loading_model:
            return const.MSG_LOADING
        if self.state is CaptureState.READY:
            return const.MSG_READY
        if self.state is CaptureState.CAPTURED:
            return const.MSG_CAPTURED
        return const.MSG_ALIGN

    # --- Capture / Commit ---

    def capture(self):
        """
        Takes the still from the live sink at native resolution. Returns the
        CapturedImage, or None when capture is not currently allowed.
        """
        if not self._open or not self.can_capture:
            logger.debug("Capture ignored in state %s", self.state.name)
            return None
        frame = self.camera.sink.frame
        if frame is None:
            logger.warning("Capture requested but the camera has no frame")
            return None
        still = frame.copy()
        try:
            image = encode_still(still, self.jpeg_quality)
        except CaptureError:
            logger.exception("Could not encode captured frame")
            return None
        self.state_machine.capture()
        self._captured = image
        self.still_frame = still
        logger.info("Captured %dx%d still (%d bytes)", image.width, image.height, len(image.data))
        return image

    def retake(self):
        if not self.state_machine.retake():
            return False
        self._captured = None
        self.still_frame = None
        logger.info("Retake requested")
        if self._open and not self.camera.running and self.error is None and not self.loading_model:
            # the stream dropped while the still was on screen
            self.detection_loop.stop()
            self._startup_task = asyncio.get_running_loop().create_task(self._start_camera(self._epoch))
        return True

    def commit(self):
        image = self._captured
        if image is None:
            return False
        self._captured = None
        self.still_frame = None
        try:
            self.on_captured(image)
        finally:
            self.state_machine.reset()
            self.close()
        return True
