# detection_loop.py

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

import capture_constants as const
import capture_math

logger = logging.getLogger(__name__)


class DetectionLoop:
    """
    Polls the face detector against the live sink and drives the capture state.

    Each iteration is a task spawned from a call_later handle; the next handle
    is only armed once that task's detector call has resolved, so at most one
    detection is ever in flight and a slow detector slows the loop down instead
    of queueing work. stop() cancels the handle and the in-flight task on the
    spot and bumps the generation, so a detector thread that finishes later
    cannot write to the state machine. Detector calls run on one worker thread
    owned by the loop, so a call abandoned by stop() still finishes before the
    first call of the next start() begins.
    """

    def __init__(self, sink, detector, viewport, state_machine, frame_interval=const.FRAME_INTERVAL_S):
        self.sink = sink
        self.detector = detector
        self.viewport = viewport
        self.state_machine = state_machine
        self._frame_interval = frame_interval
        self._generation = 0
        self._running = False
        self._handle = None
        self._task = None
        self._last_frame_index = None
        self.iterations = 0
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="detector")

    @property
    def running(self):
        return self._running

    def start(self):
        if self._running:
            return
        self._generation += 1
        self._running = True
        self._last_frame_index = None
        self._schedule(self._generation)
        logger.info("Detection loop started")

    def stop(self):
        self._generation += 1
        was_running = self._running
        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._task is not None:
            if self._task is not asyncio.current_task():
                self._task.cancel()
            self._task = None
        if was_running:
            logger.info("Detection loop stopped after %d detections", self.iterations)

    def _schedule(self, generation):
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._frame_interval, self._spawn, generation)

    def _spawn(self, generation):
        self._handle = None
        if generation != self._generation:
            return
        self._task = asyncio.get_running_loop().create_task(self._iterate(generation))

    async def _iterate(self, generation):
        await self._step(generation)
        if generation == self._generation:
            self._task = None
            self._schedule(generation)

    async def _step(self, generation):
        frame = self.sink.frame
        if frame is None:
            if self.sink.ended:
                # stream lost: no face, and nothing left to poll
                self.state_machine.apply_alignment(False)
                self.stop()
            return
        frame_index = self.sink.frame_index
        if frame_index == self._last_frame_index:
            return
        self._last_frame_index = frame_index
        video_size = self.sink.video_size

        self.iterations += 1
        loop = asyncio.get_running_loop()
        try:
            detection = await loop.run_in_executor(self._executor, self.detector.detect, frame)
        except Exception as e:
            level = logging.INFO if const.DEBUG_DETECTION else logging.DEBUG
            logger.log(level, "Face detection failed, treating as no face: %s", e)
            detection = None

        if generation != self._generation:
            return
        dims = self.viewport.dims
        aligned = capture_math.is_aligned(detection, video_size, (dims.width, dims.height))
        self.state_machine.apply_alignment(aligned)
