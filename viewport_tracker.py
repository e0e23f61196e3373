# viewport_tracker.py

import asyncio
import logging
import math
from collections import namedtuple

import capture_constants as const

logger = logging.getLogger(__name__)

ViewportDims = namedtuple("ViewportDims", ["width", "height"])

DEFAULT_VIEWPORT = ViewportDims(const.DEFAULT_VIEWPORT_WIDTH, const.DEFAULT_VIEWPORT_HEIGHT)


class ViewportTracker:
    """
    Tracks the rendered size of the capture frame.

    notify() may be called any number of times per frame (window resize,
    orientation change, container change); the observations are folded into at
    most one recomputation per FRAME_INTERVAL_S, scheduled on the running event
    loop. Subscribers only hear about actual changes.
    """

    def __init__(self, initial=DEFAULT_VIEWPORT, frame_interval=const.FRAME_INTERVAL_S):
        self._dims = ViewportDims(*initial)
        self._frame_interval = frame_interval
        self._pending = None
        self._handle = None
        self._listeners = []
        self.recomputations = 0

    @property
    def dims(self) -> ViewportDims:
        return self._dims

    def subscribe(self, callback):
        """Registers callback(dims). Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def notify(self, width, height):
        self._pending = (width, height)
        if self._handle is None:
            loop = asyncio.get_running_loop()
            self._handle = loop.call_later(self._frame_interval, self._flush)

    def close(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending = None

    def _flush(self):
        self._handle = None
        if self._pending is None:
            return
        width, height = self._pending
        self._pending = None
        self.recomputations += 1
        dims = ViewportDims(max(1, math.floor(width)), max(1, math.floor(height)))
        if dims == self._dims:
            return
        self._dims = dims
        logger.debug("Viewport resized to %dx%d", dims.width, dims.height)
        for callback in list(self._listeners):
            callback(dims)
