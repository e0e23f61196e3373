# capture_state.py

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class CaptureState(Enum):
    NONE = "none"
    READY = "ready"
    CAPTURED = "captured"


class CaptureStateError(RuntimeError):
    """Raised for a transition the capture state machine does not allow."""


class CaptureStateMachine:
    """
    Authoritative capture status.

    NONE <-> READY is driven by alignment results from the detection loop.
    READY -> CAPTURED only through capture(), CAPTURED -> NONE only through
    retake() or reset(). Alignment results never touch CAPTURED.
    """

    def __init__(self):
        self._state = CaptureState.NONE
        self._listeners = []

    @property
    def state(self) -> CaptureState:
        return self._state

    def subscribe(self, callback):
        """Registers callback(old_state, new_state). Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def apply_alignment(self, aligned: bool) -> CaptureState:
        if self._state is CaptureState.CAPTURED:
            return self._state
        self._set(CaptureState.READY if aligned else CaptureState.NONE)
        return self._state

    def capture(self) -> CaptureState:
        if self._state is not CaptureState.READY:
            raise CaptureStateError(f"capture requires READY, state is {self._state.name}")
        self._set(CaptureState.CAPTURED)
        return self._state

    def retake(self) -> bool:
        if self._state is not CaptureState.CAPTURED:
            return False
        self._set(CaptureState.NONE)
        return True

    def reset(self):
        self._set(CaptureState.NONE)

    def _set(self, new_state):
        old_state = self._state
        if new_state is old_state:
            return
        self._state = new_state
        logger.debug("Capture state %s -> %s", old_state.name, new_state.name)
        for callback in list(self._listeners):
            callback(old_state, new_state)
