# model_gate.py

import asyncio
import logging
from enum import Enum

logger = logging.getLogger(__name__)


class GateStatus(Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class ModelGate:
    """
    Prepares the face detector before the camera starts.

    A failed load is reported as FAILED, never raised: the surface carries on
    without detection and capture simply never becomes available. Results of a
    prepare() that outlives its surface are dropped by the caller.
    """

    def __init__(self, detector):
        self.detector = detector
        self.status = GateStatus.PENDING

    async def prepare(self) -> GateStatus:
        self.status = GateStatus.PENDING
        try:
            await asyncio.to_thread(self.detector.load)
        except Exception:
            logger.exception("Failed loading face model, continuing without detection")
            self.status = GateStatus.FAILED
        else:
            self.status = GateStatus.READY
        return self.status
