# face_detector.py

import logging
from dataclasses import dataclass

import cv2

import capture_constants as const

logger = logging.getLogger(__name__)


class DetectorNotReadyError(RuntimeError):
    """detect() was called before load() succeeded."""


@dataclass(frozen=True)
class DetectionResult:
    """Bounding box of one face, in video-frame pixels."""
    x: float
    y: float
    width: float
    height: float
    score: float = 1.0

    @property
    def center(self):
        return self.x + self.width / 2.0, self.y + self.height / 2.0


class MediaPipeFaceDetector:
    """
    MediaPipe short-range face detector.

    load() builds the model and may fail (missing package or assets); until it
    succeeds detect() raises DetectorNotReadyError. detect() returns the single
    best-scoring face or None.
    """

    def __init__(self, model_selection=const.DETECTOR_MODEL_SELECTION,
                 min_detection_confidence=const.DETECTOR_MIN_CONFIDENCE):
        self.model_selection = model_selection
        self.min_detection_confidence = min_detection_confidence
        self._detector = None

    @property
    def loaded(self):
        return self._detector is not None

    def load(self):
        if self._detector is not None:
            return
        import mediapipe as mp
        self._detector = mp.solutions.face_detection.FaceDetection(
            model_selection=self.model_selection,
            min_detection_confidence=self.min_detection_confidence,
        )
        logger.info("MediaPipe face detector loaded (model_selection=%d, min_confidence=%.2f)",
                    self.model_selection, self.min_detection_confidence)

    def detect(self, frame):
        if self._detector is None:
            raise DetectorNotReadyError("face detector is not loaded")
        ih, iw = frame.shape[:2]
        results = self._detector.process(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        if not results.detections:
            return None
        best = max(results.detections, key=lambda d: d.score[0] if d.score else 0.0)
        bbox = best.location_data.relative_bounding_box
        score = best.score[0] if best.score else 0.0
        return DetectionResult(bbox.xmin * iw, bbox.ymin * ih, bbox.width * iw, bbox.height * ih, score)

    def close(self):
        if self._detector is not None:
            self._detector.close()
            self._detector = None
