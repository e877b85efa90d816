"""
InsightFace adapter: the opaque face detection / recognition capability.
"""

import logging
import os
import warnings

# Force CPU for insightface/onnxruntime
os.environ.setdefault("INSIGHTFACE_ONNX_PROVIDERS", "CPUExecutionProvider")
os.environ.setdefault("ORT_LOG_LEVEL", "ERROR")
warnings.filterwarnings(
    "ignore",
    message="Specified provider 'CUDAExecutionProvider' is not in available provider names.*",
    category=UserWarning,
)

import cv2

cv2.setNumThreads(1)

import numpy as np
from insightface.app import FaceAnalysis

from greeter import config
from greeter.errors import ModelLoadError
from greeter.models import DetectedFace

logger = logging.getLogger(__name__)


def _area(face) -> float:
    x1, y1, x2, y2 = map(float, face.bbox)
    return max(0.0, x2 - x1) * max(0.0, y2 - y1)


def _gender_code(g) -> str | None:
    # genderage yields 1 for male, 0 for female; some packs give strings
    if isinstance(g, (int, np.integer)):
        return "M" if int(g) == 1 else "F"
    if isinstance(g, str) and g[:1].lower() in ("m", "f"):
        return g[:1].upper()
    return None


def _descriptor(face) -> np.ndarray | None:
    """Prefer ``normed_embedding``; otherwise normalize ``embedding``."""
    emb = getattr(face, "normed_embedding", None)
    if emb is not None:
        return np.asarray(emb, dtype=np.float32)
    emb = getattr(face, "embedding", None)
    if emb is None:
        return None
    emb = np.asarray(emb, dtype=np.float32)
    return emb / (np.linalg.norm(emb) + 1e-9)


def to_detected_face(face) -> DetectedFace | None:
    descriptor = _descriptor(face)
    if descriptor is None:
        return None

    landmarks = getattr(face, "landmark_2d_106", None)
    if landmarks is None:
        landmarks = getattr(face, "kps", None)

    gender = getattr(face, "gender", None)
    if gender is None:
        gender = getattr(face, "sex", None)

    x1, y1, x2, y2 = map(int, face.bbox)
    return DetectedFace(
        bbox=(x1, y1, x2, y2),
        descriptor=descriptor,
        landmarks=None if landmarks is None else np.asarray(landmarks, dtype=np.float32),
        age=getattr(face, "age", None),
        gender=_gender_code(gender),
    )


class FaceDetector:
    """Loads a FaceAnalysis model pack and turns its output into DetectedFace values."""

    def __init__(self, model_name: str | None = None, det_size: tuple[int, int] | None = None):
        self.model_name = model_name or config.DETECTION_MODEL_NAME
        self.det_size = det_size or config.DET_SIZE
        logger.info("Loading face analysis model '%s' (det_size=%s)", self.model_name, self.det_size)
        try:
            self._app = FaceAnalysis(
                name=self.model_name,
                allowed_modules=["detection", "landmark_2d_106", "recognition", "genderage"],
                providers=["CPUExecutionProvider"],
            )
            self._app.prepare(ctx_id=-1, det_size=self.det_size)
        except Exception as e:
            raise ModelLoadError(f"Failed to load face analysis model '{self.model_name}': {e}") from e
        logger.info("Face analysis model '%s' loaded", self.model_name)

    def detect(self, image: np.ndarray) -> list[DetectedFace]:
        """All faces in ``image`` that carry a descriptor."""
        out = []
        for face in self._app.get(image):
            det = to_detected_face(face)
            if det is not None:
                out.append(det)
        return out

    def describe_largest(self, image: np.ndarray) -> np.ndarray | None:
        """Descriptor of the largest face in ``image``, or None if there is none."""
        faces = self._app.get(image)
        if not faces:
            return None
        return _descriptor(max(faces, key=_area))
