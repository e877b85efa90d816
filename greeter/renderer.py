from time import perf_counter

import cv2
import numpy as np

from greeter import config
from greeter.models import DetectedFace, MatchResult


def demographics_suffix(face: DetectedFace) -> str:
    """`` (M, 31)``-style suffix from whatever the model reported."""
    parts = []
    if face.gender:
        parts.append(face.gender)
    if face.age is not None:
        parts.append(str(round(float(face.age))))
    return f" ({', '.join(parts)})" if parts else ""


def draw_text_box(img, text: str, x: int, y: int, color=None, bg=None) -> None:
    font, scale, thickness = cv2.FONT_HERSHEY_SIMPLEX, 0.55, 1
    (tw, th), base = cv2.getTextSize(text, font, scale, thickness)
    pad = 4
    cv2.rectangle(img, (x - pad, y - th - pad), (x + tw + pad, y + base + pad), bg or config.TEXT_BG, -1)
    cv2.putText(img, text, (x, y), font, scale, color or config.TEXT_COLOR, thickness, cv2.LINE_AA)


class FrameRate:
    """Smoothed frames-per-second over render calls."""

    def __init__(self, alpha: float | None = None, clock=perf_counter):
        self.alpha = float(config.FPS_ALPHA if alpha is None else alpha)
        self.clock = clock
        self._last = None
        self._dt = None

    @property
    def fps(self) -> float:
        return 1.0 / self._dt if self._dt else 0.0

    def tick(self) -> None:
        now = self.clock()
        if self._last is not None:
            dt = min(now - self._last, config.FPS_MAX_DT_CLAMP)
            if dt > 0:
                self._dt = dt if self._dt is None else (1 - self.alpha) * self._dt + self.alpha * dt
        self._last = now


def scale_face(face: DetectedFace, sx: float, sy: float) -> DetectedFace:
    """Copy of ``face`` with geometry scaled from frame to display coordinates."""
    x1, y1, x2, y2 = face.bbox
    landmarks = None
    if face.landmarks is not None:
        landmarks = face.landmarks * np.array([sx, sy], dtype=np.float32)
    return DetectedFace(
        bbox=(round(x1 * sx), round(y1 * sy), round(x2 * sx), round(y2 * sy)),
        descriptor=face.descriptor,
        landmarks=landmarks,
        age=face.age,
        gender=face.gender,
    )


class OverlayRenderer:
    """Draws match results, landmarks, FPS and a status line on a display-sized copy of the frame."""

    def __init__(
        self,
        display_size: tuple[int, int] | None = None,
        show_fps: bool | None = None,
        show_demographics: bool | None = None,
    ):
        self.display_size = display_size or (config.DISPLAY_WIDTH, config.DISPLAY_HEIGHT)
        self.show_fps = config.SHOW_FPS if show_fps is None else show_fps
        self.show_demographics = config.SHOW_DEMOGRAPHICS if show_demographics is None else show_demographics
        self.frame_rate = FrameRate()

    def draw_face(self, img, face: DetectedFace, match: MatchResult) -> None:
        x1, y1, x2, y2 = face.bbox
        color = config.COLOR_UNKNOWN if match.is_unknown else config.COLOR_KNOWN
        cv2.rectangle(img, (x1, y1), (x2, y2), color, 2)

        if face.landmarks is not None:
            for x, y in face.landmarks.astype(int):
                cv2.circle(img, (int(x), int(y)), 1, config.COLOR_LANDMARK, -1)

        text = str(match)
        if self.show_demographics:
            text += demographics_suffix(face)
        draw_text_box(img, text, x1 + 2, max(20, y1 - 6), bg=color)

    def render(self, frame, faces: list[DetectedFace], matches: list[MatchResult], status: str = ""):
        """Return a new display-sized image; ``frame`` is not modified."""
        h, w = frame.shape[:2]
        dw, dh = self.display_size
        img = cv2.resize(frame, (dw, dh)) if (w, h) != (dw, dh) else frame.copy()
        sx, sy = dw / w, dh / h

        for face, match in zip(faces, matches):
            self.draw_face(img, scale_face(face, sx, sy), match)

        self.frame_rate.tick()
        if self.show_fps:
            draw_text_box(img, f"{self.frame_rate.fps:.{config.FPS_DECIMALS}f} FPS", 10, 30)
        if status:
            draw_text_box(img, status, 10, dh - 12)
        return img
