"""
Recognition session: model + reference set loading, then the capture loop.

Lifecycle: UNINITIALIZED --initialize()--> READY --start_capture()--> CAPTURING --> STOPPED
"""

import logging
import threading
import time
from collections.abc import Callable

from greeter import config
from greeter.cooldown import CooldownController, CooldownState
from greeter.descriptor_store import build_reference_set
from greeter.errors import SessionStateError
from greeter.matcher import FrameMatcher
from greeter.models import DetectedFace, MatchResult, ReferenceSet, SessionState
from greeter.notifier import dispatch

logger = logging.getLogger(__name__)

PRUNE_EVERY_N_FRAMES = 100


def monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class RecognitionSession:
    def __init__(
        self,
        *,
        detector_factory: Callable,
        image_source,
        frame_source_factory: Callable,
        sinks: list | None = None,
        labels: list[str] | None = None,
        images_per_label: int | None = None,
        threshold: float | None = None,
        controller: CooldownController | None = None,
        renderer=None,
        window=None,
        clock: Callable[[], int] = monotonic_ms,
    ):
        self.detector_factory = detector_factory
        self.image_source = image_source
        self.frame_source_factory = frame_source_factory
        self.sinks = list(sinks or [])
        self.labels = list(config.KNOWN_LABELS if labels is None else labels)
        self.images_per_label = config.IMAGES_PER_LABEL if images_per_label is None else images_per_label
        self.threshold = float(config.MATCH_THRESHOLD if threshold is None else threshold)
        self.controller = controller or CooldownController(threshold=self.threshold)
        self.renderer = renderer
        self.window = window
        self.clock = clock

        self.state = SessionState.UNINITIALIZED
        self.cooldown_state = CooldownState()
        self.detector = None
        self.reference_set: ReferenceSet | None = None
        self.matcher: FrameMatcher | None = None
        self.frame_count = 0
        self._stop = threading.Event()

    def _require(self, action: str, *expected: SessionState) -> None:
        if self.state not in expected:
            names = " or ".join(s.name for s in expected)
            raise SessionStateError(f"cannot {action} while {self.state.name}; expected {names}")

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def initialize(self) -> ReferenceSet:
        """
        Load the model and build the reference set.

        Raises ModelLoadError or NoReferenceDataError; on failure the session
        stays UNINITIALIZED and capture cannot start. A stop requested while
        loading leaves the session STOPPED.
        """
        self._require("initialize", SessionState.UNINITIALIZED)
        detector = self.detector_factory()
        reference_set = build_reference_set(self.labels, self.image_source, detector, self.images_per_label)

        self.detector = detector
        self.reference_set = reference_set
        self.matcher = FrameMatcher(reference_set, threshold=self.threshold)
        logger.info("Face recognition data loaded: %r", reference_set)
        if self._stop.is_set():
            logger.info("Stop requested during startup; capture will not start")
            self.state = SessionState.STOPPED
        else:
            self.state = SessionState.READY
        return reference_set

    def process_frame(self, frame) -> tuple[list[DetectedFace], list[MatchResult]]:
        """One detect -> match -> notify pass over a frame."""
        self._require("process a frame", SessionState.READY, SessionState.CAPTURING)
        faces = self.detector.detect(frame)
        matches = []
        now_ms = self.clock()
        for face in faces:
            match = self.matcher.match(face.descriptor)
            matches.append(match)
            request = self.controller.decide(match, self.cooldown_state, now_ms)
            if request is not None:
                logger.info("Greeting %s: %s", request.identity, request.text)
                dispatch(self.sinks, request)
        return faces, matches

    def start_capture(self) -> int:
        """
        Run the frame loop until stopped, the window is closed or frames run out.

        Returns the number of frames processed; 0 without opening the camera
        if a stop was already requested. Raises DeviceAccessError if the
        camera cannot be opened.
        """
        if self._stop.is_set():
            self.state = SessionState.STOPPED
            logger.info("Stop already requested; not starting capture")
            return self.frame_count
        self._require("start capture", SessionState.READY)
        try:
            with self.frame_source_factory() as source:
                self.state = SessionState.CAPTURING
                logger.info("Capture started. Detecting faces...")
                for frame in source.frames():
                    if self._stop.is_set():
                        break
                    if not self._handle_frame(frame):
                        break
        finally:
            self.state = SessionState.STOPPED
            if self.window is not None:
                self.window.close()
            logger.info("Capture stopped after %d frame(s)", self.frame_count)
        return self.frame_count

    def _handle_frame(self, frame) -> bool:
        self.frame_count += 1
        faces, matches = self.process_frame(frame)

        if self.frame_count % PRUNE_EVERY_N_FRAMES == 0:
            self.cooldown_state.prune(self.clock(), self.controller.cooldown_ms)

        if self.renderer is None:
            return True
        image = self.renderer.render(frame, faces, matches, status="Models loaded. Detecting faces...")
        if self.window is None:
            return True
        return self.window.show(image)

    def stop(self) -> None:
        """Request a stop; honoured at the next frame boundary."""
        self._stop.set()
        if self.state in (SessionState.UNINITIALIZED, SessionState.READY):
            self.state = SessionState.STOPPED

    def close(self) -> None:
        for sink in self.sinks:
            try:
                sink.close()
            except Exception:
                logger.exception("Failed to close notification sink %s", type(sink).__name__)
