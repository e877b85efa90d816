"""
Unit tests for greeter.session
"""
import pytest

from greeter.errors import DeviceAccessError, ModelLoadError, NoReferenceDataError, SessionStateError
from greeter.models import SessionState
from greeter.session import RecognitionSession
from tests.conftest import FakeDetector, FakeFrameSource, FakeImageSource, RecordingSink, unit


class Clock:
    def __init__(self, t=0):
        self.t = t

    def __call__(self):
        return self.t


class FakeWindow:
    def __init__(self, close_after=None):
        self.shown = 0
        self.close_after = close_after
        self.closed = False

    def show(self, image):
        self.shown += 1
        return self.close_after is None or self.shown < self.close_after

    def close(self):
        self.closed = True


class FakeRenderer:
    def __init__(self):
        self.calls = []

    def render(self, frame, faces, matches, status=""):
        self.calls.append((frame, [m.label for m in matches]))
        return frame


@pytest.fixture
def detector(face):
    return FakeDetector(
        descriptors={"a1": unit(1.0), "a2": unit(0.95), "b1": unit(0.0, 1.0)},
        frames={
            "alice": [face(unit(1.0))],
            "both": [face(unit(1.0)), face(unit(0.0, 1.0))],
            "stranger": [face(unit(0.0, 0.0, 1.0))],
            "empty": [],
        },
    )


@pytest.fixture
def image_source():
    return FakeImageSource({("alice", 1): "a1", ("alice", 2): "a2", ("bob", 1): "b1"})


def make_session(detector, image_source, frames=(), **kw):
    kw.setdefault("sinks", [RecordingSink()])
    kw.setdefault("clock", Clock())
    return RecognitionSession(
        detector_factory=lambda: detector,
        image_source=image_source,
        frame_source_factory=lambda: FakeFrameSource(frames),
        labels=["alice", "bob"],
        images_per_label=2,
        threshold=0.6,
        **kw,
    )


class TestLifecycle:
    def test_initialize_builds_reference_set(self, detector, image_source):
        session = make_session(detector, image_source)
        refs = session.initialize()
        assert session.state is SessionState.READY
        assert list(refs) == ["alice", "bob"]
        assert len(refs["alice"]) == 2

    def test_capture_requires_initialize(self, detector, image_source):
        session = make_session(detector, image_source)
        with pytest.raises(SessionStateError):
            session.start_capture()
        assert session.state is SessionState.UNINITIALIZED

    def test_initialize_twice_rejected(self, detector, image_source):
        session = make_session(detector, image_source)
        session.initialize()
        with pytest.raises(SessionStateError):
            session.initialize()

    def test_model_failure_halts_startup(self, image_source):
        def broken():
            raise ModelLoadError("missing weights")

        session = RecognitionSession(
            detector_factory=broken,
            image_source=image_source,
            frame_source_factory=lambda: FakeFrameSource([]),
        )
        with pytest.raises(ModelLoadError):
            session.initialize()
        assert session.state is SessionState.UNINITIALIZED

    def test_no_reference_data_halts_startup(self, detector):
        session = make_session(detector, FakeImageSource({}))
        with pytest.raises(NoReferenceDataError):
            session.initialize()
        assert session.state is SessionState.UNINITIALIZED
        with pytest.raises(SessionStateError):
            session.start_capture()

    def test_capture_runs_until_frames_end(self, detector, image_source):
        session = make_session(detector, image_source, frames=["alice", "empty", "stranger"])
        session.initialize()
        assert session.start_capture() == 3
        assert session.state is SessionState.STOPPED
        assert detector.detect_calls == 3

    def test_device_error_propagates(self, detector, image_source):
        class NoCamera:
            def __enter__(self):
                raise DeviceAccessError("no webcam")

            def __exit__(self, *exc):
                return False

        session = RecognitionSession(
            detector_factory=lambda: detector,
            image_source=image_source,
            frame_source_factory=NoCamera,
            labels=["alice"],
        )
        session.initialize()
        with pytest.raises(DeviceAccessError):
            session.start_capture()
        assert session.state is SessionState.STOPPED

    def test_window_quit_stops_loop(self, detector, image_source):
        window = FakeWindow(close_after=2)
        session = make_session(
            detector, image_source, frames=["alice"] * 10, renderer=FakeRenderer(), window=window
        )
        session.initialize()
        assert session.start_capture() == 2
        assert window.closed

    def test_stop_honoured_at_frame_boundary(self, detector, image_source):
        session = make_session(detector, image_source)

        def frames():
            yield "alice"
            session.stop()
            yield "alice"
            yield "alice"

        session.frame_source_factory = lambda: FakeFrameSource(frames())
        session.initialize()
        assert session.start_capture() == 1

    def test_stop_before_capture(self, detector, image_source):
        session = make_session(detector, image_source)
        session.initialize()
        session.stop()
        assert session.state is SessionState.STOPPED

    def test_stop_during_initialize_prevents_capture(self, detector, image_source):
        opened = []
        session = make_session(detector, image_source)

        def load_then_interrupt():
            session.stop()
            return detector

        session.detector_factory = load_then_interrupt
        session.frame_source_factory = lambda: opened.append(True) or FakeFrameSource(["alice"])

        session.initialize()
        assert session.state is SessionState.STOPPED
        assert session.start_capture() == 0
        assert session.state is SessionState.STOPPED
        assert opened == []
        assert detector.detect_calls == 0

    def test_stop_between_initialize_and_capture(self, detector, image_source):
        session = make_session(detector, image_source, frames=["alice", "alice"])
        session.initialize()
        session.stop()
        assert session.start_capture() == 0
        assert detector.detect_calls == 0

    def test_close_closes_sinks(self, detector, image_source):
        sink = RecordingSink()
        make_session(detector, image_source, sinks=[sink]).close()
        assert sink.closed


class TestProcessFrame:
    def test_rejected_before_initialize(self, detector, image_source):
        session = make_session(detector, image_source)
        with pytest.raises(SessionStateError):
            session.process_frame("alice")
        assert detector.detect_calls == 0

    def test_rejected_after_stop(self, detector, image_source):
        session = make_session(detector, image_source)
        session.initialize()
        session.stop()
        with pytest.raises(SessionStateError):
            session.process_frame("alice")

    def test_greets_once_per_window(self, detector, image_source):
        sink = RecordingSink()
        clock = Clock(0)
        session = make_session(detector, image_source, sinks=[sink], clock=clock)
        session.initialize()

        session.process_frame("alice")
        clock.t = 30000
        session.process_frame("alice")
        clock.t = 61000
        session.process_frame("alice")

        assert [(r.identity, r.t_ms) for r in sink.requests] == [("alice", 0), ("alice", 61000)]

    def test_each_face_in_frame_is_matched(self, detector, image_source):
        sink = RecordingSink()
        session = make_session(detector, image_source, sinks=[sink])
        session.initialize()
        faces, matches = session.process_frame("both")
        assert [m.label for m in matches] == ["alice", "bob"]
        assert [r.text for r in sink.requests] == ["Hello alice, welcome!", "Hello bob, welcome!"]

    def test_unknown_face_not_greeted(self, detector, image_source):
        sink = RecordingSink()
        session = make_session(detector, image_source, sinks=[sink])
        session.initialize()
        _, matches = session.process_frame("stranger")
        assert matches[0].is_unknown
        assert sink.requests == []
        assert len(session.cooldown_state) == 0

    def test_renderer_receives_matches(self, detector, image_source):
        renderer = FakeRenderer()
        session = make_session(detector, image_source, frames=["both"], renderer=renderer)
        session.initialize()
        session.start_capture()
        assert renderer.calls == [("both", ["alice", "bob"])]
