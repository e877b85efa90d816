# greeter/__main__.py
import logging
import signal

from greeter import config
from greeter.errors import DeviceAccessError, ModelLoadError, NoReferenceDataError
from greeter.image_source import make_image_source
from greeter.notifier import build_sinks
from greeter.renderer import OverlayRenderer
from greeter.session import RecognitionSession
from greeter.video import CameraFrameSource, PreviewWindow

logger = logging.getLogger("greeter")


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, level or config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _detector_factory():
    # insightface is heavy; import only when the model is actually loaded
    from greeter.detector import FaceDetector

    return FaceDetector()


def build_session() -> RecognitionSession:
    return RecognitionSession(
        detector_factory=_detector_factory,
        image_source=make_image_source(),
        frame_source_factory=CameraFrameSource,
        sinks=build_sinks(),
        renderer=OverlayRenderer(),
        window=PreviewWindow() if config.SHOW_WINDOW else None,
    )


def main() -> int:
    configure_logging()
    session = build_session()

    def _sigterm(*_):
        session.stop()

    signal.signal(signal.SIGTERM, _sigterm)
    signal.signal(signal.SIGINT, _sigterm)

    try:
        try:
            session.initialize()
        except ModelLoadError as e:
            logger.error("Failed to load face recognition models: %s", e)
            return 1
        except NoReferenceDataError as e:
            logger.error("Failed to load face recognition data: %s", e)
            return 1

        if session.stop_requested:
            logger.info("Stopped before capture started")
            return 0

        try:
            session.start_capture()
        except DeviceAccessError as e:
            logger.error("Unable to access webcam: %s", e)
            return 2
    finally:
        session.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
