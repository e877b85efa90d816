"""
Notification sinks.

Every sink takes a NotificationRequest through ``notify`` and returns at
once; delivery is not confirmed back to the caller.
"""

import logging
import queue
import threading

import pyttsx3

from greeter import config
from greeter.models import NotificationRequest, VoiceSettings
from greeter.redis_client import connect_redis

logger = logging.getLogger(__name__)


class LogSink:
    """Writes greetings to the log; useful headless or without audio."""

    def notify(self, request: NotificationRequest) -> None:
        logger.info("[greeting] %s: %s", request.identity, request.text)

    def close(self) -> None:
        pass


class RedisStreamSink:
    """Appends each greeting to a Redis stream for other consumers."""

    def __init__(self, client=None, stream: str | None = None):
        if client is None:
            client = connect_redis()
        self.client = client
        self.stream = stream or config.GREETING_STREAM

    @staticmethod
    def to_fields(request: NotificationRequest) -> dict[str, str]:
        return {
            "identity": request.identity,
            "text": request.text,
            "language": request.voice.language,
            "volume": str(request.voice.volume),
            "rate": str(request.voice.rate),
            "pitch": str(request.voice.pitch),
            "t_ms": str(int(request.t_ms)),
        }

    def notify(self, request: NotificationRequest) -> None:
        message_id = self.client.xadd(self.stream, self.to_fields(request))
        logger.debug("Queued greeting for %s on %s as %s", request.identity, self.stream, message_id)

    def close(self) -> None:
        self.client.close()


def _voice_languages(voice) -> list[str]:
    out = []
    for lang in getattr(voice, "languages", None) or []:
        if isinstance(lang, bytes):
            # espeak reports e.g. b"\x05en-us"
            lang = lang.decode("utf-8", errors="ignore").lstrip("\x00\x01\x02\x03\x04\x05")
        out.append(str(lang))
    return out


def pick_voice_id(voices, language: str) -> str | None:
    """Id of the first voice speaking ``language`` (e.g. "en-US"), or None."""
    want = language.lower().replace("_", "-")
    for v in voices or []:
        langs = [lang.lower().replace("_", "-") for lang in _voice_languages(v)]
        if want in langs:
            return v.id
    # some drivers only encode the language in the voice id
    for v in voices or []:
        if want in str(v.id).lower().replace("_", "-"):
            return v.id
    return None


class SpeechSink:
    """
    Speaks greetings with pyttsx3.

    The engine lives on a daemon thread fed by a queue, so ``notify`` never
    blocks the frame loop.
    """

    def __init__(self, base_wpm: int | None = None, engine_factory=pyttsx3.init):
        self.base_wpm = config.TTS_BASE_WPM if base_wpm is None else base_wpm
        self._engine_factory = engine_factory
        self._queue: queue.Queue[NotificationRequest | None] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._voice_cache: dict[str, str | None] = {}
        self._pitch_warned = False
        self._engine_failed = threading.Event()

    def _start(self) -> None:
        if self._thread is None:
            self._thread = threading.Thread(target=self._run, name="speech-sink", daemon=True)
            self._thread.start()

    def notify(self, request: NotificationRequest) -> None:
        if self._engine_failed.is_set():
            logger.debug("Speech engine unavailable; dropping greeting for %s", request.identity)
            return
        self._start()
        self._queue.put(request)
        if self._engine_failed.is_set():
            self._drain()

    def close(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._queue.put(None)
        self._thread.join(timeout)
        self._thread = None

    def _drain(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def _apply_voice(self, engine, voice: VoiceSettings) -> None:
        engine.setProperty("volume", max(0.0, min(1.0, voice.volume)))
        engine.setProperty("rate", int(self.base_wpm * voice.rate))
        if voice.pitch != 1.0 and not self._pitch_warned:
            logger.debug("pyttsx3 has no pitch control; ignoring pitch=%s", voice.pitch)
            self._pitch_warned = True

        if voice.language not in self._voice_cache:
            self._voice_cache[voice.language] = pick_voice_id(engine.getProperty("voices"), voice.language)
            if self._voice_cache[voice.language] is None:
                logger.info("No %s voice available; using the default voice", voice.language)
        voice_id = self._voice_cache[voice.language]
        if voice_id:
            engine.setProperty("voice", voice_id)

    def _run(self) -> None:
        try:
            engine = self._engine_factory()
        except Exception:
            logger.exception("Speech engine failed to start; greetings will not be spoken")
            self._engine_failed.set()
            self._drain()
            return

        engine.connect("started-utterance", lambda name: logger.info("Started speaking to %s", name))
        engine.connect("finished-utterance", lambda name, completed: logger.info("Finished speaking to %s", name))

        while True:
            request = self._queue.get()
            if request is None:
                break
            try:
                self._apply_voice(engine, request.voice)
                engine.say(request.text, request.identity)
                engine.runAndWait()
            except Exception:
                logger.exception("Failed to speak greeting for %s", request.identity)

        engine.stop()


SINKS = {
    "speech": SpeechSink,
    "redis": RedisStreamSink,
    "log": LogSink,
}


def build_sinks(names: list[str] | None = None) -> list:
    names = config.NOTIFY_SINKS if names is None else names
    sinks = []
    for name in names:
        try:
            factory = SINKS[name]
        except KeyError:
            raise ValueError(f"Unknown notification sink '{name}'. Allowed: {sorted(SINKS)}") from None
        try:
            sinks.append(factory())
        except Exception:
            logger.exception("Notification sink '%s' could not be started; it is disabled", name)
    return sinks


def dispatch(sinks: list, request: NotificationRequest) -> None:
    """Hand ``request`` to every sink; a failing sink is logged and skipped."""
    for sink in sinks:
        try:
            sink.notify(request)
        except Exception:
            logger.exception("Notification sink %s failed for %s", type(sink).__name__, request.identity)
