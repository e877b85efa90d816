"""
Per-identity greeting cooldown.

The state is an explicit object owned by the caller; the controller reads it
and records a timestamp only when a greeting fires.
"""

import logging
from collections.abc import Mapping

from greeter import config
from greeter.models import MatchResult, NotificationRequest, VoiceSettings

logger = logging.getLogger(__name__)


class CooldownState:
    """identity -> timestamp (ms) of the last greeting."""

    def __init__(self):
        self._last: dict[str, int] = {}

    def last_notified(self, identity: str) -> int | None:
        return self._last.get(identity)

    def record(self, identity: str, now_ms: int) -> None:
        self._last[identity] = now_ms

    def prune(self, now_ms: int, cooldown_ms: int) -> list[str]:
        """Drop entries older than the cooldown window; returns the dropped identities."""
        stale = [k for k, t in self._last.items() if now_ms - t >= cooldown_ms]
        for k in stale:
            del self._last[k]
        return stale

    def __contains__(self, identity: str) -> bool:
        return identity in self._last

    def __getitem__(self, identity: str) -> int:
        return self._last[identity]

    def __len__(self) -> int:
        return len(self._last)

    def as_dict(self) -> dict[str, int]:
        return dict(self._last)


def greeting_for(
    identity: str,
    special: Mapping[str, str] | None = None,
    template: str | None = None,
) -> str:
    special = config.SPECIAL_GREETINGS if special is None else special
    template = config.GENERIC_GREETING if template is None else template
    text = special.get(identity.lower())
    if text is not None:
        return text
    # replace() rather than format(): identity is inserted verbatim, braces included
    return template.replace("{identity}", identity)


class CooldownController:
    def __init__(
        self,
        cooldown_ms: int | None = None,
        threshold: float | None = None,
        special_greetings: Mapping[str, str] | None = None,
        greeting_template: str | None = None,
        voice: VoiceSettings | None = None,
    ):
        self.cooldown_ms = int(config.NOTIFICATION_COOLDOWN_MS if cooldown_ms is None else cooldown_ms)
        self.threshold = float(config.MATCH_THRESHOLD if threshold is None else threshold)
        self.special_greetings = special_greetings
        self.greeting_template = greeting_template
        self.voice = voice or VoiceSettings(
            volume=config.TTS_VOLUME,
            rate=config.TTS_RATE,
            pitch=config.TTS_PITCH,
            language=config.TTS_LANGUAGE,
        )

    def is_eligible(self, match: MatchResult) -> bool:
        return not match.is_unknown and match.distance < self.threshold

    def decide(self, match: MatchResult, state: CooldownState, now_ms: int) -> NotificationRequest | None:
        """
        Return a NotificationRequest if a greeting should fire now, else None.

        A greeting fires for an eligible match whose identity was never
        greeted, or was last greeted at least ``cooldown_ms`` ago. Firing
        records ``now_ms`` in ``state``; otherwise ``state`` is left untouched.
        """
        if not self.is_eligible(match):
            return None

        identity = match.label
        last = state.last_notified(identity)
        if last is not None and now_ms - last < self.cooldown_ms:
            return None

        state.record(identity, now_ms)
        text = greeting_for(identity, self.special_greetings, self.greeting_template)
        logger.debug("Greeting %s (distance %.3f)", identity, match.distance)
        return NotificationRequest(identity=identity, text=text, voice=self.voice, t_ms=now_ms)
