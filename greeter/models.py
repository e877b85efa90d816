from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from greeter import config


class SessionState(Enum):
    """Lifecycle of a recognition session"""

    UNINITIALIZED = 1
    READY = 2
    CAPTURING = 3
    STOPPED = 4


BBox = tuple[int, int, int, int]


@dataclass
class DetectedFace:
    """One face found in a frame by the face analysis model."""

    bbox: BBox
    descriptor: np.ndarray
    landmarks: np.ndarray | None = None
    age: float | None = None
    gender: str | None = None


@dataclass(frozen=True)
class MatchResult:
    label: str
    distance: float

    @property
    def is_unknown(self) -> bool:
        return self.label == config.UNKNOWN_LABEL

    def __str__(self) -> str:
        return f"{self.label} ({self.distance:.2f})"


@dataclass(frozen=True)
class VoiceSettings:
    volume: float = 1.0
    rate: float = 1.0
    pitch: float = 1.0
    language: str = "en-US"


@dataclass(frozen=True)
class NotificationRequest:
    """A greeting to be delivered by the notification sinks."""

    identity: str
    text: str
    voice: VoiceSettings = field(default_factory=VoiceSettings)
    t_ms: int = 0


def _freeze(descriptor) -> np.ndarray:
    arr = np.array(descriptor, dtype=np.float32).reshape(-1)
    arr.setflags(write=False)
    return arr


class ReferenceSet(Mapping):
    """
    Read-only, insertion-ordered mapping of identity -> reference descriptors.

    Every identity holds at least one descriptor and all descriptors share
    one length. Empty descriptor lists are dropped on construction.
    """

    def __init__(self, entries: Mapping[str, list] | None = None):
        self._entries: dict[str, tuple[np.ndarray, ...]] = {}
        self.descriptor_size: int | None = None
        for label, descriptors in (entries or {}).items():
            frozen = tuple(_freeze(d) for d in descriptors)
            if not frozen:
                continue
            for d in frozen:
                if self.descriptor_size is None:
                    self.descriptor_size = d.size
                elif d.size != self.descriptor_size:
                    raise ValueError(
                        f"descriptor for '{label}' has length {d.size}, expected {self.descriptor_size}"
                    )
            self._entries[label] = frozen

    def __getitem__(self, label: str) -> tuple[np.ndarray, ...]:
        return self._entries[label]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def num_descriptors(self) -> int:
        return sum(len(v) for v in self._entries.values())

    def __repr__(self) -> str:
        counts = ", ".join(f"{k}:{len(v)}" for k, v in self._entries.items())
        return f"ReferenceSet({counts})"
