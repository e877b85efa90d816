"""
Shared pytest fixtures: fakes for the face model, image source, camera and sinks.
"""
from contextlib import contextmanager

import numpy as np
import pytest

from greeter.errors import ImageLoadError
from greeter.models import DetectedFace


def unit(*values, size: int = 8) -> np.ndarray:
    """A descriptor of length ``size`` with ``values`` in its leading slots."""
    v = np.zeros(size, dtype=np.float32)
    v[: len(values)] = values
    return v


class FakeImageSource:
    """(label, index) -> image token; missing keys raise ImageLoadError."""

    def __init__(self, images: dict):
        self.images = images
        self.opened: list[tuple[str, int]] = []
        self.released: list[tuple[str, int]] = []

    @contextmanager
    def open(self, label, index):
        if (label, index) not in self.images:
            raise ImageLoadError(f"image {index} for '{label}' not found")
        self.opened.append((label, index))
        try:
            yield self.images[label, index]
        finally:
            self.released.append((label, index))

    def __repr__(self):
        return "FakeImageSource()"


class FakeDetector:
    """
    image token -> descriptor (None means "no face") for reference images,
    frame token -> list[DetectedFace] for live frames.
    Image tokens in ``broken`` make the model raise.
    """

    def __init__(self, descriptors: dict | None = None, frames: dict | None = None, broken=()):
        self.descriptors = descriptors or {}
        self.frames = frames or {}
        self.broken = set(broken)
        self.detect_calls = 0

    def describe_largest(self, image):
        if image in self.broken:
            raise RuntimeError(f"inference failed on {image}")
        return self.descriptors.get(image)

    def detect(self, frame):
        self.detect_calls += 1
        return list(self.frames.get(frame, []))


class FakeFrameSource:
    def __init__(self, frames):
        self._frames = frames
        self.entered = False
        self.exited = False

    def __enter__(self):
        self.entered = True
        return self

    def __exit__(self, *exc):
        self.exited = True

    def frames(self):
        yield from self._frames


class RecordingSink:
    def __init__(self):
        self.requests = []
        self.closed = False

    def notify(self, request):
        self.requests.append(request)

    def close(self):
        self.closed = True


@pytest.fixture
def face():
    def _face(descriptor, bbox=(10, 10, 60, 60)):
        return DetectedFace(bbox=bbox, descriptor=np.asarray(descriptor, dtype=np.float32))

    return _face
