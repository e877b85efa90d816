"""
Reference image sources.

Both sources look images up by (label, index) and expose ``open`` as a
context manager yielding a decoded BGR image. Anything acquired to decode
the image is released when the block exits.
"""

from __future__ import annotations

import logging
import pathlib
from collections.abc import Iterator
from contextlib import contextmanager

import cv2
import numpy as np

try:
    import requests
except ImportError as exc:  # pragma: no cover
    raise SystemExit("The 'requests' package is required. Install it with: pip install requests") from exc

from greeter import config
from greeter.errors import ImageLoadError

logger = logging.getLogger(__name__)

IMG_EXTS = (".jpg", ".jpeg", ".png", ".webp", ".bmp")


def decode_image(data: bytes) -> np.ndarray:
    buf = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(buf, cv2.IMREAD_COLOR) if buf.size else None
    if img is None:
        raise ImageLoadError("image data could not be decoded")
    return img


class DirectoryImageSource:
    """Reads ``<root>/<label>/<index>.<ext>``."""

    def __init__(self, root: str | pathlib.Path | None = None):
        self.root = pathlib.Path(root or config.LABELED_IMAGES_DIR)

    def _find(self, label: str, index: int) -> pathlib.Path | None:
        person_dir = self.root / label
        for ext in IMG_EXTS:
            path = person_dir / f"{index}{ext}"
            if path.is_file():
                return path
        return None

    @contextmanager
    def open(self, label: str, index: int) -> Iterator[np.ndarray]:
        path = self._find(label, index)
        if path is None:
            raise ImageLoadError(f"image {index} for '{label}' not found under {self.root / label}")
        # cv2.imread chokes on non-ascii paths on some platforms
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ImageLoadError(f"could not read {path}: {e}") from e
        yield decode_image(data)

    def __repr__(self) -> str:
        return f"DirectoryImageSource({str(self.root)!r})"


class HttpImageSource:
    """Fetches ``<base_url>/<label>/<index>.jpg``."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None, session=None):
        self.base_url = (base_url or config.LABELED_IMAGES_URL).rstrip("/")
        self.timeout = config.HTTP_TIMEOUT_S if timeout is None else timeout
        self._http = session or requests

    def url_for(self, label: str, index: int) -> str:
        return f"{self.base_url}/{label}/{index}.jpg"

    @contextmanager
    def open(self, label: str, index: int) -> Iterator[np.ndarray]:
        url = self.url_for(label, index)
        try:
            response = self._http.get(url, timeout=self.timeout)
        except requests.RequestException as error:
            raise ImageLoadError(f"request for {url} failed: {error}") from error

        try:
            if not response.ok:
                raise ImageLoadError(f"{url} returned {response.status_code}")
            img = decode_image(response.content)
            yield img
        finally:
            response.close()

    def __repr__(self) -> str:
        return f"HttpImageSource({self.base_url!r})"


def make_image_source():
    """HTTP source when ``LABELED_IMAGES_URL`` is set, directory source otherwise."""
    if config.LABELED_IMAGES_URL:
        return HttpImageSource(config.LABELED_IMAGES_URL)
    return DirectoryImageSource(config.LABELED_IMAGES_DIR)
