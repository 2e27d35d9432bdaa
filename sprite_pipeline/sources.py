"""Input/output adapters around the pixel core.

The pipeline only ever sees decoded :class:`PixelBuffer` objects.  Fetching
bytes (files, HTTP, data URLs returned by image generators) and PNG
encoding live here, behind the small :class:`SpriteSource` protocol so that
callers can inject their own provider clients.
"""

import base64
import binascii
import logging
import re
import urllib.error
import urllib.request
from io import BytesIO
from pathlib import Path
from typing import Protocol, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .buffer import PixelBuffer
from .errors import SourceError

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)


class SpriteSource(Protocol):
    """Anything that can produce a decoded source image."""

    def fetch(self) -> PixelBuffer:
        ...

    def describe(self) -> str:
        ...


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def buffer_from_image(pil: Image.Image) -> PixelBuffer:
    """Convert a PIL image to an RGB or RGBA buffer.

    Modes carrying transparency (RGBA, LA, P with a transparent index) keep
    their alpha; everything else becomes RGB.
    """
    if pil.mode == "RGBA":
        return PixelBuffer(np.array(pil))
    if pil.mode in ("LA", "PA") or (pil.mode == "P" and "transparency" in pil.info):
        return PixelBuffer(np.array(pil.convert("RGBA")))
    return PixelBuffer(np.array(pil.convert("RGB")))


def decode_image_bytes(data: bytes) -> PixelBuffer:
    """Decode PNG/JPEG/WebP/... bytes."""
    try:
        with Image.open(BytesIO(data)) as pil:
            pil.load()
            return buffer_from_image(pil)
    except (UnidentifiedImageError, OSError) as e:
        raise SourceError(f"Could not decode image ({len(data)} bytes): {e}") from e


def is_data_url(value: str) -> bool:
    return bool(_DATA_URL.match(value))


def decode_data_url(url: str) -> PixelBuffer:
    """Decode a ``data:image/<fmt>;base64,...`` URL."""
    match = _DATA_URL.match(url)
    if not match:
        raise SourceError("Not a base64 image data URL")
    try:
        raw = base64.b64decode(url[match.end():], validate=True)
    except (binascii.Error, ValueError) as e:
        raise SourceError(f"Invalid base64 payload: {e}") from e
    return decode_image_bytes(raw)


def load_image(path: Union[str, Path]) -> PixelBuffer:
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise SourceError(f"Could not read {path}: {e}") from e
    return decode_image_bytes(data)


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def to_image(buffer: PixelBuffer) -> Image.Image:
    # (H, W, 4) uint8 maps to RGBA, (H, W, 3) to RGB
    return Image.fromarray(buffer.pixels)


def encode_png(buffer: PixelBuffer) -> bytes:
    out = BytesIO()
    to_image(buffer).save(out, format="PNG")
    return out.getvalue()


def to_data_url(buffer: PixelBuffer) -> str:
    return "data:image/png;base64," + base64.b64encode(encode_png(buffer)).decode("ascii")


def save_png(buffer: PixelBuffer, path: Union[str, Path]) -> Path:
    path = Path(path)
    to_image(buffer).save(path, format="PNG")
    return path


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class BufferSource:
    """Caller-supplied, already decoded buffer."""

    def __init__(self, buffer: PixelBuffer, name: str = "<buffer>"):
        self.buffer = buffer
        self.name = name

    def fetch(self) -> PixelBuffer:
        return self.buffer

    def describe(self) -> str:
        return self.name


class BytesSource:
    """Encoded image bytes, or a data URL string."""

    def __init__(self, data: Union[bytes, str], name: str = "<bytes>"):
        self.data = data
        self.name = name

    def fetch(self) -> PixelBuffer:
        if isinstance(self.data, str):
            return decode_data_url(self.data)
        return decode_image_bytes(self.data)

    def describe(self) -> str:
        return self.name


class FileSource:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def fetch(self) -> PixelBuffer:
        return load_image(self.path)

    def describe(self) -> str:
        return str(self.path)


class UrlSource:
    """HTTP(S) or data URL, e.g. the output URL of an image generator."""

    def __init__(self, url: str, timeout: float = 60.0):
        self.url = url
        self.timeout = timeout

    def fetch(self) -> PixelBuffer:
        if is_data_url(self.url):
            return decode_data_url(self.url)
        try:
            with urllib.request.urlopen(self.url, timeout=self.timeout) as resp:
                data = resp.read()
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise SourceError(f"Could not fetch {self.describe()}: {e}") from e
        logger.debug("Fetched %d bytes from %s", len(data), self.describe())
        return decode_image_bytes(data)

    def describe(self) -> str:
        if is_data_url(self.url):
            return f"<data url, {len(self.url)} chars>"
        return self.url
