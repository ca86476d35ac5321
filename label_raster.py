"""
Raster pipeline for label images

Two independent pipelines share the BinarizedBitmap type:

- binarize() + extract_runs() + runs_to_lines(): TSPL has no bitmap command
  we can drive through the text channel, so every horizontal run of ink is
  drawn as a 1 dot tall BAR.
- binarize_for_grf() + pack_grf(): ZPL ^GFA graphic field, 1 bit per pixel,
  8 pixels per byte, MSB first, rows padded to whole bytes.

The two binarizers use different thresholds on purpose; keep them apart.
"""

import io
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, NamedTuple, Tuple

from PIL import Image, UnidentifiedImageError

from label_errors import ImageUnavailable, InvalidPrimitiveParameter
from label_primitives import Line

logger = logging.getLogger(__name__)

DEFAULT_BRIGHTNESS_THRESHOLD = 255 / 2
GRF_THRESHOLD = 160


# ──────────────────────────────────────────────────────────────
# Pixel surfaces
class PixelSurface(ABC):
    """Read-only pixel access to a decoded image"""

    @property
    @abstractmethod
    def width(self) -> int:
        pass

    @property
    @abstractmethod
    def height(self) -> int:
        pass

    @property
    def depth(self) -> int:
        """Bits per channel; 1 for bilevel sources"""
        return 8

    @abstractmethod
    def pixel_at(self, x, y) -> Tuple[int, int, int]:
        """(r, g, b) of a pixel, 0-255 each"""
        pass

    def channel_value_at(self, x, y) -> int:
        """Single channel value for depth 1 sources"""
        return max(self.pixel_at(x, y))


WIDE_MODES = ("I", "F")


def to_8bit(img):
    """Scale 16/32 bit single channel images down to mode L

    convert("RGB") would clip those values at 255 and turn the image white.
    """
    if not (img.mode in WIDE_MODES or img.mode.startswith("I;16")):
        return img
    if img.mode.startswith("I;16"):
        wide = img.convert("I")
    elif img.getextrema()[1] <= 255:
        # I/F images that already hold 8 bit values
        return img.convert("L")
    else:
        wide = img
    return wide.point(lambda v: v * (1 / 256)).convert("L")


class PillowSurface(PixelSurface):
    """PixelSurface backed by a Pillow image"""

    def __init__(self, img):
        self.image = img
        self._bilevel = img.mode == "1"
        # Bilevel images keep their raw 0/255 values; everything else is read as RGB
        self._channel_pixels = img.load() if self._bilevel else None
        rgb = img if img.mode == "RGB" else to_8bit(img).convert("RGB")
        self._rgb_pixels = rgb.load()

    @property
    def width(self):
        return self.image.size[0]

    @property
    def height(self):
        return self.image.size[1]

    @property
    def depth(self):
        return 1 if self._bilevel else 8

    def pixel_at(self, x, y):
        return self._rgb_pixels[x, y][:3]

    def channel_value_at(self, x, y):
        if self._bilevel:
            return self._channel_pixels[x, y]
        return super().channel_value_at(x, y)


def load_surface(source):
    """Turn an image source into a PixelSurface

    Args:
        source: path to an image file, the file content as bytes, a Pillow
            image, or an existing PixelSurface

    Raises:
        ImageUnavailable: the file does not exist or cannot be decoded
    """
    if isinstance(source, PixelSurface):
        return source
    if isinstance(source, Image.Image):
        return PillowSurface(source)

    if isinstance(source, (bytes, bytearray)):
        stream, name = io.BytesIO(source), "<image content>"
    else:
        name = os.fspath(source)
        if not os.path.exists(name):
            raise ImageUnavailable(f"Image file {name} does not exist.")
        stream = name

    try:
        img = Image.open(stream)
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageUnavailable(f"Could not decode image {name}: {e}") from e

    logger.debug("Loaded image %s (%dx%d, mode %s)", name, img.size[0], img.size[1], img.mode)
    return PillowSurface(img)


# ──────────────────────────────────────────────────────────────
# Binarized bitmap
@dataclass(frozen=True)
class BinarizedBitmap:
    """Row-major ink matrix; True means print black"""
    width: int
    height: int
    threshold: float
    bits: Tuple[bool, ...]

    def __post_init__(self):
        if len(self.bits) != self.width * self.height:
            raise InvalidPrimitiveParameter(
                f"Bitmap of {self.width}x{self.height} needs {self.width * self.height} bits, got {len(self.bits)}"
            )

    def at(self, x, y):
        return self.bits[y * self.width + x]

    def row(self, y):
        start = y * self.width
        return self.bits[start:start + self.width]

    @classmethod
    def from_rows(cls, rows, threshold=DEFAULT_BRIGHTNESS_THRESHOLD):
        """Build a bitmap from a list of equally long rows of truthy values"""
        height = len(rows)
        width = len(rows[0]) if rows else 0
        bits = tuple(bool(v) for row in rows for v in row)
        return cls(width, height, threshold, bits)


def calculate_brightness(r, g, b):
    """Relative luminance (ITU-R BT.709) of an RGB colour, 0-255"""
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def binarize(surface, threshold=None):
    """Classify every pixel as ink when its brightness is <= threshold"""
    if threshold is None:
        threshold = DEFAULT_BRIGHTNESS_THRESHOLD
    surface = load_surface(surface)
    w, h = surface.width, surface.height
    bits = tuple(
        calculate_brightness(*surface.pixel_at(x, y)) <= threshold
        for y in range(h)
        for x in range(w)
    )
    return BinarizedBitmap(w, h, threshold, bits)


# ──────────────────────────────────────────────────────────────
# Run-length boxes (TSPL)
class Run(NamedTuple):
    """Ink span [start_x, end_x) on row y"""
    y: int
    start_x: int
    end_x: int

    @property
    def length(self):
        return self.end_x - self.start_x


def extract_runs(bitmap) -> List[Run]:
    """Maximal horizontal ink runs, row by row, left to right"""
    runs = []
    for y in range(bitmap.height):
        row = bitmap.row(y)
        start_x = None
        for x, ink in enumerate(row):
            if ink and start_x is None:
                start_x = x
            elif not ink and start_x is not None:
                runs.append(Run(y, start_x, x))
                start_x = None
        # run that goes all the way to the right edge
        if start_x is not None:
            runs.append(Run(y, start_x, bitmap.width))
    return runs


def runs_to_lines(runs, offset_x=0, offset_y=0) -> List[Line]:
    """One 1 dot tall Line per run; printer coordinates are 1-based"""
    return [
        Line(x=run.start_x + 1 + offset_x, y=run.y + 1 + offset_y, width=run.length, height=1)
        for run in runs
    ]


# ──────────────────────────────────────────────────────────────
# GRF packing (ZPL)
@dataclass(frozen=True)
class GrfImage:
    bytes_total: int
    bytes_per_row: int
    rows: Tuple[bytes, ...]

    @property
    def hex_string(self):
        """Uppercase hex, one line per image row"""
        return "\n".join(row.hex().upper() for row in self.rows)

    @property
    def data(self):
        return b"".join(self.rows)


def binarize_for_grf(surface):
    """GRF binarizer: max(R, G, B) against 160, or raw value against 0 for bilevel sources"""
    surface = load_surface(surface)
    w, h = surface.width, surface.height
    if surface.depth > 1:
        threshold = GRF_THRESHOLD
        bits = tuple(
            max(surface.pixel_at(x, y)) <= threshold
            for y in range(h)
            for x in range(w)
        )
    else:
        threshold = 0
        bits = tuple(
            surface.channel_value_at(x, y) <= threshold
            for y in range(h)
            for x in range(w)
        )
    return BinarizedBitmap(w, h, threshold, bits)


def pack_grf(bitmap):
    """Pack a bitmap 8 pixels per byte, MSB first, each row padded on its own"""
    bytes_per_row = (bitmap.width + 7) // 8
    rows = []
    for y in range(bitmap.height):
        row = bytearray(bytes_per_row)
        for x, ink in enumerate(bitmap.row(y)):
            if ink:
                row[x // 8] |= 1 << (7 - (x % 8))
        rows.append(bytes(row))
    bytes_total = (bitmap.width * bitmap.height + 7) // 8
    return GrfImage(bytes_total=bytes_total, bytes_per_row=bytes_per_row, rows=tuple(rows))


def unpack_grf(grf, width, threshold=GRF_THRESHOLD):
    """Decode packed rows back into a bitmap of the given width"""
    bits = []
    for row in grf.rows:
        for x in range(width):
            bits.append(bool(row[x // 8] & (1 << (7 - (x % 8)))))
    return BinarizedBitmap(width, len(grf.rows), threshold, tuple(bits))
