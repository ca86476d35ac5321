"""
Backend-neutral drawing primitives

All coordinates and sizes are in dots. Convert millimetre values with
label_units.mm_to_dots() before building a primitive.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, Union

from label_errors import InvalidPrimitiveParameter

ROTATIONS = (0, 90, 180, 270)
ALIGNMENTS = ("left", "center", "right")
PLAINTEXT_POSITIONS = ("below", "above", "none")
SENSORS = ("gap", "blackMark")


# ──────────────────────────────────────────────────────────────
# Fonts
@dataclass(frozen=True)
class SimpleFont:
    """Font referenced by its name/number in the printer language, eg. "2" or "0" """
    name: str = "0"

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class PrinterFont:
    """Resident printer font, drawn through the driver's printerfont function"""
    font_id: str


@dataclass(frozen=True)
class WindowsFont:
    """Host font, rasterised by the driver's windowsfont function"""
    face_name: str
    height: int
    style: int = 0
    underline: int = 0


Font = Union[SimpleFont, PrinterFont, WindowsFont]


def as_font(value):
    """Accept a font object or a plain font name"""
    if isinstance(value, (SimpleFont, PrinterFont, WindowsFont)):
        return value
    return SimpleFont(str(value))


def is_structured_font(font):
    return isinstance(font, (PrinterFont, WindowsFont))


# ──────────────────────────────────────────────────────────────
# Fragments
@dataclass(frozen=True)
class DriverCall:
    """A function of the vendor driver (synchronous channel only)

    Arguments are kept as strings, the way the driver receives them.
    """
    function: str
    arguments: Tuple[str, ...] = ()

    @classmethod
    def of(cls, function, *arguments):
        return cls(function, tuple(format_number(a) for a in arguments))


# A fragment is a command line (str), raw bytes, or a DriverCall
Fragment = Union[str, bytes, DriverCall]


def format_number(value):
    """Render a number the way the printer expects it: 3 not 3.0, 101.6 as is"""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ──────────────────────────────────────────────────────────────
# Primitives
@dataclass(frozen=True)
class Text:
    x: int
    y: int
    content: str
    font: Font = field(default_factory=SimpleFont)
    rotation: int = 0
    scale_x: int = 1
    scale_y: int = 1
    alignment: str = "left"
    character_height: int = 30
    character_width: int = 30

    def __post_init__(self):
        check_rotation(self.rotation)
        check_alignment(self.alignment)


@dataclass(frozen=True)
class Line:
    x: int
    y: int
    width: int = 1
    height: int = 1
    thickness: int = 1
    corner_radius: int = 0
    border_color: str = "black"

    def __post_init__(self):
        check_border_color(self.border_color)


@dataclass(frozen=True)
class Box:
    ul_x: int
    ul_y: int
    lr_x: int
    lr_y: int
    thickness: int = 1
    corner_radius: int = 0
    border_color: str = "black"

    def __post_init__(self):
        check_border_color(self.border_color)


@dataclass(frozen=True)
class Barcode:
    x: int
    y: int
    data: str
    symbology: str = "128"
    height: int = 50
    print_plaintext: str = "below"
    plaintext_alignment: str = "center"
    rotation: int = 0
    narrow_width: int = 3
    wide_width: int = 5
    alignment: str = "left"

    def __post_init__(self):
        check_rotation(self.rotation)
        check_alignment(self.alignment)
        check_alignment(self.plaintext_alignment, "plaintext_alignment")
        if self.print_plaintext not in PLAINTEXT_POSITIONS:
            raise InvalidPrimitiveParameter(
                f"print_plaintext must be one of {PLAINTEXT_POSITIONS}, got {self.print_plaintext!r}"
            )


@dataclass(frozen=True)
class RawCommand:
    """Passed to the printer untouched"""
    text: Union[str, bytes]


@dataclass(frozen=True)
class Image:
    x: int
    y: int
    surface: Any  # label_raster.PixelSurface


Primitive = Union[Text, Line, Box, Barcode, RawCommand, Image]


# ──────────────────────────────────────────────────────────────
# Label setup
@dataclass(frozen=True)
class LabelSetup:
    """Media settings sent at the start of every label

    Args:
        width_mm, height_mm: label size
        speed: print speed level
        density: print darkness level
        sensor: "gap" or "blackMark"
        vertical_mm: gap / black mark height
        horizontal_mm: gap / black mark offset
        character_set: TSPL codepage or ZPL ^CI value (None = printer/unicode default)
    """
    width_mm: float = 101.6
    height_mm: float = 152.4
    speed: int = 5
    density: int = 8
    sensor: str = "gap"
    vertical_mm: float = 3
    horizontal_mm: float = 0
    character_set: Optional[str] = None

    def __post_init__(self):
        if self.sensor not in SENSORS:
            raise InvalidPrimitiveParameter(f"sensor must be one of {SENSORS}, got {self.sensor!r}")


# ──────────────────────────────────────────────────────────────
# Validation helpers
def check_rotation(rotation):
    if rotation not in ROTATIONS:
        raise InvalidPrimitiveParameter(f"rotation must be one of {ROTATIONS}, got {rotation!r}")


def check_alignment(alignment, name="alignment"):
    if alignment not in ALIGNMENTS:
        raise InvalidPrimitiveParameter(f"{name} must be one of {ALIGNMENTS}, got {alignment!r}")


def check_border_color(color):
    if not isinstance(color, str) or not color:
        raise InvalidPrimitiveParameter(f"border_color must be a colour name, got {color!r}")
