"""
Printer language backends: TSPL (TSC) and ZPL (Zebra)

Each backend turns a primitive into the exact command text of its
language. There is no guarantee both languages render a label the same
way, so callers should not expect to switch language without adjusting
coordinates.

References:
- TSPL: "TSPL_TSPL2_Programming.pdf" (TEXT p.90, CODEPAGE p.30)
- ZPL: "ZPL II Programming Guide Vol 1" (^A p.894, ^CI p.151)
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum

from label_errors import (
    InvalidFontForBackend,
    StructuredFontRequiresSynchronousChannel,
    UnsupportedPrimitive,
)
from label_primitives import (
    Barcode,
    Box,
    DriverCall,
    Image,
    Line,
    PrinterFont,
    RawCommand,
    SimpleFont,
    Text,
    format_number,
    is_structured_font,
)
from label_raster import binarize_for_grf, pack_grf

logger = logging.getLogger(__name__)


class Language(Enum):
    TSPL = "TSPL"
    ZPL = "ZPL"


ALIGNMENT_CODES = {
    "left": 1,
    "center": 2,
    "right": 3,
}


class LanguageBackend(ABC):
    """Renders primitives into one printer language"""

    language = None
    line_separator = "\n"
    # True when images must be decomposed into Line primitives before render()
    needs_run_length_images = False

    def __init__(self, synchronous_channel=False):
        # Set by the transport: fragments are executed one by one by the vendor driver
        self.synchronous_channel = synchronous_channel

    def __repr__(self):
        return f"{type(self).__name__}(synchronous_channel={self.synchronous_channel})"

    @abstractmethod
    def setup(self, setup):
        """Fragments that start a label"""

    @abstractmethod
    def terminate(self, label_sets=1, copies=1):
        """Fragments that end and print a label"""

    def render(self, primitive):
        """Render one primitive into a list of fragments"""
        handler = {
            Text: self.render_text,
            Line: self.render_line,
            Box: self.render_box,
            Barcode: self.render_barcode,
            Image: self.render_image,
            RawCommand: self.render_raw,
        }.get(type(primitive))
        if handler is None:
            raise UnsupportedPrimitive(f"{self.language.value} cannot render {type(primitive).__name__}")
        return handler(primitive)

    def resolve_text_scale(self, font):
        """Default (scale_x, scale_y) for a font"""
        return 1, 1

    def resolve_line(self, width=None, height=None, thickness=None):
        """Fill in unspecified line dimensions"""
        return (
            0 if width is None else width,
            0 if height is None else height,
            1 if thickness is None else thickness,
        )

    def render_raw(self, raw):
        return [raw.text]

    @abstractmethod
    def render_text(self, text):
        pass

    @abstractmethod
    def render_line(self, line):
        pass

    @abstractmethod
    def render_box(self, box):
        pass

    @abstractmethod
    def render_barcode(self, barcode):
        pass

    @abstractmethod
    def render_image(self, image):
        pass


# ──────────────────────────────────────────────────────────────
# TSPL
def tspl_quote(value):
    """Quote a TSPL string parameter, escaping embedded double quotes"""
    return '"' + str(value).replace('"', '\\"') + '"'


class TsplBackend(LanguageBackend):
    language = Language.TSPL
    line_separator = "\r\n"
    needs_run_length_images = True

    SENSOR_CODES = {
        "gap": 0,
        "blackMark": 1,
    }

    def sensor_code(self, sensor):
        return self.SENSOR_CODES[sensor]

    def setup(self, setup):
        n = format_number
        fragments = []
        if self.synchronous_channel:
            fragments.append(DriverCall.of(
                "setup", setup.width_mm, setup.height_mm, setup.speed, setup.density,
                self.sensor_code(setup.sensor), setup.vertical_mm, setup.horizontal_mm,
            ))
            fragments.append(DriverCall.of("clearbuffer"))
        else:
            sensor_command = "GAP" if self.sensor_code(setup.sensor) == 0 else "BLINE"
            fragments += [
                f"SIZE {n(setup.width_mm)} mm,{n(setup.height_mm)} mm",
                f"SPEED {n(setup.speed)}",
                f"DENSITY {n(setup.density)}",
                f"{sensor_command} {n(setup.vertical_mm)} mm,{n(setup.horizontal_mm)} mm",
                "CLS",
            ]
        if setup.character_set:
            fragments.append(f"CODEPAGE {setup.character_set}")
        return fragments

    def terminate(self, label_sets=1, copies=1):
        if self.synchronous_channel:
            return [DriverCall.of("printlabel", label_sets, copies)]
        return [f"PRINT {label_sets},{copies}"]

    def resolve_text_scale(self, font):
        # For font "0" the multipliers are the true type point size (1 point = 1/72 inch)
        if isinstance(font, SimpleFont) and font.name == "0":
            return 8, 8
        return 1, 1

    def resolve_line(self, width=None, height=None, thickness=None):
        # A BAR has no thickness; it becomes the missing dimension
        if thickness is not None and width is None:
            width = thickness
        elif thickness is not None and height is None:
            height = thickness
        return (
            1 if width is None else width,
            1 if height is None else height,
            1 if thickness is None else thickness,
        )

    def render_text(self, text):
        font = text.font
        if is_structured_font(font):
            if not self.synchronous_channel:
                raise StructuredFontRequiresSynchronousChannel(
                    "Printer and Windows fonts are only available on the synchronous (USB driver) channel."
                )
            if isinstance(font, PrinterFont):
                return [DriverCall.of(
                    "printerfont", text.x, text.y, font.font_id, text.rotation,
                    text.scale_x, text.scale_y, text.content,
                )]
            return [DriverCall.of(
                "windowsfont", text.x, text.y, font.height, text.rotation,
                font.style, font.underline, font.face_name, text.content,
            )]

        return [
            f"TEXT {text.x},{text.y},{tspl_quote(font)},{text.rotation},"
            f"{text.scale_x},{text.scale_y},{ALIGNMENT_CODES[text.alignment]},{tspl_quote(text.content)}"
        ]

    def render_line(self, line):
        return [f"BAR {line.x},{line.y},{line.width},{line.height}"]

    def render_box(self, box):
        return [f"BOX {box.ul_x},{box.ul_y},{box.lr_x},{box.lr_y},{box.thickness},{box.corner_radius}"]

    def render_barcode(self, barcode):
        if barcode.print_plaintext == "none":
            human_readable = 0
        else:
            human_readable = ALIGNMENT_CODES[barcode.plaintext_alignment]
        return [
            f"BARCODE {barcode.x},{barcode.y},{tspl_quote(barcode.symbology)},{barcode.height},"
            f"{human_readable},{barcode.rotation},{barcode.narrow_width},{barcode.wide_width},"
            f"{ALIGNMENT_CODES[barcode.alignment]},{tspl_quote(barcode.data)}"
        ]

    def render_image(self, image):
        raise UnsupportedPrimitive(
            "TSPL has no bitmap primitive here; decompose the image into lines first"
        )


# ──────────────────────────────────────────────────────────────
# ZPL
ZPL_ROTATIONS = {
    0: "N",
    90: "R",
    180: "I",
    270: "B",
}


def zpl_color(color):
    """ZPL colour code: first letter, upper case (B/W)"""
    return color[:1].upper()


class ZplBackend(LanguageBackend):
    language = Language.ZPL

    def setup(self, setup):
        # ^CI28 enables unicode (UTF-8)
        return ["^XA", f"^CI{setup.character_set}" if setup.character_set else "^CI28"]

    def terminate(self, label_sets=1, copies=1):
        fragments = []
        quantity = label_sets * copies
        if quantity > 1:
            fragments.append(f"^PQ{quantity}")
        fragments.append("^XZ")
        return fragments

    def render_text(self, text):
        if is_structured_font(text.font):
            raise InvalidFontForBackend(
                f"{type(text.font).__name__} cannot be used with ZPL; use a font name such as \"0\""
            )
        return [
            f"^FO{text.x},{text.y}^A{text.font}{ZPL_ROTATIONS[text.rotation]},"
            f"{text.character_height},{text.character_width}^FD{text.content}^FS"
        ]

    def _graphic_box(self, x, y, width, height, thickness, color, radius):
        return f"^FO{x},{y}^GB{width},{height},{thickness},{zpl_color(color)},{radius}^FS"

    def render_line(self, line):
        return [self._graphic_box(
            line.x, line.y, line.width, line.height, line.thickness, line.border_color, line.corner_radius,
        )]

    def render_box(self, box):
        return [self._graphic_box(
            box.ul_x, box.ul_y, box.lr_x - box.ul_x, box.lr_y - box.ul_y,
            box.thickness, box.border_color, box.corner_radius,
        )]

    def render_barcode(self, barcode):
        raise UnsupportedPrimitive("Barcodes are not implemented for ZPL")

    def render_image(self, image):
        grf = pack_grf(binarize_for_grf(image.surface))
        logger.debug("GRF image: %d bytes, %d bytes per row", grf.bytes_total, grf.bytes_per_row)
        return [
            f"^FO{image.x},{image.y}^GFA,{grf.bytes_total},{grf.bytes_total},"
            f"{grf.bytes_per_row},{grf.hex_string}^FS"
        ]


BACKENDS = {
    Language.TSPL: TsplBackend,
    Language.ZPL: ZplBackend,
}


def backend_for(language, synchronous_channel=False):
    """Instantiate the backend for a Language (or its name, eg. "ZPL")"""
    if isinstance(language, LanguageBackend):
        return language
    try:
        language = Language(language.upper() if isinstance(language, str) else language)
    except ValueError:
        raise ValueError(f"Invalid printer language {language!r}, use TSPL or ZPL") from None
    return BACKENDS[language](synchronous_channel=synchronous_channel)
