"""
Label building session for TSC (TSPL) and Zebra (ZPL) label printers

Example:

    session = LabelSession("TSPL", debug=True)
    session.new_label(width_mm=101.6, height_mm=152.4, sensor="gap", vertical_mm=3)
    session.add_text(0, 0, "123000003", font="2")
    session.add_line(0, 60, width=30, thickness=3)
    session.add_barcode(0, 70, "SW1234578", barcode_type="128", height=50)
    session.add_image("myimage.png", x=0, y=60)
    commands = session.print_label()

A session is not thread safe: use one session per worker.
"""

import logging
from dataclasses import fields, replace
from enum import Enum

from label_backends import backend_for
from label_errors import SessionNotInitialized
from label_primitives import (
    Barcode,
    Box,
    DriverCall,
    Image,
    LabelSetup,
    Line,
    RawCommand,
    Text,
    as_font,
)
from label_raster import (
    DEFAULT_BRIGHTNESS_THRESHOLD,
    binarize,
    extract_runs,
    load_surface,
    runs_to_lines,
)
from label_units import DEFAULT_DOTS_PER_MM, mm_to_dots

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"


def describe_fragment(fragment):
    """Human readable form of a fragment for debug output"""
    if isinstance(fragment, DriverCall):
        return f"{fragment.function}({', '.join(fragment.arguments)})"
    if isinstance(fragment, (bytes, bytearray)):
        return bytes(fragment).decode("utf-8", "replace")
    return fragment


def primitive_parameters(primitive):
    params = {f.name: getattr(primitive, f.name) for f in fields(primitive)}
    if isinstance(primitive, Image):
        surface = params.pop("surface")
        params["width"] = surface.width
        params["height"] = surface.height
    return params


class LabelSession:
    """Accumulates the commands of one label at a time

    Args:
        language: "TSPL", "ZPL", a label_backends.Language or a backend instance
        transport: optional label_transport.Transport; its mode decides whether
            the backend may use the synchronous driver channel
        debug: keep every rendered fragment and resolved primitive in debug_info
        dots_per_mm: resolution used by mm_to_dots()
        brightness_threshold: ink threshold for TSPL images (default 127.5)
    """

    def __init__(self, language, transport=None, debug=False,
                 dots_per_mm=DEFAULT_DOTS_PER_MM, brightness_threshold=None):
        synchronous = transport is not None and transport.synchronous
        self.backend = backend_for(language, synchronous_channel=synchronous)
        if transport is not None:
            self.backend.synchronous_channel = synchronous
        self.transport = transport
        self.debug = debug
        self.dots_per_mm = dots_per_mm
        self.debug_info = []
        self.state = SessionState.UNINITIALIZED
        self._buffer = []
        self._brightness_threshold = brightness_threshold

    def __repr__(self):
        return f"LabelSession({self.backend.language.value}, state={self.state.value})"

    # ──────────────────────────────────────────────────────────
    # Settings
    @property
    def brightness_threshold(self):
        """Pixels at or below this brightness print black. Defaults to 50%."""
        if self._brightness_threshold is None:
            return DEFAULT_BRIGHTNESS_THRESHOLD
        return self._brightness_threshold

    @brightness_threshold.setter
    def brightness_threshold(self, value):
        self._brightness_threshold = value

    @property
    def is_initialized(self):
        return self.state is SessionState.ACTIVE

    @property
    def buffer(self):
        return list(self._buffer)

    def mm_to_dots(self, mm):
        return mm_to_dots(mm, self.dots_per_mm)

    def command_string(self, fragments=None):
        """The buffer (or the given fragments) as one string, for logging and debugging"""
        if fragments is None:
            fragments = self._buffer
        return self.backend.line_separator.join(describe_fragment(f) for f in fragments)

    # ──────────────────────────────────────────────────────────
    # Label lifecycle
    def new_label(self, setup=None, **params):
        """Start a new label, discarding anything not yet printed

        Args:
            setup: a LabelSetup; keyword arguments override its fields
                (width_mm, height_mm, speed, density, sensor, vertical_mm,
                horizontal_mm, character_set)
        """
        setup = replace(setup or LabelSetup(), **params)
        fragments = self.backend.setup(setup)

        self._buffer = []
        self.state = SessionState.ACTIVE
        logger.info("New %s label %sx%s mm", self.backend.language.value,
                    setup.width_mm, setup.height_mm)
        self._append("setup", {f.name: getattr(setup, f.name) for f in fields(setup)}, fragments)
        return fragments

    def print_label(self, label_sets=1, copies=1):
        """Finish the label and return every fragment it consists of

        The buffer is cleared; the session stays open for the next label.
        """
        self.check_init()
        terminators = self.backend.terminate(label_sets, copies)
        self._buffer.extend(terminators)
        finalized, self._buffer = self._buffer, []

        if self.transport is not None:
            if self.transport.synchronous:
                self.transport.send(terminators)
            else:
                self.transport.send(finalized)

        if self.debug:
            self.debug_info.append({
                "primitive": "print",
                "parameters": {"label_sets": label_sets, "copies": copies},
                "fragments": list(terminators),
                "commands": self.command_string(finalized),
            })
        logger.info("Printing %d fragments (%d set(s), %d copies)", len(finalized), label_sets, copies)
        return finalized

    def check_init(self):
        if not self.is_initialized:
            raise SessionNotInitialized()

    # ──────────────────────────────────────────────────────────
    # Content
    def add_text(self, x, y, text="", font="0", x_multiplication=None, y_multiplication=None,
                 character_height=30, character_width=30, alignment="left", rotation=0):
        """Add a line of text

        Args:
            font: font name (TSPL p.90 / ZPL ^A), or a PrinterFont / WindowsFont
                on the synchronous TSPL channel
            x_multiplication, y_multiplication: 1-10 (TSPL only); for font "0"
                they are the point size and default to 8
            character_height, character_width: ZPL only
            alignment: left, center or right (TSPL only)
            rotation: 0, 90, 180 or 270
        """
        self.check_init()
        font = as_font(font)
        scale_x, scale_y = self.backend.resolve_text_scale(font)
        primitive = Text(
            x=x, y=y, content=str(text), font=font, rotation=rotation,
            scale_x=scale_x if x_multiplication is None else x_multiplication,
            scale_y=scale_y if y_multiplication is None else y_multiplication,
            alignment=alignment,
            character_height=character_height, character_width=character_width,
        )
        return self._add(primitive)

    def add_line(self, x, y, width=None, height=None, thickness=None, corner_radius=0,
                 border_color="black"):
        """Add a horizontal/vertical line (a filled rectangle)

        On TSPL a thickness fills in a missing width, or else a missing height.
        """
        self.check_init()
        width, height, thickness = self.backend.resolve_line(width, height, thickness)
        return self._add(Line(x, y, width, height, thickness, corner_radius, border_color))

    def add_box(self, ul_x, ul_y, lr_x, lr_y, thickness=1, corner_radius=0, border_color="black"):
        """Add a rectangle outline from its upper left to its lower right corner"""
        self.check_init()
        return self._add(Box(ul_x, ul_y, lr_x, lr_y, thickness, corner_radius, border_color))

    def add_barcode(self, x, y, data, barcode_type="128", height=50, print_plaintext="below",
                    plaintext_alignment="center", rotation=0, narrow_width=3, wide_width=5,
                    alignment="left"):
        """Add a barcode (TSPL only)

        Args:
            barcode_type: symbology name in the printer language, eg. "128"
            height: bar height in dots
            print_plaintext: below, above or none
            plaintext_alignment: left, center or right
            narrow_width, wide_width: element widths in dots
        """
        self.check_init()
        primitive = Barcode(
            x=x, y=y, data=str(data), symbology=str(barcode_type), height=height,
            print_plaintext=print_plaintext, plaintext_alignment=plaintext_alignment,
            rotation=rotation, narrow_width=narrow_width, wide_width=wide_width,
            alignment=alignment,
        )
        return self._add(primitive)

    def add_image(self, image, x=0, y=0):
        """Add an image from a path, file content (bytes), Pillow image or PixelSurface

        TSPL draws the image as one BAR per horizontal run of dark pixels,
        which is slow for large or noisy images. ZPL uses a ^GFA graphic field.
        """
        self.check_init()
        surface = load_surface(image)
        primitive = Image(x, y, surface)

        if not self.backend.needs_run_length_images:
            return self._add(primitive)

        bitmap = binarize(surface, self.brightness_threshold)
        lines = runs_to_lines(extract_runs(bitmap), offset_x=x, offset_y=y)
        fragments = [fragment for line in lines for fragment in self.backend.render(line)]
        logger.debug("Image %dx%d drawn as %d lines", bitmap.width, bitmap.height, len(lines))
        params = primitive_parameters(primitive)
        params["threshold"] = bitmap.threshold
        params["lines"] = len(lines)
        params["line_parameters"] = [primitive_parameters(line) for line in lines]
        return self._append("image", params, fragments)

    def add_raw_command(self, command):
        """Append any TSPL or ZPL command as is, eg. "DIRECTION 1,0" or "^PW812" """
        self.check_init()
        return self._add(RawCommand(command))

    custom_command = add_raw_command

    # ──────────────────────────────────────────────────────────
    def _add(self, primitive):
        fragments = self.backend.render(primitive)
        return self._append(type(primitive).__name__.lower(), primitive_parameters(primitive), fragments)

    def _append(self, kind, params, fragments):
        fragments = list(fragments)
        # Only fragments the synchronous channel accepted end up in the buffer
        if self.transport is not None and self.transport.synchronous:
            self.transport.send(fragments)

        self._buffer.extend(fragments)
        logger.debug("%s: %d fragment(s)", kind, len(fragments))

        if self.debug:
            self.debug_info.append({
                "primitive": kind,
                "parameters": params,
                "fragments": list(fragments),
            })
        return fragments
