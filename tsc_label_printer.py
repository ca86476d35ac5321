#!/usr/bin/env python3
"""
TSC / Zebra Label Printer command generator
Builds a simple label (text lines, optional barcode, optional image) in
TSPL or ZPL and writes the command stream to a file, a printer device node
or stdout.

Output options:
- File or device: --output /dev/usb/lp0 (or label.prn)
- stdout: --output - (default)
- Environment variables: TSC_LABEL_OUTPUT, TSC_LABEL_LANGUAGE
"""

import argparse
import os
import platform
import sys

from PIL import Image, ImageDraw, ImageFont

from label_errors import LabelPrintingError
from label_primitives import LabelSetup
from label_printing import LabelSession, describe_fragment
from label_transport import StreamTransport
from label_units import dots_per_mm_for_dpi


# ──────────────────────────────────────────────────────────────
# Host-font text rendering (for printers without the wanted font)
def load_font(font_size):
    try:
        font_path = (
            "/System/Library/Fonts/Arial.ttf"
            if platform.system() == "Darwin"
            else "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"
        )
        return ImageFont.truetype(font_path, font_size)
    except OSError:
        return ImageFont.load_default()


def create_text_image(text, font_size, margin_px=0):
    """Render text black on white, cropped to the ink plus a symmetric margin"""
    font = load_font(font_size)

    # Measure ink only (no bearings)
    mask = Image.new("1", (2000, 1000), 0)
    ImageDraw.Draw(mask).text((0, 0), text, font=font, fill=1)
    bbox = mask.getbbox()
    if bbox is None:
        return Image.new("L", (1 + 2 * margin_px, 1 + 2 * margin_px), 255)
    left, top, right, bottom = bbox
    glyph_w, glyph_h = right - left, bottom - top

    img = Image.new("L", (glyph_w + 2 * margin_px, glyph_h + 2 * margin_px), 255)
    ImageDraw.Draw(img).text((margin_px - left, margin_px - top), text, font=font, fill=0)
    return img


# ──────────────────────────────────────────────────────────────
def build_label(session, args):
    """Fill a session with the label described by the command line"""
    setup = LabelSetup(
        width_mm=args.width,
        height_mm=args.height,
        speed=args.speed,
        density=args.density,
        sensor=args.sensor,
        vertical_mm=args.gap,
        horizontal_mm=args.offset,
        character_set=args.charset,
    )
    session.new_label(setup)

    x = session.mm_to_dots(args.margin)
    y = session.mm_to_dots(args.margin)
    line_step = session.mm_to_dots(args.line_spacing)

    for line in args.text:
        if args.render_text:
            img = create_text_image(line, args.font_size)
            session.add_image(img, x=x, y=y)
            y += img.size[1] + line_step
        else:
            session.add_text(x, y, line, font=args.font)
            y += line_step

    if args.barcode:
        session.add_barcode(x, y, args.barcode, barcode_type=args.barcode_type,
                            height=session.mm_to_dots(args.barcode_height))
        y += session.mm_to_dots(args.barcode_height) + line_step

    if args.image:
        session.add_image(args.image, x=x, y=y)

    for command in args.raw:
        session.add_raw_command(command)

    return session.print_label(label_sets=args.sets, copies=args.copies)


def open_output(path):
    if path in (None, "-"):
        return sys.stdout.buffer, False
    return open(path, "wb"), True


def main(argv=None):
    """Main entry point"""
    ap = argparse.ArgumentParser(description="TSC / Zebra label command generator")
    ap.add_argument("text", nargs="*", help="label text lines, quotes for spaces")
    ap.add_argument(
        "-l",
        "--language",
        default=os.getenv("TSC_LABEL_LANGUAGE", "TSPL"),
        type=str.upper,
        choices=["TSPL", "ZPL"],
        help="printer language (default: TSPL or $TSC_LABEL_LANGUAGE)",
    )
    ap.add_argument(
        "-o",
        "--output",
        default=os.getenv("TSC_LABEL_OUTPUT", "-"),
        help="file or device to write to, - for stdout (default: $TSC_LABEL_OUTPUT or -)",
    )
    ap.add_argument("--dpi", type=int, default=203, help="printer resolution (default 203)")
    ap.add_argument("--width", type=float, default=101.6, help="label width in mm")
    ap.add_argument("--height", type=float, default=152.4, help="label height in mm")
    ap.add_argument("--speed", type=int, default=5)
    ap.add_argument("--density", type=int, default=8)
    ap.add_argument("--sensor", choices=["gap", "blackMark"], default="gap")
    ap.add_argument("--gap", type=float, default=3, help="gap / black mark height in mm")
    ap.add_argument("--offset", type=float, default=0, help="gap / black mark offset in mm")
    ap.add_argument("--charset", default=None, help="TSPL codepage or ZPL ^CI value")
    ap.add_argument("-f", "--font", default="2", help="printer font name (default 2)")
    ap.add_argument(
        "--render-text",
        action="store_true",
        help="draw text with a host TrueType font as an image instead of a printer font",
    )
    ap.add_argument("--font-size", type=int, default=40, help="host font size px (default 40)")
    ap.add_argument("-m", "--margin", type=float, default=2, help="left/top margin in mm")
    ap.add_argument("--line-spacing", type=float, default=5, help="space between lines in mm")
    ap.add_argument("-b", "--barcode", default=None, help="barcode data (TSPL only)")
    ap.add_argument("--barcode-type", default="128")
    ap.add_argument("--barcode-height", type=float, default=6, help="barcode height in mm")
    ap.add_argument("-i", "--image", default=None, help="image file to print")
    ap.add_argument("--threshold", type=float, default=None, help="image brightness threshold 0-255")
    ap.add_argument("--raw", action="append", default=[], help="extra raw command (repeatable)")
    ap.add_argument("-c", "--copies", type=int, default=1)
    ap.add_argument("-s", "--sets", type=int, default=1)
    ap.add_argument("--debug", action="store_true", help="print every rendered command to stderr")

    args = ap.parse_args(argv)

    # Validate input arguments
    if args.copies <= 0 or args.sets <= 0:
        print("Error: Copies and sets must be at least 1", file=sys.stderr)
        return 1

    if args.threshold is not None and not 0 <= args.threshold <= 255:
        print("Error: Threshold must be between 0 and 255", file=sys.stderr)
        return 1

    if not args.text and not args.barcode and not args.image and not args.raw:
        print("Error: Nothing to print, give some text, --barcode, --image or --raw", file=sys.stderr)
        return 1

    session = LabelSession(
        args.language,
        debug=args.debug,
        dots_per_mm=dots_per_mm_for_dpi(args.dpi),
        brightness_threshold=args.threshold,
    )

    try:
        fragments = build_label(session, args)
    except LabelPrintingError as e:
        print(f"✗ {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    if args.debug:
        for entry in session.debug_info:
            print(f"[{entry['primitive']}] {entry['parameters']}", file=sys.stderr)
            for fragment in entry["fragments"]:
                print(f"    {describe_fragment(fragment)}", file=sys.stderr)

    stream, close = open_output(args.output)
    try:
        written = StreamTransport(stream, separator=session.backend.line_separator).send(fragments)
    finally:
        if close:
            stream.close()

    print(f"✓ {args.language}: {len(fragments)} commands, {written} bytes -> {args.output}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
