"""
Millimetre <-> dot conversion for TSC/Zebra thermal printers

- 203 DPI: 1 mm = 8 dots
- 300 DPI: 1 mm = 11.8 dots
"""

import math

# ──────────────────────────────────────────────────────────────
# Resolution catalogue (dots per millimetre, as printed in the TSPL manual)
DOTS_PER_MM = {
    203: 8,
    300: 11.8,
}

DEFAULT_DOTS_PER_MM = DOTS_PER_MM[203]


def dots_per_mm_for_dpi(dpi):
    """Dots per mm for a printer resolution, falling back to dpi / 25.4"""
    if dpi in DOTS_PER_MM:
        return DOTS_PER_MM[dpi]
    return dpi / 25.4


def mm_to_dots(mm, dots_per_mm=DEFAULT_DOTS_PER_MM):
    """Convert millimetres to whole dots

    TSPL only uses the integer portion of a dot value (2 mm at 300 DPI is
    23.6 dots, which the printer reads as 23), so we round to the nearest
    whole dot ourselves. Halves round away from zero.
    """
    dots = mm * dots_per_mm
    return int(math.copysign(math.floor(abs(dots) + 0.5), dots))
