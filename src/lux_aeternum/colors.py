"""Color conversions between hex strings, RGB, CIE xy and mired temperatures."""

from __future__ import annotations

import math
import re

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")


def normalize_hex(value: str) -> str:
    """Return ``value`` as an upper-case ``#RRGGBB`` string.

    Raises:
        ValueError: If ``value`` is not a 6-digit hex color
    """
    match = _HEX_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid hex color: {value!r}")
    return "#" + match.group(1).upper()


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    digits = normalize_hex(value)[1:]
    packed = int(digits, 16)
    return (packed >> 16) & 0xFF, (packed >> 8) & 0xFF, packed & 0xFF


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return "#{:02X}{:02X}{:02X}".format(*(_clamp_byte(c) for c in (r, g, b)))


def _gamma(value: float) -> float:
    return ((value + 0.055) / 1.055) ** 2.4 if value > 0.04045 else value / 12.92


def _inverse_gamma(value: float) -> float:
    if value <= 0.0031308:
        return 12.92 * value
    return 1.055 * value ** (1.0 / 2.4) - 0.055


def _clamp_byte(value: float) -> int:
    return max(0, min(255, round(value)))


def rgb_to_xy(r: int, g: int, b: int) -> tuple[float, float]:
    """Convert sRGB to CIE 1931 xy using the Hue wide-gamut matrix."""
    red, green, blue = (_gamma(c / 255) for c in (r, g, b))
    x = red * 0.644360 + green * 0.192800 + blue * 0.162800
    y = red * 0.326970 + green * 0.680600 + blue * 0.142600
    z = red * 0.000000 + green * 0.028100 + blue * 1.063000
    total = x + y + z
    if total == 0:
        return 0.0, 0.0
    return round(x / total, 4), round(y / total, 4)


def xy_bri_to_hex(x: float, y: float, bri: int) -> str:
    """Convert CIE xy plus Hue brightness (0-254) to a hex color."""
    if y == 0:
        return "#000000"
    luminance = bri / 254
    big_x = (luminance / y) * x
    big_z = (luminance / y) * (1 - x - y)
    r = big_x * 1.656492 - luminance * 0.354851 - big_z * 0.255038
    g = -big_x * 0.707196 + luminance * 1.655397 + big_z * 0.036152
    b = big_x * 0.051713 - luminance * 0.121364 + big_z * 1.011530
    return rgb_to_hex(*(_inverse_gamma(max(0.0, c)) * 255 for c in (r, g, b)))


def ct_to_hex(mireds: int) -> str:
    """Approximate the white point of a color temperature in mireds."""
    kelvin = max(2000.0, min(6500.0, 1_000_000 / mireds))
    temp = kelvin / 100

    if temp <= 66:
        r = 255.0
        g = -155.25485562709179 - 0.44596950469779147 * (temp - 2) + 104.49216199393888 * math.log(temp - 2)
        if temp <= 19:
            b = 0.0
        else:
            b = -254.76935184120902 + 0.8274096064007395 * (temp - 10) + 115.67994401066147 * math.log(temp - 10)
    else:
        r = 351.97690566805693 + 0.114206453784165 * (temp - 55) - 40.25366309332127 * math.log(temp - 55)
        g = 325.4494125711974 + 0.07943456536662342 * (temp - 50) - 28.0852963507957 * math.log(temp - 50)
        b = 255.0

    return rgb_to_hex(r, g, b)
