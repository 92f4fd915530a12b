"""Color parsing, formatting and palette derivation.

Tokens arrive exactly as they were written in a stylesheet (``#ABC``,
``rgba(0, 0, 0, .5)``, ``CornflowerBlue``, ``transparent``) and are resolved to
RGBA quadruples with red/green/blue in 0-255 and alpha in 0-1.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from functools import lru_cache

import webcolors
from tinycss2 import color3

from .exceptions import ColorParseError
from .logger import get_logger
from .models import RGBA, Palette

logger = get_logger()

# Hex digit counts accepted after '#'
HEX_SHORT_LENGTHS = (3, 4)  # #RGB, #RGBA
HEX_FULL_LENGTHS = (6, 8)  # #RRGGBB, #RRGGBBAA
WCAG_LUMINANCE_THRESHOLD = 0.03928  # WCAG luminance calculation threshold
OPAQUE = 1.0

TRANSPARENT: RGBA = (0.0, 0.0, 0.0, 0.0)


@lru_cache(maxsize=1)
def named_colors() -> list[str]:
    """All CSS3 color names, longest first.

    Longest-first ordering keeps regex alternations from settling on a
    prefix (``darkred`` before ``red``).
    """
    return sorted(webcolors.names(webcolors.CSS3), key=lambda name: (-len(name), name))


def parse_color(token: str) -> RGBA:
    """Resolve a color token to an RGBA quadruple.

    Args:
        token: Raw color text (hex, named color, ``transparent``, rgb/rgba/hsl/hsla)

    Returns:
        (red, green, blue, alpha) with channels in 0-255 and alpha in 0-1

    Raises:
        ColorParseError: If the token is not a color this module understands
    """
    text = token.strip()
    lowered = text.lower()

    if lowered.startswith("#"):
        return _parse_hex(lowered[1:], token)

    if lowered == "transparent":
        return TRANSPARENT

    if lowered.isalpha():
        try:
            rgb = webcolors.name_to_rgb(lowered, spec=webcolors.CSS3)
        except ValueError as e:
            raise ColorParseError(f"Unknown color name: {token!r}") from e
        return (float(rgb.red), float(rgb.green), float(rgb.blue), OPAQUE)

    parsed = color3.parse_color(text)
    if parsed is None or isinstance(parsed, str):
        # None for unparseable input, 'currentColor' for the keyword
        raise ColorParseError(f"Invalid color: {token!r}")
    return (parsed.red * 255, parsed.green * 255, parsed.blue * 255, parsed.alpha)


def _parse_hex(digits: str, token: str) -> RGBA:
    if len(digits) in HEX_SHORT_LENGTHS:
        # Expand shorthand hex (#RGB -> #RRGGBB)
        digits = "".join(c * 2 for c in digits)
    elif len(digits) not in HEX_FULL_LENGTHS:
        raise ColorParseError(f"Invalid hex color length: {token!r}")

    try:
        channels = [int(digits[i : i + 2], 16) for i in range(0, len(digits), 2)]
    except ValueError as e:
        raise ColorParseError(f"Invalid hex color: {token!r}") from e

    alpha = channels[3] / 255 if len(channels) == 4 else OPAQUE  # noqa: PLR2004
    return (float(channels[0]), float(channels[1]), float(channels[2]), alpha)


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def format_rgba(rgba: Sequence[float]) -> str:
    """Format an RGBA quadruple as ``rgba(r,g,b,a)``.

    Example:
        format_rgba((0, 0, 0, 1))  # 'rgba(0,0,0,1)'
    """
    return f"rgba({','.join(_format_number(c) for c in rgba)})"


def format_hex(rgba: RGBA) -> str:
    """Format an opaque color as ``#rrggbb``; translucent colors use rgba()."""
    if rgba[3] < OPAQUE:
        return format_rgba(rgba)
    r, g, b = (max(0, min(255, round(c))) for c in rgba[:3])
    return f"#{r:02x}{g:02x}{b:02x}"


def relative_luminance(rgba: RGBA) -> float:
    """WCAG relative luminance of a color, ignoring alpha."""

    def luminance_component(c: float) -> float:
        c = c / 255
        return c / 12.92 if c <= WCAG_LUMINANCE_THRESHOLD else ((c + 0.055) / 1.055) ** 2.4

    r, g, b = (luminance_component(c) for c in rgba[:3])
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def derive_palette(tokens: Iterable[str], target_colors: Sequence[str]) -> Palette:
    """Map every color token onto the target color of closest luminance.

    Light colors stay light and dark colors stay dark, so text remains
    readable against its background after the swap. Each token keeps its own
    alpha, scaled by the alpha of the chosen target.

    Args:
        tokens: Color tokens exactly as found in the CSS text
        target_colors: Colors of the palette to move onto, in preference order
            (ties go to the earlier entry)

    Returns:
        Mapping from token to replacement; tokens that cannot be parsed or
        whose replacement equals the token get no entry
    """
    targets = [(parse_color(color), color) for color in target_colors]
    if not targets:
        return {}
    ranked = [(relative_luminance(rgba), rgba) for rgba, _ in targets]

    palette: Palette = {}
    for token in dict.fromkeys(tokens):
        try:
            rgba = parse_color(token)
        except ColorParseError as e:
            logger.checks(f"  Leaving {token!r} unmapped: {e}")
            continue

        luminance = relative_luminance(rgba)
        _, target = min(ranked, key=lambda item: abs(item[0] - luminance))
        replacement = format_hex((target[0], target[1], target[2], rgba[3] * target[3]))
        if replacement and replacement != token:
            palette[token] = replacement
    return palette


def _same_color(a: RGBA, b: RGBA) -> bool:
    return all(round(x) == round(y) for x, y in zip(a[:3], b[:3])) and round(a[3], 3) == round(
        b[3], 3
    )


def apply_swap(palette: Mapping[str, str], swap_rules: Mapping[str, str]) -> Palette:
    """Replace palette values that match a swap rule.

    Args:
        palette: Mapping from token to replacement
        swap_rules: Mapping from a color to the color it should become; keys are
            compared as colors, so ``#000`` matches a replacement of ``black``

    Returns:
        New palette; entries whose swapped value equals the token are dropped
    """
    rules = [(parse_color(source), target) for source, target in swap_rules.items()]

    swapped: Palette = {}
    for token, replacement in palette.items():
        try:
            value = parse_color(replacement)
        except ColorParseError:
            swapped[token] = replacement
            continue

        for source, target in rules:
            if _same_color(value, source):
                replacement = target
                break
        if replacement != token:
            swapped[token] = replacement
    return swapped
