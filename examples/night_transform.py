"""Example transform functions for recolor.

A transform takes one color as an ``(r, g, b, a)`` tuple (channels 0-255,
alpha 0-1) and returns the color to use instead. Transforms run in a separate
worker process; the names ``page``, ``document`` and ``window`` are inert
there, so a transform can only influence the page through its return value.

Usage (recolor_config.yaml):
    transform_function: "examples/night_transform.py:invert_lightness"

Or on the command line:
    recolor -c examples/recolor_config.yaml page examples/page.html
"""

import colorsys

NIGHT_TINT = (255, 214, 170)  # Warm white used for light text at night


def invert_lightness(rgba):
    """Dark becomes light and light becomes dark; hue and saturation are kept."""
    r, g, b, a = rgba
    h, lightness, s = colorsys.rgb_to_hls(r / 255, g / 255, b / 255)
    r, g, b = colorsys.hls_to_rgb(h, 1 - lightness, s)
    return (round(r * 255), round(g * 255), round(b * 255), a)


def warm_night(rgba):
    """Invert lightness, then pull light colors toward a warm tint."""
    r, g, b, a = invert_lightness(rgba)
    weight = (r + g + b) / (3 * 255)
    return tuple(
        round(channel * (1 - weight) + tint * weight)
        for channel, tint in zip((r, g, b), NIGHT_TINT)
    ) + (a,)


def grayscale(rgba):
    """Luma-weighted gray, alpha preserved."""
    r, g, b, a = rgba
    gray = round(0.299 * r + 0.587 * g + 0.114 * b)
    return (gray, gray, gray, a)
