"""Recognition of color literals in CSS text."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from functools import lru_cache

from .colors import named_colors

# Hex digits running into more identifier text are an ID selector ("#fade-in")
HEX_COLOR = r"#(?:[0-9a-f]{8}|[0-9a-f]{6}|[0-9a-f]{4}|[0-9a-f]{3})(?![\w-])"
FUNCTIONAL_COLOR = r"\b(?:rgba?|hsla?)\(.+?\)"

# A name glued to '.', '-', '/' or '#' is part of a selector, file name or
# identifier (".red", "red.png", "dark-red"), not a color.
_NAME_BEFORE = r"(?<![\w.#/-])"
_NAME_AFTER = r"(?![\w.(/-])"


def build_color_pattern(names: Iterable[str]) -> re.Pattern[str]:
    """Compile the single color grammar shared by every matching mode.

    Args:
        names: Named colors to recognize in addition to ``transparent``
    """
    keywords = "|".join(re.escape(name) for name in [*names, "transparent"])
    return re.compile(
        f"{HEX_COLOR}|{FUNCTIONAL_COLOR}|{_NAME_BEFORE}(?:{keywords}){_NAME_AFTER}",
        re.IGNORECASE,
    )


class ColorMatcher:
    """Presence test, extraction and substitution over one color pattern.

    Every mode uses the same compiled pattern, so any token extraction finds
    is a token the presence test would flag, and vice versa.
    """

    def __init__(self, names: Iterable[str] | None = None) -> None:
        self.pattern = build_color_pattern(named_colors() if names is None else names)

    def has_color(self, text: str) -> bool:
        """Check whether the text contains at least one color token."""
        return self.pattern.search(text) is not None

    def find_all(self, text: str) -> list[str]:
        """Every color token in the text, in order, duplicates included."""
        return [m.group(0) for m in self.pattern.finditer(text)]

    def distinct(self, text: str) -> list[str]:
        """Distinct color tokens in order of first appearance.

        Tokens are compared verbatim: ``#FFF`` and ``#fff`` are different keys.
        """
        return list(dict.fromkeys(self.find_all(text)))

    def substitute(self, text: str, palette: Mapping[str, str]) -> str:
        """Replace every color token that has a palette entry.

        Tokens without an entry (or with an empty one) are left as written.
        """
        return self.pattern.sub(lambda m: palette.get(m.group(0)) or m.group(0), text)


@lru_cache(maxsize=1)
def get_matcher() -> ColorMatcher:
    """Shared matcher over the full CSS3 named-color list."""
    return ColorMatcher()
