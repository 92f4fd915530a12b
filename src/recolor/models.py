"""Data models for recolor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

RGBA = tuple[float, float, float, float]
"""Red, green and blue in 0-255, alpha in 0-1."""

Palette = dict[str, str]
"""Raw color token text -> replacement token text."""


class RuleKind(Enum):
    """Kinds of node in a parsed stylesheet.

    The set is closed: anything the parser does not map to one of the
    reconstructable kinds becomes OTHER.
    """

    SHEET = "sheet"
    STYLE = "style"
    MEDIA = "media"
    SUPPORTS = "supports"
    KEYFRAMES = "keyframes"
    KEYFRAME = "keyframe"
    IMPORT = "import"
    OTHER = "other"


@dataclass(frozen=True)
class Declaration:
    """A single `property: value` pair from a declaration block."""

    property: str
    value: str
    important: bool = False

    @property
    def css_text(self) -> str:
        """Compact text form: ``property:value`` with ``!important`` when set."""
        priority = "!important" if self.important else ""
        return f"{self.property}:{self.value}{priority};"


@dataclass
class RuleNode:
    """One node of a parsed stylesheet.

    ``prelude`` holds whatever precedes the block: the selector of a style
    rule, the condition of @media/@supports, the name of @keyframes, the
    offset of a keyframe, or the URL of an @import.
    """

    kind: RuleKind
    prelude: str = ""
    at_keyword: str = ""  # as written, e.g. "-webkit-keyframes"
    declarations: list[Declaration] = field(default_factory=list)
    children: list[RuleNode] = field(default_factory=list)
    imported: RuleNode | None = None  # IMPORT only; None when unresolved


@dataclass
class StylesheetSource:
    """One origin of CSS text in a collection pass.

    The order index is assigned when sources are enumerated and decides the
    position of the text in the aggregate, whatever order fetches settle in.
    """

    order_index: int
    url: str | None = None
    text: str | None = None
    settled: bool = False

    def settle(self, text: str) -> None:
        """Record the resolved text of this source."""
        self.text = text
        self.settled = True
