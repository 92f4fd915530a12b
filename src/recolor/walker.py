"""Reduce a rule tree to the CSS that carries color.

The output is an overlay: it repeats only color-bearing declarations, under
the same selectors and conditions as the original, so that appending it after
the original sheet is enough for the cascade to pick up recolored values.
Rules the walker cannot rebuild faithfully (@font-face, @page, @namespace and
any other unrecognized at-rule) contribute nothing.

Palettes are applied to declaration values only. Selectors, conditions and
keyframe names are emitted as written even when they look like colors
(``#bad``, ``input[value=red]``).
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Callable, Mapping

from .logger import get_logger
from .matcher import ColorMatcher, get_matcher
from .models import Declaration, RuleKind, RuleNode

logger = get_logger()

COLOR_PROPERTIES = frozenset({"color", "background", "background-color"})
RESOURCE_REFERENCE = re.compile(r"\burl\(", re.IGNORECASE)

DeclarationHook = Callable[[Declaration], Declaration]


def extract_color_fragment(
    root: RuleNode,
    matcher: ColorMatcher | None = None,
    palette: Mapping[str, str] | None = None,
) -> str:
    """Rebuild the color-only CSS of a rule tree.

    Args:
        root: Parsed stylesheet (or any subtree of one)
        matcher: Color matcher deciding which values are colors
        palette: Optional token -> replacement mapping applied to the values
            of kept declarations

    Returns:
        Standalone CSS text, or an empty string if nothing carries color
    """
    matcher = matcher or get_matcher()
    if not palette:
        return _fragment(root, matcher, None)

    def recolor(declaration: Declaration) -> Declaration:
        value = matcher.substitute(declaration.value, palette)
        return dataclasses.replace(declaration, value=value)

    return _fragment(root, matcher, recolor)


def color_tokens(root: RuleNode, matcher: ColorMatcher | None = None) -> list[str]:
    """Distinct color tokens in the values of the declarations the overlay keeps.

    Tokens are listed verbatim in order of first appearance, the keys a
    palette for ``extract_color_fragment`` needs.
    """
    matcher = matcher or get_matcher()
    found: list[str] = []

    def record(declaration: Declaration) -> Declaration:
        found.extend(matcher.find_all(declaration.value))
        return declaration

    _fragment(root, matcher, record)
    return list(dict.fromkeys(found))


def is_color_declaration(declaration: Declaration, matcher: ColorMatcher) -> bool:
    """Check whether a declaration belongs in the overlay.

    A declaration qualifies if its value contains a color token, or if its
    property is color-valued (``color``, ``background``, ``background-color``)
    and the value is not a resource reference such as ``url(...)``.
    """
    if matcher.has_color(declaration.value):
        return True
    return declaration.property in COLOR_PROPERTIES and not RESOURCE_REFERENCE.search(
        declaration.value
    )


def _fragment(node: RuleNode, matcher: ColorMatcher, hook: DeclarationHook | None) -> str:
    match node.kind:
        case RuleKind.SHEET:
            return _join_children(node, matcher, hook)
        case RuleKind.STYLE | RuleKind.KEYFRAME:
            return _block(node, matcher, hook)
        case RuleKind.MEDIA | RuleKind.SUPPORTS | RuleKind.KEYFRAMES:
            body = _join_children(node, matcher, hook)
            return f"@{node.at_keyword} {node.prelude} {{ {body} }}" if body else ""
        case RuleKind.IMPORT:
            if node.imported is None:
                return ""
            return _fragment(node.imported, matcher, hook)
        case RuleKind.OTHER:
            return ""
    raise AssertionError(f"Unhandled rule kind: {node.kind}")


def _block(node: RuleNode, matcher: ColorMatcher, hook: DeclarationHook | None) -> str:
    kept = [d for d in node.declarations if is_color_declaration(d, matcher)]
    if not kept:
        return ""
    logger.checks(f"  {node.prelude}: keeping {len(kept)} of {len(node.declarations)}")
    if hook is not None:
        kept = [hook(d) for d in kept]
    body = "\n".join(d.css_text for d in kept)
    return f"{node.prelude} {{ {body} }}"


def _join_children(node: RuleNode, matcher: ColorMatcher, hook: DeclarationHook | None) -> str:
    fragments: list[str] = []
    for child in node.children:
        try:
            fragment = _fragment(child, matcher, hook)
        except Exception as e:  # noqa: BLE001
            # One broken rule drops out; the rest of the sheet still counts
            logger.debug(f"Skipping {child.kind.value} rule {child.prelude!r}: {e}")
            continue
        if fragment:
            fragments.append(fragment)
    return "\n".join(fragments)
