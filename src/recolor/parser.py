"""Stylesheet parser producing recolor rule trees.

Tokenizing and block structure come from tinycss2; this module only decides
which node kind each rule becomes and recovers the text the walker needs to
rebuild it (selector, condition, keyframes name, declarations).
"""

from __future__ import annotations

from collections.abc import Callable
from typing import NamedTuple
from urllib.parse import urljoin

import tinycss2
from tinycss2 import ast

from .exceptions import CSSParseError
from .logger import get_logger
from .models import Declaration, RuleKind, RuleNode

logger = get_logger()

ImportResolver = Callable[[str], str | None]
"""Maps an absolute @import URL to the imported sheet's text (None if unavailable)."""

MAX_IMPORT_DEPTH = 8  # Bounds @import chains, including cyclic ones

GROUPING_AT_RULES = {
    "media": RuleKind.MEDIA,
    "supports": RuleKind.SUPPORTS,
}
KEYFRAMES_AT_RULES = {"keyframes", "-webkit-keyframes", "-moz-keyframes", "-o-keyframes"}


class _ImportScope(NamedTuple):
    """Where @import rules of the sheet being converted are resolved."""

    resolve: ImportResolver | None
    base_url: str
    depth: int


def parse_stylesheet(
    css_text: str,
    resolve_import: ImportResolver | None = None,
    *,
    base_url: str = "",
    depth: int = 0,
) -> RuleNode:
    """Parse stylesheet text into a rule tree rooted at a SHEET node.

    Args:
        css_text: Stylesheet source
        resolve_import: Optional callable giving the text of @import targets by
            absolute URL; imports it cannot resolve stay unresolved
        base_url: URL the sheet was loaded from; relative @import URLs are
            resolved against it before they reach ``resolve_import``
        depth: Current @import nesting level (internal)

    Returns:
        Root node whose children are the top-level rules in source order

    Raises:
        CSSParseError: If the text is not a string tinycss2 can tokenize, or its
            blocks are nested too deeply to convert
    """
    if not isinstance(css_text, str):
        raise CSSParseError(f"Stylesheet must be text, got {type(css_text).__name__}")

    scope = _ImportScope(resolve_import, base_url, depth)
    root = RuleNode(kind=RuleKind.SHEET)
    try:
        rules = tinycss2.parse_stylesheet(css_text, skip_comments=True, skip_whitespace=True)
        for rule in rules:
            node = _convert_rule(rule, scope)
            if node is not None:
                root.children.append(node)
    except RecursionError as e:
        raise CSSParseError("Failed to parse stylesheet: blocks nested too deeply") from e
    except (TypeError, ValueError) as e:
        raise CSSParseError(f"Failed to parse stylesheet: {e}") from e
    return root


def import_urls(css_text: str) -> list[str]:
    """URLs of the top-level @import rules of a stylesheet, as written."""
    urls: list[str] = []
    for rule in tinycss2.parse_stylesheet(css_text, skip_comments=True, skip_whitespace=True):
        if isinstance(rule, ast.AtRule) and rule.lower_at_keyword == "import":
            url = _import_url(rule)
            if url:
                urls.append(url)
    return urls


def _convert_rule(rule: ast.Node, scope: _ImportScope) -> RuleNode | None:
    if isinstance(rule, ast.ParseError):
        logger.checks(f"  Skipping unparseable CSS at line {rule.source_line}: {rule.message}")
        return None
    if isinstance(rule, ast.QualifiedRule):
        return RuleNode(
            kind=RuleKind.STYLE,
            prelude=_prelude_text(rule.prelude),
            declarations=_declarations(rule.content),
        )
    if isinstance(rule, ast.AtRule):
        return _convert_at_rule(rule, scope)
    return None


def _convert_at_rule(rule: ast.AtRule, scope: _ImportScope) -> RuleNode:
    keyword = rule.lower_at_keyword
    prelude = _prelude_text(rule.prelude)

    if keyword in GROUPING_AT_RULES and rule.content is not None:
        children = [
            node
            for child in _rule_list(rule.content)
            if (node := _convert_rule(child, scope)) is not None
        ]
        return RuleNode(
            kind=GROUPING_AT_RULES[keyword],
            prelude=prelude,
            at_keyword=rule.at_keyword,
            children=children,
        )

    if keyword in KEYFRAMES_AT_RULES and rule.content is not None:
        frames = [
            RuleNode(
                kind=RuleKind.KEYFRAME,
                prelude=_prelude_text(child.prelude),
                declarations=_declarations(child.content),
            )
            for child in _rule_list(rule.content)
            if isinstance(child, ast.QualifiedRule)
        ]
        return RuleNode(
            kind=RuleKind.KEYFRAMES, prelude=prelude, at_keyword=rule.at_keyword, children=frames
        )

    if keyword == "import":
        url = _import_url(rule) or ""
        return RuleNode(
            kind=RuleKind.IMPORT,
            prelude=url,
            at_keyword=rule.at_keyword,
            imported=_resolve(url, scope),
        )

    return RuleNode(kind=RuleKind.OTHER, prelude=prelude, at_keyword=rule.at_keyword)


def _resolve(url: str, scope: _ImportScope) -> RuleNode | None:
    if not url or scope.resolve is None:
        return None
    if scope.depth >= MAX_IMPORT_DEPTH:
        logger.warning(f"Not following @import {url}: nested more than {MAX_IMPORT_DEPTH} deep")
        return None
    target = urljoin(scope.base_url, url)
    text = scope.resolve(target)
    if text is None:
        return None
    return parse_stylesheet(text, scope.resolve, base_url=target, depth=scope.depth + 1)


def _import_url(rule: ast.AtRule) -> str | None:
    for token in rule.prelude:
        if isinstance(token, (ast.URLToken, ast.StringToken)):
            return token.value
        if isinstance(token, ast.FunctionBlock) and token.lower_name == "url":
            for argument in token.arguments:
                if isinstance(argument, ast.StringToken):
                    return argument.value
        if not isinstance(token, (ast.WhitespaceToken, ast.Comment)):
            return None
    return None


def _rule_list(content: list[ast.Node]) -> list[ast.Node]:
    return tinycss2.parse_rule_list(content, skip_comments=True, skip_whitespace=True)


def _declarations(content: list[ast.Node] | None) -> list[Declaration]:
    if content is None:
        return []
    declarations: list[Declaration] = []
    for item in tinycss2.parse_blocks_contents(content, skip_comments=True, skip_whitespace=True):
        if not isinstance(item, ast.Declaration):
            # Nested rules and malformed declarations are not reconstructed
            continue
        # Custom property names are case-sensitive
        name = item.name if item.name.startswith("--") else item.lower_name
        declarations.append(
            Declaration(
                property=name,
                value=tinycss2.serialize(item.value).strip(),
                important=item.important,
            )
        )
    return declarations


def _prelude_text(prelude: list[ast.Node]) -> str:
    return " ".join(tinycss2.serialize(prelude).split())
