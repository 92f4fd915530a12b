"""Tests for the stylesheet parser."""

from __future__ import annotations

import pytest

from recolor.exceptions import CSSParseError
from recolor.models import Declaration, RuleKind
from recolor.parser import MAX_IMPORT_DEPTH, import_urls, parse_stylesheet


class TestStyleRules:
    """Tests for plain style rules and their declarations."""

    def test_basic_rule(self) -> None:
        """A style rule keeps its selector and declarations in order."""
        root = parse_stylesheet("p, .lead > a { color: red; margin: 1px }")

        assert root.kind == RuleKind.SHEET
        assert len(root.children) == 1
        rule = root.children[0]
        assert rule.kind == RuleKind.STYLE
        assert rule.prelude == "p, .lead > a"
        assert rule.declarations == [Declaration("color", "red"), Declaration("margin", "1px")]

    def test_important(self) -> None:
        """!important is split off the value."""
        rule = parse_stylesheet("p { color: red !important }").children[0]
        assert rule.declarations == [Declaration("color", "red", important=True)]

    def test_property_names_lowercased(self) -> None:
        """Property names are case-insensitive, values keep their spelling."""
        rule = parse_stylesheet("p { COLOR: Red }").children[0]
        assert rule.declarations == [Declaration("color", "Red")]

    def test_custom_property_case_kept(self) -> None:
        """Custom property names are case-sensitive."""
        rule = parse_stylesheet(":root { --Accent: #abc }").children[0]
        assert rule.declarations == [Declaration("--Accent", "#abc")]

    def test_comments_skipped(self) -> None:
        """Comments do not become rules or declarations."""
        root = parse_stylesheet("/* header */ p { /* x */ color: red; }")
        assert [c.kind for c in root.children] == [RuleKind.STYLE]
        assert root.children[0].declarations == [Declaration("color", "red")]

    def test_empty_sheet(self) -> None:
        """Empty text parses to an empty sheet."""
        assert parse_stylesheet("").children == []

    def test_non_text_rejected(self) -> None:
        """Only text can be parsed."""
        with pytest.raises(CSSParseError):
            parse_stylesheet(None)  # type: ignore[arg-type]


class TestAtRules:
    """Tests for at-rule classification."""

    def test_media(self) -> None:
        """@media keeps its condition and nested rules."""
        root = parse_stylesheet("@media screen and (max-width: 600px) { p { color: red } }")
        media = root.children[0]

        assert media.kind == RuleKind.MEDIA
        assert media.at_keyword == "media"
        assert media.prelude == "screen and (max-width: 600px)"
        assert [c.kind for c in media.children] == [RuleKind.STYLE]
        assert media.children[0].prelude == "p"

    def test_supports_with_nested_media(self) -> None:
        """Grouping rules nest to any depth."""
        root = parse_stylesheet(
            "@supports (display: grid) { @media print { a { color: blue } } }"
        )
        supports = root.children[0]

        assert supports.kind == RuleKind.SUPPORTS
        assert supports.prelude == "(display: grid)"
        assert supports.children[0].kind == RuleKind.MEDIA
        assert supports.children[0].children[0].prelude == "a"

    def test_keyframes(self) -> None:
        """@keyframes becomes a KEYFRAMES node with one KEYFRAME per offset."""
        root = parse_stylesheet(
            "@keyframes pulse { from { color: red } 50% { color: blue } to { opacity: 0 } }"
        )
        keyframes = root.children[0]

        assert keyframes.kind == RuleKind.KEYFRAMES
        assert keyframes.prelude == "pulse"
        assert [f.kind for f in keyframes.children] == [RuleKind.KEYFRAME] * 3
        assert [f.prelude for f in keyframes.children] == ["from", "50%", "to"]
        assert keyframes.children[1].declarations == [Declaration("color", "blue")]

    def test_vendor_keyframes_keep_keyword(self) -> None:
        """Prefixed keyframes keep the keyword as written."""
        keyframes = parse_stylesheet("@-webkit-keyframes spin { to { color: red } }").children[0]
        assert keyframes.kind == RuleKind.KEYFRAMES
        assert keyframes.at_keyword == "-webkit-keyframes"

    @pytest.mark.parametrize(
        "css",
        [
            "@font-face { font-family: X; color: red }",
            "@page { margin: 1cm }",
            '@namespace svg url("http://www.w3.org/2000/svg");',
        ],
    )
    def test_other_at_rules(self, css: str) -> None:
        """Unreconstructable at-rules become OTHER nodes."""
        root = parse_stylesheet(css)
        assert [c.kind for c in root.children] == [RuleKind.OTHER]

    def test_source_order_kept(self) -> None:
        """Top-level rules stay in source order."""
        root = parse_stylesheet(
            "a { color: red } @media print { b { color: blue } } @font-face { } c { color: red }"
        )
        assert [c.kind for c in root.children] == [
            RuleKind.STYLE,
            RuleKind.MEDIA,
            RuleKind.OTHER,
            RuleKind.STYLE,
        ]


class TestImports:
    """Tests for @import handling."""

    @pytest.mark.parametrize(
        "css",
        ['@import "theme.css";', "@import url(theme.css);", '@import url("theme.css") screen;'],
    )
    def test_unresolved_import(self, css: str) -> None:
        """Every URL form is recorded; without a resolver the import stays unresolved."""
        node = parse_stylesheet(css).children[0]
        assert node.kind == RuleKind.IMPORT
        assert node.prelude == "theme.css"
        assert node.imported is None

    def test_resolved_import(self) -> None:
        """A resolver's text is parsed into the imported subtree."""
        sheets = {"theme.css": "a { color: blue }"}
        node = parse_stylesheet('@import "theme.css";', sheets.get).children[0]

        assert node.imported is not None
        assert node.imported.kind == RuleKind.SHEET
        assert node.imported.children[0].declarations == [Declaration("color", "blue")]

    def test_missing_import_target(self) -> None:
        """A resolver returning None leaves the import unresolved."""
        node = parse_stylesheet('@import "missing.css";', {}.get).children[0]
        assert node.imported is None

    def test_cyclic_import_bounded(self) -> None:
        """A sheet importing itself stops after the maximum nesting depth."""
        sheets = {"self.css": '@import "self.css"; p { color: red }'}
        root = parse_stylesheet(sheets["self.css"], sheets.get)

        depth = 0
        node = root.children[0]
        while node.imported is not None:
            depth += 1
            node = node.imported.children[0]
        assert depth == MAX_IMPORT_DEPTH

    def test_import_urls(self) -> None:
        """import_urls lists top-level @import targets as written."""
        css = '@import "a.css"; @import url(b.css); p { color: red }'
        assert import_urls(css) == ["a.css", "b.css"]

    def test_imports_resolved_against_importing_sheet(self) -> None:
        """Nested relative imports resolve against the sheet that contains them."""
        sheets = {
            "https://example.com/a/theme.css": '@import "../b/x.css"; p { color: red }',
            "https://example.com/b/x.css": '@import "theme.css";',
            "https://example.com/b/theme.css": "q { color: blue }",
        }
        root = parse_stylesheet(
            '@import "a/theme.css";', sheets.get, base_url="https://example.com/main.css"
        )

        a_theme = root.children[0].imported
        assert a_theme is not None
        x_sheet = a_theme.children[0].imported
        assert x_sheet is not None
        b_theme = x_sheet.children[0].imported
        assert b_theme is not None
        assert x_sheet.children[0].prelude == "theme.css"
        assert b_theme.children[0].prelude == "q"


def test_deeply_nested_blocks_rejected() -> None:
    """Nesting too deep to convert is a parse error, not a crash."""
    css = "@media screen {" * 1000 + "a { color: red }" + "}" * 1000
    with pytest.raises(CSSParseError, match="nested too deeply"):
        parse_stylesheet(css)
