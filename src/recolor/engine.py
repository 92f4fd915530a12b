"""Recolor one stylesheet into overlay CSS.

Pipeline: parse -> find color tokens in color-bearing declarations -> build a
palette -> rebuild those rules with recolored values. The result is additive:
the caller appends it after the original sheet, and source order makes it
win at equal specificity.
"""

from __future__ import annotations

import re

from .colors import apply_swap, derive_palette, format_rgba, parse_color
from .config import RecolorConfig
from .exceptions import ColorParseError, CSSParseError, SandboxError
from .logger import get_logger
from .matcher import ColorMatcher, get_matcher
from .models import RGBA, Palette, RuleKind, RuleNode
from .parser import ImportResolver, parse_stylesheet
from .sandbox import SandboxExecutor
from .walker import color_tokens, extract_color_fragment

logger = get_logger()

INLINE_SELECTOR = "_"
_INLINE_WRAPPER = re.compile(r"^_\s*\{\s*|\s*\}$")


class RecolorEngine:
    """Turns stylesheet text into color-only overlay CSS.

    One engine serves a whole page: the config is only read, and every
    palette and rule tree is private to a single recolor() call. When the
    config names a transform function, the engine owns the sandbox worker
    that runs it; close() (or leaving the ``with`` block) stops it.
    """

    def __init__(
        self,
        config: RecolorConfig | None = None,
        page_url: str = "",
        *,
        matcher: ColorMatcher | None = None,
    ) -> None:
        self.config = config or RecolorConfig()
        self.page_url = page_url
        self.matcher = matcher or get_matcher()
        self._sandbox: SandboxExecutor | None = None

    def __enter__(self) -> RecolorEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Release the transform worker, if one was started."""
        if self._sandbox is not None:
            self._sandbox.close()
            self._sandbox = None

    def recolor(
        self,
        css_text: str,
        resolve_import: ImportResolver | None = None,
        *,
        base_url: str = "",
    ) -> str:
        """Produce the overlay CSS for one stylesheet.

        Args:
            css_text: Stylesheet source
            resolve_import: Optional source of @import targets' text, by absolute URL
            base_url: URL the sheet was loaded from, for relative @import URLs

        Returns:
            Overlay CSS, or an empty string if the sheet carries no color, cannot
            be parsed, or its transform cannot run
        """
        try:
            tree = parse_stylesheet(css_text, resolve_import, base_url=base_url)
        except CSSParseError as e:
            logger.warning(f"Skipping stylesheet: {e}")
            return ""
        return self._recolor_tree(tree)

    def recolor_inline(self, style_text: str) -> str:
        """Recolor a bare declaration block, such as a ``style`` attribute.

        The block is wrapped in a throwaway rule so it goes through exactly
        the same pipeline, and the wrapper is stripped again afterwards. A
        block that does not parse back into exactly that one rule (a stray
        ``}`` closing it early, for instance) yields nothing.

        Example:
            engine.recolor_inline("color: red; margin: 0")  # 'color:#...;'
        """
        try:
            tree = parse_stylesheet(f"{INLINE_SELECTOR}{{{style_text}}}")
        except CSSParseError as e:
            logger.warning(f"Skipping inline style: {e}")
            return ""

        shape = [(node.kind, node.prelude) for node in tree.children]
        if shape != [(RuleKind.STYLE, INLINE_SELECTOR)]:
            logger.checks(f"  Skipping inline style that is not one block: {style_text!r}")
            return ""

        overlay = self._recolor_tree(tree)
        # Style attributes stay on one line
        return _INLINE_WRAPPER.sub("", overlay).replace("\n", " ")

    def _recolor_tree(self, tree: RuleNode) -> str:
        tokens = color_tokens(tree, self.matcher)
        if not tokens:
            return ""

        try:
            palette = self.build_palette(tokens)
        except SandboxError as e:
            logger.warning(f"Skipping stylesheet: {e}")
            return ""

        logger.changes(f"Recolored {len(palette)} of {len(tokens)} colors")
        return extract_color_fragment(tree, self.matcher, palette)

    def build_palette(self, tokens: list[str]) -> Palette:
        """Build the token -> replacement mapping for one call.

        A configured transform function replaces the target-color palette
        and swap rules entirely.
        """
        if self.config.transform_function:
            return self._transform_palette(tokens)

        palette = derive_palette(tokens, self.config.target_colors)
        if self.config.swap_rules and self.config.should_swap(self.page_url):
            palette = apply_swap(palette, self.config.swap_rules)
        return palette

    def _transform_palette(self, tokens: list[str]) -> Palette:
        parsed: list[tuple[str, RGBA]] = []
        for token in tokens:
            try:
                parsed.append((token, parse_color(token)))
            except ColorParseError as e:
                logger.checks(f"  Leaving {token!r} unmapped: {e}")

        results = self._ensure_sandbox().map_colors([rgba for _, rgba in parsed])

        palette: Palette = {}
        for (token, _), result in zip(parsed, results):
            if result is None:
                continue
            replacement = format_rgba(result)
            if replacement != token:
                palette[token] = replacement
        return palette

    def _ensure_sandbox(self) -> SandboxExecutor:
        if self._sandbox is None:
            assert self.config.transform_function is not None
            self._sandbox = SandboxExecutor(
                self.config.transform_function, timeout=self.config.transform_timeout
            )
        return self._sandbox


def recolor(css_text: str, config: RecolorConfig | None = None, page_url: str = "") -> str:
    """Recolor one stylesheet with a short-lived engine."""
    with RecolorEngine(config, page_url) as engine:
        return engine.recolor(css_text)
