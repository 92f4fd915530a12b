"""Page integration: find a page's stylesheets and attach the overlays.

Overlays are appended as ``<style>`` blocks inside one ``<div id="recolor">``
container at the end of ``<body>``, after every original sheet, so equal
specificity resolves in their favor. Inline ``style`` attributes are extended
in place and marked with a ``recolor`` attribute so a second pass leaves them
alone.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, TypeVar
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .config import RecolorConfig
from .engine import RecolorEngine
from .logger import get_logger
from .parser import MAX_IMPORT_DEPTH, import_urls
from .sources import FetchFunc, Fetcher, collect_styles

logger = get_logger()

OVERLAY_CONTAINER_ID = "recolor"
MARKER_ATTRIBUTE = "recolor"
STYLESHEET_LINK_SELECTOR = 'link[href][rel~="stylesheet"], link[href][type="text/css"]'

_T = TypeVar("_T")


class PageDocument:
    """An HTML page being recolored."""

    def __init__(self, soup: BeautifulSoup, url: str = "") -> None:
        self.soup = soup
        self.url = url

    @classmethod
    def from_html(cls, html: str, url: str = "") -> PageDocument:
        """Parse page markup; ``url`` is the base for relative stylesheet links."""
        return cls(BeautifulSoup(html, "html.parser"), url)

    def inline_styles(self) -> list[str]:
        """Text of the page's own ``<style>`` elements, in document order.

        Overlays added by an earlier pass are not included.
        """
        styles: list[str] = []
        for tag in self.soup.find_all("style"):
            if tag.find_parent(id=OVERLAY_CONTAINER_ID) is not None:
                continue
            text = tag.get_text()
            if text:
                styles.append(text)
        return styles

    def stylesheet_urls(self) -> list[str]:
        """Absolute URLs of linked stylesheets, in document order."""
        urls: list[str] = []
        for link in self.soup.select(STYLESHEET_LINK_SELECTOR):
            href = str(link.get("href", "")).strip()
            if href:
                urls.append(urljoin(self.url, href))
        return urls

    def _overlay_container(self) -> Tag:
        container = self.soup.find(id=OVERLAY_CONTAINER_ID)
        if isinstance(container, Tag):
            return container

        container = self.soup.new_tag("div", id=OVERLAY_CONTAINER_ID)
        parent = self.soup.body or self.soup
        parent.append(container)
        return container

    def add_overlay(self, css: str) -> None:
        """Append one overlay stylesheet; empty CSS adds nothing."""
        if not css:
            return
        style = self.soup.new_tag("style", type="text/css")
        style.string = css
        self._overlay_container().append(style)

    def recolor_inline_styles(self, engine: RecolorEngine) -> int:
        """Append recolored declarations to every colored ``style`` attribute.

        Returns:
            Number of elements changed
        """
        changed = 0
        for tag in self.soup.find_all(style=True):
            if tag.has_attr(MARKER_ATTRIBUTE):
                continue
            style = str(tag["style"])
            if not engine.matcher.has_color(style):
                continue
            recolored = engine.recolor_inline(style)
            if not recolored:
                continue
            separator = " " if style.rstrip().endswith(";") else "; "
            tag["style"] = f"{style.rstrip()}{separator}{recolored}"
            tag[MARKER_ATTRIBUTE] = ""
            changed += 1
        return changed

    def to_html(self) -> str:
        """Serialize the page."""
        return str(self.soup)


async def prefetch_imports(
    css_text: str, fetch: FetchFunc, base_url: str, depth: int = 0
) -> dict[str, str]:
    """Fetch the targets of a sheet's @import rules, recursively.

    Each import is resolved against the URL of the sheet that contains it, so
    ``theme.css`` imported from ``a/`` and from ``b/`` are different entries.

    Args:
        css_text: Stylesheet source
        fetch: Fetch capability
        base_url: URL the sheet was loaded from, for relative imports
        depth: Current nesting level (internal)

    Returns:
        Mapping from each imported sheet's absolute URL to its text
    """
    if depth >= MAX_IMPORT_DEPTH:
        return {}

    targets = list(dict.fromkeys(urljoin(base_url, url) for url in import_urls(css_text)))
    if not targets:
        return {}

    texts = await asyncio.gather(*(fetch(target) for target in targets))

    imports: dict[str, str] = {}
    for target, text in zip(targets, texts):
        if not text:
            continue
        imports[target] = text
        nested = await prefetch_imports(text, fetch, target, depth + 1)
        for nested_url, nested_text in nested.items():
            imports.setdefault(nested_url, nested_text)
    return imports


async def _offload(engine: RecolorEngine, func: Callable[..., _T], *args: Any, **kwargs: Any) -> _T:
    # Transform batches block on the sandbox worker; keep them off the event loop
    if engine.config.transform_function:
        return await asyncio.to_thread(func, *args, **kwargs)
    return func(*args, **kwargs)


async def recolor_document(
    document: PageDocument,
    config: RecolorConfig,
    fetch: FetchFunc,
) -> PageDocument:
    """Run a full recolor pass over a parsed page.

    Every stylesheet is recolored independently, and overlays are added in
    the order the sheets appear. A page gated out by the config, or whose
    sheets all fail, is returned without overlays.
    """
    if not config.should_recolor(document.url):
        logger.changes(f"Not recoloring {document.url or 'page'}: excluded by url patterns")
        return document

    inline = document.inline_styles()
    links = document.stylesheet_urls()
    styles = await collect_styles(inline, links, fetch)
    bases = [document.url] * len(inline) + links

    with RecolorEngine(config, document.url) as engine:
        for css_text, base_url in zip(styles, bases):
            if not css_text:
                continue
            imports = await prefetch_imports(css_text, fetch, base_url)
            overlay = await _offload(
                engine, engine.recolor, css_text, imports.get, base_url=base_url
            )
            document.add_overlay(overlay)
        changed = await _offload(engine, document.recolor_inline_styles, engine)

    logger.changes(f"Recolored inline styles on {changed} elements")
    return document


async def recolor_page(
    html: str,
    url: str,
    config: RecolorConfig,
    fetch: FetchFunc | None = None,
) -> str:
    """Recolor an HTML page and return the new markup.

    Args:
        html: Page markup
        url: Page URL, used for config gating and resolving relative links
        config: Recolor configuration
        fetch: Fetch capability; a Fetcher is created when omitted

    Returns:
        The page with overlay stylesheets and recolored inline styles
    """
    document = PageDocument.from_html(html, url)
    if fetch is not None:
        await recolor_document(document, config, fetch)
        return document.to_html()

    async with Fetcher(timeout=config.fetch_timeout) as fetcher:
        await recolor_document(document, config, fetcher)
    return document.to_html()
