"""Tests for page integration."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from recolor import RecolorConfig, RecolorEngine
from recolor.config import load_config
from recolor.page import (
    MARKER_ATTRIBUTE,
    OVERLAY_CONTAINER_ID,
    PageDocument,
    prefetch_imports,
    recolor_page,
)

PAGE_URL = "https://example.com/index.html"
CONFIG = RecolorConfig(target_colors=["#111111", "#eeeeee"])

PAGE = """<html><head>
<link rel="stylesheet" href="css/site.css">
<link rel="icon" href="favicon.ico">
<style>h1 { color: white; margin: 0 }</style>
</head><body>
<h1>Title</h1>
<p style="color: black; margin: 0">colored</p>
<p style="margin: 0">plain</p>
</body></html>"""

SHEETS = {
    "https://example.com/css/site.css": '@import "theme.css"; body { background: black }',
    "https://example.com/css/theme.css": "a { color: white }",
}


async def fake_fetch(url: str) -> str:
    return SHEETS.get(url, "")


def overlays(html: str) -> list[str]:
    """Text of every overlay stylesheet in a page."""
    container = BeautifulSoup(html, "html.parser").find(id=OVERLAY_CONTAINER_ID)
    if container is None:
        return []
    return [style.get_text() for style in container.find_all("style")]


class TestPageDocument:
    """Tests for reading and editing a page."""

    def test_stylesheet_urls(self) -> None:
        """Only stylesheet links are listed, resolved against the page URL."""
        html = """
            <link rel="stylesheet" href="/a.css">
            <link rel="alternate stylesheet" href="b.css">
            <link type="text/css" href="https://cdn.example.org/c.css">
            <link rel="icon" href="favicon.ico">
            <link rel="stylesheet" href="">
        """
        document = PageDocument.from_html(html, "https://example.com/blog/post")
        assert document.stylesheet_urls() == [
            "https://example.com/a.css",
            "https://example.com/blog/b.css",
            "https://cdn.example.org/c.css",
        ]

    def test_inline_styles_skip_overlays(self) -> None:
        """Overlays from an earlier pass are not collected again."""
        html = (
            "<style>a { color: red }</style><style></style>"
            '<body><div id="recolor"><style>a { color:#111111; }</style></div></body>'
        )
        assert PageDocument.from_html(html).inline_styles() == ["a { color: red }"]

    def test_add_overlay(self) -> None:
        """Overlays go into one container at the end of the body, in order."""
        document = PageDocument.from_html("<body><p>x</p></body>")
        document.add_overlay("a { color:red; }")
        document.add_overlay("")
        document.add_overlay("b { color:blue; }")

        html = document.to_html()
        assert overlays(html) == ["a { color:red; }", "b { color:blue; }"]
        assert html.count(f'id="{OVERLAY_CONTAINER_ID}"') == 1
        body = BeautifulSoup(html, "html.parser").body
        assert body is not None
        assert body.find_all(recursive=False)[-1].get("id") == OVERLAY_CONTAINER_ID

    def test_recolor_inline_styles(self) -> None:
        """Colored inline styles get recolored declarations appended and a marker."""
        document = PageDocument.from_html(
            '<p style="color: black; margin: 0">a</p>'
            '<p style="margin: 0">b</p>'
            '<p style="color: white;">c</p>'
        )
        with RecolorEngine(CONFIG) as engine:
            assert document.recolor_inline_styles(engine) == 2
            assert document.recolor_inline_styles(engine) == 0

        first, second, third = document.soup.find_all("p")
        assert first["style"] == "color: black; margin: 0; color:#111111;"
        assert first.has_attr(MARKER_ATTRIBUTE)
        assert second["style"] == "margin: 0"
        assert not second.has_attr(MARKER_ATTRIBUTE)
        assert third["style"] == "color: white; color:#eeeeee;"


def test_prefetch_imports_relative_to_sheet() -> None:
    """Imports resolve against the importing sheet's URL and are keyed by absolute URL."""
    css = SHEETS["https://example.com/css/site.css"]
    imports = asyncio.run(prefetch_imports(css, fake_fetch, "https://example.com/css/site.css"))
    assert imports == {"https://example.com/css/theme.css": "a { color: white }"}


class TestRecolorPage:
    """End-to-end page recoloring."""

    def test_overlays_in_page_order(self) -> None:
        """Inline sheets come first, then linked sheets; imports are included."""
        html = asyncio.run(recolor_page(PAGE, PAGE_URL, CONFIG, fake_fetch))

        assert overlays(html) == [
            "h1 { color:#eeeeee; }",
            "a { color:#eeeeee; }\nbody { background:#111111; }",
        ]
        assert 'style="color: black; margin: 0; color:#111111;"' in html

    def test_excluded_page_untouched(self) -> None:
        """A page gated out by url_exclude gets no overlay."""
        config = RecolorConfig(target_colors=["#111111"], url_exclude="example")
        html = asyncio.run(recolor_page(PAGE, PAGE_URL, config, fake_fetch))

        assert overlays(html) == []
        assert MARKER_ATTRIBUTE not in BeautifulSoup(html, "html.parser").p.attrs

    def test_failed_sources_add_nothing(self) -> None:
        """Sheets that fail to load are skipped; the rest of the page still works."""

        async def failing_fetch(url: str) -> str:
            return ""

        html = asyncio.run(recolor_page(PAGE, PAGE_URL, CONFIG, failing_fetch))
        assert overlays(html) == ["h1 { color:#eeeeee; }"]

    @pytest.mark.parametrize("transform", [None, "examples/night_transform.py:grayscale"])
    def test_example_page(self, examples_dir: Path, transform: str | None) -> None:
        """The example page recolors with linked sheets read from disk."""
        config = load_config(examples_dir / "recolor_config.yaml")
        if transform is not None:
            handler = transform.replace("examples", str(examples_dir), 1)
            config = config.model_copy(update={"transform_function": handler})
        page_path = examples_dir / "page.html"

        html = asyncio.run(
            recolor_page(page_path.read_text(encoding="utf-8"), page_path.as_uri(), config)
        )

        inline_overlay, site_overlay = overlays(html)
        assert inline_overlay.startswith("header { background-color:")
        assert "@media (max-width: 600px)" in inline_overlay
        assert "body { background:" in site_overlay
        assert "@keyframes pulse" in site_overlay
        assert "@font-face" not in site_overlay
        assert "note.png" not in site_overlay


class TestPassResilience:
    """Imports, broken sheets and slow transforms inside one page pass."""

    def test_same_named_imports_in_different_directories(self) -> None:
        """Each @import resolves against the sheet that contains it."""
        sheets = {
            "https://example.com/main.css": '@import "a/theme.css";',
            "https://example.com/a/theme.css": '@import "../b/x.css"; p { color: red }',
            "https://example.com/b/x.css": '@import "theme.css";',
            "https://example.com/b/theme.css": "q { color: blue }",
        }

        async def fetch(url: str) -> str:
            return sheets.get(url, "")

        page = '<html><head><link rel="stylesheet" href="main.css"></head><body></body></html>'
        html = asyncio.run(recolor_page(page, PAGE_URL, CONFIG, fetch))

        assert overlays(html) == ["q { color:#111111; }\np { color:#111111; }"]

    def test_deeply_nested_sheet_skipped(self) -> None:
        """A sheet too deeply nested to convert is skipped; the next sheet still counts."""
        deep = "@media screen {" * 1000 + "a { color: red }" + "}" * 1000
        page = (
            f"<html><head><style>{deep}</style><style>p {{ color: black }}</style></head>"
            "<body></body></html>"
        )

        html = asyncio.run(recolor_page(page, PAGE_URL, CONFIG, fake_fetch))

        assert overlays(html) == ["p { color:#111111; }"]

    def test_transform_does_not_block_event_loop(
        self, write_transform: Callable[..., str]
    ) -> None:
        """Other tasks keep running while transform batches are in the worker."""
        handler = write_transform(
            """
            import time

            def transform(rgba):
                time.sleep(0.1)
                return (0, 0, 0, 1)
            """
        )
        config = RecolorConfig(transform_function=handler)

        async def run() -> tuple[str, int]:
            ticks = 0
            done = asyncio.Event()

            async def ticker() -> None:
                nonlocal ticks
                while not done.is_set():
                    ticks += 1
                    await asyncio.sleep(0.01)

            task = asyncio.create_task(ticker())
            html = await recolor_page(PAGE, PAGE_URL, config, fake_fetch)
            done.set()
            await task
            return html, ticks

        html, ticks = asyncio.run(run())

        assert overlays(html)[0] == "h1 { color:rgba(0,0,0,1); }"
        assert ticks >= 20
