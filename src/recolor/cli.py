"""Command-line interface for recolor."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated
from urllib.parse import urlparse

import typer

from . import context
from .config import RecolorConfig, discover_config
from .engine import RecolorEngine
from .exceptions import RecolorError
from .logger import setup_logger
from .page import recolor_page
from .sources import HTTP_SCHEMES, Fetcher

app = typer.Typer(
    name="recolor",
    help="Recolor web page stylesheets through a color-only overlay",
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=warnings only (default), 1=changes, 2=checks, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to config file (default: recolor_config.yaml)",
        ),
    ] = None,
) -> None:
    """Global options for recolor commands."""
    setup_logger(verbose)
    context.set_config_path(config)


def _load_config() -> RecolorConfig:
    try:
        return discover_config() or RecolorConfig()
    except (FileNotFoundError, RecolorError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def _emit(text: str, output: Path | None) -> None:
    if output:
        output.write_text(text, encoding="utf-8")
        typer.echo(f"Output written to {output}", err=True)
    else:
        typer.echo(text)


@app.command()
def css(
    file: Annotated[Path, typer.Argument(help="Stylesheet to recolor")],
    *,
    page_url: Annotated[
        str, typer.Option("--page-url", help="Page URL used for swap-rule gating")
    ] = "",
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Print the overlay CSS for one stylesheet."""
    if not file.exists():
        typer.echo(f"Error: File not found: {file}", err=True)
        raise typer.Exit(1)

    config = _load_config()
    with RecolorEngine(config, page_url) as engine:
        overlay = engine.recolor(file.read_text(encoding="utf-8"))
    _emit(overlay, output)


@app.command()
def inline(
    style: Annotated[str, typer.Argument(help="Declaration block, e.g. 'color: red; margin: 0'")],
    *,
    page_url: Annotated[
        str, typer.Option("--page-url", help="Page URL used for swap-rule gating")
    ] = "",
) -> None:
    """Print the recolored declarations of an inline style."""
    config = _load_config()
    with RecolorEngine(config, page_url) as engine:
        typer.echo(engine.recolor_inline(style))


@app.command()
def page(
    source: Annotated[str, typer.Argument(help="HTML file path or http(s) URL")],
    *,
    base_url: Annotated[
        str | None,
        typer.Option("--base-url", help="URL the page is served from (default: its own location)"),
    ] = None,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Recolor a whole page: overlay every stylesheet and inline style."""
    config = _load_config()
    html = asyncio.run(_recolor_source(source, base_url, config))
    if html is None:
        typer.echo(f"Error: Could not load page: {source}", err=True)
        raise typer.Exit(1)
    _emit(html, output)


async def _recolor_source(source: str, base_url: str | None, config: RecolorConfig) -> str | None:
    async with Fetcher(timeout=config.fetch_timeout) as fetcher:
        if urlparse(source).scheme in HTTP_SCHEMES:
            page_url = base_url or source
        else:
            path = Path(source)
            if not path.exists():
                return None
            page_url = base_url or path.resolve().as_uri()
        html = await fetcher.fetch(source)
        if not html:
            return None
        return await recolor_page(html, page_url, config, fetcher)


def main() -> int:
    """Main entry point."""
    # Typer handles sys.exit() internally
    app()
    return 0


if __name__ == "__main__":
    main()
