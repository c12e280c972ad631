"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import dataclasses
import logging
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from tile_mosaic.config import MosaicConfig
from tile_mosaic.errors import MosaicError
from tile_mosaic.pipeline import MosaicRun

app = typer.Typer(
    name="tile-mosaic",
    help="Rebuild an image out of a corpus of photo tiles.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


def _load_config(**overrides: object) -> MosaicConfig:
    """Environment config with every non-None CLI option laid over it."""
    try:
        base = MosaicConfig.from_env()
        cfg = dataclasses.replace(
            base, **{k: v for k, v in overrides.items() if v is not None},
        )
        return cfg.validate()
    except ValueError as exc:
        console.print(f"[red]Invalid configuration:[/red] {exc}")
        raise typer.Exit(2) from exc


# Defaults come from MosaicConfig - shown in --help only
_DEFAULTS = MosaicConfig()


# -- index command -----------------------------------------------------

@app.command()
def index(
    tiles: Path | None = typer.Option(
        None, "--tiles", "-t",
        help=f"Tile corpus folder [default: {_DEFAULTS.tile_source_dir}]",
    ),
    converted: Path | None = typer.Option(
        None, "--converted", "-c",
        help=f"Resized tile folder [default: {_DEFAULTS.tile_converted_dir}]",
    ),
    cache: Path | None = typer.Option(
        None, "--cache", help=f"Tile index cache [default: {_DEFAULTS.cache_path}]",
    ),
    tile_size: int | None = typer.Option(
        None, "--tile-size", "-s", help=f"Tile side in px [default: {_DEFAULTS.tile_size}]",
    ),
    resize_and_persist: bool | None = typer.Option(
        None, "--save-resized/--no-save-resized",
        help="Write resized tiles into the converted folder",
    ),
    workers: int | None = typer.Option(
        None, "--workers", "-w", help="Threads for the corpus scan",
    ),
    skip_unreadable: bool | None = typer.Option(
        None, "--skip-unreadable/--no-skip-unreadable",
        help="Log and skip tiles that fail to load",
    ),
    check_freshness: bool | None = typer.Option(
        None, "--check-cache/--no-check-cache",
        help="Rebuild the cache when the corpus has changed",
    ),
    rebuild: bool = typer.Option(
        False, "--rebuild", help="Discard the existing cache first",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Build (or load) the tile colour index and report its size."""
    _setup_logging(verbose)
    cfg = _load_config(
        tile_source_dir=tiles,
        tile_converted_dir=converted,
        cache_path=cache,
        tile_size=tile_size,
        resize_and_persist=resize_and_persist,
        workers=workers,
        skip_unreadable=skip_unreadable,
        check_freshness=check_freshness,
    )

    if rebuild and cfg.cache_path.exists():
        cfg.cache_path.unlink()
        console.print(f"[dim]Removed {cfg.cache_path}[/dim]")

    t0 = time.perf_counter()
    try:
        tile_index = MosaicRun(cfg).prepare_index()
    except MosaicError as exc:
        console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(1) from exc

    console.print(
        f"[green]✓[/green] {len(tile_index)} tiles indexed  "
        f"[dim]cache={cfg.cache_path}  time={time.perf_counter() - t0:.1f}s[/dim]"
    )


# -- build command -----------------------------------------------------

@app.command()
def build(
    target: Path | None = typer.Argument(None, help="Image to rebuild out of tiles"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help=f"Mosaic file [default: {_DEFAULTS.output_path}]",
    ),
    tiles: Path | None = typer.Option(None, "--tiles", "-t", help="Tile corpus folder"),
    converted: Path | None = typer.Option(
        None, "--converted", "-c", help="Resized tile folder",
    ),
    cache: Path | None = typer.Option(None, "--cache", help="Tile index cache"),
    tile_size: int | None = typer.Option(
        None, "--tile-size", "-s", help=f"Tile side in px [default: {_DEFAULTS.tile_size}]",
    ),
    block_size: int | None = typer.Option(
        None, "--block", "-b",
        help=f"Target pixels sampled per cell [default: {_DEFAULTS.block_size}]",
    ),
    exclusion_radius: int | None = typer.Option(
        None, "--radius", "-r",
        help=f"No-repeat window in cells [default: {_DEFAULTS.exclusion_radius}]",
    ),
    width: int | None = typer.Option(None, "--width", help="Fit target to this width"),
    height: int | None = typer.Option(None, "--height", help="Fit target to this height"),
    resize_and_persist: bool | None = typer.Option(
        None, "--save-resized/--no-save-resized",
        help="Write resized tiles into the converted folder",
    ),
    workers: int | None = typer.Option(
        None, "--workers", "-w", help="Threads for the corpus scan",
    ),
    skip_unreadable: bool | None = typer.Option(
        None, "--skip-unreadable/--no-skip-unreadable",
        help="Log and skip tiles that fail to load",
    ),
    check_freshness: bool | None = typer.Option(
        None, "--check-cache/--no-check-cache",
        help="Rebuild the cache when the corpus has changed",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Index the tile corpus and assemble the mosaic for TARGET."""
    _setup_logging(verbose)
    cfg = _load_config(
        target_path=target,
        output_path=output,
        tile_source_dir=tiles,
        tile_converted_dir=converted,
        cache_path=cache,
        tile_size=tile_size,
        block_size=block_size,
        exclusion_radius=exclusion_radius,
        width=width,
        height=height,
        resize_and_persist=resize_and_persist,
        workers=workers,
        skip_unreadable=skip_unreadable,
        check_freshness=check_freshness,
    )

    console.print(Panel.fit(
        f"[bold]TILE MOSAIC[/bold]\n"
        f"Target: {cfg.target_path}  |  Tiles: {cfg.tile_source_dir}\n"
        f"Block: {cfg.block_size}px  |  Tile: {cfg.tile_size}px  |  "
        f"Radius: {cfg.exclusion_radius}",
        border_style="cyan",
    ))

    t0 = time.perf_counter()
    run = MosaicRun(cfg)
    try:
        mosaic = run.run()
    except MosaicError as exc:
        console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(1) from exc

    if mosaic is None:
        console.print(f"[yellow]Index ready ({len(run.index)} tiles); mosaic skipped[/yellow]")
        return

    grid = mosaic.grid
    console.print(Panel.fit(
        f"[bold green]DONE[/bold green] - {cfg.output_path}\n"
        f"[dim]{grid.width}x{grid.height} cells  "
        f"{mosaic.image.width}x{mosaic.image.height} px  "
        f"time={time.perf_counter() - t0:.1f}s[/dim]",
        border_style="green",
    ))


if __name__ == "__main__":
    app()
