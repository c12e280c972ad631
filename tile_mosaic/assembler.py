"""Mosaic assembly: match each target block to a tile, avoiding nearby repeats."""

from __future__ import annotations

import logging
import time
from collections.abc import Collection, Sequence
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from tile_mosaic.color_utils import block_mean_colors
from tile_mosaic.errors import NoMatchError
from tile_mosaic.image_io import TileStore, fit_to_blocks, to_array
from tile_mosaic.placement import PlacementGrid, scan_order
from tile_mosaic.spatial_index import SpatialIndex, TileRecord

logger = logging.getLogger(__name__)


@dataclass
class Mosaic:
    """A finished mosaic and the tile chosen for every cell."""

    image: Image.Image
    grid: PlacementGrid


def choose_tile(
    index: SpatialIndex,
    color: Sequence[float],
    excluded: Collection[str],
) -> TileRecord | None:
    """Nearest tile to *color* whose filename is not in *excluded*.

    Only the ``len(excluded) + 1`` nearest records are considered; returns
    ``None`` when all of them are excluded.
    """
    for record in index.nearest_k(color, len(excluded) + 1):
        if record.filename not in excluded:
            return record
    return None


def assemble(
    target: Image.Image,
    index: SpatialIndex,
    block_size: int,
    exclusion_radius: int,
    tile_size: int,
    tiles: TileStore | str | Path,
    width: int | None = None,
    height: int | None = None,
) -> Mosaic:
    """Build a mosaic of *target* out of indexed tiles.

    Args:
        target:           Image to reproduce.
        index:            Tile colours to match against.
        block_size:       Target pixels per cell side.
        exclusion_radius: Grid window in which an already placed filename
                          is not reused; 0 always takes the nearest tile.
        tile_size:        Output pixels per cell side.
        tiles:            Where the resized tiles are read from.
        width, height:    Size to fit the target to before blocking
                          (defaults to the target's own size).

    Returns:
        :class:`Mosaic` with an RGBA canvas of
        ``grid_width * tile_size`` x ``grid_height * tile_size``.

    Raises:
        NoMatchError: A cell's nearest candidates are all excluded.
        TileCompositeError: A chosen tile cannot be read.
    """
    store = tiles if isinstance(tiles, TileStore) else TileStore(tiles, tile_size)

    fitted = fit_to_blocks(target.convert("RGB"), block_size, width, height)
    colors = block_mean_colors(to_array(fitted), block_size)
    grid_h, grid_w = colors.shape[:2]
    grid = PlacementGrid(grid_w, grid_h)
    canvas = Image.new("RGBA", (grid_w * tile_size, grid_h * tile_size), (0, 0, 0, 0))

    logger.info(
        "Assembling %dx%d grid (%dpx blocks) into a %dx%d mosaic",
        grid_w, grid_h, block_size, canvas.width, canvas.height,
    )
    t0 = time.perf_counter()

    for block_x, block_y in scan_order(grid_w, grid_h):
        color = tuple(int(c) for c in colors[block_y, block_x])
        excluded = grid.excluded_filenames(block_x, block_y, exclusion_radius)

        record = choose_tile(index, color, excluded)
        if record is None:
            raise NoMatchError((block_x, block_y), color, excluded)

        grid.place(block_x, block_y, record)
        logger.debug(
            "cell (%d, %d) color=%s -> %s (%d excluded)",
            block_x, block_y, color, record.filename, len(excluded),
        )
        canvas.alpha_composite(
            store.get(record.filename), dest=(block_x * tile_size, block_y * tile_size),
        )

    logger.info(
        "Mosaic assembled: %d cells, %d distinct tiles  (%.1f s)",
        grid_w * grid_h, len(store), time.perf_counter() - t0,
    )
    return Mosaic(image=canvas, grid=grid)
