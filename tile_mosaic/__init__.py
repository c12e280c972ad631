"""
Tile Mosaic Generator
=====================

Rebuild a target image out of a corpus of small photo tiles. Each block
of the target is matched to the tile with the closest mean RGB colour
through a k-d tree, while a tile is never repeated inside a small window
of already placed neighbours.

The tile colours are cached after the first corpus scan, so later runs
skip straight to assembly.
"""

__version__ = "1.0.0"

from tile_mosaic.assembler import Mosaic, assemble, choose_tile
from tile_mosaic.color_utils import block_mean_colors, mean_color
from tile_mosaic.config import MosaicConfig
from tile_mosaic.errors import (
    CacheReadError,
    CacheWriteError,
    CorpusReadError,
    MosaicError,
    NoMatchError,
    TileCompositeError,
)
from tile_mosaic.pipeline import MosaicRun, RunState
from tile_mosaic.placement import PlacementGrid, scan_order
from tile_mosaic.spatial_index import SpatialIndex, TileRecord
from tile_mosaic.tile_index import load_cache, load_or_build, save_cache, scan_corpus

__all__ = [
    "CacheReadError",
    "CacheWriteError",
    "CorpusReadError",
    "Mosaic",
    "MosaicConfig",
    "MosaicError",
    "MosaicRun",
    "NoMatchError",
    "PlacementGrid",
    "RunState",
    "SpatialIndex",
    "TileCompositeError",
    "TileRecord",
    "assemble",
    "block_mean_colors",
    "choose_tile",
    "load_cache",
    "load_or_build",
    "mean_color",
    "save_cache",
    "scan_corpus",
    "scan_order",
]
