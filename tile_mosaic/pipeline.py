"""End-to-end run: tile index, then mosaic, with an explicit run state."""

from __future__ import annotations

import enum
import logging

from tile_mosaic.assembler import Mosaic, assemble
from tile_mosaic.config import MosaicConfig
from tile_mosaic.errors import MosaicError
from tile_mosaic.image_io import TileStore, fit_to_blocks, load_rgb, save_image
from tile_mosaic.spatial_index import SpatialIndex
from tile_mosaic.tile_index import load_or_build

logger = logging.getLogger(__name__)


class RunState(enum.Enum):
    IDLE = "idle"
    INDEX_READY = "index_ready"
    ASSEMBLING = "assembling"
    DONE = "done"
    ABORTED = "aborted"


class MosaicRun:
    """One mosaic generation driven by a :class:`MosaicConfig`.

    ``IDLE -> INDEX_READY -> ASSEMBLING -> DONE``; any failure moves the run
    to ``ABORTED``, which is terminal. The output file is written only
    after every cell has been placed.
    """

    def __init__(self, config: MosaicConfig) -> None:
        self.config = config.validate()
        self.state = RunState.IDLE
        self.index: SpatialIndex | None = None
        self.mosaic: Mosaic | None = None

    def _require(self, expected: RunState) -> None:
        if self.state is not expected:
            msg = f"Run is {self.state.value}, expected {expected.value}"
            raise RuntimeError(msg)

    def prepare_index(self) -> SpatialIndex:
        self._require(RunState.IDLE)
        cfg = self.config
        try:
            self.index = load_or_build(
                cfg.tile_source_dir,
                cfg.cache_path,
                cfg.tile_size,
                converted_dir=cfg.tile_converted_dir,
                resize_and_persist=cfg.resize_and_persist,
                workers=cfg.workers,
                skip_unreadable=cfg.skip_unreadable,
                check_freshness=cfg.check_freshness,
                extensions=cfg.SUPPORTED_EXTENSIONS,
            )
        except Exception:
            self.state = RunState.ABORTED
            raise
        self.state = RunState.INDEX_READY
        return self.index

    def assemble(self) -> Mosaic:
        self._require(RunState.INDEX_READY)
        cfg = self.config
        self.state = RunState.ASSEMBLING
        try:
            target = load_rgb(cfg.target_path)
        except OSError as exc:
            self.state = RunState.ABORTED
            msg = f"Cannot open target image {cfg.target_path}: {exc}"
            raise MosaicError(msg) from exc
        try:
            target = fit_to_blocks(target, cfg.block_size, cfg.width, cfg.height)
        except ValueError as exc:
            self.state = RunState.ABORTED
            msg = f"Cannot fit target image {cfg.target_path}: {exc}"
            raise MosaicError(msg) from exc

        try:
            mosaic = assemble(
                target,
                self.index,
                cfg.block_size,
                cfg.exclusion_radius,
                cfg.tile_size,
                TileStore(cfg.tile_converted_dir, cfg.tile_size),
            )
            save_image(mosaic.image, cfg.output_path)
        except Exception:
            self.state = RunState.ABORTED
            raise

        logger.info("Mosaic saved: %s", cfg.output_path)
        self.mosaic = mosaic
        self.state = RunState.DONE
        return mosaic

    def run(self) -> Mosaic | None:
        """Prepare the index and, if ``build_mosaic`` is set, assemble and save."""
        self.prepare_index()
        if not self.config.build_mosaic:
            logger.info("build_mosaic is off; stopping after the tile index")
            return None
        return self.assemble()
