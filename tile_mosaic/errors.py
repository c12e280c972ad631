"""Exception hierarchy for index building and mosaic assembly."""

from __future__ import annotations


class MosaicError(Exception):
    """Base class for every failure raised by tile_mosaic."""


class CorpusReadError(MosaicError):
    """The tile corpus could not be read, or a tile failed to decode/resize."""


class CacheReadError(MosaicError):
    """A cache artifact exists but does not decode into tile records."""


class CacheWriteError(MosaicError):
    """A freshly built index could not be persisted."""


class NoMatchError(MosaicError):
    """Every nearest candidate for a cell is excluded by its neighbours."""

    def __init__(
        self,
        position: tuple[int, int],
        color: tuple[float, float, float],
        excluded: frozenset[str],
    ) -> None:
        self.position = position
        self.color = color
        self.excluded = excluded
        super().__init__(
            f"No eligible tile for cell {position} (color={color}, "
            f"{len(excluded)} excluded: {', '.join(sorted(excluded))})"
        )


class TileCompositeError(MosaicError):
    """The chosen tile is missing or unreadable at composite time."""
