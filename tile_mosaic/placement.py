"""Grid of tile choices, filled one cell at a time in scan order."""

from __future__ import annotations

from collections.abc import Iterator

from tile_mosaic.spatial_index import TileRecord


def scan_order(grid_width: int, grid_height: int) -> Iterator[tuple[int, int]]:
    """Column-major cell order: every row of column 0, then column 1, ..."""
    for block_x in range(grid_width):
        for block_y in range(grid_height):
            yield block_x, block_y


class PlacementGrid:
    """``grid_width`` x ``grid_height`` cells, each unset or a placed :class:`TileRecord`.

    A cell can be set only once. The assembler fills cells in
    :func:`scan_order`, so when a cell is queried every cell after it in
    that order is still unset.
    """

    def __init__(self, grid_width: int, grid_height: int) -> None:
        if grid_width < 1 or grid_height < 1:
            msg = f"Grid must be at least 1x1, got {grid_width}x{grid_height}"
            raise ValueError(msg)
        self.width = grid_width
        self.height = grid_height
        self._cells: list[list[TileRecord | None]] = [
            [None] * grid_height for _ in range(grid_width)
        ]

    def _check(self, block_x: int, block_y: int) -> None:
        if not (0 <= block_x < self.width and 0 <= block_y < self.height):
            msg = f"Cell ({block_x}, {block_y}) outside {self.width}x{self.height} grid"
            raise IndexError(msg)

    def __getitem__(self, pos: tuple[int, int]) -> TileRecord | None:
        block_x, block_y = pos
        self._check(block_x, block_y)
        return self._cells[block_x][block_y]

    def is_set(self, block_x: int, block_y: int) -> bool:
        return self[block_x, block_y] is not None

    def place(self, block_x: int, block_y: int, record: TileRecord) -> None:
        self._check(block_x, block_y)
        if self._cells[block_x][block_y] is not None:
            msg = f"Cell ({block_x}, {block_y}) already holds a tile"
            raise ValueError(msg)
        self._cells[block_x][block_y] = record

    def excluded_filenames(self, block_x: int, block_y: int, radius: int) -> frozenset[str]:
        """Filenames already placed in the window around a cell.

        The window spans ``block_x - radius <= x < block_x + radius`` and the
        same for y, clipped to the grid, excluding the cell itself. Only
        placed cells contribute; in scan order those are the columns to the
        left and the cells above in the same column.
        """
        if radius <= 0:
            return frozenset()
        names: set[str] = set()
        for x in range(max(0, block_x - radius), min(self.width, block_x + radius)):
            column = self._cells[x]
            for y in range(max(0, block_y - radius), min(self.height, block_y + radius)):
                if (x, y) == (block_x, block_y):
                    continue
                record = column[y]
                if record is not None:
                    names.add(record.filename)
        return frozenset(names)

    def filled(self) -> int:
        return sum(cell is not None for column in self._cells for cell in column)

    def filenames(self) -> list[list[str | None]]:
        """Row-major ``[block_y][block_x]`` filenames (None where unset)."""
        return [
            [
                None if self._cells[x][y] is None else self._cells[x][y].filename
                for x in range(self.width)
            ]
            for y in range(self.height)
        ]
