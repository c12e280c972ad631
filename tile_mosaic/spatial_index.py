"""k-nearest-neighbour search over tile mean colours (scipy k-d tree)."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np
from scipy.spatial import cKDTree

from tile_mosaic.color_utils import ColorVector

# Slack added to the k-th distance when gathering tied candidates.
_TIE_EPS = 1e-9


@dataclass(frozen=True)
class TileRecord:
    """One candidate tile: its mean colour and source filename."""

    color: ColorVector
    filename: str


class SpatialIndex:
    """Immutable k-d tree over RGB points, each carrying a :class:`TileRecord`.

    Queries return records ordered by Euclidean distance; equal distances
    keep insertion order, so repeated queries are deterministic.
    """

    def __init__(self, records: Iterable[TileRecord]) -> None:
        self._records: tuple[TileRecord, ...] = tuple(records)
        self._points = np.array(
            [r.color for r in self._records], dtype=np.float64,
        ).reshape(-1, 3)
        self._tree = cKDTree(self._points) if self._records else None

    @classmethod
    def build(cls, records: Iterable[TileRecord]) -> SpatialIndex:
        return cls(records)

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> tuple[TileRecord, ...]:
        """Records in insertion order."""
        return self._records

    def nearest_k(self, query: Sequence[float], k: int) -> list[TileRecord]:
        """Return the *k* records closest to *query*, nearest first.

        Asking for more records than the index holds returns all of them.

        Raises:
            ValueError: *k* is smaller than 1.
        """
        if k < 1:
            msg = f"k must be a positive integer, got {k}"
            raise ValueError(msg)
        if self._tree is None:
            return []

        k = min(k, len(self._records))
        q = np.asarray(query, dtype=np.float64).reshape(3)
        dists, _ = self._tree.query(q, k=k)
        radius = float(np.atleast_1d(dists)[-1])

        # The tree picks arbitrarily among points tied with the k-th
        # distance; collect all of them and order by (distance, insertion).
        candidates = np.asarray(
            self._tree.query_ball_point(q, radius + _TIE_EPS), dtype=np.intp,
        )
        exact = np.sqrt(np.sum((self._points[candidates] - q) ** 2, axis=1))
        order = np.lexsort((candidates, exact))[:k]
        return [self._records[i] for i in candidates[order]]
