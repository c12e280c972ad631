"""Mean-colour sampling over image regions and block grids."""

from __future__ import annotations

import numpy as np
from skimage.util import view_as_blocks

ColorVector = tuple[float, float, float]


def _as_rgb(pixels: np.ndarray) -> np.ndarray:
    arr = np.asarray(pixels)
    if arr.ndim != 3 or arr.shape[2] < 3:
        msg = f"Expected an (H, W, 3) RGB array, got shape {arr.shape}"
        raise ValueError(msg)
    return arr[:, :, :3]


def mean_color(
    pixels: np.ndarray,
    box: tuple[int, int, int, int] | None = None,
) -> ColorVector:
    """Truncated per-channel mean of a rectangular region.

    Args:
        pixels: (H, W, 3) uint8 RGB (extra channels such as alpha are ignored).
        box:    ``(left, top, right, bottom)`` in pixels, right/bottom
                exclusive. ``None`` samples the whole image.

    Returns:
        ``(r, g, b)`` integers, each the channel sum floor-divided by the
        pixel count.

    Raises:
        ValueError: The region is empty or reaches outside the image.
    """
    arr = _as_rgb(pixels)
    h, w = arr.shape[:2]
    left, top, right, bottom = (0, 0, w, h) if box is None else box
    if not (0 <= left < right <= w and 0 <= top < bottom <= h):
        msg = f"Region {(left, top, right, bottom)} is outside a {w}x{h} image"
        raise ValueError(msg)

    region = arr[top:bottom, left:right].reshape(-1, 3).astype(np.int64)
    sums = region.sum(axis=0) // len(region)
    return (int(sums[0]), int(sums[1]), int(sums[2]))


def block_mean_colors(pixels: np.ndarray, block_size: int) -> np.ndarray:
    """Mean colour of every ``block_size`` square, same rounding as :func:`mean_color`.

    Args:
        pixels:     (H, W, 3) uint8; H and W must be multiples of *block_size*.
        block_size: Side of each square block.

    Returns:
        (H // block_size, W // block_size, 3) int64, indexed ``[block_y, block_x]``.
    """
    arr = _as_rgb(pixels)
    h, w = arr.shape[:2]
    if block_size < 1 or h % block_size or w % block_size:
        msg = f"A {w}x{h} image does not split into {block_size}px blocks"
        raise ValueError(msg)

    blocks = view_as_blocks(
        np.ascontiguousarray(arr, dtype=np.int64), (block_size, block_size, 3),
    )
    # (grid_h, grid_w, 1, b, b, 3) -> (grid_h, grid_w, 3)
    sums = blocks.sum(axis=(3, 4))[:, :, 0, :]
    return sums // (block_size * block_size)
