"""Image loading, resizing, saving, and tile-store access."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from tile_mosaic.errors import TileCompositeError

logger = logging.getLogger(__name__)


def list_tile_files(folder: Path, extensions: Iterable[str]) -> list[Path]:
    """Files directly inside *folder* whose suffix is in *extensions*, sorted by name.

    Raises:
        OSError: *folder* is missing or cannot be listed.
    """
    wanted = {e.lower() for e in extensions}
    return sorted(
        (f for f in Path(folder).iterdir()
         if f.is_file() and f.suffix.lower() in wanted),
        key=lambda f: f.name,
    )


def load_rgb(path: str | Path) -> Image.Image:
    """Open an image fully decoded in RGB mode."""
    with Image.open(path) as img:
        return img.convert("RGB")


def resize_tile(img: Image.Image, tile_size: int) -> Image.Image:
    """Centre-crop to a square and resample to *tile_size* (Lanczos)."""
    return ImageOps.fit(img, (tile_size, tile_size), Image.LANCZOS, centering=(0.5, 0.5))


def fit_to_blocks(
    img: Image.Image,
    block_size: int,
    width: int | None = None,
    height: int | None = None,
) -> Image.Image:
    """Scale/crop *img* so both sides are exact multiples of *block_size*.

    The requested *width* x *height* (defaulting to the image's own size)
    is floored to the block grid; the image is then centre-cropped to that
    aspect ratio and Lanczos-resampled.
    """
    w = ((width or img.width) // block_size) * block_size
    h = ((height or img.height) // block_size) * block_size
    if w == 0 or h == 0:
        msg = (
            f"Target {width or img.width}x{height or img.height} is smaller "
            f"than one {block_size}px block"
        )
        raise ValueError(msg)
    if (w, h) == img.size:
        return img
    return ImageOps.fit(img, (w, h), Image.LANCZOS, centering=(0.5, 0.5))


def to_array(img: Image.Image) -> np.ndarray:
    """(H, W, 3) uint8 view of an RGB copy of *img*."""
    return np.array(img.convert("RGB"), dtype=np.uint8)


def save_image(img: Image.Image, path: str | Path) -> None:
    """Save *img*, flattening alpha for formats that cannot store it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() in {".jpg", ".jpeg"} and img.mode != "RGB":
        img = img.convert("RGB")
    img.save(path)


class TileStore:
    """Resized tiles read from a directory, decoded once per filename."""

    def __init__(self, directory: str | Path, tile_size: int) -> None:
        self.directory = Path(directory)
        self.tile_size = tile_size
        self._cache: dict[str, Image.Image] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, filename: str) -> Image.Image:
        """RGBA tile of exactly ``tile_size`` pixels.

        Raises:
            TileCompositeError: The file is missing or cannot be decoded.
        """
        tile = self._cache.get(filename)
        if tile is not None:
            return tile

        path = self.directory / filename
        try:
            with Image.open(path) as img:
                tile = img.convert("RGBA")
        except (OSError, UnidentifiedImageError) as exc:
            msg = f"Cannot open tile {path}: {exc}"
            raise TileCompositeError(msg) from exc

        if tile.size != (self.tile_size, self.tile_size):
            logger.debug("Tile %s is %dx%d, refitting", filename, *tile.size)
            tile = resize_tile(tile, self.tile_size)
        self._cache[filename] = tile
        return tile
