"""Build the tile colour index from a corpus, or restore it from the cache."""

from __future__ import annotations

import hashlib
import logging
import time
import zipfile
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import numpy as np
from PIL import UnidentifiedImageError

from tile_mosaic.color_utils import mean_color
from tile_mosaic.config import MosaicConfig
from tile_mosaic.errors import CacheReadError, CacheWriteError, CorpusReadError
from tile_mosaic.image_io import list_tile_files, load_rgb, resize_tile, to_array
from tile_mosaic.spatial_index import SpatialIndex, TileRecord

logger = logging.getLogger(__name__)

_PROGRESS_EVERY = 100


# -- Fingerprint -------------------------------------------------------

def corpus_fingerprint(files: Sequence[Path], tile_size: int) -> str:
    """sha256 over tile size and the sorted (filename, byte size) pairs."""
    digest = hashlib.sha256(f"tile_size={tile_size}\n".encode())
    for f in sorted(files, key=lambda p: p.name):
        try:
            size = f.stat().st_size
        except OSError as exc:
            msg = f"Cannot stat tile {f}: {exc}"
            raise CorpusReadError(msg) from exc
        digest.update(f"{f.name}\0{size}\n".encode())
    return digest.hexdigest()


# -- Cache artifact ----------------------------------------------------

def save_cache(
    path: str | Path,
    records: Sequence[TileRecord],
    fingerprint: str = "",
) -> None:
    """Write *records* to an ``.npz`` archive, replacing *path* atomically.

    Raises:
        CacheWriteError: The archive could not be written.
    """
    path = Path(path)
    colors = np.array([r.color for r in records], dtype=np.float64).reshape(-1, 3)
    filenames = np.array([r.filename for r in records], dtype=np.str_)
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp, "wb") as fh:
            np.savez(fh, colors=colors, filenames=filenames,
                     fingerprint=np.array(fingerprint))
        tmp.replace(path)
    except OSError as exc:
        if tmp.exists():
            tmp.unlink()
        msg = f"Cannot write tile cache {path}: {exc}"
        raise CacheWriteError(msg) from exc


def load_cache(path: str | Path) -> tuple[list[TileRecord], str]:
    """Read records and fingerprint back from :func:`save_cache` output.

    Raises:
        CacheReadError: The file is missing, truncated, or not a tile cache.
    """
    path = Path(path)
    try:
        data = np.load(path, allow_pickle=False)
    except (OSError, ValueError, EOFError, zipfile.BadZipFile) as exc:
        msg = f"Cannot read tile cache {path}: {exc}"
        raise CacheReadError(msg) from exc
    if not hasattr(data, "files"):
        msg = f"{path} is a bare array, not a tile cache archive"
        raise CacheReadError(msg)

    try:
        with data:
            colors = np.asarray(data["colors"], dtype=np.float64)
            filenames = [str(name) for name in data["filenames"]]
            fingerprint = str(data["fingerprint"]) if "fingerprint" in data.files else ""
    except (KeyError, OSError, ValueError, zipfile.BadZipFile) as exc:
        msg = f"Corrupt tile cache {path}: {exc}"
        raise CacheReadError(msg) from exc

    if colors.ndim != 2 or colors.shape[1] != 3 or len(colors) != len(filenames):
        msg = (
            f"Corrupt tile cache {path}: {colors.shape} colours "
            f"for {len(filenames)} filenames"
        )
        raise CacheReadError(msg)

    records = [
        TileRecord(color=(float(c[0]), float(c[1]), float(c[2])), filename=name)
        for c, name in zip(colors, filenames, strict=True)
    ]
    return records, fingerprint


# -- Corpus scan -------------------------------------------------------

def _process_tile(
    path: Path,
    tile_size: int,
    converted_dir: Path | None,
) -> TileRecord:
    try:
        tile = resize_tile(load_rgb(path), tile_size)
    except (OSError, UnidentifiedImageError, ValueError) as exc:
        msg = f"Cannot load tile {path}: {exc}"
        raise CorpusReadError(msg) from exc

    if converted_dir is not None:
        try:
            tile.save(converted_dir / path.name)
        except OSError as exc:
            logger.warning("Failed to save resized tile %s: %s", path.name, exc)

    return TileRecord(color=mean_color(to_array(tile)), filename=path.name)


def scan_corpus(
    files: Sequence[Path],
    tile_size: int,
    converted_dir: Path | None = None,
    workers: int = 1,
    skip_unreadable: bool = False,
) -> list[TileRecord]:
    """Resize every file, optionally persist it, and sample its mean colour.

    Args:
        files:           Tile images, in the order records should be kept.
        tile_size:       Side of the square each tile is resampled to.
        converted_dir:   If given, each resized tile is saved there under
                         its original filename.
        workers:         Threads used for decoding; output order is the
                         order of *files* regardless.
        skip_unreadable: Log and drop tiles that fail to decode instead of
                         aborting the whole scan.

    Returns:
        One :class:`TileRecord` per readable file.

    Raises:
        CorpusReadError: A tile failed and *skip_unreadable* is off.
    """
    if converted_dir is not None:
        converted_dir.mkdir(parents=True, exist_ok=True)

    def work(path: Path) -> TileRecord | None:
        try:
            return _process_tile(path, tile_size, converted_dir)
        except CorpusReadError as exc:
            if not skip_unreadable:
                raise
            logger.warning("Skipping %s", exc)
            return None

    logger.info("Images found: %d. Resizing to %dpx ...", len(files), tile_size)
    t0 = time.perf_counter()
    records: list[TileRecord] = []

    def collect(results: Iterable[TileRecord | None]) -> None:
        for i, record in enumerate(results, 1):
            if record is not None:
                records.append(record)
            if i % _PROGRESS_EVERY == 0:
                logger.info("  resized %d/%d tiles", i, len(files))

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            try:
                collect(executor.map(work, files))
            except CorpusReadError:
                # queued tiles must not be decoded or saved after the failure
                executor.shutdown(wait=True, cancel_futures=True)
                raise
    else:
        collect(map(work, files))

    logger.info(
        "Corpus scanned: %d tiles  (%.1f s)", len(records), time.perf_counter() - t0,
    )
    return records


# -- Entry point -------------------------------------------------------

def load_or_build(
    corpus_dir: str | Path,
    cache_path: str | Path,
    tile_size: int,
    converted_dir: str | Path | None = None,
    resize_and_persist: bool = False,
    workers: int = 1,
    skip_unreadable: bool = False,
    check_freshness: bool = False,
    extensions: Iterable[str] = MosaicConfig.SUPPORTED_EXTENSIONS,
) -> SpatialIndex:
    """Return the tile index, scanning the corpus only when the cache is unusable.

    A readable cache at *cache_path* is trusted as-is and the corpus is not
    touched. With *check_freshness* the corpus listing is fingerprinted and
    a mismatching cache is rebuilt.

    Raises:
        CorpusReadError: The corpus cannot be listed, holds no tiles, or a
            tile fails to decode (see *skip_unreadable*).
    """
    corpus_dir = Path(corpus_dir)
    cache_path = Path(cache_path)
    files: list[Path] | None = None

    if cache_path.exists():
        try:
            records, cached_fp = load_cache(cache_path)
        except CacheReadError as exc:
            logger.warning("%s; rebuilding from corpus", exc)
        else:
            stale = False
            if check_freshness:
                files = _list_corpus(corpus_dir, extensions)
                stale = cached_fp != corpus_fingerprint(files, tile_size)
            if not stale:
                logger.info("Tile cache loaded: %d tiles from %s", len(records), cache_path)
                return SpatialIndex.build(records)
            logger.warning("Tile cache %s is stale; rebuilding", cache_path)

    if files is None:
        files = _list_corpus(corpus_dir, extensions)
    if not files:
        msg = f"No tile images ({', '.join(sorted(extensions))}) in {corpus_dir}"
        raise CorpusReadError(msg)

    records = scan_corpus(
        files,
        tile_size,
        converted_dir=Path(converted_dir) if resize_and_persist and converted_dir else None,
        workers=workers,
        skip_unreadable=skip_unreadable,
    )
    if not records:
        msg = f"Every tile in {corpus_dir} failed to load"
        raise CorpusReadError(msg)

    try:
        save_cache(cache_path, records, corpus_fingerprint(files, tile_size))
    except CacheWriteError as exc:
        logger.warning("%s; continuing with the in-memory index", exc)
    else:
        logger.info("Tile cache written: %s", cache_path)

    return SpatialIndex.build(records)


def _list_corpus(corpus_dir: Path, extensions: Iterable[str]) -> list[Path]:
    try:
        return list_tile_files(corpus_dir, extensions)
    except OSError as exc:
        msg = f"Cannot read tile corpus {corpus_dir}: {exc}"
        raise CorpusReadError(msg) from exc
