"""Centralised configuration via a frozen dataclass."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_env_files() -> tuple[str, ...]:
    """``.env`` then ``00-<GO_ENV>.env`` in the working directory; later files win."""
    return (".env", f"00-{os.getenv('GO_ENV', '')}.env")


class EnvSettings(BaseSettings):
    """Environment variables and env files, one optional field per variable."""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    target_path: Path | None = Field(None, validation_alias="TARGET_IMAGE_PATH")
    output_path: Path | None = Field(None, validation_alias="COLLAGE_IMAGE_PATH")
    tile_source_dir: Path | None = Field(None, validation_alias="TILE_IMAGES_SOURCE_DIR")
    tile_converted_dir: Path | None = Field(None, validation_alias="TILE_IMAGES_CONVERTED_DIR")
    cache_path: Path | None = Field(None, validation_alias="TILE_INDEX_CACHE_PATH")
    tile_size: int | None = Field(None, validation_alias="IMAGE_TILE_SIZE")
    width: int | None = Field(None, validation_alias="GENERATED_IMAGE_WIDTH")
    height: int | None = Field(None, validation_alias="GENERATED_IMAGE_HEIGHT")
    block_size: int | None = Field(None, validation_alias="COLLAGE_IMAGE_PIXEL_BLOCK")
    exclusion_radius: int | None = Field(None, validation_alias="SAME_TILE_DISTANCE")
    resize_and_persist: bool | None = Field(None, validation_alias="RESIZE_AND_SAVE_BASE_IMAGES")
    build_mosaic: bool | None = Field(None, validation_alias="BUILD_MAIN_IMAGE")
    workers: int | None = Field(None, validation_alias="TILE_WORKERS")
    skip_unreadable: bool | None = Field(None, validation_alias="SKIP_UNREADABLE_TILES")
    check_freshness: bool | None = Field(None, validation_alias="CHECK_CACHE_FRESHNESS")


# field name -> environment variable
ENV_VARS: dict[str, str] = {
    name: str(info.validation_alias) for name, info in EnvSettings.model_fields.items()
}


@dataclass(frozen=True)
class MosaicConfig:
    """All tuneable parameters for a mosaic run.

    Attributes:
        target_path:        Image to rebuild out of tiles.
        output_path:        Where the finished mosaic is written (overwritten).
        tile_source_dir:    Flat folder holding the tile corpus.
        tile_converted_dir: Folder of resized tile copies used for compositing.
        cache_path:         Persisted tile colours (skips the corpus scan).
        tile_size:          Side length of every tile in the output mosaic.
        width:              Target width before blocking (None = image width).
        height:             Target height before blocking (None = image height).
        block_size:         Side of the target-image block sampled per cell.
        exclusion_radius:   Grid distance within which a tile is not reused.
        resize_and_persist: Save resized tiles into *tile_converted_dir*.
        build_mosaic:       Run assembly after the index is ready.
        workers:            Thread count for the corpus scan.
        skip_unreadable:    Log and skip broken tiles instead of aborting.
        check_freshness:    Rebuild when the cache fingerprint no longer
                            matches the corpus.
    """

    # Paths
    target_path: Path = field(default_factory=lambda: Path("target.jpg"))
    output_path: Path = field(default_factory=lambda: Path("output/mosaic.png"))
    tile_source_dir: Path = field(default_factory=lambda: Path("tiles"))
    tile_converted_dir: Path = field(default_factory=lambda: Path("tiles_converted"))
    cache_path: Path = field(default_factory=lambda: Path("tile_index.npz"))

    # Geometry
    tile_size: int = 32
    width: int | None = None
    height: int | None = None
    block_size: int = 8
    exclusion_radius: int = 2

    # Flags
    resize_and_persist: bool = True
    build_mosaic: bool = True
    workers: int = 1
    skip_unreadable: bool = False
    check_freshness: bool = False

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg"})

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> MosaicConfig:
        """Build a config from the environment and its env file.

        Variables come from the process environment first, then from
        *env_file* (default: :func:`default_env_files`). Unset or empty
        variables keep the dataclass default.

        Raises:
            ValueError: A variable does not parse as its field's type.
        """
        try:
            settings = EnvSettings(
                _env_file=default_env_files() if env_file is None else env_file,
            )
        except ValidationError as exc:
            names = ", ".join(str(err["loc"][0]).upper() for err in exc.errors())
            msg = f"Invalid environment setting {names}: {exc}"
            raise ValueError(msg) from exc
        return cls(**settings.model_dump(exclude_none=True))

    def validate(self) -> MosaicConfig:
        """Reject values the index builder or assembler cannot work with."""
        if self.tile_size < 1:
            msg = f"tile_size must be positive, got {self.tile_size}"
            raise ValueError(msg)
        if self.block_size < 1:
            msg = f"block_size must be positive, got {self.block_size}"
            raise ValueError(msg)
        if self.exclusion_radius < 0:
            msg = f"exclusion_radius must be >= 0, got {self.exclusion_radius}"
            raise ValueError(msg)
        if self.workers < 1:
            msg = f"workers must be >= 1, got {self.workers}"
            raise ValueError(msg)
        for name in ("width", "height"):
            value = getattr(self, name)
            if value is not None and value < self.block_size:
                msg = f"{name}={value} is smaller than one block ({self.block_size})"
                raise ValueError(msg)
        return self
