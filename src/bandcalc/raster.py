"""Grid values and the raster sources that resolve band names to them."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

import jax.numpy as jnp
import numpy as np

from .errors import RasterNotFoundError, RasterReadError

logger = logging.getLogger(__name__)


class CellType(str, Enum):
    """Declared sample type of a grid.  Storage is always float32."""

    BOOLEAN = "Boolean"
    UINT8 = "UInt8"
    INT16 = "Int16"
    UINT16 = "UInt16"
    FLOAT32 = "Float32"

    @classmethod
    def from_name(cls, name: str) -> "CellType":
        for member in cls:
            if name.casefold() in {member.name.casefold(), member.value.casefold()}:
                return member
        raise ValueError(f"Unknown cell type {name!r}")


_DTYPE_CELL_TYPES: dict[np.dtype, CellType] = {
    np.dtype(np.bool_): CellType.BOOLEAN,
    np.dtype(np.uint8): CellType.UINT8,
    np.dtype(np.int16): CellType.INT16,
    np.dtype(np.uint16): CellType.UINT16,
}


def cell_type_for_dtype(dtype) -> CellType:
    return _DTYPE_CELL_TYPES.get(np.dtype(dtype), CellType.FLOAT32)


def _is_sample_dtype(dtype: np.dtype) -> bool:
    return dtype == np.bool_ or np.issubdtype(dtype, np.integer) or np.issubdtype(dtype, np.floating)


@dataclass(frozen=True, eq=False)
class Grid:
    """
    A single-band raster.  ``data`` holds ``width * height`` samples in
    row-major order; every cell shares the one ``no_data`` sentinel.
    """

    cell_type: CellType
    width: int
    height: int
    data: jnp.ndarray
    no_data: float = 0.0

    def __post_init__(self) -> None:
        if not isinstance(self.cell_type, CellType):
            raise ValueError(f"Unsupported cell type {self.cell_type!r}")
        if int(self.width) != self.width or int(self.height) != self.height:
            raise ValueError(f"Grid dimensions must be integers, got {self.width}x{self.height}")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Grid dimensions must be positive, got {self.width}x{self.height}")

        data = jnp.asarray(self.data, dtype=jnp.float32)
        if data.ndim != 1:
            raise ValueError(f"Grid data must be one-dimensional, got shape {tuple(data.shape)}")
        if data.shape[0] != self.width * self.height:
            raise ValueError(
                f"Grid data has {data.shape[0]} samples, expected {self.width}x{self.height}={self.width * self.height}"
            )
        object.__setattr__(self, "width", int(self.width))
        object.__setattr__(self, "height", int(self.height))
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "no_data", float(self.no_data))

    @classmethod
    def from_rows(cls, rows, cell_type: CellType = CellType.FLOAT32, no_data: float = 0.0) -> "Grid":
        arr = jnp.asarray(rows, dtype=jnp.float32)
        if arr.ndim != 2:
            raise ValueError(f"Grid rows must be two-dimensional, got shape {tuple(arr.shape)}")
        height, width = (int(d) for d in arr.shape)
        return cls(cell_type=cell_type, width=width, height=height, data=arr.reshape(-1), no_data=no_data)

    @classmethod
    def filled(cls, width: int, height: int, value: float, cell_type: CellType = CellType.FLOAT32, no_data: float = 0.0) -> "Grid":
        data = jnp.full((width * height,), value, dtype=jnp.float32)
        return cls(cell_type=cell_type, width=width, height=height, data=data, no_data=no_data)

    def with_data(self, data: jnp.ndarray, cell_type: CellType | None = None) -> "Grid":
        """New grid with this grid's dimensions and no-data value."""
        return Grid(
            cell_type=self.cell_type if cell_type is None else cell_type,
            width=self.width,
            height=self.height,
            data=data,
            no_data=self.no_data,
        )

    @property
    def shape(self) -> tuple[int, int]:
        return (self.height, self.width)

    def cell(self, x: int, y: int) -> float:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Cell ({x}, {y}) is outside a {self.width}x{self.height} grid")
        return float(self.data[y * self.width + x])

    def to_rows(self) -> list[list[float]]:
        return np.asarray(self.data).reshape(self.height, self.width).tolist()

    def same_dimensions(self, other: "Grid") -> bool:
        return self.width == other.width and self.height == other.height

    def same_no_data(self, other: "Grid") -> bool:
        if math.isnan(self.no_data) and math.isnan(other.no_data):
            return True
        return self.no_data == other.no_data

    def structurally_equal(self, other: "Grid") -> bool:
        return (
            self.cell_type is other.cell_type
            and self.same_dimensions(other)
            and self.same_no_data(other)
            and bool(jnp.array_equal(self.data, other.data, equal_nan=True))
        )

    def __repr__(self) -> str:
        return f"Grid(cell_type={self.cell_type.value}, width={self.width}, height={self.height}, no_data={self.no_data:g})"


class RasterSource(Protocol):
    def resolve(self, band: str) -> Grid:
        """Return the grid for ``band`` or raise a ``RasterSourceError``."""
        ...


@dataclass
class MappingRasterSource:
    """Serves grids from an in-memory mapping of band name to grid."""

    grids: Mapping[str, Grid] = field(default_factory=dict)

    def resolve(self, band: str) -> Grid:
        try:
            return self.grids[band]
        except KeyError:
            raise RasterNotFoundError(band) from None


@dataclass
class NpyRasterSource:
    """
    Loads each band from a 2-D ``.npy`` file inside ``directory``.  The file
    name is ``pattern`` formatted with the band name unless ``paths`` names
    the file explicitly.  Cell types come from ``cell_types`` when given,
    otherwise from the stored array's dtype.
    """

    directory: Path
    pattern: str = "{band}.npy"
    cell_types: Mapping[str, CellType] = field(default_factory=dict)
    no_data: float = 0.0
    paths: Mapping[str, Path] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.directory = Path(self.directory)

    def path_for(self, band: str) -> Path:
        explicit = self.paths.get(band)
        if explicit is not None:
            return Path(explicit)
        return self.directory / self.pattern.format(band=band)

    def resolve(self, band: str) -> Grid:
        path = self.path_for(band)
        if not path.is_file():
            raise RasterNotFoundError(band, detail=f"no file at {path}")

        logger.debug("Loading band %s from %s", band, path)
        try:
            arr = np.load(path, allow_pickle=False)
        except (OSError, ValueError, EOFError) as err:
            raise RasterReadError(band, detail=str(err) or type(err).__name__) from err

        if not _is_sample_dtype(arr.dtype):
            raise RasterReadError(band, detail=f"unsupported sample dtype {arr.dtype}")
        if arr.ndim != 2 or 0 in arr.shape:
            raise RasterReadError(band, detail=f"expected a non-empty 2-D array, got shape {arr.shape}")

        cell_type = self.cell_types.get(band, cell_type_for_dtype(arr.dtype))
        return Grid.from_rows(arr, cell_type=cell_type, no_data=self.no_data)
