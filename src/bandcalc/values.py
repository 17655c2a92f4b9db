"""Runtime value model for the band-math evaluator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .errors import ErrorKind
from .raster import Grid


class ObjectType(str, Enum):
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"
    RASTER = "RASTER"
    NULL = "NULL"
    ERROR = "ERROR"
    RETURN_VALUE = "RETURN_VALUE"


@dataclass(frozen=True)
class Number:
    value: float

    @property
    def type(self) -> ObjectType:
        return ObjectType.NUMBER

    def inspect(self) -> str:
        return f"{self.value:f}"


@dataclass(frozen=True)
class Boolean:
    value: bool

    @property
    def type(self) -> ObjectType:
        return ObjectType.BOOLEAN

    def inspect(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True, eq=False)
class Raster:
    grid: Grid

    @property
    def type(self) -> ObjectType:
        return ObjectType.RASTER

    def inspect(self) -> str:
        grid = self.grid
        return f"raster {grid.cell_type.value} {grid.width}x{grid.height} nodata={grid.no_data:g}"


@dataclass(frozen=True)
class Null:
    @property
    def type(self) -> ObjectType:
        return ObjectType.NULL

    def inspect(self) -> str:
        return "null"


@dataclass(frozen=True)
class Error:
    kind: ErrorKind
    message: str

    @property
    def type(self) -> ObjectType:
        return ObjectType.ERROR

    def inspect(self) -> str:
        return f"ERROR: {self.message}"


@dataclass(frozen=True)
class ReturnValue:
    value: "Object"

    @property
    def type(self) -> ObjectType:
        return ObjectType.RETURN_VALUE

    def inspect(self) -> str:
        return self.value.inspect()


Object = Union[Number, Boolean, Raster, Null, Error, ReturnValue]

TRUE = Boolean(True)
FALSE = Boolean(False)
NULL = Null()


def native_bool(value: bool) -> Boolean:
    return TRUE if value else FALSE


def is_error(obj: Object | None) -> bool:
    return isinstance(obj, Error)


def is_truthy(obj: Object) -> bool:
    if isinstance(obj, Null):
        return False
    if isinstance(obj, Boolean):
        return obj.value
    return True
