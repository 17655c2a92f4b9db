"""Error kinds carried by runtime Error values, and the boundary exception types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .parser import ParseError
    from .values import Error


class ErrorKind(str, Enum):
    SYNTAX = "syntax"
    UNKNOWN_OPERATOR = "unknown_operator"
    TYPE_MISMATCH = "type_mismatch"
    DIMENSION_MISMATCH = "dimension_mismatch"
    COMPATIBILITY = "compatibility"
    MASKING = "masking"
    DATA_SOURCE = "data_source"


class BandCalcError(Exception):
    """Base class for structured bandcalc errors."""


class RasterSourceError(BandCalcError):
    """A raster source could not produce a grid for a band."""

    def __init__(self, band: str, detail: str | None = None) -> None:
        self.band = band
        self.detail = detail
        message = f"band {band!r}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class RasterNotFoundError(RasterSourceError):
    """The source has no band by that name."""


class RasterReadError(RasterSourceError):
    """The band exists but could not be decoded."""


@dataclass(frozen=True)
class BandCalcParseError(BandCalcError):
    """All syntax errors found in one source text."""

    errors: tuple["ParseError", ...]

    @classmethod
    def from_parse_errors(cls, errors) -> "BandCalcParseError":
        return cls(errors=tuple(errors))

    def __str__(self) -> str:
        return "; ".join(str(err) for err in self.errors)


class BandCalcRuntimeError(BandCalcError):
    """Generic evaluation failure after a successful parse."""

    kind: ErrorKind | None = None


class BandCalcTypeError(BandCalcRuntimeError):
    """Operator not defined for the operand types."""


class BandCalcShapeError(BandCalcRuntimeError):
    """Raster operands differ in dimensions, cell type or no-data value."""


class BandCalcMaskError(BandCalcRuntimeError):
    """Masking preconditions were not met."""


class BandCalcDataSourceError(BandCalcRuntimeError):
    """A band could not be resolved."""


_KIND_EXCEPTIONS: dict[ErrorKind, type[BandCalcRuntimeError]] = {
    ErrorKind.UNKNOWN_OPERATOR: BandCalcTypeError,
    ErrorKind.TYPE_MISMATCH: BandCalcTypeError,
    ErrorKind.DIMENSION_MISMATCH: BandCalcShapeError,
    ErrorKind.COMPATIBILITY: BandCalcShapeError,
    ErrorKind.MASKING: BandCalcMaskError,
    ErrorKind.DATA_SOURCE: BandCalcDataSourceError,
}


def classify_error(error: "Error") -> BandCalcRuntimeError:
    """Exception matching the kind of a runtime Error value."""
    exc = _KIND_EXCEPTIONS.get(error.kind, BandCalcRuntimeError)(error.message)
    exc.kind = error.kind
    return exc
