"""bandcalc public API."""

from .errors import (
    BandCalcDataSourceError,
    BandCalcError,
    BandCalcMaskError,
    BandCalcParseError,
    BandCalcRuntimeError,
    BandCalcShapeError,
    BandCalcTypeError,
    ErrorKind,
    RasterNotFoundError,
    RasterReadError,
    RasterSourceError,
)
from .evaluator import Environment, apply_scalar_to_grid, evaluate, evaluate_with_errors, run
from .lexer import Lexer, Token, TokenKind, tokenize
from .parser import ParseError, Parser, ParseResult, parse_program
from .raster import CellType, Grid, MappingRasterSource, NpyRasterSource, RasterSource
from .values import NULL, Boolean, Error, Null, Number, Object, ObjectType, Raster, ReturnValue

__all__ = [
    "tokenize",
    "Lexer",
    "Token",
    "TokenKind",
    "parse_program",
    "Parser",
    "ParseResult",
    "ParseError",
    "evaluate",
    "evaluate_with_errors",
    "run",
    "apply_scalar_to_grid",
    "Environment",
    "CellType",
    "Grid",
    "RasterSource",
    "MappingRasterSource",
    "NpyRasterSource",
    "Object",
    "ObjectType",
    "Number",
    "Boolean",
    "Raster",
    "Null",
    "NULL",
    "Error",
    "ReturnValue",
    "ErrorKind",
    "BandCalcError",
    "BandCalcParseError",
    "BandCalcRuntimeError",
    "BandCalcTypeError",
    "BandCalcShapeError",
    "BandCalcMaskError",
    "BandCalcDataSourceError",
    "RasterSourceError",
    "RasterNotFoundError",
    "RasterReadError",
]
