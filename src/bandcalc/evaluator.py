"""Tree-walking evaluator for band-math programs on top of JAX."""

from __future__ import annotations

import logging
import math
import operator
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, Final

import jax.numpy as jnp

from .ast import BlockStatement, BooleanLiteral, ExpressionStatement, Identifier, InfixExpression, Node, NumberLiteral, PrefixExpression, Program
from .config import DIVISION_IEEE, DIVISION_NODATA, DIVISION_POLICIES, SETTINGS
from .errors import BandCalcParseError, ErrorKind, RasterSourceError, classify_error
from .parser import ParseResult, parse_program
from .raster import CellType, Grid, MappingRasterSource, RasterSource
from .values import NULL, Boolean, Error, Null, Number, Object, ObjectType, Raster, ReturnValue, is_error, is_truthy, native_bool

logger = logging.getLogger(__name__)


@dataclass
class Environment:
    """
    Evaluation handle.  Carries the raster source and memoises resolved bands
    for the duration of one program walk, so each distinct band is read once.
    """

    source: RasterSource | Mapping[str, Grid] = field(default_factory=MappingRasterSource)
    division_policy: str = SETTINGS.division_policy
    _bands: dict[str, Grid] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if isinstance(self.source, Mapping):
            self.source = MappingRasterSource(dict(self.source))
        if self.division_policy not in DIVISION_POLICIES:
            raise ValueError(f"Unknown division policy {self.division_policy!r}")

    def begin_walk(self) -> None:
        self._bands.clear()

    def resolve_band(self, band: str) -> Grid:
        grid = self._bands.get(band)
        if grid is None:
            logger.debug("Resolving band %s", band)
            grid = self.source.resolve(band)
            self._bands[band] = grid
        return grid


_PROGRAM_CACHE_MAX: Final[int] = SETTINGS.program_cache_max


@lru_cache(maxsize=_PROGRAM_CACHE_MAX)
def _parse_program_cached(source: str) -> ParseResult:
    return parse_program(source)


_NUMBER_ARITHMETIC: Final[dict[str, Callable[[float, float], float]]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
}

_NUMBER_COMPARISONS: Final[dict[str, Callable[[float, float], bool]]] = {
    "<": operator.lt,
    ">": operator.gt,
    "==": operator.eq,
    "!=": operator.ne,
}

_GRID_ARITHMETIC: Final[dict[str, Callable[[jnp.ndarray, jnp.ndarray], jnp.ndarray]]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}

# Cell types whose samples can be reinterpreted as fixed-width integers for
# bitmask tests.  Signed and unsigned 16-bit share the same low 16 bits under
# two's complement, so both are tested in the unsigned domain.
_BITMASK_WIDTHS: Final[dict[CellType, int]] = {
    CellType.UINT16: 16,
    CellType.INT16: 16,
}


def _error(kind: ErrorKind, message: str) -> Error:
    return Error(kind=kind, message=message)


def _unknown_operator(left: ObjectType, op: str, right: ObjectType) -> Error:
    return _error(ErrorKind.UNKNOWN_OPERATOR, f"unknown operator: {left.value} {op} {right.value}")


def _ieee_divide(a: float, b: float) -> float:
    if b == 0.0:
        if a == 0.0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _eval_number_infix(op: str, left: float, right: float) -> Object:
    if op == "/":
        return Number(_ieee_divide(left, right))
    arith = _NUMBER_ARITHMETIC.get(op)
    if arith is not None:
        return Number(float(arith(left, right)))
    compare = _NUMBER_COMPARISONS.get(op)
    if compare is not None:
        return native_bool(compare(left, right))
    return _unknown_operator(ObjectType.NUMBER, op, ObjectType.NUMBER)


def _reinterpret_cells(data: jnp.ndarray, bits: int) -> jnp.ndarray:
    limit = float(2**30)
    ints = jnp.clip(jnp.trunc(jnp.nan_to_num(data, nan=0.0)), -limit, limit).astype(jnp.int32)
    return jnp.bitwise_and(ints, (1 << bits) - 1)


def bitmask_test(grid: Grid, scalar: float) -> Object:
    """Cells become 1.0 where the integer cell value shares a set bit with ``scalar``."""
    bits = _BITMASK_WIDTHS.get(grid.cell_type)
    if bits is None:
        return _error(ErrorKind.MASKING, f"masking not implemented for cell type {grid.cell_type.value}")
    if not math.isfinite(scalar):
        return _error(ErrorKind.MASKING, f"mask value must be finite, got {scalar}")

    mask = int(scalar) & ((1 << bits) - 1)
    hits = jnp.bitwise_and(_reinterpret_cells(grid.data, bits), mask) != 0
    return Raster(grid.with_data(hits.astype(jnp.float32), cell_type=CellType.BOOLEAN))


def _result_cell_type(op: str, grid: Grid) -> CellType:
    # Quotients are fractional whatever the operand type.
    if op == "/":
        return CellType.FLOAT32
    return grid.cell_type


def apply_scalar_to_grid(
    op: str,
    grid: Grid,
    scalar: float,
    *,
    scalar_on_left: bool = False,
    division_policy: str = DIVISION_IEEE,
) -> Object:
    """Broadcast ``scalar`` over ``grid``; operand order follows ``scalar_on_left``."""
    if op == "==":
        return bitmask_test(grid, scalar)

    arith = _GRID_ARITHMETIC.get(op)
    if arith is None:
        if scalar_on_left:
            return _unknown_operator(ObjectType.NUMBER, op, ObjectType.RASTER)
        return _unknown_operator(ObjectType.RASTER, op, ObjectType.NUMBER)

    value = jnp.float32(scalar)
    if scalar_on_left:
        data = arith(value, grid.data)
        divisor = grid.data
    else:
        data = arith(grid.data, value)
        divisor = jnp.broadcast_to(value, grid.data.shape)

    if op == "/" and division_policy == DIVISION_NODATA:
        data = jnp.where(divisor == 0, grid.no_data, data)
    return Raster(grid.with_data(data, cell_type=_result_cell_type(op, grid)))


def mask_grid(left: Grid, right: Grid) -> Object:
    """Replace cells of ``left`` with its no-data value wherever ``right`` is 1.0."""
    if not left.same_dimensions(right):
        return _error(
            ErrorKind.MASKING,
            f"mask dimensions differ: {left.width}x{left.height} # {right.width}x{right.height}",
        )
    if right.cell_type is not CellType.BOOLEAN:
        return _error(ErrorKind.MASKING, f"mask operand must be {CellType.BOOLEAN.value}, got {right.cell_type.value}")

    data = jnp.where(right.data == 1.0, left.no_data, left.data)
    return Raster(left.with_data(data))


def _eval_raster_infix(op: str, left: Grid, right: Grid, *, division_policy: str) -> Object:
    if op == "#":
        return mask_grid(left, right)

    arith = _GRID_ARITHMETIC.get(op)
    if arith is None:
        return _unknown_operator(ObjectType.RASTER, op, ObjectType.RASTER)

    if not left.same_dimensions(right):
        return _error(
            ErrorKind.DIMENSION_MISMATCH,
            f"dimension mismatch: {left.width}x{left.height} {op} {right.width}x{right.height}",
        )
    if left.cell_type is not right.cell_type:
        return _error(
            ErrorKind.COMPATIBILITY,
            f"incompatible cell types: {left.cell_type.value} {op} {right.cell_type.value}",
        )
    if not left.same_no_data(right):
        return _error(
            ErrorKind.COMPATIBILITY,
            f"incompatible no-data values: {left.no_data:g} {op} {right.no_data:g}",
        )

    data = arith(left.data, right.data)
    if op == "/" and division_policy == DIVISION_NODATA:
        data = jnp.where(right.data == 0, left.no_data, data)
    return Raster(left.with_data(data, cell_type=_result_cell_type(op, left)))


def eval_infix(op: str, left: Object, right: Object, *, division_policy: str = DIVISION_IEEE) -> Object:
    if isinstance(left, Number) and isinstance(right, Number):
        return _eval_number_infix(op, left.value, right.value)
    if isinstance(left, Raster) and isinstance(right, Number):
        return apply_scalar_to_grid(op, left.grid, right.value, division_policy=division_policy)
    if isinstance(left, Number) and isinstance(right, Raster):
        return apply_scalar_to_grid(op, right.grid, left.value, scalar_on_left=True, division_policy=division_policy)
    if isinstance(left, Raster) and isinstance(right, Raster):
        return _eval_raster_infix(op, left.grid, right.grid, division_policy=division_policy)

    if left.type is not right.type:
        return _error(ErrorKind.TYPE_MISMATCH, f"type mismatch: {left.type.value} {op} {right.type.value}")
    if op == "==":
        return native_bool(left == right)
    if op == "!=":
        return native_bool(left != right)
    return _unknown_operator(left.type, op, right.type)


def eval_prefix(op: str, right: Object) -> Object:
    if op == "!":
        return native_bool(not is_truthy(right))
    if op == "-":
        if isinstance(right, Number):
            return Number(-right.value)
        return _error(ErrorKind.UNKNOWN_OPERATOR, f"unknown operator: -{right.type.value}")
    return _error(ErrorKind.UNKNOWN_OPERATOR, f"unknown operator: {op}{right.type.value}")


def _eval_identifier(node: Identifier, env: Environment) -> Object:
    try:
        grid = env.resolve_band(node.value)
    except RasterSourceError as err:
        logger.warning("Raster reading operation failed for %s: %s", node.value, err)
        return _error(ErrorKind.DATA_SOURCE, f"raster reading operation failed: {node.value}")
    return Raster(grid)


def _eval_program(program: Program, env: Environment) -> Object:
    result: Object = NULL
    for statement in program.statements:
        result = _evaluate(statement, env)
        if isinstance(result, ReturnValue):
            return result.value
        if isinstance(result, Error):
            logger.debug("Program stopped at %s: %s", statement, result.message)
            return result
    return result


def _eval_block(block: BlockStatement, env: Environment) -> Object:
    result: Object = NULL
    for statement in block.statements:
        result = _evaluate(statement, env)
        if isinstance(result, (ReturnValue, Error)):
            return result
    return result


def _evaluate(node: Node, env: Environment) -> Object:
    if isinstance(node, Program):
        return _eval_program(node, env)

    if isinstance(node, BlockStatement):
        return _eval_block(node, env)

    if isinstance(node, ExpressionStatement):
        return _evaluate(node.expression, env)

    if isinstance(node, NumberLiteral):
        return Number(float(node.value))

    if isinstance(node, BooleanLiteral):
        return native_bool(node.value)

    if isinstance(node, PrefixExpression):
        right = _evaluate(node.right, env)
        if is_error(right):
            return right
        return eval_prefix(node.op, right)

    if isinstance(node, InfixExpression):
        left = _evaluate(node.left, env)
        if is_error(left):
            return left
        right = _evaluate(node.right, env)
        if is_error(right):
            return right
        return eval_infix(node.op, left, right, division_policy=env.division_policy)

    if isinstance(node, Identifier):
        return _eval_identifier(node, env)

    raise TypeError(f"Cannot evaluate node of type {type(node).__name__}")


def evaluate(node: Node, env: Environment) -> Object:
    """
    Evaluate an AST node.  Failures come back as ``Error`` values.  Each call
    is one walk: bands are resolved afresh and then reused within the call.
    """
    env.begin_walk()
    try:
        return _evaluate(node, env)
    except RecursionError:
        logger.warning("Expression too deep to evaluate")
        return _error(ErrorKind.SYNTAX, "expression nested too deeply to evaluate")


def run(source: str, env: Environment | None = None) -> Object:
    """Parse and evaluate ``source``.  Syntax errors come back as one SYNTAX ``Error``."""
    parsed = _parse_program_cached(source)
    if not parsed.ok:
        logger.debug("Not evaluating %r: %d syntax error(s)", source, len(parsed.errors))
        detail = "; ".join(str(err) for err in parsed.errors)
        return _error(ErrorKind.SYNTAX, f"syntax error: {detail}")
    return evaluate(parsed.program, Environment() if env is None else env)


def evaluate_with_errors(source: str, env: Environment | None = None) -> Number | Boolean | Raster | Null:
    """Like ``run`` but raises the matching ``BandCalcError`` instead of returning ``Error``."""
    parsed = _parse_program_cached(source)
    if not parsed.ok:
        raise BandCalcParseError.from_parse_errors(parsed.errors)
    result = evaluate(parsed.program, Environment() if env is None else env)
    if isinstance(result, Error):
        raise classify_error(result)
    return result
