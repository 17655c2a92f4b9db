"""Band-math scaling benchmarks over square rasters of increasing side length."""

from __future__ import annotations

import argparse
import json
import platform
import time
from dataclasses import asdict, dataclass
from pathlib import Path

import jax
import jax.numpy as jnp

from bandcalc import CellType, Environment, Grid, run


@dataclass(frozen=True)
class FormulaSpec:
    name: str
    note: str
    source: str
    bands: tuple[str, ...]
    cell_type: CellType


@dataclass(frozen=True)
class ScalingRow:
    side: int
    side_label: str
    cells: int
    repeats: int
    seconds: float


def _block(value: object) -> None:
    grid = getattr(value, "grid", None)
    if grid is not None:
        grid.data.block_until_ready()


def _timeit(source: str, env: Environment, *, repeats: int, warmup: int) -> float:
    for _ in range(warmup):
        _block(run(source, env))
    start = time.perf_counter()
    for _ in range(repeats):
        _block(run(source, env))
    end = time.perf_counter()
    return (end - start) / repeats


def _repeats_for_cells(cells: int, target_cells_per_timing: int = 20_000_000) -> int:
    repeats = target_cells_per_timing // max(cells, 1)
    return max(3, min(100, repeats))


def _build_env(spec: FormulaSpec, side: int) -> Environment:
    count = side * side
    base = jnp.arange(count, dtype=jnp.float32) % 65535.0
    grids = {
        band: Grid(cell_type=spec.cell_type, width=side, height=side, data=(base + offset) % 65535.0)
        for offset, band in enumerate(spec.bands)
    }
    return Environment(source=grids)


def _build_specs() -> list[FormulaSpec]:
    return [
        FormulaSpec(
            name="ndvi",
            note="normalised difference of two bands",
            source="(B5 - B4) / (B5 + B4);",
            bands=("B4", "B5"),
            cell_type=CellType.FLOAT32,
        ),
        FormulaSpec(
            name="scaled_sum",
            note="scalar broadcast over three bands",
            source="B2 * 0.5 + B3 * 0.25 + B4 * 0.25;",
            bands=("B2", "B3", "B4"),
            cell_type=CellType.UINT16,
        ),
        FormulaSpec(
            name="cloud_mask",
            note="bitmask test feeding the mask operator",
            source="B5 # (BQA == 16);",
            bands=("B5", "BQA"),
            cell_type=CellType.UINT16,
        ),
    ]


def _run_scaling(spec: FormulaSpec, sides: list[int]) -> list[ScalingRow]:
    rows: list[ScalingRow] = []
    for side in sides:
        env = _build_env(spec, side)
        cells = side * side
        repeats = _repeats_for_cells(cells)
        sec = _timeit(spec.source, env, repeats=repeats, warmup=2)
        rows.append(
            ScalingRow(
                side=side,
                side_label=f"2^{side.bit_length() - 1}",
                cells=cells,
                repeats=repeats,
                seconds=sec,
            )
        )
    return rows


def _print_rows(title: str, rows: list[ScalingRow]) -> None:
    print(title)
    print("-" * len(title))
    print(f"{'side':>8} {'cells':>12} {'repeats':>8} {'time(ms)':>11} {'growth':>8}")
    prev: float | None = None
    for row in rows:
        growth = "-" if prev is None else f"{row.seconds / prev:7.2f}x"
        print(f"{row.side_label:>8} {row.cells:12d} {row.repeats:8d} {row.seconds * 1e3:11.4f} {growth:>8}")
        prev = row.seconds
    print()


def main() -> None:
    parser = argparse.ArgumentParser(description="Time band-math formulas over growing square rasters.")
    parser.add_argument("--min-exp", type=int, default=6, help="minimum raster side exponent (2^exp)")
    parser.add_argument("--max-exp", type=int, default=11, help="maximum raster side exponent (2^exp)")
    parser.add_argument("--json-out", default="", help="optional path to write machine-readable results")
    args = parser.parse_args()

    if args.min_exp > args.max_exp:
        parser.error("--min-exp cannot be greater than --max-exp")
    sides = [1 << exp for exp in range(args.min_exp, args.max_exp + 1)]

    print(f"bandcalc scaling benchmarks on {jax.default_backend()} ({platform.python_version()})")
    print()

    payload_rows: list[dict[str, object]] = []
    for spec in _build_specs():
        rows = _run_scaling(spec, sides)
        _print_rows(f"{spec.name}: {spec.note}", rows)
        payload_rows.append({"formula": spec.name, "source": spec.source, "rows": [asdict(row) for row in rows]})

    if args.json_out:
        outpath = Path(args.json_out)
        outpath.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "config": {"side_exp_range": [args.min_exp, args.max_exp], "jax": jax.__version__},
            "results": payload_rows,
        }
        outpath.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"Wrote JSON scaling output: {outpath}")


if __name__ == "__main__":
    main()
