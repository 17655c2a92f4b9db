"""Evaluate a band-math formula against bands stored as .npy files."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from .config import LOG_LEVELS, SETTINGS
from .evaluator import Environment, run
from .raster import CellType, NpyRasterSource
from .values import Error, Raster

logger = logging.getLogger(__name__)


def _parse_band_path(text: str) -> tuple[str, Path]:
    band, sep, path = text.partition("=")
    if not sep or not band or not path:
        raise argparse.ArgumentTypeError(f"expected BAND=PATH, got {text!r}")
    return band, Path(path)


def _parse_cell_type(text: str) -> tuple[str, CellType]:
    band, sep, name = text.partition("=")
    if not sep or not band:
        raise argparse.ArgumentTypeError(f"expected BAND=TYPE, got {text!r}")
    try:
        return band, CellType.from_name(name)
    except ValueError as err:
        raise argparse.ArgumentTypeError(str(err)) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bandcalc", description=__doc__)
    parser.add_argument("expression", help="Formula such as '(B5 - B4) / (B5 + B4);'")
    parser.add_argument(
        "--bands",
        type=Path,
        default=Path("."),
        help="Directory holding one .npy file per band (default: current directory).",
    )
    parser.add_argument(
        "--pattern",
        default="{band}.npy",
        help="File name pattern inside --bands; '{band}' is replaced by the band name.",
    )
    parser.add_argument(
        "--band",
        action="append",
        default=[],
        type=_parse_band_path,
        metavar="BAND=PATH",
        help="Load BAND from PATH instead of the --bands/--pattern location. May be repeated.",
    )
    parser.add_argument(
        "--cell-type",
        action="append",
        default=[],
        type=_parse_cell_type,
        metavar="BAND=TYPE",
        help="Override the cell type inferred from a band's dtype. May be repeated.",
    )
    parser.add_argument("--no-data", type=float, default=0.0, help="No-data value given to every loaded band.")
    parser.add_argument("--output", type=Path, default=None, help="Save a raster result's samples to this .npy file.")
    parser.add_argument(
        "--log-level",
        default=SETTINGS.log_level,
        choices=LOG_LEVELS,
        type=str.upper,
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    source = NpyRasterSource(
        directory=args.bands,
        pattern=args.pattern,
        cell_types=dict(args.cell_type),
        no_data=args.no_data,
        paths=dict(args.band),
    )
    result = run(args.expression, Environment(source=source))
    print(result.inspect())

    if isinstance(result, Error):
        return 1

    if args.output is not None:
        if not isinstance(result, Raster):
            print(f"--output needs a raster result, got {result.type.value}", file=sys.stderr)
            return 1
        rows = np.asarray(result.grid.to_rows(), dtype=np.float32)
        np.save(args.output, rows)
        logger.info("Wrote %dx%d result to %s", result.grid.width, result.grid.height, args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
