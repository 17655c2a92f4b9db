from __future__ import annotations

import importlib.util
import math
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


class _CountingSource:
    def __init__(self, grids) -> None:
        self.grids = dict(grids)
        self.calls: list[str] = []

    def resolve(self, band: str):
        from bandcalc.errors import RasterNotFoundError

        self.calls.append(band)
        if band not in self.grids:
            raise RasterNotFoundError(band)
        return self.grids[band]


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for runtime semantics tests")
class ScalarSemanticsTests(unittest.TestCase):
    def test_number_arithmetic(self) -> None:
        from bandcalc import Number, run

        cases = {
            "1 + 2 * 3": 7.0,
            "(1 + 2) * 3": 9.0,
            "10 - 4 - 3": 3.0,
            "7 / 2": 3.5,
            "-5 + 10": 5.0,
            "--5": 5.0,
        }
        for source, expected in cases.items():
            with self.subTest(source=source):
                self.assertEqual(run(source), Number(expected))

    def test_number_comparisons(self) -> None:
        from bandcalc import run
        from bandcalc.values import FALSE, TRUE

        cases = {
            "1 < 2": TRUE,
            "1 > 2": FALSE,
            "1 == 1": TRUE,
            "1 != 1": FALSE,
            "1 + 1 == 2": TRUE,
            "(1 < 2) == true": TRUE,
            "(1 > 2) != false": FALSE,
        }
        for source, expected in cases.items():
            with self.subTest(source=source):
                self.assertIs(run(source), expected)

    def test_scalar_division_by_zero_is_ieee(self) -> None:
        from bandcalc import run

        self.assertEqual(run("1 / 0").value, math.inf)
        self.assertEqual(run("-1 / 0").value, -math.inf)
        self.assertTrue(math.isnan(run("0 / 0").value))

    def test_bang_uses_truthiness(self) -> None:
        from bandcalc import run
        from bandcalc.values import FALSE, TRUE

        self.assertIs(run("!true"), FALSE)
        self.assertIs(run("!false"), TRUE)
        self.assertIs(run("!!true"), TRUE)
        self.assertIs(run("!5"), FALSE)
        self.assertIs(run("!0"), FALSE)

    def test_boolean_equality(self) -> None:
        from bandcalc import run
        from bandcalc.values import FALSE, TRUE

        self.assertIs(run("true != false"), TRUE)
        self.assertIs(run("true == true"), TRUE)
        self.assertIs(run("false == true"), FALSE)

    def test_operator_errors(self) -> None:
        from bandcalc import ErrorKind, run
        from bandcalc.values import Error

        cases = (
            ("true + false", ErrorKind.UNKNOWN_OPERATOR, "unknown operator: BOOLEAN + BOOLEAN"),
            ("true < false", ErrorKind.UNKNOWN_OPERATOR, "unknown operator: BOOLEAN < BOOLEAN"),
            ("-true", ErrorKind.UNKNOWN_OPERATOR, "unknown operator: -BOOLEAN"),
            ("5 + true", ErrorKind.TYPE_MISMATCH, "type mismatch: NUMBER + BOOLEAN"),
            ("5 == true", ErrorKind.TYPE_MISMATCH, "type mismatch: NUMBER == BOOLEAN"),
            ("1 # 2", ErrorKind.UNKNOWN_OPERATOR, "unknown operator: NUMBER # NUMBER"),
        )
        for source, kind, message in cases:
            with self.subTest(source=source):
                out = run(source)
                self.assertIsInstance(out, Error)
                self.assertEqual(out.kind, kind)
                self.assertEqual(out.message, message)
                self.assertEqual(out.inspect(), f"ERROR: {message}")

    def test_raster_type_mismatch_with_boolean(self) -> None:
        from bandcalc import Environment, ErrorKind, Grid, run

        env = Environment(source={"B1": Grid.filled(1, 1, 1.0)})
        out = run("B1 + true", env)
        self.assertEqual(out.kind, ErrorKind.TYPE_MISMATCH)
        self.assertEqual(out.message, "type mismatch: RASTER + BOOLEAN")


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for runtime semantics tests")
class ProgramSemanticsTests(unittest.TestCase):
    def test_empty_program_is_null(self) -> None:
        from bandcalc import NULL, run

        self.assertIs(run(""), NULL)
        self.assertIs(run("   "), NULL)

    def test_program_value_is_last_statement(self) -> None:
        from bandcalc import Number, run

        self.assertEqual(run("1; 2; 3 * 4;"), Number(12.0))

    def test_first_error_stops_the_program(self) -> None:
        from bandcalc import Environment, Grid, run
        from bandcalc.values import Error

        source = _CountingSource({"B1": Grid.filled(1, 1, 1.0)})
        out = run("true + 1; B1;", Environment(source=source))
        self.assertIsInstance(out, Error)
        self.assertEqual(source.calls, [])

    def test_error_in_left_operand_skips_right_operand(self) -> None:
        from bandcalc import Environment, ErrorKind, Grid, run

        source = _CountingSource({"B2": Grid.filled(1, 1, 1.0)})
        out = run("(true + true) * B2", Environment(source=source))
        self.assertEqual(out.kind, ErrorKind.UNKNOWN_OPERATOR)
        self.assertEqual(source.calls, [])

    def test_return_value_is_unwrapped_at_program_level(self) -> None:
        from unittest import mock

        from bandcalc import Environment, Number, evaluator
        from bandcalc.ast import ExpressionStatement, NumberLiteral, Program
        from bandcalc.values import ReturnValue

        returning = ExpressionStatement(NumberLiteral(0.0))
        program = Program(statements=(returning, ExpressionStatement(NumberLiteral(2.0))))
        original = evaluator._evaluate

        def fake_evaluate(node, env):
            if node is returning:
                return ReturnValue(Number(9.0))
            return original(node, env)

        with mock.patch.object(evaluator, "_evaluate", side_effect=fake_evaluate) as patched:
            out = evaluator.evaluate(program, Environment())
        self.assertEqual(out, Number(9.0))
        self.assertEqual([call.args[0] for call in patched.call_args_list], [program, returning])

    def test_runaway_recursion_becomes_an_error_value(self) -> None:
        from unittest import mock

        from bandcalc import ErrorKind, evaluator, run
        from bandcalc.values import Error

        with mock.patch.object(evaluator, "_evaluate", side_effect=RecursionError):
            with self.assertLogs("bandcalc.evaluator", level="WARNING"):
                out = run("1 + 2")
        self.assertIsInstance(out, Error)
        self.assertEqual(out.kind, ErrorKind.SYNTAX)
        self.assertIn("nested too deeply", out.message)

    def test_deeply_nested_sources_are_syntax_errors(self) -> None:
        from bandcalc import ErrorKind, run

        cases = (
            "(" * 3000 + "1" + ")" * 3000 + ";",
            " + ".join(["1"] * 2000) + ";",
            "-" * 3000 + "1;",
            " + ".join(["(1 + 1 + 1 + 1)"] * 500) + ";",
        )
        for source in cases:
            with self.subTest(length=len(source)):
                out = run(source)
                self.assertEqual(out.kind, ErrorKind.SYNTAX)
                self.assertIn("expression nested too deeply", out.message)

    def test_long_but_shallow_programs_still_run(self) -> None:
        from bandcalc import Number, run

        self.assertEqual(run(" + ".join(["1"] * 150) + ";"), Number(150.0))
        self.assertEqual(run("1;" * 3000), Number(1.0))

    def test_block_stops_at_error_without_unwrapping(self) -> None:
        from bandcalc import Environment, evaluate
        from bandcalc.ast import BlockStatement, BooleanLiteral, ExpressionStatement, InfixExpression, NumberLiteral
        from bandcalc.values import Error, Number

        block = BlockStatement(
            statements=(
                ExpressionStatement(NumberLiteral(1.0)),
                ExpressionStatement(InfixExpression("+", BooleanLiteral(True), NumberLiteral(1.0))),
                ExpressionStatement(NumberLiteral(3.0)),
            )
        )
        self.assertIsInstance(evaluate(block, Environment()), Error)
        self.assertEqual(
            evaluate(BlockStatement(statements=(ExpressionStatement(NumberLiteral(4.0)),)), Environment()),
            Number(4.0),
        )

    def test_unknown_node_type_is_a_programming_error(self) -> None:
        from bandcalc import Environment, evaluate

        with self.assertRaises(TypeError):
            evaluate(object(), Environment())


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for runtime semantics tests")
class BandResolutionTests(unittest.TestCase):
    def test_identifier_resolves_through_source(self) -> None:
        from bandcalc import Environment, Grid, Raster, run

        grid = Grid.filled(2, 1, 3.0)
        out = run("B1", Environment(source={"B1": grid}))
        self.assertIsInstance(out, Raster)
        self.assertIs(out.grid, grid)

    def test_missing_band_is_a_data_source_error(self) -> None:
        from bandcalc import Environment, ErrorKind, run

        with self.assertLogs("bandcalc.evaluator", level="WARNING"):
            out = run("B9 + 1", Environment(source={}))
        self.assertEqual(out.kind, ErrorKind.DATA_SOURCE)
        self.assertEqual(out.message, "raster reading operation failed: B9")

    def test_each_band_is_resolved_once_per_run(self) -> None:
        from bandcalc import Environment, Grid, run

        source = _CountingSource(
            {
                "B4": Grid.filled(2, 2, 1.0),
                "B5": Grid.filled(2, 2, 3.0),
            }
        )
        env = Environment(source=source)
        run("(B5 - B4) / (B5 + B4);", env)
        self.assertEqual(sorted(source.calls), ["B4", "B5"])

        run("B5 * 2", env)
        self.assertEqual(source.calls.count("B5"), 2)

    def test_each_evaluate_call_resolves_bands_afresh(self) -> None:
        from bandcalc import Environment, Grid, evaluate
        from bandcalc.ast import Identifier

        source = _CountingSource({"B1": Grid.filled(1, 1, 1.0)})
        env = Environment(source=source)
        self.assertEqual(evaluate(Identifier("B1"), env).grid.to_rows(), [[1.0]])

        source.grids["B1"] = Grid.filled(1, 1, 2.0)
        self.assertEqual(evaluate(Identifier("B1"), env).grid.to_rows(), [[2.0]])
        self.assertEqual(source.calls, ["B1", "B1"])

    def test_syntax_error_never_touches_the_source(self) -> None:
        from bandcalc import Environment, ErrorKind, Grid, run

        source = _CountingSource({"B5": Grid.filled(1, 1, 1.0)})
        out = run("(B5 - ;", Environment(source=source))
        self.assertEqual(out.kind, ErrorKind.SYNTAX)
        self.assertTrue(out.message.startswith("syntax error: "))
        self.assertIn("no prefix parse rule for SEMICOLON", out.message)
        self.assertEqual(source.calls, [])


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for runtime semantics tests")
class ScenarioTests(unittest.TestCase):
    def test_ndvi(self) -> None:
        from bandcalc import CellType, Environment, Grid, Raster, run

        b4 = Grid.from_rows([[0, 10], [20, 40]], cell_type=CellType.FLOAT32, no_data=0)
        b5 = Grid.from_rows([[0, 30], [20, 60]], cell_type=CellType.FLOAT32, no_data=0)
        out = run("(B5 - B4) / (B5 + B4);", Environment(source={"B4": b4, "B5": b5}))
        self.assertIsInstance(out, Raster)
        rows = out.grid.to_rows()
        self.assertTrue(math.isnan(rows[0][0]))
        self.assertAlmostEqual(rows[0][1], 0.5)
        self.assertEqual(rows[1][0], 0.0)
        self.assertAlmostEqual(rows[1][1], 0.2)
        self.assertIs(out.grid.cell_type, CellType.FLOAT32)
        self.assertEqual(out.inspect(), "raster Float32 2x2 nodata=0")

    def test_ndvi_result_is_symmetric_in_sign(self) -> None:
        from bandcalc import CellType, Environment, Grid, run

        b4 = Grid.from_rows([[1, 2, 3]], cell_type=CellType.UINT16)
        b5 = Grid.from_rows([[4, 5, 6]], cell_type=CellType.UINT16)
        env = Environment(source={"B4": b4, "B5": b5})
        forward_grid = run("(B5 - B4) / (B5 + B4)", env).grid
        self.assertIs(forward_grid.cell_type, CellType.FLOAT32)
        self.assertEqual((forward_grid.width, forward_grid.height), (3, 1))
        forward = forward_grid.to_rows()[0]
        backward = run("(B4 - B5) / (B4 + B5)", env).grid.to_rows()[0]
        for f, b in zip(forward, backward):
            self.assertAlmostEqual(f, -b, places=6)

    def test_self_mask_of_float_band_reports_masking(self) -> None:
        from bandcalc import CellType, Environment, ErrorKind, Grid, run

        b5 = Grid.filled(3, 3, 4.0, cell_type=CellType.FLOAT32)
        out = run("B5 # (B5 == 4);", Environment(source={"B5": b5}))
        self.assertEqual(out.kind, ErrorKind.MASKING)

    def test_cloud_mask_with_quality_band(self) -> None:
        from bandcalc import CellType, Environment, Grid, run

        b5 = Grid.from_rows([[100, 200, 300]], cell_type=CellType.UINT16, no_data=0)
        bqa = Grid.from_rows([[16, 0, 48]], cell_type=CellType.UINT16, no_data=1)
        out = run("B5 # BQA == 16;", Environment(source={"B5": b5, "BQA": bqa}))
        self.assertEqual(out.grid.to_rows(), [[0.0, 200.0, 0.0]])


if __name__ == "__main__":
    unittest.main()
