from __future__ import annotations

import unittest

from bandcalc.config import DIVISION_IEEE, DIVISION_NODATA, LOG_LEVELS, Settings, load_settings


class SettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        self.assertEqual(load_settings({}), Settings())
        self.assertEqual(Settings().division_policy, DIVISION_IEEE)
        self.assertEqual(Settings().program_cache_max, 256)
        self.assertEqual(Settings().log_level, "WARNING")

    def test_values_are_read_from_the_environment(self) -> None:
        settings = load_settings(
            {
                "BANDCALC_PROGRAM_CACHE_MAX": "32",
                "BANDCALC_DIVISION_POLICY": " NoData ",
                "BANDCALC_LOG_LEVEL": "debug",
            }
        )
        self.assertEqual(settings.program_cache_max, 32)
        self.assertEqual(settings.division_policy, DIVISION_NODATA)
        self.assertEqual(settings.log_level, "DEBUG")

    def test_blank_values_fall_back_to_defaults(self) -> None:
        settings = load_settings({"BANDCALC_PROGRAM_CACHE_MAX": " ", "BANDCALC_DIVISION_POLICY": ""})
        self.assertEqual(settings, Settings())

    def test_cache_size_has_a_floor(self) -> None:
        self.assertEqual(load_settings({"BANDCALC_PROGRAM_CACHE_MAX": "0"}).program_cache_max, 1)

    def test_invalid_values_raise(self) -> None:
        with self.assertRaises(ValueError):
            load_settings({"BANDCALC_PROGRAM_CACHE_MAX": "lots"})
        with self.assertRaises(ValueError):
            load_settings({"BANDCALC_DIVISION_POLICY": "saturate"})
        with self.assertRaises(ValueError):
            load_settings({"BANDCALC_LOG_LEVEL": "verbose"})

    def test_log_levels_match_logging_names(self) -> None:
        import logging

        for level in LOG_LEVELS:
            with self.subTest(level=level):
                self.assertEqual(load_settings({"BANDCALC_LOG_LEVEL": level.lower()}).log_level, level)
                self.assertIsInstance(logging.getLevelName(level), int)


if __name__ == "__main__":
    unittest.main()
