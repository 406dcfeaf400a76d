import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from tools import MathTools, TimeFormatter, WeightConverter


class MathToolsTestCase(unittest.TestCase):
    def test_clamp(self) -> None:
        self.assertEqual(MathTools.clamp(5, 0, 10), 5)
        self.assertEqual(MathTools.clamp(-1, 0, 10), 0)
        self.assertEqual(MathTools.clamp(11, 0, 10), 10)
        with self.assertRaises(ValueError):
            MathTools.clamp(1, 2, 1)

    def test_epley_1rm(self) -> None:
        self.assertAlmostEqual(MathTools.epley_1rm(100, 5), 100 * (1 + 0.0333 * 5))
        self.assertAlmostEqual(MathTools.epley_1rm(100, 10), 100 * (1 + 0.0333 * 8))
        with self.assertRaises(ValueError):
            MathTools.epley_1rm(100, -1)

    def test_volume(self) -> None:
        sets = [(10, 100.0), (5, 150.0)]
        self.assertEqual(MathTools.volume(sets), 10 * 100.0 + 5 * 150.0)
        self.assertEqual(MathTools.volume([]), 0.0)

    def test_leading_numbers(self) -> None:
        self.assertEqual(MathTools.leading_int(" 12kg"), 12)
        self.assertEqual(MathTools.leading_int("-4"), -4)
        self.assertIsNone(MathTools.leading_int("kg12"))
        self.assertEqual(MathTools.leading_float("42.5 kg"), 42.5)
        self.assertEqual(MathTools.leading_float(".5"), 0.5)
        self.assertIsNone(MathTools.leading_float("1e999"))
        self.assertIsNone(MathTools.leading_float("abc"))

    def test_dates(self) -> None:
        today = datetime.date(2024, 1, 31)
        self.assertEqual(MathTools.add_months(today), datetime.date(2024, 2, 29))
        self.assertEqual(MathTools.add_months(today, 11), datetime.date(2024, 12, 31))
        self.assertEqual(MathTools.add_months(today, 12), datetime.date(2025, 1, 31))
        self.assertEqual(MathTools.days_until(datetime.date(2024, 2, 3), today), 3)
        self.assertEqual(MathTools.days_until(datetime.date(2024, 1, 30), today), -1)


class FormatterTestCase(unittest.TestCase):
    def test_clock(self) -> None:
        self.assertEqual(TimeFormatter.clock(0), "0:00")
        self.assertEqual(TimeFormatter.clock(75), "1:15")
        self.assertEqual(TimeFormatter.clock(3600), "60:00")
        self.assertEqual(TimeFormatter.minutes(179), 2)

    def test_weight_conversion(self) -> None:
        self.assertEqual(WeightConverter.kg_to_lb(100), 220.46)
        self.assertEqual(WeightConverter.lb_to_kg(220.46), 100.0)


if __name__ == "__main__":
    unittest.main()
