"""
tests/test_business.py
======================
Unit tests for voter_uplift/business.py:
  - Cost per vote formula and its error cases
  - Campaign simulation on hand-built ranked tables
  - Targeting depth sweep
"""
import math
import unittest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tests.conftest import make_ranked_table
from voter_uplift.business import calculate_cpv, simulate_campaign, targeting_depth_sensitivity
from voter_uplift.errors import EmptyHoldout, InvalidEffect, InvalidParameter, SchemaMismatch


class TestCalculateCPV(unittest.TestCase):

    def test_known_value(self):
        """100,000 flyers at $2 with a 5.8-point effect cost about $34.48 per vote."""
        self.assertAlmostEqual(calculate_cpv(100000, 0.058, 2.0), 34.4827586, places=5)

    def test_independent_of_sends(self):
        self.assertAlmostEqual(calculate_cpv(10, 0.25, 2.0), calculate_cpv(1_000_000, 0.25, 2.0))

    def test_negative_effect_gives_negative_cpv(self):
        self.assertAlmostEqual(calculate_cpv(100, -0.5, 2.0), -4.0)

    def test_zero_effect_raises(self):
        with self.assertRaises(InvalidEffect):
            calculate_cpv(100000, 0.0, 2.0)

    def test_zero_effect_is_zero_division(self):
        with self.assertRaises(ZeroDivisionError):
            calculate_cpv(100000, 0, 2.0)

    def test_nan_effect_raises(self):
        with self.assertRaises(InvalidEffect):
            calculate_cpv(100, float("nan"), 2.0)

    def test_non_positive_sends_raise(self):
        for sends in (0, -5):
            with self.assertRaises(InvalidParameter):
                calculate_cpv(sends, 0.1, 2.0)

    def test_non_integer_sends_raise(self):
        with self.assertRaises(InvalidParameter):
            calculate_cpv(10.5, 0.1, 2.0)

    def test_non_positive_unit_cost_raises(self):
        for cost in (0, -1.0):
            with self.assertRaises(InvalidParameter):
                calculate_cpv(100, 0.1, cost)


class TestSimulateCampaign(unittest.TestCase):

    def test_targeted_rate_uses_top_rows(self):
        ranked = make_ranked_table([1, 0, 1, 0])
        m = simulate_campaign(ranked, 0.5, 1000, 2.0, baseline_rate=0.25)
        self.assertEqual(m.n_targeted, 2)
        self.assertAlmostEqual(m.targeted_response_rate, 0.5)
        self.assertAlmostEqual(m.uplift_diff, 0.25)

    def test_end_to_end_example(self):
        """Targeted 0.66 vs baseline 0.34 on 100,000 flyers at $2."""
        responses = [1] * 33 + [0] * 17 + [0] * 50
        ranked = make_ranked_table(responses)
        m = simulate_campaign(ranked, 0.5, 100000, 2.0, baseline_rate=0.34)

        self.assertAlmostEqual(m.targeted_response_rate, 0.66)
        self.assertAlmostEqual(m.uplift_diff, 0.32)
        self.assertAlmostEqual(m.added_votes, 32000.0, places=4)
        self.assertAlmostEqual(m.targeted_cpv, 6.25, places=6)
        self.assertAlmostEqual(m.baseline_cpv, 2.0 / 0.34, places=6)

    def test_baseline_effect_prices_baseline(self):
        ranked = make_ranked_table([1, 1, 0, 0])
        m = simulate_campaign(ranked, 0.5, 100000, 2.0, baseline_rate=0.5, baseline_effect=0.058)
        self.assertAlmostEqual(m.baseline_cpv, calculate_cpv(100000, 0.058, 2.0))

    def test_cost_decrease_sign_matches_cpv_difference(self):
        ranked = make_ranked_table([1, 1, 1, 0, 0, 0, 0, 0, 0, 0])
        for baseline_rate, effect in [(0.1, 0.05), (0.2, 0.5), (0.6, 0.3), (0.9, -0.1)]:
            m = simulate_campaign(ranked, 0.3, 5000, 2.0, baseline_rate, baseline_effect=effect)
            expected_sign = np.sign(m.baseline_cpv - m.targeted_cpv)
            self.assertEqual(np.sign(m.cost_decrease_pct), expected_sign)

    def test_negative_uplift_diff_still_returns(self):
        ranked = make_ranked_table([0, 0, 1, 1])
        m = simulate_campaign(ranked, 0.5, 1000, 2.0, baseline_rate=0.4)
        self.assertLess(m.uplift_diff, 0)
        self.assertLess(m.targeted_cpv, 0)
        self.assertLess(m.added_votes, 0)

    def test_zero_uplift_diff_gives_nan_cpv(self):
        ranked = make_ranked_table([1, 0, 1, 0])
        m = simulate_campaign(ranked, 0.5, 1000, 2.0, baseline_rate=0.5)
        self.assertTrue(math.isnan(m.targeted_cpv))
        self.assertTrue(math.isnan(m.cost_decrease_pct))
        self.assertEqual(m.added_votes, 0.0)
        self.assertEqual(m.cost_savings, 0.0)

    def test_ceil_selection(self):
        self.assertEqual(
            simulate_campaign(make_ranked_table([1] * 30), 0.1, 100, 2.0, 0.5).n_targeted, 3
        )
        self.assertEqual(
            simulate_campaign(make_ranked_table([1] * 25), 0.1, 100, 2.0, 0.5).n_targeted, 3
        )
        self.assertEqual(
            simulate_campaign(make_ranked_table([1] * 5), 0.1, 100, 2.0, 0.5).n_targeted, 1
        )

    def test_order_is_used_as_given(self):
        """The simulator must not re-sort by uplift."""
        ranked = make_ranked_table([0, 1], uplift=[0.1, 0.9])
        m = simulate_campaign(ranked, 0.5, 100, 2.0, baseline_rate=0.5)
        self.assertAlmostEqual(m.targeted_response_rate, 0.0)

    def test_invalid_fraction_raises(self):
        ranked = make_ranked_table([1, 0])
        for frac in (0.0, -0.1, 1.5):
            with self.assertRaises(InvalidParameter):
                simulate_campaign(ranked, frac, 100, 2.0, 0.5)

    def test_invalid_campaign_inputs_raise(self):
        ranked = make_ranked_table([1, 0])
        with self.assertRaises(InvalidParameter):
            simulate_campaign(ranked, 0.5, 0, 2.0, 0.5)
        with self.assertRaises(InvalidParameter):
            simulate_campaign(ranked, 0.5, 100, 0.0, 0.5)
        with self.assertRaises(InvalidParameter):
            simulate_campaign(ranked, 0.5, 100, 2.0, 1.5)

    def test_zero_baseline_rate_needs_baseline_effect(self):
        ranked = make_ranked_table([1, 0])
        with self.assertRaises(InvalidParameter) as ctx:
            simulate_campaign(ranked, 0.5, 100, 2.0, baseline_rate=0.0)
        self.assertNotIsInstance(ctx.exception, InvalidEffect)

        m = simulate_campaign(ranked, 0.5, 100, 2.0, baseline_rate=0.0, baseline_effect=0.05)
        self.assertAlmostEqual(m.baseline_cpv, 2.0 / 0.05)
        self.assertEqual(m.uplift_diff, 1.0)

    def test_empty_table_raises(self):
        with self.assertRaises(EmptyHoldout):
            simulate_campaign(make_ranked_table([]), 0.1, 100, 2.0, 0.5)

    def test_missing_response_column_raises(self):
        ranked = make_ranked_table([1, 0]).drop(columns=["response_indicator"])
        with self.assertRaises(SchemaMismatch):
            simulate_campaign(ranked, 0.5, 100, 2.0, 0.5)


class TestTargetingDepthSensitivity(unittest.TestCase):

    def test_default_sweep(self):
        ranked = make_ranked_table([1, 1, 1, 0, 1, 0, 0, 1, 0, 0] * 3)
        sweep = targeting_depth_sensitivity(ranked, 10000, 2.0, baseline_rate=0.2)
        self.assertEqual(len(sweep), 10)
        self.assertTrue(sweep["n_targeted"].is_monotonic_increasing)
        self.assertEqual(int(sweep["n_targeted"].iloc[-1]), len(ranked))
        self.assertIn("decile_fraction", sweep.columns)

    def test_full_depth_rate_equals_table_rate(self):
        responses = [1, 0, 0, 1, 1, 0, 0, 0]
        ranked = make_ranked_table(responses)
        sweep = targeting_depth_sensitivity(ranked, 100, 2.0, 0.1, fractions=[1.0])
        self.assertAlmostEqual(sweep["targeted_response_rate"].iloc[0], np.mean(responses))


if __name__ == "__main__":
    unittest.main()
