"""
tests/test_experiment.py
========================
Unit tests for voter_uplift/experiment.py:
  - Group response rates and their difference
  - Permutation p-value behaviour
  - Empty-group and parameter errors
"""
import unittest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tests.conftest import make_experiment_df, make_selected_df
from voter_uplift.experiment import (
    analyze_experiment, response_rates_by_group, treated_baseline_rate,
)
from voter_uplift.errors import EmptyGroup, InvalidParameter, SchemaMismatch


class TestAnalyzeExperiment(unittest.TestCase):

    def test_rates_and_difference(self):
        df = make_experiment_df([1, 1, 1, 0], [1, 0, 0, 0])
        s = analyze_experiment(df, n_resamples=500, seed=1)
        self.assertEqual(s.n_treated, 4)
        self.assertEqual(s.n_control, 4)
        self.assertAlmostEqual(s.treated_rate, 0.75)
        self.assertAlmostEqual(s.control_rate, 0.25)
        self.assertAlmostEqual(s.rate_difference, 0.5)
        self.assertGreaterEqual(s.p_value, 0.0)
        self.assertLessEqual(s.p_value, 1.0)

    def test_strong_effect_has_small_p_value(self):
        df = make_experiment_df([1] * 80 + [0] * 20, [1] * 20 + [0] * 80)
        s = analyze_experiment(df, n_resamples=2000, seed=7)
        self.assertLess(s.p_value, 0.01)

    def test_no_effect_has_large_p_value(self):
        df = make_experiment_df([1, 0] * 50, [0, 1] * 50)
        s = analyze_experiment(df, n_resamples=2000, seed=7)
        self.assertAlmostEqual(s.rate_difference, 0.0)
        self.assertGreater(s.p_value, 0.5)

    def test_same_seed_same_p_value(self):
        df = make_selected_df(n_voters=300, seed=5)
        a = analyze_experiment(df, n_resamples=1000, seed=420)
        b = analyze_experiment(df, n_resamples=1000, seed=420)
        self.assertEqual(a.p_value, b.p_value)

    def test_summary_as_dict(self):
        df = make_experiment_df([1, 0], [0, 0])
        d = analyze_experiment(df, n_resamples=100, seed=0).as_dict()
        for key in ("n_treated", "n_control", "treated_rate", "control_rate",
                    "rate_difference", "p_value", "n_resamples"):
            self.assertIn(key, d)

    def test_empty_treatment_group_raises(self):
        df = make_experiment_df([], [1, 0, 1])
        with self.assertRaises(EmptyGroup):
            analyze_experiment(df, n_resamples=100)

    def test_empty_control_group_raises(self):
        df = make_experiment_df([1, 0, 1], [])
        with self.assertRaises(EmptyGroup):
            analyze_experiment(df, n_resamples=100)

    def test_invalid_resamples_raises(self):
        df = make_experiment_df([1, 0], [0, 1])
        with self.assertRaises(InvalidParameter):
            analyze_experiment(df, n_resamples=0)

    def test_missing_indicator_raises(self):
        df = make_experiment_df([1, 0], [0, 1]).drop(columns=["response_indicator"])
        with self.assertRaises(SchemaMismatch):
            analyze_experiment(df, n_resamples=100)


class TestGroupHelpers(unittest.TestCase):

    def test_response_rates_by_group(self):
        df = make_experiment_df([1, 1, 0], [0, 0, 0, 1])
        table = response_rates_by_group(df)
        self.assertEqual(list(table.index), ["control", "treatment"])
        self.assertEqual(int(table.loc["treatment", "n"]), 3)
        self.assertEqual(int(table.loc["control", "responders"]), 1)
        self.assertAlmostEqual(table.loc["treatment", "response_rate"], 2 / 3)

    def test_treated_baseline_rate(self):
        df = make_experiment_df([1, 0, 0, 0], [1, 1])
        self.assertAlmostEqual(treated_baseline_rate(df), 0.25)

    def test_treated_baseline_rate_without_treated_raises(self):
        df = make_experiment_df([], [1, 1])
        with self.assertRaises(EmptyGroup):
            treated_baseline_rate(df)


if __name__ == "__main__":
    unittest.main()
