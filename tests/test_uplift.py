"""
tests/test_uplift.py
====================
Unit tests for voter_uplift/uplift.py:
  - Counterfactual frames handed to the classifier
  - Ranked table shape, filtering and stable ordering
  - Error propagation (classifier failures, empty holdout, schema)
  - Persuadables segmentation logic
"""
import unittest
import numpy as np
import pandas as pd
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tests.conftest import (
    make_holdout_df, StubClassifier, ConstantClassifier,
    FailingClassifier, BadOutputClassifier,
)
from voter_uplift.uplift import (
    score_uplift, predict_pairs, rank_treated, assign_segments, RANKED_COLUMNS,
)
from voter_uplift.errors import ClassifierError, EmptyHoldout, SchemaMismatch


class TestScoreUplift(unittest.TestCase):

    def setUp(self):
        self.holdout = make_holdout_df(n=40, seed=0)
        self.n_treated = int(self.holdout["treatment_indicator"].sum())

    def test_columns_and_length(self):
        ranked = score_uplift(StubClassifier(), self.holdout)
        self.assertEqual(list(ranked.columns), RANKED_COLUMNS)
        self.assertEqual(len(ranked), self.n_treated)
        self.assertTrue((ranked["treatment_indicator"] == 1).all())

    def test_sorted_descending(self):
        ranked = score_uplift(StubClassifier(), self.holdout)
        self.assertTrue(ranked["uplift"].is_monotonic_decreasing)

    def test_uplift_is_probability_difference(self):
        ranked = score_uplift(StubClassifier(base=0.2, lift=0.5), self.holdout)
        np.testing.assert_allclose(
            ranked["uplift"], ranked["prob_if_treated"] - ranked["prob_if_untreated"]
        )
        expected = 0.5 * self.holdout.loc[ranked["row_id"], "score"].to_numpy()
        np.testing.assert_allclose(ranked["uplift"].to_numpy(), expected)

    def test_row_ids_trace_back_to_holdout(self):
        ranked = score_uplift(StubClassifier(), self.holdout)
        self.assertTrue(set(ranked["row_id"]) <= set(self.holdout.index))
        observed = self.holdout.loc[ranked["row_id"], "response_indicator"].to_numpy()
        self.assertTrue((ranked["response_indicator"].to_numpy() == observed).all())

    def test_ties_keep_holdout_order(self):
        ranked = score_uplift(ConstantClassifier(0.4), self.holdout)
        treated_ids = list(self.holdout.index[self.holdout["treatment_indicator"] == 1])
        self.assertEqual(list(ranked["row_id"]), treated_ids)

    def test_classifier_sees_forced_treatment_without_response(self):
        stub = StubClassifier()
        score_uplift(stub, self.holdout)
        self.assertEqual(len(stub.calls), 2)
        forced = sorted(int(call["treatment_indicator"].iloc[0]) for call in stub.calls)
        self.assertEqual(forced, [0, 1])
        for call in stub.calls:
            self.assertNotIn("response_indicator", call.columns)
            self.assertEqual(call["treatment_indicator"].nunique(), 1)
            self.assertEqual(len(call), len(self.holdout))

    def test_holdout_not_modified(self):
        before = self.holdout.copy()
        score_uplift(StubClassifier(), self.holdout)
        pd.testing.assert_frame_equal(self.holdout, before)

    def test_added_votes_from_threshold(self):
        ranked = score_uplift(StubClassifier(base=0.3, lift=0.5), self.holdout, threshold=0.5)
        expected = (
            (ranked["prob_if_treated"] >= 0.5).astype(int)
            - (ranked["prob_if_untreated"] >= 0.5).astype(int)
        )
        self.assertTrue((ranked["added_votes"] == expected).all())
        self.assertTrue(set(ranked["added_votes"].unique()) <= {-1, 0, 1})

    def test_concurrent_predictions_match_sequential(self):
        sequential = score_uplift(StubClassifier(), self.holdout, n_jobs=1)
        concurrent = score_uplift(StubClassifier(), self.holdout, n_jobs=2)
        pd.testing.assert_frame_equal(sequential, concurrent)

    def test_empty_holdout_raises(self):
        with self.assertRaises(EmptyHoldout):
            score_uplift(StubClassifier(), self.holdout.iloc[0:0])

    def test_no_treated_rows_raises(self):
        holdout = self.holdout.copy()
        holdout["treatment_indicator"] = 0
        with self.assertRaises(EmptyHoldout):
            score_uplift(StubClassifier(), holdout)

    def test_missing_indicator_raises(self):
        with self.assertRaises(SchemaMismatch):
            score_uplift(StubClassifier(), self.holdout.drop(columns=["response_indicator"]))

    def test_classifier_error_propagates(self):
        clf = FailingClassifier(ClassifierError("model backend unavailable"))
        with self.assertRaises(ClassifierError):
            score_uplift(clf, self.holdout)

    def test_unexpected_classifier_failure_wrapped(self):
        clf = FailingClassifier(RuntimeError("boom"))
        with self.assertRaises(ClassifierError) as ctx:
            score_uplift(clf, self.holdout)
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)

    def test_classifier_failure_propagates_from_threads(self):
        clf = FailingClassifier(RuntimeError("boom"))
        with self.assertRaises(ClassifierError):
            score_uplift(clf, self.holdout, n_jobs=2)

    def test_wrong_length_raises(self):
        clf = BadOutputClassifier(lambda rows: np.full(len(rows) - 1, 0.5))
        with self.assertRaises(ClassifierError):
            score_uplift(clf, self.holdout)

    def test_out_of_range_raises(self):
        clf = BadOutputClassifier(lambda rows: np.full(len(rows), 1.5))
        with self.assertRaises(ClassifierError):
            score_uplift(clf, self.holdout)


class TestPredictPairs(unittest.TestCase):

    def test_keeps_all_rows_in_holdout_order(self):
        holdout = make_holdout_df(n=25, seed=4)
        pairs = predict_pairs(StubClassifier(), holdout)
        self.assertEqual(len(pairs), 25)
        self.assertEqual(list(pairs["row_id"]), list(holdout.index))

    def test_ranking_pairs_matches_score_uplift(self):
        holdout = make_holdout_df(n=30, seed=6)
        clf = StubClassifier()
        pairs = predict_pairs(clf, holdout)
        ranked = rank_treated(pairs)
        self.assertEqual(len(clf.calls), 2)
        pd.testing.assert_frame_equal(ranked, score_uplift(StubClassifier(), holdout))

    def test_ranking_pairs_without_treated_rows_raises(self):
        holdout = make_holdout_df(n=10, seed=6)
        holdout["treatment_indicator"] = 0
        pairs = predict_pairs(StubClassifier(), holdout)
        with self.assertRaises(EmptyHoldout):
            rank_treated(pairs)


class TestAssignSegments(unittest.TestCase):

    def test_four_quadrants(self):
        pairs = pd.DataFrame({
            "prob_if_treated":   [0.8, 0.2, 0.9, 0.1],
            "prob_if_untreated": [0.2, 0.7, 0.8, 0.3],
        })
        labels = assign_segments(pairs, threshold=0.5)
        self.assertEqual(
            list(labels),
            ["Persuadables", "Sleeping Dogs", "Sure Things", "Lost Causes"],
        )

    def test_persuadables_match_positive_added_votes(self):
        ranked = score_uplift(StubClassifier(base=0.3, lift=0.5), make_holdout_df(n=60, seed=2))
        labels = assign_segments(ranked)
        np.testing.assert_array_equal(
            (labels == "Persuadables").to_numpy(), (ranked["added_votes"] == 1).to_numpy()
        )


if __name__ == "__main__":
    unittest.main()
