"""
tests/conftest.py
=================
Shared synthetic data fixtures for the test suite.
All fixtures are unittest-compatible (no pytest dependency required).

Usage in unittest:
    from tests.conftest import make_selected_df, make_ranked_table, StubClassifier
"""
import numpy as np
import pandas as pd

from voter_uplift.feature_selector import TREATMENT_COL, RESPONSE_COL


def make_raw_survey(n_voters: int = 400, seed: int = 42) -> pd.DataFrame:
    """Raw uppercase survey table (output of data_loader.load)."""
    from voter_uplift.synthetic import make_voter_dataset
    return make_voter_dataset(n_voters=n_voters, seed=seed)


def make_selected_df(n_voters: int = 400, seed: int = 42) -> pd.DataFrame:
    """Selected modelling frame (output of feature_selector.select_features)."""
    from voter_uplift.feature_selector import select_features
    return select_features(make_raw_survey(n_voters=n_voters, seed=seed))


def make_experiment_df(
    treated_responses: list,
    control_responses: list,
) -> pd.DataFrame:
    """Minimal selected frame with explicit responses per arm."""
    n_t, n_c = len(treated_responses), len(control_responses)
    return pd.DataFrame({
        "age":        np.arange(n_t + n_c) + 20,
        TREATMENT_COL: [1] * n_t + [0] * n_c,
        RESPONSE_COL:  list(treated_responses) + list(control_responses),
    })


def make_holdout_df(n: int = 40, seed: int = 0, index_offset: int = 1000) -> pd.DataFrame:
    """
    Small selected-style holdout with a ``score`` covariate in [0, 1] and a
    non-default index so row ids can be traced.
    """
    rng = np.random.default_rng(seed)
    df = pd.DataFrame({
        "score":       rng.uniform(0.0, 1.0, n),
        "age":         rng.integers(18, 90, n),
        TREATMENT_COL: rng.choice([0, 1], size=n),
        RESPONSE_COL:  rng.choice([0, 1], size=n),
    })
    df[TREATMENT_COL] = df[TREATMENT_COL].astype(int)
    df.index = np.arange(index_offset, index_offset + n)
    return df


def make_ranked_table(responses: list, uplift: list = None) -> pd.DataFrame:
    """
    RankedUpliftTable in the given order (output of uplift.score_uplift).
    ``uplift`` defaults to a strictly decreasing sequence.
    """
    n = len(responses)
    if uplift is None:
        uplift = np.linspace(0.5, -0.1, n) if n else []
    uplift = np.asarray(uplift, dtype=float)
    p0 = np.full(n, 0.3)
    return pd.DataFrame({
        "row_id":              np.arange(n),
        "prob_if_treated":     p0 + uplift,
        "prob_if_untreated":   p0,
        "uplift":              uplift,
        "added_votes":         np.zeros(n, dtype=int),
        "treatment_indicator": np.ones(n, dtype=int),
        "response_indicator":  np.asarray(responses, dtype=int),
    })


class StubClassifier:
    """
    Deterministic classifier: P(response) = base + lift * treatment * score.
    Records every frame it is asked to score.
    """

    def __init__(self, base: float = 0.2, lift: float = 0.5, score_col: str = "score"):
        self.base = base
        self.lift = lift
        self.score_col = score_col
        self.calls = []

    def predict(self, rows: pd.DataFrame) -> np.ndarray:
        self.calls.append(rows.copy())
        p = self.base + self.lift * rows[TREATMENT_COL].to_numpy() * rows[self.score_col].to_numpy()
        return np.clip(p, 0.0, 1.0)


class ConstantClassifier:
    """Returns the same probability for every row (all uplifts tie at 0)."""

    def __init__(self, value: float = 0.4):
        self.value = value

    def predict(self, rows: pd.DataFrame) -> np.ndarray:
        return np.full(len(rows), self.value)


class FailingClassifier:
    """Raises ``exc`` from predict."""

    def __init__(self, exc: Exception):
        self.exc = exc

    def predict(self, rows):
        raise self.exc


class BadOutputClassifier:
    """Returns ``output_fn(rows)`` unchanged, for shape / range checks."""

    def __init__(self, output_fn):
        self.output_fn = output_fn

    def predict(self, rows):
        return self.output_fn(rows)
