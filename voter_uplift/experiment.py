"""
voter_uplift/experiment.py
==========================
Descriptive analysis of the randomised flyer experiment.

  treated_rate    = mean(response | treatment_indicator = 1)
  control_rate    = mean(response | treatment_indicator = 0)
  rate_difference = treated_rate - control_rate

Significance of the difference is assessed with a permutation test on the
group labels (``scipy.stats.permutation_test``): under H0 the flyer has no
effect, so shuffling who was treated should produce differences as large as
the observed one with probability ``p_value``.
"""

import logging
from dataclasses import dataclass, asdict

import numpy as np
import pandas as pd
from scipy import stats

from voter_uplift.errors import EmptyGroup, InvalidParameter, SchemaMismatch
from voter_uplift.feature_selector import TREATMENT_COL, RESPONSE_COL

logger = logging.getLogger(__name__)

# Permutations evaluated per vectorised batch (bounds memory on large surveys)
_PERMUTATION_BATCH = 500


@dataclass(frozen=True)
class ExperimentSummary:
    n_treated: int
    n_control: int
    treated_rate: float
    control_rate: float
    rate_difference: float
    p_value: float
    n_resamples: int

    def as_dict(self) -> dict:
        return asdict(self)


def _check_columns(df: pd.DataFrame) -> None:
    missing = [c for c in (TREATMENT_COL, RESPONSE_COL) if c not in df.columns]
    if missing:
        raise SchemaMismatch(f"[Experiment] Missing indicator columns: {missing}")


def _split_groups(df: pd.DataFrame):
    _check_columns(df)
    treated = df.loc[df[TREATMENT_COL] == 1, RESPONSE_COL].to_numpy(dtype=float)
    control = df.loc[df[TREATMENT_COL] == 0, RESPONSE_COL].to_numpy(dtype=float)
    if treated.size == 0:
        raise EmptyGroup("[Experiment] Treatment group is empty")
    if control.size == 0:
        raise EmptyGroup("[Experiment] Control group is empty")
    return treated, control


def _mean_difference(x, y, axis):
    return np.mean(x, axis=axis) - np.mean(y, axis=axis)


def analyze_experiment(
    df: pd.DataFrame,
    n_resamples: int = 10000,
    seed: int = 420,
    alternative: str = "two-sided",
) -> ExperimentSummary:
    """
    Compare response rates between flyer recipients and the control group.

    Parameters
    ----------
    df : pd.DataFrame
        Selected frame with ``treatment_indicator`` and ``response_indicator``.
    n_resamples : int
        Number of label permutations for the p-value (default 10,000).
    seed : int
        Seed for the permutation draws.
    alternative : {"two-sided", "greater", "less"}
        Alternative hypothesis for the treated-minus-control difference.

    Returns
    -------
    ExperimentSummary
    """
    if not isinstance(n_resamples, (int, np.integer)) or n_resamples < 1:
        raise InvalidParameter(f"[Experiment] n_resamples must be a positive int, got {n_resamples!r}")
    if alternative not in ("two-sided", "greater", "less"):
        raise InvalidParameter(f"[Experiment] Unknown alternative: {alternative!r}")

    treated, control = _split_groups(df)

    result = stats.permutation_test(
        (treated, control),
        _mean_difference,
        permutation_type="independent",
        vectorized=True,
        n_resamples=int(n_resamples),
        alternative=alternative,
        batch=_PERMUTATION_BATCH,
        rng=np.random.default_rng(seed),
    )

    summary = ExperimentSummary(
        n_treated=int(treated.size),
        n_control=int(control.size),
        treated_rate=float(treated.mean()),
        control_rate=float(control.mean()),
        rate_difference=float(result.statistic),
        p_value=float(result.pvalue),
        n_resamples=int(n_resamples),
    )
    logger.info(
        "[Experiment] treated=%d (rate=%.4f) | control=%d (rate=%.4f) | "
        "diff=%+.4f | permutation p=%.4f (n=%d)",
        summary.n_treated, summary.treated_rate,
        summary.n_control, summary.control_rate,
        summary.rate_difference, summary.p_value, summary.n_resamples,
    )
    return summary


def response_rates_by_group(df: pd.DataFrame) -> pd.DataFrame:
    """
    Tabular response summary per experiment arm.

    Returns
    -------
    pd.DataFrame
        Index ``["control", "treatment"]``; columns ``n``, ``responders``,
        ``response_rate``.
    """
    _check_columns(df)
    grouped = df.groupby(TREATMENT_COL)[RESPONSE_COL].agg(["size", "sum", "mean"])
    grouped = grouped.reindex([0, 1])
    grouped.index = ["control", "treatment"]
    grouped.columns = ["n", "responders", "response_rate"]
    grouped["n"] = grouped["n"].fillna(0).astype(int)
    grouped["responders"] = grouped["responders"].fillna(0).astype(int)
    return grouped


def treated_baseline_rate(df: pd.DataFrame) -> float:
    """Mean response among everyone who received the flyer (random-send rate)."""
    _check_columns(df)
    treated = df.loc[df[TREATMENT_COL] == 1, RESPONSE_COL]
    if treated.empty:
        raise EmptyGroup("[Experiment] Treatment group is empty")
    return float(treated.mean())
