"""
voter_uplift/uplift.py
======================
Uplift scoring for the flyer campaign.

Method
------
One response classifier is trained with the treatment indicator as an input
column.  For every holdout voter we ask it two counterfactual questions:

    prob_if_treated   = P(response | x, treatment_indicator = 1)
    prob_if_untreated = P(response | x, treatment_indicator = 0)
    uplift            = prob_if_treated - prob_if_untreated

Caveat: the classifier is fitted for prediction, not for a causal objective
(no two-model or class-transformation training), so ``uplift`` is a
correlational approximation of the flyer's causal lift. It is used to *rank*
voters, and the ranking is validated against observed outcomes below.

Validation table
----------------
Only voters who actually received the flyer have an observed response under
treatment, so the ranked table keeps ``treatment_indicator == 1`` rows and
sorts them by uplift (stable, ties keep holdout order).  It estimates how a
top-decile send would have performed; production targeting would score the
currently-untreated population instead.

Segments (Radcliffe & Surry, 1999) from the binarised predictions:
  Persuadables  : respond only if treated          (added_votes = +1)
  Sleeping Dogs : respond only if NOT treated      (added_votes = -1)
  Sure Things   : respond either way
  Lost Causes   : respond in neither case
"""

import logging
import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from voter_uplift.errors import (
    ClassifierError, EmptyHoldout, InvalidParameter, SchemaMismatch, UpliftPipelineError,
)
from voter_uplift.feature_selector import TREATMENT_COL, RESPONSE_COL

logger = logging.getLogger(__name__)

RANKED_COLUMNS = [
    "row_id", "prob_if_treated", "prob_if_untreated", "uplift",
    "added_votes", "treatment_indicator", "response_indicator",
]

# Tolerance for probabilities that drift just outside [0, 1] numerically
_PROB_TOL = 1e-9


# =============================================================================
# 1. Counterfactual predictions
# =============================================================================

def _counterfactual_frames(holdout: pd.DataFrame) -> tuple:
    """Copies of the holdout inputs with the treatment indicator forced to 1 / 0."""
    inputs = holdout.drop(columns=[RESPONSE_COL])
    as_treated = inputs.copy()
    as_treated[TREATMENT_COL] = 1
    as_untreated = inputs.copy()
    as_untreated[TREATMENT_COL] = 0
    return as_treated, as_untreated


def _predict_checked(classifier, rows: pd.DataFrame, variant: str) -> np.ndarray:
    try:
        proba = classifier.predict(rows)
    except UpliftPipelineError:
        raise
    except Exception as exc:
        raise ClassifierError(
            f"[Uplift] Classifier predict failed on the {variant} variant: {exc}"
        ) from exc

    proba = np.asarray(proba, dtype=float).reshape(-1)
    if len(proba) != len(rows):
        raise ClassifierError(
            f"[Uplift] Classifier returned {len(proba)} predictions for "
            f"{len(rows)} {variant} rows"
        )
    if not np.isfinite(proba).all():
        raise ClassifierError(f"[Uplift] {variant} predictions contain NaN/inf")
    if proba.min() < -_PROB_TOL or proba.max() > 1 + _PROB_TOL:
        raise ClassifierError(f"[Uplift] {variant} predictions fall outside [0, 1]")
    return np.clip(proba, 0.0, 1.0)


def predict_pairs(
    classifier,
    holdout: pd.DataFrame,
    threshold: float = 0.5,
    n_jobs: int = 1,
) -> pd.DataFrame:
    """
    Counterfactual prediction pair for every holdout row (treated or not).

    Parameters
    ----------
    classifier
        Object with ``predict(rows) -> P(response = 1)``.
    holdout : pd.DataFrame
        Selected holdout frame (features + both indicators).
    threshold : float
        Probability cut-off for the binarised outcome behind ``added_votes``.
    n_jobs : int
        1 = the two predict calls run one after the other; 2 = concurrently on
        threads. Results are identical either way.

    Returns
    -------
    pd.DataFrame
        Columns ``RANKED_COLUMNS`` in holdout order (no filtering, no sort).
    """
    missing = [c for c in (TREATMENT_COL, RESPONSE_COL) if c not in holdout.columns]
    if missing:
        raise SchemaMismatch(f"[Uplift] Holdout is missing indicator columns: {missing}")
    if len(holdout) == 0:
        raise EmptyHoldout("[Uplift] Holdout is empty")
    if not 0.0 < threshold < 1.0:
        raise InvalidParameter(f"[Uplift] threshold must be in (0, 1), got {threshold!r}")

    as_treated, as_untreated = _counterfactual_frames(holdout)

    if n_jobs and n_jobs > 1:
        prob_treated, prob_untreated = Parallel(n_jobs=2, prefer="threads")(
            delayed(_predict_checked)(classifier, rows, name)
            for rows, name in ((as_treated, "treated"), (as_untreated, "untreated"))
        )
    else:
        prob_treated   = _predict_checked(classifier, as_treated, "treated")
        prob_untreated = _predict_checked(classifier, as_untreated, "untreated")

    added_votes = (
        (prob_treated >= threshold).astype(int)
        - (prob_untreated >= threshold).astype(int)
    )
    return pd.DataFrame({
        "row_id":              holdout.index.to_numpy(),
        "prob_if_treated":     prob_treated,
        "prob_if_untreated":   prob_untreated,
        "uplift":              prob_treated - prob_untreated,
        "added_votes":         added_votes,
        "treatment_indicator": holdout[TREATMENT_COL].to_numpy(dtype=int),
        "response_indicator":  holdout[RESPONSE_COL].to_numpy(dtype=int),
    })


# =============================================================================
# 2. Ranked validation table
# =============================================================================

def rank_treated(pairs: pd.DataFrame) -> pd.DataFrame:
    """
    Keep the originally-treated rows of ``predict_pairs`` output and sort them
    by ``uplift`` descending (stable, ties keep holdout order).

    Raises
    ------
    EmptyHoldout
        If ``pairs`` has no treated rows.
    """
    treated = pairs[pairs["treatment_indicator"] == 1]
    if treated.empty:
        raise EmptyHoldout(
            f"[Uplift] Holdout of {len(pairs)} rows has no treated voters to validate against"
        )

    order  = np.argsort(-treated["uplift"].to_numpy(), kind="mergesort")
    ranked = treated.iloc[order].reset_index(drop=True)

    logger.info(
        "[Uplift] Scored %d holdout voters | %d treated ranked | "
        "mean uplift=%+.4f | share positive=%.1f%%",
        len(pairs), len(ranked), float(ranked["uplift"].mean()),
        float((ranked["uplift"] > 0).mean() * 100),
    )
    return ranked


def score_uplift(
    classifier,
    holdout: pd.DataFrame,
    threshold: float = 0.5,
    n_jobs: int = 1,
) -> pd.DataFrame:
    """
    Rank the originally-treated holdout voters by estimated uplift.

    Parameters
    ----------
    classifier
        Object with ``predict(rows) -> P(response = 1)``, trained on the
        holdout's schema minus ``response_indicator``.
    holdout : pd.DataFrame
        Selected holdout frame.
    threshold : float
        Cut-off for the binarised predictions (``added_votes``).
    n_jobs : int
        Set to 2 to issue the two predict calls concurrently.

    Returns
    -------
    pd.DataFrame
        RankedUpliftTable: ``RANKED_COLUMNS``, treated rows only, sorted by
        ``uplift`` descending (stable), fresh 0..n-1 index.

    Raises
    ------
    EmptyHoldout
        If the holdout is empty or has no treated rows.
    ClassifierError
        If any predict call fails or returns invalid probabilities.
    SchemaMismatch
        If indicator columns are missing or the classifier rejects the schema.
    """
    pairs = predict_pairs(classifier, holdout, threshold=threshold, n_jobs=n_jobs)
    return rank_treated(pairs)


# =============================================================================
# 3. Segments
# =============================================================================

def assign_segments(pairs: pd.DataFrame, threshold: float = 0.5) -> pd.Series:
    """
    Label each row Persuadables / Sure Things / Lost Causes / Sleeping Dogs.

    Parameters
    ----------
    pairs : pd.DataFrame
        Output of :func:`predict_pairs` or :func:`score_uplift`.
    threshold : float
        Same cut-off used for ``added_votes``.
    """
    treated_yes   = pairs["prob_if_treated"].to_numpy() >= threshold
    untreated_yes = pairs["prob_if_untreated"].to_numpy() >= threshold

    labels = np.select(
        [
            treated_yes & ~untreated_yes,
            ~treated_yes & untreated_yes,
            treated_yes & untreated_yes,
        ],
        ["Persuadables", "Sleeping Dogs", "Sure Things"],
        default="Lost Causes",
    )
    return pd.Series(labels, index=pairs.index, name="uplift_segment")
