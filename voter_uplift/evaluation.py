"""
voter_uplift/evaluation.py
==========================
Ranking diagnostics for the classifier and the uplift ordering.

Uplift ranking (treated holdout, already sorted by uplift):
  - Decile table   : response rate per rank bin and lift vs the table rate
  - Cumulative gain: share of responders captured vs share of voters targeted

Uplift ranking (whole holdout, both arms):
  - Qini curve     : Q(k) = Y_t(k) - Y_c(k) * N_t(k) / N_c(k)
                     over the top-k voters by predicted uplift

Classifier:
  - ROC AUC on the holdout and a probability-ranked gain / lift table

  lift(bin) = response_rate(bin) / response_rate(all)

Bins are built from rank position, not from score quantiles, so ties and
constant scores still give ``n_bins`` equally sized bins.
"""

import logging
import numpy as np
import pandas as pd
from scipy.integrate import trapezoid
from sklearn.metrics import roc_auc_score

from voter_uplift.errors import EmptyHoldout, InvalidParameter, SchemaMismatch
from voter_uplift.feature_selector import TREATMENT_COL, RESPONSE_COL

logger = logging.getLogger(__name__)


def _check_bins(n_bins) -> int:
    if isinstance(n_bins, bool) or not isinstance(n_bins, (int, np.integer)) or n_bins < 1:
        raise InvalidParameter(f"[Eval] n_bins must be a positive int, got {n_bins!r}")
    return int(n_bins)


def _rank_bins(n: int, n_bins: int) -> np.ndarray:
    """Bin number (1-based) for each position 0..n-1 of an ordered table."""
    return (np.arange(n) * n_bins) // n + 1


def _binned_rates(order_response: np.ndarray, n_bins: int, score: np.ndarray = None) -> pd.DataFrame:
    n = len(order_response)
    df = pd.DataFrame({"bin": _rank_bins(n, n_bins), "y": order_response})
    if score is not None:
        df["score"] = score

    agg = {"n": ("y", "size"), "responders": ("y", "sum")}
    if score is not None:
        agg["mean_score"] = ("score", "mean")
    table = df.groupby("bin").agg(**agg).reset_index()
    table["bin"] = np.arange(1, len(table) + 1)

    overall = float(order_response.mean())
    table["response_rate"]  = table["responders"] / table["n"]
    table["cum_n"]          = table["n"].cumsum()
    table["cum_responders"] = table["responders"].cumsum()
    table["cum_rate"]       = table["cum_responders"] / table["cum_n"]
    if overall > 0:
        table["lift"]     = table["response_rate"] / overall
        table["cum_lift"] = table["cum_rate"] / overall
    else:
        table["lift"]     = np.nan
        table["cum_lift"] = np.nan
    return table


# =============================================================================
# 1. Uplift ranking, treated holdout
# =============================================================================

def uplift_decile_table(ranked: pd.DataFrame, n_bins: int = 10) -> pd.DataFrame:
    """
    Per-bin summary of a RankedUpliftTable, in its existing order.

    Parameters
    ----------
    ranked : pd.DataFrame
        Output of ``score_uplift``.
    n_bins : int
        Number of rank bins (10 = deciles).

    Returns
    -------
    pd.DataFrame
        Columns ``bin, n, responders, mean_uplift, response_rate, cum_n,
        cum_responders, cum_rate, lift, cum_lift``.
    """
    n_bins = _check_bins(n_bins)
    for col in ("uplift", RESPONSE_COL):
        if col not in ranked.columns:
            raise SchemaMismatch(f"[Eval] ranked table is missing '{col}'")
    if len(ranked) == 0:
        raise EmptyHoldout("[Eval] ranked table is empty")

    table = _binned_rates(
        ranked[RESPONSE_COL].to_numpy(dtype=float), n_bins,
        score=ranked["uplift"].to_numpy(dtype=float),
    )
    table = table.rename(columns={"mean_score": "mean_uplift"})
    table = table[[
        "bin", "n", "responders", "mean_uplift", "response_rate",
        "cum_n", "cum_responders", "cum_rate", "lift", "cum_lift",
    ]]
    logger.info(
        "[Eval] Top bin response rate=%.4f | overall=%.4f | top-bin lift=%.2f",
        table["response_rate"].iloc[0],
        float(ranked[RESPONSE_COL].mean()),
        table["lift"].iloc[0],
    )
    return table


def cumulative_gain(ranked: pd.DataFrame) -> pd.DataFrame:
    """
    Cumulative share of responders captured when targeting down the ranking.

    Returns
    -------
    pd.DataFrame
        ``fraction_targeted`` (0 … 1), ``fraction_responders`` captured and the
        ``random`` diagonal. Starts with the (0, 0) point.
    """
    if RESPONSE_COL not in ranked.columns:
        raise SchemaMismatch(f"[Eval] ranked table is missing '{RESPONSE_COL}'")
    n = len(ranked)
    if n == 0:
        raise EmptyHoldout("[Eval] ranked table is empty")

    y = ranked[RESPONSE_COL].to_numpy(dtype=float)
    total = y.sum()
    captured = np.cumsum(y) / total if total > 0 else np.zeros(n)
    x = np.arange(1, n + 1) / n

    return pd.DataFrame({
        "fraction_targeted":   np.concatenate([[0.0], x]),
        "fraction_responders": np.concatenate([[0.0], captured]),
        "random":              np.concatenate([[0.0], x]),
    })


# =============================================================================
# 2. Uplift ranking, whole holdout
# =============================================================================

def qini_curve(pairs: pd.DataFrame, n_points: int = 20) -> dict:
    """
    Qini curve over the full holdout (treated and control voters).

    Parameters
    ----------
    pairs : pd.DataFrame
        Output of ``uplift.predict_pairs`` (not filtered to treated rows).
    n_points : int
        Number of evenly spaced targeting fractions to evaluate.

    Returns
    -------
    dict
        ``qini_x``, ``qini_y`` (incremental responders), ``random_y``,
        ``auuc``, ``random_auuc``, ``qini_coefficient``.
    """
    for col in ("uplift", TREATMENT_COL, RESPONSE_COL):
        if col not in pairs.columns:
            raise SchemaMismatch(f"[Eval] pairs table is missing '{col}'")
    n = len(pairs)
    if n == 0:
        raise EmptyHoldout("[Eval] pairs table is empty")
    n_points = _check_bins(n_points)

    order = np.argsort(-pairs["uplift"].to_numpy(dtype=float), kind="mergesort")
    t = pairs[TREATMENT_COL].to_numpy(dtype=float)[order]
    y = pairs[RESPONSE_COL].to_numpy(dtype=float)[order]

    cum_nt = np.cumsum(t)
    cum_nc = np.cumsum(1 - t)
    cum_yt = np.cumsum(y * t)
    cum_yc = np.cumsum(y * (1 - t))

    ratio = np.divide(cum_nt, cum_nc, out=np.zeros_like(cum_nt), where=cum_nc > 0)
    qini_full = cum_yt - cum_yc * ratio

    ks = np.unique(np.clip(np.ceil(np.round(np.linspace(0, 1, n_points + 1)[1:] * n, 9)).astype(int), 1, n))
    qini_x = np.concatenate([[0.0], ks / n])
    qini_y = np.concatenate([[0.0], qini_full[ks - 1]])
    random_y = qini_x * qini_full[-1]

    auuc = float(trapezoid(qini_y, qini_x))
    random_auuc = float(trapezoid(random_y, qini_x))
    result = {
        "qini_x":           qini_x.tolist(),
        "qini_y":           qini_y.tolist(),
        "random_y":         random_y.tolist(),
        "auuc":             auuc,
        "random_auuc":      random_auuc,
        "qini_coefficient": auuc - random_auuc,
    }
    logger.info(
        "[Eval] Qini: AUUC=%.3f | random=%.3f | coefficient=%+.3f",
        auuc, random_auuc, result["qini_coefficient"],
    )
    return result


# =============================================================================
# 3. Classifier ranking quality
# =============================================================================

def classifier_ranking_quality(y_true, y_prob, n_bins: int = 10) -> dict:
    """
    ROC AUC and a gain / lift table for predicted response probabilities.

    Returns
    -------
    dict
        ``auc`` (NaN when ``y_true`` has a single class) and ``lift_table``
        (bins of descending probability).
    """
    n_bins = _check_bins(n_bins)
    y_true = np.asarray(y_true, dtype=float).reshape(-1)
    y_prob = np.asarray(y_prob, dtype=float).reshape(-1)
    if len(y_true) != len(y_prob):
        raise InvalidParameter(
            f"[Eval] y_true and y_prob differ in length ({len(y_true)} vs {len(y_prob)})"
        )
    if len(y_true) == 0:
        raise EmptyHoldout("[Eval] No predictions to evaluate")

    if len(np.unique(y_true)) < 2:
        logger.warning("[Eval] Only one response class present; AUC undefined.")
        auc = float("nan")
    else:
        auc = float(roc_auc_score(y_true, y_prob))

    order = np.argsort(-y_prob, kind="mergesort")
    table = _binned_rates(y_true[order], n_bins, score=y_prob[order])
    table = table.rename(columns={"mean_score": "mean_prob"})

    logger.info(f"[Eval] Classifier holdout AUC={auc:.4f} | top-bin lift={table['lift'].iloc[0]:.2f}")
    return {"auc": auc, "lift_table": table}
