"""
voter_uplift/business.py
========================
Translates response-rate differences into campaign economics.

Cost per vote
-------------
Sending ``sends`` flyers at ``unit_cost`` each, with an incremental response
rate ``effect``, buys ``sends * effect`` extra votes:

    CPV = (unit_cost * sends) / (sends * effect) = unit_cost / effect

Campaign simulation
-------------------
Given the uplift-ranked treated holdout (``uplift.score_uplift``):

  1. top      = first ceil(decile_fraction * n) rows (existing order)
  2. targeted_response_rate = mean(response_indicator | top)
  3. uplift_diff  = targeted_response_rate - baseline_rate
  4. targeted_cpv = calculate_cpv(campaign_size, uplift_diff, unit_cost)
  5. cost_decrease_pct = (baseline_cpv - targeted_cpv) / |baseline_cpv|
  6. added_votes  = uplift_diff * campaign_size
     cost_savings = added_votes * (baseline_cpv - targeted_cpv)

A non-positive ``uplift_diff`` is a valid, reportable outcome (negative
savings); only ``calculate_cpv`` itself refuses a zero effect.
"""

import math
import numbers
import logging
from dataclasses import dataclass, asdict

import numpy as np
import pandas as pd

from voter_uplift.errors import InvalidEffect, InvalidParameter, EmptyHoldout, SchemaMismatch
from voter_uplift.feature_selector import RESPONSE_COL

logger = logging.getLogger(__name__)


# =============================================================================
# 1. Cost per vote
# =============================================================================

def calculate_cpv(sends: int, effect: float, unit_cost: float) -> float:
    """
    Cost per additional favourable response.

    Parameters
    ----------
    sends : int
        Number of flyers sent (positive integer).
    effect : float
        Incremental response rate attributable to the flyer. Must be non-zero;
        a negative effect yields a negative CPV.
    unit_cost : float
        Cost of one flyer (positive).

    Returns
    -------
    float
        ``unit_cost / effect`` (independent of ``sends``).

    Raises
    ------
    InvalidEffect
        If ``effect`` is zero or not finite.
    InvalidParameter
        If ``sends`` or ``unit_cost`` is out of range.
    """
    if isinstance(sends, bool) or not isinstance(sends, numbers.Integral) or sends <= 0:
        raise InvalidParameter(f"[CPV] sends must be a positive integer, got {sends!r}")
    if (
        isinstance(unit_cost, bool)
        or not isinstance(unit_cost, numbers.Real)
        or not math.isfinite(unit_cost)
        or unit_cost <= 0
    ):
        raise InvalidParameter(f"[CPV] unit_cost must be a positive real, got {unit_cost!r}")
    if isinstance(effect, bool) or not isinstance(effect, numbers.Real):
        raise InvalidEffect(f"[CPV] effect must be a real number, got {effect!r}")
    if not math.isfinite(effect) or effect == 0:
        raise InvalidEffect(f"[CPV] effect must be finite and non-zero, got {effect!r}")

    return float(unit_cost) / float(effect)


# =============================================================================
# 2. Campaign simulation
# =============================================================================

@dataclass(frozen=True)
class CampaignMetrics:
    targeted_response_rate: float
    baseline_rate: float
    uplift_diff: float
    baseline_cpv: float
    targeted_cpv: float
    cost_decrease_pct: float
    added_votes: float
    cost_savings: float
    n_targeted: int
    campaign_size: int
    unit_cost: float

    def as_dict(self) -> dict:
        return asdict(self)


def _check_fraction(decile_fraction) -> float:
    if (
        isinstance(decile_fraction, bool)
        or not isinstance(decile_fraction, numbers.Real)
        or not 0.0 < float(decile_fraction) <= 1.0
    ):
        raise InvalidParameter(
            f"[Campaign] decile_fraction must be in (0, 1], got {decile_fraction!r}"
        )
    return float(decile_fraction)


def simulate_campaign(
    ranked_table: pd.DataFrame,
    decile_fraction: float,
    campaign_size: int,
    unit_cost: float,
    baseline_rate: float,
    baseline_effect: float = None,
) -> CampaignMetrics:
    """
    Estimate the economics of mailing only the top-ranked share of voters.

    Parameters
    ----------
    ranked_table : pd.DataFrame
        Output of ``score_uplift``: treated holdout rows, already sorted by
        uplift descending. The order is used as is.
    decile_fraction : float
        Share of the ranked table to target, in (0, 1] (0.1 = top decile).
    campaign_size : int
        Number of flyers in the planned campaign.
    unit_cost : float
        Cost of one flyer.
    baseline_rate : float
        Response rate of a random send (mean response among all originally
        treated voters), in [0, 1].
    baseline_effect : float, optional
        Incremental effect of a random send (treated minus control rate) used
        to price the baseline CPV. Defaults to ``baseline_rate``, which must
        then be non-zero.

    Returns
    -------
    CampaignMetrics
    """
    decile_fraction = _check_fraction(decile_fraction)
    if isinstance(campaign_size, bool) or not isinstance(campaign_size, numbers.Integral) or campaign_size <= 0:
        raise InvalidParameter(f"[Campaign] campaign_size must be a positive integer, got {campaign_size!r}")
    if isinstance(unit_cost, bool) or not isinstance(unit_cost, numbers.Real) or not unit_cost > 0:
        raise InvalidParameter(f"[Campaign] unit_cost must be positive, got {unit_cost!r}")
    if not isinstance(baseline_rate, numbers.Real) or not 0.0 <= float(baseline_rate) <= 1.0:
        raise InvalidParameter(f"[Campaign] baseline_rate must be in [0, 1], got {baseline_rate!r}")
    if baseline_effect is None and float(baseline_rate) == 0.0:
        raise InvalidParameter(
            "[Campaign] baseline_rate of 0 cannot price the random send; "
            "pass a non-zero baseline_effect"
        )
    if RESPONSE_COL not in ranked_table.columns:
        raise SchemaMismatch(f"[Campaign] ranked_table is missing '{RESPONSE_COL}'")

    n = len(ranked_table)
    if n == 0:
        raise EmptyHoldout("[Campaign] ranked_table is empty; nothing to target")

    # round() first so 0.1 * 30 does not ceil to 4
    n_top = max(1, math.ceil(round(decile_fraction * n, 9)))
    top = ranked_table.iloc[:n_top]
    targeted_rate = float(top[RESPONSE_COL].mean())
    uplift_diff = targeted_rate - float(baseline_rate)

    effect_for_baseline = baseline_effect if baseline_effect is not None else float(baseline_rate)
    baseline_cpv = calculate_cpv(campaign_size, effect_for_baseline, unit_cost)

    added_votes = uplift_diff * campaign_size
    if uplift_diff == 0:
        logger.warning(
            "[Campaign] Targeted response rate equals the baseline (%.4f); "
            "cost per vote is undefined for the targeted send.", targeted_rate,
        )
        targeted_cpv      = float("nan")
        cost_decrease_pct = float("nan")
        cost_savings      = 0.0
    else:
        targeted_cpv      = calculate_cpv(campaign_size, uplift_diff, unit_cost)
        cost_decrease_pct = (baseline_cpv - targeted_cpv) / abs(baseline_cpv)
        cost_savings      = added_votes * (baseline_cpv - targeted_cpv)

    metrics = CampaignMetrics(
        targeted_response_rate=targeted_rate,
        baseline_rate=float(baseline_rate),
        uplift_diff=uplift_diff,
        baseline_cpv=baseline_cpv,
        targeted_cpv=targeted_cpv,
        cost_decrease_pct=cost_decrease_pct,
        added_votes=added_votes,
        cost_savings=cost_savings,
        n_targeted=int(n_top),
        campaign_size=int(campaign_size),
        unit_cost=float(unit_cost),
    )

    logger.info(
        "[Campaign] top %.0f%% (%d of %d ranked voters) | targeted rate=%.4f | "
        "baseline rate=%.4f | uplift diff=%+.4f",
        decile_fraction * 100, n_top, n, targeted_rate, baseline_rate, uplift_diff,
    )
    logger.info(
        "[Campaign] CPV baseline=%.2f | targeted=%.2f | decrease=%+.1f%% | "
        "added votes=%.0f | savings=%.0f",
        baseline_cpv, targeted_cpv, cost_decrease_pct * 100, added_votes, cost_savings,
    )
    if uplift_diff < 0:
        logger.warning(
            "[Campaign] Targeting underperforms a random send (uplift diff=%+.4f).",
            uplift_diff,
        )
    return metrics


def targeting_depth_sensitivity(
    ranked_table: pd.DataFrame,
    campaign_size: int,
    unit_cost: float,
    baseline_rate: float,
    baseline_effect: float = None,
    fractions: list = None,
) -> pd.DataFrame:
    """
    Re-run :func:`simulate_campaign` across several targeting depths.

    Parameters
    ----------
    fractions : list of float
        Depths to sweep (default: 10% … 100% in steps of 10%).

    Returns
    -------
    pd.DataFrame
        One row per depth with the CampaignMetrics fields plus
        ``decile_fraction``.
    """
    if fractions is None:
        fractions = [round(f, 1) for f in np.arange(0.1, 1.01, 0.1)]

    records = []
    for frac in fractions:
        m = simulate_campaign(
            ranked_table, frac, campaign_size, unit_cost, baseline_rate,
            baseline_effect=baseline_effect,
        )
        records.append({"decile_fraction": float(frac), **m.as_dict()})

    result = pd.DataFrame(records)
    best = result.loc[result["added_votes"].idxmax()]
    logger.info(
        "[Campaign] Depth sweep: most added votes at %.0f%% targeting (%.0f votes).",
        best["decile_fraction"] * 100, best["added_votes"],
    )
    return result
