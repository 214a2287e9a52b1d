"""
voter_uplift/synthetic.py
=========================
Seeded generator for a synthetic voter-persuasion experiment.

Produces the same uppercase source layout as the real survey file so the
whole pipeline (loader → selector → ... → simulator) can run end to end
without the proprietary data, and so tests have a realistic fixture.

Data-generating process
-----------------------
  * Demographics / household party mix / neighbourhood ratios / past turnout
    drawn independently per voter.
  * MESSAGE_A ~ Bernoulli(treatment_share)   (randomised flyer)
  * logit P(MOVED_AD) = base(x) + MESSAGE_A * tau(x)
    where tau(x) is large for "persuadable" voters (young, Democrat or
    independent households, low past primary turnout) and slightly negative
    for Republican-only households.
"""

import logging
import numpy as np
import pandas as pd

from voter_uplift.errors import InvalidParameter

logger = logging.getLogger(__name__)


def _sigmoid(z: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-z))


def make_voter_dataset(
    n_voters: int = 2000,
    seed: int = 42,
    treatment_share: float = 0.5,
) -> pd.DataFrame:
    """
    Generate a synthetic voter survey.

    Parameters
    ----------
    n_voters : int
        Number of voters (rows).
    seed : int
        Random seed; the same seed always yields the same frame.
    treatment_share : float
        Probability that a voter receives the flyer, in (0, 1).

    Returns
    -------
    pd.DataFrame
        Columns: VOTER_ID, AGE, GENDER_F, HH_ND, HH_NR, HH_NI, NH_WHITE,
        NH_AA, COMM_PT, H_F1, REG_DAYS, PR_PELIG, E_PELIG, POLITICALC,
        VG_12, VPR_12, MESSAGE_A, MOVED_AD.
    """
    if not isinstance(n_voters, (int, np.integer)) or n_voters <= 0:
        raise InvalidParameter(f"[Synthetic] n_voters must be a positive int, got {n_voters!r}")
    if not 0.0 < treatment_share < 1.0:
        raise InvalidParameter(f"[Synthetic] treatment_share must be in (0, 1), got {treatment_share!r}")

    rng = np.random.default_rng(seed)
    n = int(n_voters)

    age        = rng.integers(18, 91, size=n)
    gender_f   = (rng.random(n) < 0.52).astype(int)
    hh_nd      = rng.choice([0, 1, 2, 3], size=n, p=[0.45, 0.35, 0.15, 0.05])
    hh_nr      = rng.choice([0, 1, 2, 3], size=n, p=[0.55, 0.30, 0.12, 0.03])
    hh_ni      = rng.choice([0, 1, 2],    size=n, p=[0.70, 0.25, 0.05])
    nh_white   = np.round(rng.beta(4.0, 2.0, size=n) * 100, 1)
    nh_aa      = np.round(np.clip((100 - nh_white) * rng.beta(2.0, 3.0, size=n), 0, 100), 1)
    comm_pt    = np.round(rng.beta(1.2, 12.0, size=n) * 100, 1)
    h_f1       = np.round(rng.beta(2.0, 8.0, size=n) * 100, 1)
    reg_days   = rng.integers(30, 20000, size=n)
    pr_pelig   = np.round(rng.beta(1.5, 3.0, size=n) * 100, 1)
    e_pelig    = np.round(rng.beta(3.0, 2.0, size=n) * 100, 1)
    politicalc = (rng.random(n) < 0.08).astype(int)
    vg_12      = (rng.random(n) < 0.65).astype(int)
    vpr_12     = (rng.random(n) < 0.25).astype(int)

    message_a = (rng.random(n) < treatment_share).astype(int)

    # ── Outcome model ─────────────────────────────────────────────────────────
    base_logit = (
        -0.9
        + 0.35 * hh_nd
        - 0.30 * hh_nr
        + 0.004 * (nh_aa - 10)
        - 0.006 * (age - 50)
        + 0.20 * gender_f
    )
    persuadable = (age < 45) & ((hh_nd > 0) | (hh_ni > 0)) & (pr_pelig < 50)
    tau = np.where(persuadable, 1.6, 0.15)
    tau = np.where((hh_nr > 0) & (hh_nd == 0), -0.35, tau)

    p_moved  = _sigmoid(base_logit + message_a * tau)
    moved_ad = (rng.random(n) < p_moved).astype(int)

    df = pd.DataFrame({
        "VOTER_ID":   np.arange(1, n + 1),
        "AGE":        age,
        "GENDER_F":   gender_f,
        "HH_ND":      hh_nd,
        "HH_NR":      hh_nr,
        "HH_NI":      hh_ni,
        "NH_WHITE":   nh_white,
        "NH_AA":      nh_aa,
        "COMM_PT":    comm_pt,
        "H_F1":       h_f1,
        "REG_DAYS":   reg_days,
        "PR_PELIG":   pr_pelig,
        "E_PELIG":    e_pelig,
        "POLITICALC": politicalc,
        "VG_12":      vg_12,
        "VPR_12":     vpr_12,
        "MESSAGE_A":  message_a,
        "MOVED_AD":   moved_ad,
    })
    logger.info(
        "[Synthetic] Generated %d voters | treated=%d | response rate=%.3f",
        n, int(message_a.sum()), float(moved_ad.mean()),
    )
    return df
