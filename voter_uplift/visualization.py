"""
voter_uplift/visualization.py
=============================
Figures for the voter persuasion campaign report.

Produces:
  1. Response rate by experiment arm
  2. Uplift distribution of the treated holdout
  3. Response rate per uplift decile
  4. Cumulative gain + Qini curve
  5. Cost-per-vote comparison (random send vs targeted send)
  6. Added votes across targeting depths
"""

import logging
import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for script mode
import matplotlib.pyplot as plt
import seaborn as sns

from voter_uplift.config import get_currency_code, get_currency_symbol

logger = logging.getLogger(__name__)

# ── Style ─────────────────────────────────────────────────────────────────────
PALETTE = {
    "control":   "#95a5a6",
    "treatment": "#3498db",
    "targeted":  "#2ecc71",
    "random":    "#e67e22",
}
plt.rcParams.update({
    "figure.dpi":        150,
    "font.family":       "DejaVu Sans",
    "axes.spines.top":   False,
    "axes.spines.right": False,
    "axes.grid":         True,
    "grid.alpha":        0.3,
})


def _save(fig: plt.Figure, save_path: str, label: str) -> None:
    if save_path:
        fig.savefig(save_path, bbox_inches="tight")
        logger.info(f"Saved {label} → {save_path}")


def plot_response_by_group(rates: pd.DataFrame, save_path: str = None) -> plt.Figure:
    """
    Bar chart of response rate per arm.

    ``rates`` is the output of ``experiment.response_rates_by_group``.
    """
    fig, ax = plt.subplots(figsize=(6, 5))
    bars = ax.bar(
        rates.index,
        rates["response_rate"].fillna(0).values,
        color=[PALETTE.get(g, "#7f8c8d") for g in rates.index],
        edgecolor="white",
        linewidth=1.2,
    )
    ax.bar_label(bars, labels=[f"{v:.1%}" for v in rates["response_rate"].fillna(0)], padding=3)
    ax.set_ylabel("Moved toward candidate")
    ax.set_ylim(0, max(rates["response_rate"].max() * 1.25, 0.05))
    ax.set_title("Response Rate: Flyer vs Control", fontsize=13, fontweight="bold")
    plt.tight_layout()
    _save(fig, save_path, "response-by-group plot")
    return fig


def plot_uplift_distribution(ranked: pd.DataFrame, save_path: str = None) -> plt.Figure:
    """Histogram of estimated uplift for the treated holdout voters."""
    fig, ax = plt.subplots(figsize=(9, 5))
    sns.histplot(ranked["uplift"], bins=40, color=PALETTE["treatment"], kde=True, ax=ax)
    ax.axvline(0, color="#e74c3c", linestyle="--", linewidth=1.5, label="No effect")
    ax.axvline(ranked["uplift"].mean(), color="#2c3e50", linewidth=1.5,
               label=f"Mean = {ranked['uplift'].mean():+.3f}")
    ax.set_xlabel("P(move | flyer) - P(move | no flyer)")
    ax.set_ylabel("Voters")
    ax.set_title("Estimated Uplift: Treated Holdout", fontsize=13, fontweight="bold")
    ax.legend()
    plt.tight_layout()
    _save(fig, save_path, "uplift distribution plot")
    return fig


def plot_decile_response(decile_table: pd.DataFrame, baseline_rate: float, save_path: str = None) -> plt.Figure:
    """Observed response rate per uplift bin against the random-send rate."""
    fig, ax = plt.subplots(figsize=(10, 5))
    sns.barplot(
        x=decile_table["bin"].astype(str), y=decile_table["response_rate"],
        color=PALETTE["targeted"], ax=ax,
    )
    ax.axhline(baseline_rate, color=PALETTE["random"], linestyle="--", linewidth=1.5,
               label=f"Random send = {baseline_rate:.1%}")
    ax.set_xlabel("Uplift bin (1 = highest estimated uplift)")
    ax.set_ylabel("Observed response rate")
    ax.set_title("Response Rate by Uplift Decile", fontsize=13, fontweight="bold")
    ax.legend()
    plt.tight_layout()
    _save(fig, save_path, "decile response plot")
    return fig


def plot_cumulative_gain(gain: pd.DataFrame, qini: dict = None, save_path: str = None) -> plt.Figure:
    """
    Cumulative gain of the treated ranking; with ``qini`` a second panel shows
    the Qini curve over the whole holdout.
    """
    n_panels = 2 if qini else 1
    fig, axes = plt.subplots(1, n_panels, figsize=(7 * n_panels, 5))
    axes = np.atleast_1d(axes)

    ax = axes[0]
    ax.plot(gain["fraction_targeted"] * 100, gain["fraction_responders"] * 100,
            color=PALETTE["targeted"], lw=2, label="Uplift ranking")
    ax.plot(gain["fraction_targeted"] * 100, gain["random"] * 100,
            color="#888", lw=1.5, ls="--", label="Random targeting")
    ax.set_xlabel("% treated voters targeted")
    ax.set_ylabel("% responders captured")
    ax.set_title("Cumulative Gain", fontsize=13, fontweight="bold")
    ax.legend()

    if qini:
        ax = axes[1]
        x = np.asarray(qini["qini_x"]) * 100
        ax.plot(x, qini["qini_y"], color="#00b4d8", lw=2, label="Uplift ranking")
        ax.plot(x, qini["random_y"], color="#888", lw=1.5, ls="--", label="Random targeting")
        ax.fill_between(x, qini["qini_y"], qini["random_y"], alpha=0.15, color="#00b4d8")
        ax.set_xlabel("% holdout targeted")
        ax.set_ylabel("Incremental responders")
        ax.set_title(f"Qini Curve (coef = {qini['qini_coefficient']:+.2f})",
                     fontsize=13, fontweight="bold")
        ax.legend()

    plt.tight_layout()
    _save(fig, save_path, "cumulative gain plot")
    return fig


def plot_cpv_comparison(metrics: dict, save_path: str = None) -> plt.Figure:
    """Baseline vs targeted cost per vote (``CampaignMetrics.as_dict()``)."""
    sym  = get_currency_symbol()
    code = get_currency_code()
    labels = ["Random send", "Targeted send"]
    values = [metrics["baseline_cpv"], metrics["targeted_cpv"]]
    plot_values = [0.0 if (v is None or not np.isfinite(v)) else v for v in values]

    fig, ax = plt.subplots(figsize=(6, 5))
    bars = ax.bar(labels, plot_values, color=[PALETTE["random"], PALETTE["targeted"]],
                  edgecolor="white", linewidth=1.2)
    ax.bar_label(
        bars,
        labels=[f"{sym}{v:,.2f}" if np.isfinite(v) else "n/a" for v in values],
        padding=3,
    )
    ax.axhline(0, color="#2c3e50", linewidth=0.8)
    ax.set_ylabel(f"Cost per additional vote ({code})")
    ax.set_title(
        f"Cost per Vote: top {metrics['n_targeted']:,} ranked voters",
        fontsize=13, fontweight="bold",
    )
    plt.tight_layout()
    _save(fig, save_path, "CPV comparison plot")
    return fig


def plot_depth_sensitivity(sweep: pd.DataFrame, save_path: str = None) -> plt.Figure:
    """Added votes and targeted CPV across targeting depths."""
    fig, ax1 = plt.subplots(figsize=(9, 5))
    x = sweep["decile_fraction"] * 100
    ax1.plot(x, sweep["added_votes"], "o-", color=PALETTE["targeted"], lw=2, label="Added votes")
    ax1.set_xlabel("% ranked voters targeted")
    ax1.set_ylabel("Added votes (campaign scale)")

    ax2 = ax1.twinx()
    ax2.plot(x, sweep["targeted_cpv"], "s--", color=PALETTE["random"], lw=1.5, label="Targeted CPV")
    ax2.set_ylabel(f"Cost per vote ({get_currency_code()})")
    ax2.grid(False)

    lines = ax1.get_lines() + ax2.get_lines()
    ax1.legend(lines, [l.get_label() for l in lines], loc="best")
    ax1.set_title("Targeting Depth Sensitivity", fontsize=13, fontweight="bold")
    plt.tight_layout()
    _save(fig, save_path, "depth sensitivity plot")
    return fig
