"""
voter_uplift/reporter.py
========================
Generates a shareable Markdown report from one pipeline run.

Usage
-----
    from voter_uplift.reporter import generate_report
    generate_report(
        meta=run_meta,
        experiment=summary.as_dict(),
        cv_metrics=cv_metrics,
        campaign=metrics.as_dict(),
        decile_table=deciles,
        run_dir=RUN_DIR,
        dataset_name="Voter-Persuasion",
    )

Output
------
  {run_dir}/reports/report.md
"""

import os
import math
import logging
import datetime

from voter_uplift.config import get_currency_code, get_currency_symbol

logger = logging.getLogger(__name__)


def _pct(v) -> str:
    if v is None or (isinstance(v, float) and math.isnan(v)):
        return "N/A"
    return f"{v * 100:.1f}%"


def _f4(v) -> str:
    if v is None:
        return "N/A"
    try:
        v = float(v)
    except (TypeError, ValueError):
        return str(v)
    return "N/A" if math.isnan(v) else f"{v:.4f}"


def _f0(v) -> str:
    if v is None:
        return "N/A"
    try:
        v = float(v)
    except (TypeError, ValueError):
        return str(v)
    return "N/A" if math.isnan(v) else f"{v:,.0f}"


def _money(v, sym: str) -> str:
    text = _f4(v)
    if text == "N/A":
        return text
    return f"{sym}{float(v):,.2f}"


def _decile_rows(decile_table) -> list:
    if decile_table is None or len(decile_table) == 0:
        return ["Not computed in this run."]
    rows = [
        "| Bin | Voters | Mean uplift | Response rate | Cumulative rate | Lift |",
        "|-----|--------|-------------|---------------|-----------------|------|",
    ]
    for rec in decile_table.to_dict("records"):
        rows.append(
            f"| {int(rec['bin'])} | {int(rec['n']):,} | {rec['mean_uplift']:+.4f} | "
            f"{_pct(rec['response_rate'])} | {_pct(rec['cum_rate'])} | {_f4(rec['lift'])} |"
        )
    return rows


def generate_report(
    meta: dict,
    experiment: dict,
    cv_metrics: dict,
    campaign: dict,
    decile_table,
    run_dir: str,
    dataset_name: str = "Unknown",
    holdout_quality: dict = None,
    segment_counts: dict = None,
    cfg: dict = None,
) -> str:
    """
    Write the Markdown report to {run_dir}/reports/report.md.

    Parameters
    ----------
    meta : dict
        Run metadata: ``n_voters``, ``n_training``, ``n_holdout``,
        ``n_ranked``, ``features``, ``seed``, ``command``.
    experiment : dict
        ``ExperimentSummary.as_dict()``.
    cv_metrics : dict
        Second value returned by ``train_classifier``.
    campaign : dict
        ``CampaignMetrics.as_dict()``.
    decile_table : pd.DataFrame
        ``evaluation.uplift_decile_table`` output.
    run_dir : str
        Root output directory for this run.
    dataset_name : str
        Name shown in the header.
    holdout_quality : dict, optional
        ``auc`` of the classifier on the holdout and ``qini_coefficient``.
    segment_counts : dict, optional
        Uplift segment -> number of holdout voters.
    cfg : dict, optional
        Configuration used for the currency labels.

    Returns
    -------
    str
        Path to the generated report.md file.
    """
    sym  = get_currency_symbol(cfg)
    code = get_currency_code(cfg)
    now  = datetime.datetime.now().strftime("%Y-%m-%d %H:%M")

    reports_dir = os.path.join(run_dir, "reports")
    os.makedirs(reports_dir, exist_ok=True)
    report_path = os.path.join(reports_dir, "report.md")

    holdout_quality = holdout_quality or {}
    features = meta.get("features", [])

    # ── Figures ───────────────────────────────────────────────────────────────
    figures_dir = os.path.join(run_dir, "figures")
    def _fig(name: str) -> str:
        p = os.path.join(figures_dir, name)
        rel = os.path.relpath(p, reports_dir)
        if os.path.exists(p):
            return f"![{name}]({rel})\n"
        return f"*({name} not generated in this run)*\n"

    # ── Segments ─────────────────────────────────────────────────────────────
    if segment_counts:
        total = sum(segment_counts.values()) or 1
        segment_lines = [
            "| Segment | Holdout voters | Share |",
            "|---------|----------------|-------|",
        ] + [
            f"| {name} | {count:,} | {_pct(count / total)} |"
            for name, count in segment_counts.items()
        ]
    else:
        segment_lines = ["Not computed in this run."]

    lines = [
        "# Voter Persuasion Campaign: Uplift Report",
        "",
        f"> **Dataset**: {dataset_name}  |  **Generated**: {now}  |  **Currency**: {code} ({sym})",
        "",
        "---",
        "",
        "## 1. Dataset Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Voters | {_f0(meta.get('n_voters'))} |",
        f"| Training / holdout | {_f0(meta.get('n_training'))} / {_f0(meta.get('n_holdout'))} |",
        f"| Treated holdout voters ranked | {_f0(meta.get('n_ranked'))} |",
        f"| Split seed | {meta.get('seed', 'N/A')} |",
        f"| Features used | {', '.join(features) if features else 'N/A'} |",
        "",
        "---",
        "",
        "## 2. Flyer Experiment",
        "",
        "| Arm | Voters | Response rate |",
        "|-----|--------|---------------|",
        f"| Flyer (treatment) | {_f0(experiment.get('n_treated'))} | {_pct(experiment.get('treated_rate'))} |",
        f"| No flyer (control) | {_f0(experiment.get('n_control'))} | {_pct(experiment.get('control_rate'))} |",
        "",
        f"Difference (treated - control): **{_f4(experiment.get('rate_difference'))}**, "
        f"permutation p-value **{_f4(experiment.get('p_value'))}** "
        f"({_f0(experiment.get('n_resamples'))} resamples).",
        "",
        _fig("response_by_group.png"),
        "---",
        "",
        "## 3. Response Classifier",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Model | {cv_metrics.get('model', 'N/A')} |",
        f"| CV AUC | {_f4(cv_metrics.get('auc_mean'))} ± {_f4(cv_metrics.get('auc_std'))} |",
        f"| CV accuracy | {_f4(cv_metrics.get('acc_mean'))} ± {_f4(cv_metrics.get('acc_std'))} |",
        f"| Holdout AUC | {_f4(holdout_quality.get('auc'))} |",
        f"| Qini coefficient (holdout) | {_f4(holdout_quality.get('qini_coefficient'))} |",
        "",
        "> Uplift = P(move | flyer) - P(move | no flyer) from a single classifier that",
        "> uses the flyer indicator as an input. It ranks voters; it is not an",
        "> unbiased causal estimate.",
        "",
        _fig("uplift_distribution.png"),
        "### 3.1 Uplift Segments",
        "",
        *segment_lines,
        "",
        "---",
        "",
        "## 4. Targeted Campaign",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Voters targeted (validation) | {_f0(campaign.get('n_targeted'))} |",
        f"| Targeted response rate | {_pct(campaign.get('targeted_response_rate'))} |",
        f"| Random-send response rate | {_pct(campaign.get('baseline_rate'))} |",
        f"| Uplift difference | {_f4(campaign.get('uplift_diff'))} |",
        f"| Baseline cost per vote | {_money(campaign.get('baseline_cpv'), sym)} |",
        f"| Targeted cost per vote | {_money(campaign.get('targeted_cpv'), sym)} |",
        f"| Cost decrease | {_pct(campaign.get('cost_decrease_pct'))} |",
        f"| Added votes ({_f0(campaign.get('campaign_size'))} flyers) | {_f0(campaign.get('added_votes'))} |",
        f"| Cost savings | {_money(campaign.get('cost_savings'), sym)} |",
        "",
        _fig("cpv_comparison.png"),
        _fig("depth_sensitivity.png"),
        "### 4.1 Uplift Deciles",
        "",
        *_decile_rows(decile_table),
        "",
        _fig("decile_response.png"),
        _fig("cumulative_gain.png"),
        "---",
        "",
        "## 5. Reproducibility",
        "",
        "```bash",
        f"{meta.get('command', 'python main.py')}",
        "```",
        "",
        f"Artifacts serialised to `{os.path.join(run_dir, 'models')}`.",
        "",
        "---",
        "",
        "*Report generated automatically by `voter_uplift/reporter.py`*",
    ]

    with open(report_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))

    logger.info(f"[Reporter] Report saved → {report_path}")
    return report_path
