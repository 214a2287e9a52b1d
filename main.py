"""
main.py
=======
Pipeline Orchestrator -- Voter Persuasion Uplift Campaign
=========================================================
Runs the full end-to-end pipeline:

  1. Load the survey table (CSV) or generate a synthetic one
  2. Select the modelling columns and rename the experiment indicators
  3. Analyse the flyer experiment (rates + permutation p-value)
  4. Price a random send (baseline cost per vote)
  5. Seeded train / holdout split
  6. Train the response classifier (treatment indicator as an input)
  7. Score uplift on the holdout and rank the treated voters
  8. Simulate the targeted campaign + targeting-depth sweep
  9. Serialize artifacts, generate figures and the Markdown report

Usage:
  python main.py --data data/raw/Voter-Persuasion.csv
  python main.py --synthetic 5000 --seed 420
  python main.py --data data/raw/Voter-Persuasion.csv --unit-cost 2 \
                 --campaign-size 100000 --decile 0.1 --model logistic
"""

import os
import sys
import argparse
import logging
import warnings
import joblib
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

# Suppress verbose third-party warnings
warnings.filterwarnings("ignore", category=FutureWarning)

# Project imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from voter_uplift.config           import load_config
from voter_uplift.errors           import UpliftPipelineError
from voter_uplift.data_loader      import load
from voter_uplift.synthetic        import make_voter_dataset
from voter_uplift.feature_selector import select_features, feature_names, TREATMENT_COL, RESPONSE_COL
from voter_uplift.experiment       import (
    analyze_experiment, response_rates_by_group, treated_baseline_rate,
)
from voter_uplift.business         import (
    calculate_cpv, simulate_campaign, targeting_depth_sensitivity,
)
from voter_uplift.splitter         import split
from voter_uplift.classifier       import train_classifier, MODEL_TYPES
from voter_uplift.uplift           import predict_pairs, rank_treated, assign_segments
from voter_uplift.evaluation       import (
    uplift_decile_table, cumulative_gain, qini_curve, classifier_ranking_quality,
)
from voter_uplift.visualization    import (
    plot_response_by_group,
    plot_uplift_distribution,
    plot_decile_response,
    plot_cumulative_gain,
    plot_cpv_comparison,
    plot_depth_sensitivity,
)
from voter_uplift.reporter         import generate_report

# Configuration
DATA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "raw", "Voter-Persuasion.csv")

# Timestamped log so every run preserves its own file
import datetime as _dt
_RUN_TS = _dt.datetime.now().strftime("%Y%m%d_%H%M%S")


def setup_logging():
    """Configure console-only logging. File handler added in main() after parse_args."""
    if hasattr(sys.stdout, "reconfigure"):
        try:
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        except (ValueError, OSError):
            pass  # stream already in use (e.g. captured by a test runner)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Voter Persuasion Uplift Campaign Pipeline"
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--data", default=None,
        help=f"Survey CSV/TSV to analyse (default: {DATA_PATH})"
    )
    source.add_argument(
        "--synthetic", type=int, default=None, metavar="N",
        help="Generate a synthetic survey of N voters instead of reading a file"
    )
    parser.add_argument(
        "--config", default=None,
        help="YAML config file (default: config/campaign_params.yaml)"
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Seed for the split, the permutation test and synthetic data"
    )
    parser.add_argument(
        "--unit-cost", type=float, default=None,
        help="Cost of one flyer (config default: 2.0)"
    )
    parser.add_argument(
        "--campaign-size", type=int, default=None,
        help="Number of flyers in the planned campaign (config default: 100000)"
    )
    parser.add_argument(
        "--train-fraction", type=float, default=None,
        help="Share of voters used for training (config default: 0.8)"
    )
    parser.add_argument(
        "--decile", type=float, default=None,
        help="Share of ranked voters to target (config default: 0.1)"
    )
    parser.add_argument(
        "--model", choices=list(MODEL_TYPES), default=None,
        help="Response classifier family (config default: gbm)"
    )
    parser.add_argument(
        "--n-resamples", type=int, default=None,
        help="Permutations for the experiment p-value (config default: 10000)"
    )
    parser.add_argument(
        "--n-jobs", type=int, choices=[1, 2], default=1,
        help="Run the two counterfactual predict calls concurrently with 2"
    )
    parser.add_argument(
        "--profile", action="store_true",
        help="Log and save a per-column profile of the loaded dataset"
    )
    parser.add_argument(
        "--no-plots", action="store_true",
        help="Skip figure generation"
    )
    parser.add_argument(
        "--output-dir", default="outputs",
        help="Root directory for run outputs (default: outputs)"
    )
    return parser.parse_args(argv)


def resolve_settings(args, cfg: dict) -> dict:
    """CLI flags override the YAML config, which overrides the built-in defaults."""
    def pick(flag, section, key):
        return flag if flag is not None else cfg[section][key]

    return {
        "seed":            pick(args.seed, "split", "seed"),
        "experiment_seed": pick(args.seed, "experiment", "seed"),
        "train_fraction":  pick(args.train_fraction, "split", "train_fraction"),
        "n_resamples":     pick(args.n_resamples, "experiment", "n_resamples"),
        "model":           pick(args.model, "model", "type"),
        "cv_folds":        cfg["model"]["cv_folds"],
        "random_state":    cfg["model"]["random_state"],
        "threshold":       cfg["model"]["threshold"],
        "unit_cost":       pick(args.unit_cost, "campaign", "unit_cost"),
        "campaign_size":   pick(args.campaign_size, "campaign", "campaign_size"),
        "decile_fraction": pick(args.decile, "campaign", "decile_fraction"),
    }


def save_artifacts(artifacts: dict, models_dir: str) -> None:
    """
    Serialize the run's objects to outputs/<RUN>/models/ with joblib.

      - classifier.pkl
      - ranked_table.pkl
      - experiment_summary.pkl
      - campaign_metrics.pkl
      - pipeline_meta.pkl
    """
    os.makedirs(models_dir, exist_ok=True)
    logger = logging.getLogger("main")

    for filename, obj in artifacts.items():
        path = os.path.join(models_dir, filename)
        joblib.dump(obj, path)
        logger.info(f"  Saved -> {path}")

    logger.info(f"All artifacts saved to {models_dir}")


def print_summary(experiment, campaign, cfg: dict) -> None:
    """Short business summary table on stdout."""
    sym = cfg["economics"]["currency_symbol"]
    rows = [
        ("Treated response rate",   f"{experiment.treated_rate:.2%}"),
        ("Control response rate",   f"{experiment.control_rate:.2%}"),
        ("Flyer effect (p-value)",  f"{experiment.rate_difference:+.4f} ({experiment.p_value:.4f})"),
        ("Targeted response rate",  f"{campaign.targeted_response_rate:.2%}"),
        ("Uplift difference",       f"{campaign.uplift_diff:+.4f}"),
        ("Baseline cost per vote",  f"{sym}{campaign.baseline_cpv:,.2f}"),
        ("Targeted cost per vote",  f"{sym}{campaign.targeted_cpv:,.2f}"),
        ("Cost decrease",           f"{campaign.cost_decrease_pct:+.1%}"),
        ("Added votes",             f"{campaign.added_votes:,.0f}"),
        ("Cost savings",            f"{sym}{campaign.cost_savings:,.0f}"),
    ]
    table = pd.DataFrame(rows, columns=["Metric", "Value"]).set_index("Metric")
    print("\n" + "=" * 60)
    print("  CAMPAIGN SUMMARY")
    print("=" * 60)
    print(table.to_string())
    print("=" * 60 + "\n")


# =============================================================================
# Main Pipeline
# =============================================================================
def run_pipeline(args, cfg: dict) -> dict:
    logger = logging.getLogger("main")
    settings = resolve_settings(args, cfg)

    if args.synthetic is not None:
        dataset_name = f"SYNTHETIC{args.synthetic}"
    else:
        dataset_name = os.path.splitext(os.path.basename(args.data or DATA_PATH))[0]

    # ── Output Paths ──────────────────────────────────────────────────────────
    RUN_DIR     = os.path.join(args.output_dir, f"{dataset_name.upper()}_seed{settings['seed']}")
    FIGURES_DIR = os.path.join(RUN_DIR, "figures")
    REPORTS_DIR = os.path.join(RUN_DIR, "reports")
    MODELS_DIR  = os.path.join(RUN_DIR, "models")
    LOGS_DIR    = os.path.join(RUN_DIR, "logs")

    for d in (FIGURES_DIR, REPORTS_DIR, MODELS_DIR, LOGS_DIR):
        os.makedirs(d, exist_ok=True)

    # Add run-specific file handler now that we know the output directory
    LOG_PATH = os.path.join(LOGS_DIR, f"pipeline_{_RUN_TS}.log")
    file_handler = logging.FileHandler(LOG_PATH, mode="w", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logging.getLogger().addHandler(file_handler)

    logger.info("=" * 70)
    logger.info("  VOTER PERSUASION UPLIFT CAMPAIGN PIPELINE")
    logger.info(
        f"  Dataset = {dataset_name} | model = {settings['model']} | "
        f"seed = {settings['seed']} | decile = {settings['decile_fraction']}"
    )
    logger.info(f"  Output Dir = {RUN_DIR}")
    logger.info("=" * 70)

    # ── STEP 1: Load Data ─────────────────────────────────────────────────────
    logger.info("\n[STEP 1] Loading survey data...")
    if args.synthetic is not None:
        raw = make_voter_dataset(n_voters=args.synthetic, seed=settings["seed"])
    else:
        raw = load(args.data or DATA_PATH, emit_report=args.profile, report_dir=REPORTS_DIR)

    # ── STEP 2: Feature Selection ─────────────────────────────────────────────
    logger.info("\n[STEP 2] Selecting modelling columns...")
    selected = select_features(
        raw,
        feature_columns=cfg["data"]["feature_columns"],
        treatment_column=cfg["data"]["treatment_column"],
        response_column=cfg["data"]["response_column"],
    )

    # ── STEP 3: Experiment Analysis ───────────────────────────────────────────
    logger.info("\n[STEP 3] Analysing the flyer experiment...")
    experiment = analyze_experiment(
        selected, n_resamples=settings["n_resamples"], seed=settings["experiment_seed"],
    )
    group_rates = response_rates_by_group(selected)
    baseline_rate = treated_baseline_rate(selected)

    # ── STEP 4: Random-Send Economics ─────────────────────────────────────────
    logger.info("\n[STEP 4] Pricing a random send...")
    random_cpv = calculate_cpv(
        settings["campaign_size"], experiment.rate_difference, settings["unit_cost"],
    )
    logger.info(f"  Random send cost per vote = {random_cpv:,.2f}")

    # ── STEP 5: Train / Holdout Split ─────────────────────────────────────────
    logger.info("\n[STEP 5] Seeded train / holdout split...")
    training, holdout = split(
        selected, train_fraction=settings["train_fraction"], seed=settings["seed"],
    )

    # ── STEP 6: Train Classifier ──────────────────────────────────────────────
    logger.info("\n[STEP 6] Training the response classifier...")
    classifier, cv_metrics = train_classifier(
        training,
        model=settings["model"],
        cv_folds=settings["cv_folds"],
        random_state=settings["random_state"],
    )

    # ── STEP 7: Uplift Scoring ────────────────────────────────────────────────
    logger.info("\n[STEP 7] Scoring uplift on the holdout...")
    pairs = predict_pairs(classifier, holdout, threshold=settings["threshold"], n_jobs=args.n_jobs)
    ranked = rank_treated(pairs)
    segment_counts = assign_segments(pairs, settings["threshold"]).value_counts().to_dict()
    logger.info(f"  Holdout uplift segments: {segment_counts}")

    # Probability under each voter's observed arm
    holdout_probs = np.where(
        pairs[TREATMENT_COL] == 1, pairs["prob_if_treated"], pairs["prob_if_untreated"],
    )
    quality = classifier_ranking_quality(pairs[RESPONSE_COL].to_numpy(), holdout_probs)
    qini = qini_curve(pairs)
    deciles = uplift_decile_table(ranked)
    gain = cumulative_gain(ranked)

    # ── STEP 8: Campaign Simulation ───────────────────────────────────────────
    logger.info("\n[STEP 8] Simulating the targeted campaign...")
    campaign = simulate_campaign(
        ranked,
        decile_fraction=settings["decile_fraction"],
        campaign_size=settings["campaign_size"],
        unit_cost=settings["unit_cost"],
        baseline_rate=baseline_rate,
        baseline_effect=experiment.rate_difference,
    )
    sweep = targeting_depth_sensitivity(
        ranked,
        campaign_size=settings["campaign_size"],
        unit_cost=settings["unit_cost"],
        baseline_rate=baseline_rate,
        baseline_effect=experiment.rate_difference,
    )

    # ── STEP 9: Serialize ─────────────────────────────────────────────────────
    logger.info("\n[STEP 9] Serializing artifacts...")
    command = "python main.py " + " ".join(sys.argv[1:]) if sys.argv[1:] else "python main.py"
    meta = {
        "dataset":        dataset_name,
        "n_voters":       len(selected),
        "n_training":     len(training),
        "n_holdout":      len(holdout),
        "n_ranked":       len(ranked),
        "features":       feature_names(selected),
        "seed":           settings["seed"],
        "settings":       settings,
        "cv_metrics":     cv_metrics,
        "holdout_auc":    quality["auc"],
        "qini_coefficient": qini["qini_coefficient"],
        "segment_counts": segment_counts,
        "command":        command,
    }
    save_artifacts(
        {
            "classifier.pkl":         classifier,
            "ranked_table.pkl":       ranked,
            "experiment_summary.pkl": experiment,
            "campaign_metrics.pkl":   campaign,
            "pipeline_meta.pkl":      meta,
        },
        MODELS_DIR,
    )
    ranked.to_csv(os.path.join(REPORTS_DIR, "ranked_uplift.csv"), index=False)
    deciles.to_csv(os.path.join(REPORTS_DIR, "uplift_deciles.csv"), index=False)
    sweep.to_csv(os.path.join(REPORTS_DIR, "depth_sensitivity.csv"), index=False)
    quality["lift_table"].to_csv(os.path.join(REPORTS_DIR, "classifier_lift.csv"), index=False)

    # ── STEP 10: Visualizations ───────────────────────────────────────────────
    if not args.no_plots:
        logger.info("\n[STEP 10] Generating figures...")
        figure_jobs = [
            ("Response-by-group plot", plot_response_by_group, (group_rates,), "response_by_group.png"),
            ("Uplift distribution plot", plot_uplift_distribution, (ranked,), "uplift_distribution.png"),
            ("Decile response plot", plot_decile_response, (deciles, baseline_rate), "decile_response.png"),
            ("Cumulative gain plot", plot_cumulative_gain, (gain, qini), "cumulative_gain.png"),
            ("CPV comparison plot", plot_cpv_comparison, (campaign.as_dict(),), "cpv_comparison.png"),
            ("Depth sensitivity plot", plot_depth_sensitivity, (sweep,), "depth_sensitivity.png"),
        ]
        for label, plot_fn, plot_args, filename in figure_jobs:
            try:
                fig = plot_fn(*plot_args, save_path=os.path.join(FIGURES_DIR, filename))
                plt.close(fig)
            except Exception as e:
                logger.warning(f"{label} failed: {e}")

    report_path = generate_report(
        meta=meta,
        experiment=experiment.as_dict(),
        cv_metrics=cv_metrics,
        campaign=campaign.as_dict(),
        decile_table=deciles,
        run_dir=RUN_DIR,
        dataset_name=dataset_name,
        holdout_quality={"auc": quality["auc"], "qini_coefficient": qini["qini_coefficient"]},
        segment_counts=segment_counts,
        cfg=cfg,
    )

    print_summary(experiment, campaign, cfg)

    logger.info("\n[DONE] Pipeline completed successfully.")
    logger.info(f"  Figures  -> {FIGURES_DIR}")
    logger.info(f"  Reports  -> {REPORTS_DIR}")
    logger.info(f"  Models   -> {MODELS_DIR}")
    logger.info(f"  Report   -> {report_path}")
    logger.info(f"  Log      -> {LOG_PATH}")

    return {
        "experiment": experiment,
        "campaign":   campaign,
        "ranked":     ranked,
        "run_dir":    RUN_DIR,
    }


def main(argv=None):
    setup_logging()
    logger = logging.getLogger("main")
    args = parse_args(argv)

    root = logging.getLogger()
    handlers_before = list(root.handlers)
    try:
        cfg = load_config(args.config)
        return run_pipeline(args, cfg)
    except UpliftPipelineError as exc:
        logger.error(f"[FAILED] {type(exc).__name__}: {exc}")
        sys.exit(1)
    finally:
        # Detach the per-run file handler
        for handler in root.handlers[:]:
            if handler not in handlers_before:
                root.removeHandler(handler)
                handler.close()


if __name__ == "__main__":
    main()
