"""
voter_uplift/classifier.py
==========================
Response classifier used by the uplift scorer.

The scorer only relies on one capability:

    predict(rows: pd.DataFrame) -> np.ndarray   # P(response_indicator = 1)

Anything exposing that method can be passed to ``score_uplift``.
``SklearnClassifier`` provides it for any fitted scikit-learn estimator with
``predict_proba`` and enforces the training-time schema on every call.

``train_classifier`` fits one of two plain models on the training split:

  gbm       impute -> scale -> GradientBoostingClassifier
  logistic  impute -> scale -> LogisticRegression

The treatment indicator is an ordinary input column (single-model
formulation): it is what allows the scorer to flip it and read off the
counterfactual prediction.
"""

import logging
import warnings
import numpy as np
import pandas as pd
from sklearn.ensemble import GradientBoostingClassifier
from sklearn.impute import SimpleImputer
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import StratifiedKFold, cross_val_score
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from voter_uplift.errors import ClassifierError, InvalidParameter, SchemaMismatch
from voter_uplift.feature_selector import TREATMENT_COL, RESPONSE_COL

logger = logging.getLogger(__name__)

MODEL_TYPES = ("gbm", "logistic")


class SklearnClassifier:
    """
    Adapter exposing ``predict(rows) -> P(response = 1)`` for a fitted
    scikit-learn estimator.

    Parameters
    ----------
    estimator
        Fitted estimator (or Pipeline) with ``predict_proba``.
    feature_columns : list of str
        Exact column names, in order, the estimator was trained on.
    """

    def __init__(self, estimator, feature_columns: list):
        if not hasattr(estimator, "predict_proba"):
            raise TypeError("estimator must support predict_proba")
        self.estimator = estimator
        self.feature_columns = list(feature_columns)

    def _check_schema(self, rows: pd.DataFrame) -> None:
        if not isinstance(rows, pd.DataFrame):
            raise SchemaMismatch("[Classifier] rows must be a pandas.DataFrame")
        received = [str(c) for c in rows.columns]
        if received != self.feature_columns:
            missing = [c for c in self.feature_columns if c not in received]
            extra   = [c for c in received if c not in self.feature_columns]
            raise SchemaMismatch(
                "[Classifier] Input schema does not match training schema "
                f"(missing={missing}, unexpected={extra}, "
                f"order_matches={not missing and not extra})"
            )

    def predict(self, rows: pd.DataFrame) -> np.ndarray:
        """Probability of a positive response for each row."""
        self._check_schema(rows)
        try:
            proba = np.asarray(self.estimator.predict_proba(rows), dtype=float)
        except Exception as exc:
            raise ClassifierError(f"[Classifier] predict_proba failed: {exc}") from exc

        if proba.ndim != 2 or proba.shape[1] < 2:
            raise ClassifierError(
                f"[Classifier] predict_proba returned shape {proba.shape}; expected (n, 2)"
            )
        classes = list(getattr(self.estimator, "classes_", [0, 1]))
        pos_idx = classes.index(1) if 1 in classes else proba.shape[1] - 1
        return proba[:, pos_idx]

    def __repr__(self):
        return f"SklearnClassifier({type(self.estimator).__name__}, n_features={len(self.feature_columns)})"


def _make_pipeline(model: str, random_state: int) -> Pipeline:
    if model == "gbm":
        estimator = GradientBoostingClassifier(
            n_estimators=150, max_depth=3, learning_rate=0.05,
            subsample=0.8, random_state=random_state,
        )
    elif model == "logistic":
        estimator = LogisticRegression(
            C=1.0, max_iter=1000, solver="lbfgs", random_state=random_state,
        )
    else:
        raise InvalidParameter(f"[Classifier] Unknown model '{model}'. Use one of {MODEL_TYPES}")

    return Pipeline([
        ("imputer", SimpleImputer(strategy="median")),
        ("scaler",  StandardScaler()),
        ("model",   estimator),
    ])


def train_classifier(
    training: pd.DataFrame,
    model: str = "gbm",
    cv_folds: int = 5,
    random_state: int = 42,
) -> tuple:
    """
    Fit the response classifier on the training split.

    Parameters
    ----------
    training : pd.DataFrame
        Selected training frame: feature columns, ``treatment_indicator`` and
        ``response_indicator``.
    model : {"gbm", "logistic"}
        Model family.
    cv_folds : int
        Stratified CV folds used to report AUC / accuracy before the final fit.
    random_state : int
        Seed for the estimator and the CV shuffle.

    Returns
    -------
    classifier : SklearnClassifier
        Fitted on the full training split.
    cv_metrics : dict
        ``auc_mean``, ``auc_std``, ``acc_mean``, ``acc_std`` (NaN when CV was
        skipped), ``model``, ``features``.
    """
    if RESPONSE_COL not in training.columns or TREATMENT_COL not in training.columns:
        raise SchemaMismatch(
            f"[Classifier] training must contain '{TREATMENT_COL}' and '{RESPONSE_COL}'"
        )
    if model not in MODEL_TYPES:
        raise InvalidParameter(f"[Classifier] Unknown model '{model}'. Use one of {MODEL_TYPES}")

    feature_cols = [c for c in training.columns if c != RESPONSE_COL]
    non_numeric = [c for c in feature_cols if not pd.api.types.is_numeric_dtype(training[c])]
    if non_numeric:
        raise SchemaMismatch(f"[Classifier] Non-numeric input columns: {non_numeric}")
    X = training[feature_cols]
    y = training[RESPONSE_COL].astype(int).values

    class_counts = np.bincount(y, minlength=2)
    if (class_counts == 0).any():
        raise InvalidParameter(
            "[Classifier] Training split must contain both responders and non-responders "
            f"(counts={class_counts.tolist()})"
        )

    logger.info(
        f"[Classifier] Training {model} on {len(X):,} voters | "
        f"{len(feature_cols)} inputs | response rate={y.mean():.3f}"
    )

    pipeline = _make_pipeline(model, random_state)

    cv_metrics = {
        "auc_mean": float("nan"), "auc_std": float("nan"),
        "acc_mean": float("nan"), "acc_std": float("nan"),
        "model":    model,
        "features": feature_cols,
    }
    if cv_folds and cv_folds >= 2 and class_counts.min() >= cv_folds:
        cv = StratifiedKFold(n_splits=cv_folds, shuffle=True, random_state=random_state)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            cv_auc = cross_val_score(pipeline, X, y, cv=cv, scoring="roc_auc")
            cv_acc = cross_val_score(pipeline, X, y, cv=cv, scoring="accuracy")
        cv_metrics.update({
            "auc_mean": float(cv_auc.mean()), "auc_std": float(cv_auc.std()),
            "acc_mean": float(cv_acc.mean()), "acc_std": float(cv_acc.std()),
        })
        logger.info(
            f"[Classifier] CV AUC: {cv_metrics['auc_mean']:.4f} +/- {cv_metrics['auc_std']:.4f} | "
            f"Accuracy: {cv_metrics['acc_mean']:.4f} +/- {cv_metrics['acc_std']:.4f}"
        )
    else:
        logger.warning(
            f"[Classifier] Skipping {cv_folds}-fold CV: smallest class has "
            f"{int(class_counts.min())} members."
        )

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        pipeline.fit(X, y)

    return SklearnClassifier(pipeline, feature_cols), cv_metrics
