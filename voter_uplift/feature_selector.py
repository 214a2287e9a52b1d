"""
voter_uplift/feature_selector.py
================================
Restricts the raw survey table to the modelling columns and gives the two
experiment columns their canonical roles:

  MESSAGE_A  →  treatment_indicator   (1 = received the persuasion flyer)
  MOVED_AD   →  response_indicator    (1 = moved toward the target candidate)

All remaining names are lowercased (AGE → age, GENDER_F → gender_f).
The source frame is never modified; a new frame is returned with the source
row index intact so every downstream row can be traced back to its voter.
"""

import logging
import pandas as pd

from voter_uplift.config import DEFAULTS
from voter_uplift.errors import SchemaMismatch

logger = logging.getLogger(__name__)

TREATMENT_COL = "treatment_indicator"
RESPONSE_COL  = "response_indicator"

DEFAULT_FEATURES = list(DEFAULTS["data"]["feature_columns"])


def _as_binary(series: pd.Series, role: str) -> pd.Series:
    if pd.api.types.is_bool_dtype(series):
        series = series.astype(int)
    values = pd.to_numeric(series, errors="coerce")
    if values.isnull().any():
        raise SchemaMismatch(f"[Select] {role} contains NaN/non-numeric values")
    unique = set(pd.unique(values))
    if not unique.issubset({0, 1}):
        raise SchemaMismatch(f"[Select] {role} must be binary (0/1). Found: {sorted(unique)}")
    return values.astype(int)


def _as_numeric_features(df: pd.DataFrame, columns: list) -> pd.DataFrame:
    bad = []
    for col in columns:
        series = df[col]
        if pd.api.types.is_bool_dtype(series):
            series = series.astype(int)
        values = pd.to_numeric(series, errors="coerce")
        # Missing cells stay NaN for the imputer; unparseable text is an error
        if (values.isnull() & series.notnull()).any():
            bad.append(col)
        df[col] = values
    if bad:
        raise SchemaMismatch(f"[Select] Feature columns contain non-numeric values: {bad}")
    return df


def select_features(
    dataset: pd.DataFrame,
    feature_columns: list = None,
    treatment_column: str = None,
    response_column: str = None,
) -> pd.DataFrame:
    """
    Build the narrowed, renamed modelling view of the dataset.

    Parameters
    ----------
    dataset : pd.DataFrame
        Raw survey table (output of ``data_loader.load``).
    feature_columns : list of str, optional
        Source names of the covariates to keep. Defaults to the configured
        voter-persuasion feature list.
    treatment_column, response_column : str, optional
        Source names of the flyer and outcome indicators
        (defaults ``MESSAGE_A`` / ``MOVED_AD``).

    Returns
    -------
    pd.DataFrame
        Lowercase feature columns followed by ``treatment_indicator`` and
        ``response_indicator`` (both int 0/1).

    Raises
    ------
    SchemaMismatch
        If a requested column is absent, a name collides after lowercasing,
        an indicator is not binary, or a feature column holds values that
        cannot be parsed as numbers (missing cells are kept as NaN).
    """
    features  = list(feature_columns) if feature_columns is not None else DEFAULT_FEATURES
    treatment = treatment_column or DEFAULTS["data"]["treatment_column"]
    response  = response_column  or DEFAULTS["data"]["response_column"]

    wanted  = features + [treatment, response]
    missing = [c for c in wanted if c not in dataset.columns]
    if missing:
        raise SchemaMismatch(
            f"[Select] Dataset is missing columns: {missing}. "
            f"Available: {list(dataset.columns)}"
        )
    if treatment in features or response in features:
        raise SchemaMismatch("[Select] Treatment/response columns cannot also be feature columns")

    df = dataset[wanted].copy()
    df = df.rename(columns={treatment: TREATMENT_COL, response: RESPONSE_COL})
    df.columns = [str(c).lower() for c in df.columns]
    if df.columns.duplicated().any():
        dupes = sorted(set(df.columns[df.columns.duplicated()]))
        raise SchemaMismatch(f"[Select] Column names collide after lowercasing: {dupes}")

    df[TREATMENT_COL] = _as_binary(df[TREATMENT_COL], TREATMENT_COL)
    df[RESPONSE_COL]  = _as_binary(df[RESPONSE_COL], RESPONSE_COL)
    df = _as_numeric_features(df, feature_names(df))

    logger.info(
        f"[Select] Kept {len(features)} features + indicators | "
        f"{len(df):,} voters | treated={int(df[TREATMENT_COL].sum()):,}"
    )
    return df


def feature_names(df: pd.DataFrame) -> list:
    """Covariate columns of a selected frame (everything but the two indicators)."""
    return [c for c in df.columns if c not in (TREATMENT_COL, RESPONSE_COL)]
