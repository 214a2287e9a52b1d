"""
voter_uplift/data_loader.py
===========================
Loads the voter-persuasion survey file and returns a raw voter-level
DataFrame.  Optionally emits a per-column data profile.

File contract:
  1. Delimited text (.csv / .tsv / .txt). The delimiter is sniffed unless
     given explicitly.
  2. One row per surveyed voter.
  3. Header uses uppercase snake-case names (AGE, GENDER_F, MESSAGE_A ...).

The returned frame is the immutable source Dataset: later stages derive new
frames from it and never write back.
"""

import os
import re
import csv
import logging
import numpy as np
import pandas as pd

from voter_uplift.errors import DatasetNotFound, DatasetParseError

logger = logging.getLogger(__name__)

_SUPPORTED_EXTENSIONS = (".csv", ".tsv", ".txt")
_HEADER_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")


def load(
    filepath: str,
    emit_report: bool = False,
    report_dir: str = None,
    sep: str = None,
) -> pd.DataFrame:
    """
    Load the raw voter survey table.

    Parameters
    ----------
    filepath : str
        Path to the delimited text file.
    emit_report : bool
        If True, build a data profile with :func:`profile_dataset` and log it.
    report_dir : str, optional
        When given together with ``emit_report``, the profile is also written
        to ``{report_dir}/data_profile.csv``.
    sep : str, optional
        Column delimiter. Sniffed from the file when omitted.

    Returns
    -------
    pd.DataFrame
        One row per voter, original column names, default RangeIndex (row id).

    Raises
    ------
    DatasetNotFound
        If the file does not exist at the given path.
    DatasetParseError
        If the file is empty, malformed, has an unsupported extension, or its
        header does not follow the uppercase snake-case convention.
    """
    if not os.path.exists(filepath):
        raise DatasetNotFound(f"[Loader] Dataset not found at: {filepath}")

    ext = os.path.splitext(filepath)[1].lower()
    if ext not in _SUPPORTED_EXTENSIONS:
        raise DatasetParseError(
            f"[Loader] Unsupported file format: {ext!r}. "
            f"Use one of {', '.join(_SUPPORTED_EXTENSIONS)}"
        )

    logger.info(f"[Loader] Loading dataset from: {filepath}")
    read_kwargs = {"sep": sep} if sep is not None else {"sep": None, "engine": "python"}
    try:
        df = pd.read_csv(filepath, **read_kwargs)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError, csv.Error) as exc:
        raise DatasetParseError(f"[Loader] Could not parse {filepath}: {exc}") from exc

    if df.shape[1] == 0:
        raise DatasetParseError(f"[Loader] {filepath} has no columns.")

    _validate_header(df.columns, filepath)
    logger.info(f"[Loader] Raw dataset shape: {df.shape}")

    if emit_report:
        profile = profile_dataset(df)
        logger.info(f"[Loader] Data profile:\n{profile.to_string()}")
        if report_dir:
            os.makedirs(report_dir, exist_ok=True)
            profile_path = os.path.join(report_dir, "data_profile.csv")
            profile.to_csv(profile_path)
            logger.info(f"[Loader] Data profile saved → {profile_path}")

    return df


def _validate_header(columns, filepath: str) -> None:
    names = [str(c) for c in columns]
    duplicated = sorted({c for c in names if names.count(c) > 1})
    if duplicated:
        raise DatasetParseError(f"[Loader] Duplicate column names in {filepath}: {duplicated}")

    # pandas suffixes duplicates as "NAME.1"; those fail the pattern too
    bad = [c for c in names if not _HEADER_PATTERN.match(c)]
    if bad:
        raise DatasetParseError(
            f"[Loader] Header of {filepath} must use uppercase snake-case names. "
            f"Offending columns: {bad[:10]}"
        )


def profile_dataset(df: pd.DataFrame) -> pd.DataFrame:
    """
    Per-column data profile.

    Returns
    -------
    pd.DataFrame
        Indexed by column name with: dtype, non_null, missing_pct, n_unique,
        mean, std, min, max (numeric stats are NaN for non-numeric columns).
    """
    numeric = df.select_dtypes(include=[np.number])
    profile = pd.DataFrame({
        "dtype":       df.dtypes.astype(str),
        "non_null":    df.notna().sum(),
        "missing_pct": df.isna().mean() * 100,
        "n_unique":    df.nunique(dropna=True),
    })
    stats = numeric.agg(["mean", "std", "min", "max"]).T
    profile = profile.join(stats, how="left")
    profile.index.name = "column"
    return profile
