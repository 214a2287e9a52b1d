"""
voter_uplift/splitter.py
========================
Seeded train / holdout partition of the selected voter table.

  perm     = default_rng(seed).permutation(n)
  training = rows at perm[:round(train_fraction * n)]
  holdout  = rows at perm[round(train_fraction * n):]

Both parts keep the source index (row id) and the source row order, so
together they cover the input exactly once and can be compared by id across
runs.
"""

import logging
import numbers
import numpy as np
import pandas as pd

from voter_uplift.errors import EmptyDataset, InvalidFraction

logger = logging.getLogger(__name__)


def split(
    dataset: pd.DataFrame,
    train_fraction: float = 0.8,
    seed: int = 420,
) -> tuple:
    """
    Partition ``dataset`` into (training, holdout).

    Parameters
    ----------
    dataset : pd.DataFrame
        Selected voter frame.
    train_fraction : float
        Share of rows assigned to training, strictly between 0 and 1.
    seed : int
        Seed for the row shuffle. Same seed + same input → identical split.

    Returns
    -------
    (pd.DataFrame, pd.DataFrame)
        ``training`` and ``holdout``; disjoint, together equal to the input.

    Raises
    ------
    InvalidFraction
        If ``train_fraction`` is not a real number in (0, 1).
    EmptyDataset
        If the input has zero rows.
    """
    if (
        isinstance(train_fraction, bool)
        or not isinstance(train_fraction, numbers.Real)
        or not 0.0 < float(train_fraction) < 1.0
    ):
        raise InvalidFraction(
            f"[Split] train_fraction must be in (0, 1), got {train_fraction!r}"
        )
    n = len(dataset)
    if n == 0:
        raise EmptyDataset("[Split] Cannot split an empty dataset")

    rng = np.random.default_rng(seed)
    perm = rng.permutation(n)
    n_train = int(round(float(train_fraction) * n))

    training = dataset.iloc[np.sort(perm[:n_train])].copy()
    holdout  = dataset.iloc[np.sort(perm[n_train:])].copy()

    logger.info(
        f"[Split] seed={seed} | train_fraction={train_fraction:.2f} | "
        f"training={len(training):,} | holdout={len(holdout):,}"
    )
    return training, holdout
