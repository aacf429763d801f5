"""Shared statistical functions used across analysis modules."""

from typing import Optional

import numpy as np
import pandas as pd
from scipy.stats import entropy as _scipy_entropy
from scipy.stats import rankdata
from sklearn.metrics import mutual_info_score
from statsmodels.stats.multitest import multipletests


# ── Discretization ────────────────────────────────────────────────────────────

def n_bins_for(n_samples: int) -> int:
    """Number of equal-frequency bins used for a vector of n_samples values.

    Cube-root rule with a floor of two bins, never more bins than samples.
    Depends on the sample count only, so every gene of a matrix is binned
    the same way.
    """
    if n_samples < 2:
        return 1
    return int(min(n_samples, max(2, np.floor(np.cbrt(n_samples) + 1e-9))))


def discretize(x: np.ndarray, n_bins: Optional[int] = None) -> np.ndarray:
    """Discretize a vector into equal-frequency bins.

    Values are ranked with the 'min' method so tied values always share a
    bin; bin = floor((rank - 1) * n_bins / n). A constant vector collapses
    into bin 0.

    Args:
        x: 1-D numeric array.
        n_bins: Number of bins. Defaults to n_bins_for(len(x)).

    Returns:
        Integer array of bin labels in [0, n_bins).
    """
    x = np.asarray(x, dtype=float)
    n = len(x)
    if n == 0:
        return np.zeros(0, dtype=np.int64)
    if n_bins is None:
        n_bins = n_bins_for(n)
    ranks = rankdata(x, method="min")
    return ((ranks - 1) * n_bins // n).astype(np.int64)


def discretize_matrix(df: pd.DataFrame, n_bins: Optional[int] = None) -> np.ndarray:
    """Discretize every row of a genes × samples matrix.

    Returns:
        Integer array of shape (n_genes, n_samples), rows in df.index order.
    """
    values = df.to_numpy(dtype=float)
    n = values.shape[1]
    if n_bins is None:
        n_bins = n_bins_for(n)
    ranks = rankdata(values, method="min", axis=1)
    return ((ranks - 1) * n_bins // n).astype(np.int64)


# ── Information theory ────────────────────────────────────────────────────────

def entropy(x_bins: np.ndarray) -> float:
    """Shannon entropy (nats) of a discretized vector."""
    x_bins = np.asarray(x_bins, dtype=np.int64)
    if len(x_bins) == 0:
        return 0.0
    return float(_scipy_entropy(np.bincount(x_bins)))


def mutual_information(x_bins: np.ndarray, y_bins: np.ndarray) -> float:
    """Empirical (plug-in) mutual information between two discretized vectors.

    Computed in nats from the joint contingency table. The estimate is
    symmetric, non-negative, and MI(X, X) equals the entropy of X.

    Args:
        x_bins: Integer bin labels.
        y_bins: Integer bin labels, same length as x_bins.

    Returns:
        Mutual information (0.0 when either vector has a single bin).
    """
    x_bins = np.asarray(x_bins, dtype=np.int64)
    y_bins = np.asarray(y_bins, dtype=np.int64)
    if x_bins.shape != y_bins.shape:
        raise ValueError(
            f"Vectors must have equal length, got {len(x_bins)} and {len(y_bins)}"
        )
    if len(x_bins) == 0:
        return 0.0
    return float(mutual_info_score(x_bins, y_bins))


def mutual_information_many(x_bins: np.ndarray, y_matrix: np.ndarray) -> np.ndarray:
    """MI between one discretized vector and every row of a discretized matrix."""
    return np.array([mutual_information(x_bins, row) for row in y_matrix], dtype=float)


# ── Correlation ───────────────────────────────────────────────────────────────

def safe_pearson(a: np.ndarray, b: np.ndarray, min_samples: int = 3) -> Optional[float]:
    """Pearson correlation over pairwise-finite samples, or None if undefined.

    None is returned when fewer than min_samples paired values remain, when
    either vector has zero variance, or when the result is not finite.
    """
    a = pd.Series(np.asarray(a, dtype=float)).replace([np.inf, -np.inf], np.nan)
    b = pd.Series(np.asarray(b, dtype=float)).replace([np.inf, -np.inf], np.nan)
    if len(a) != len(b):
        return None
    r = a.corr(b, method="pearson", min_periods=min_samples)
    if not np.isfinite(r):
        return None
    return float(np.clip(r, -1.0, 1.0))


# ── Multiple testing ──────────────────────────────────────────────────────────

def apply_bh_correction(
    df: pd.DataFrame,
    pvalue_col: str = "pvalue",
) -> pd.DataFrame:
    """Apply Benjamini-Hochberg FDR correction to a p-value column.

    Adds 'FDR' and 'neg_log10_FDR' columns to the DataFrame.

    Args:
        df: DataFrame containing a column of p-values.
        pvalue_col: Name of the column containing raw p-values.

    Returns:
        Copy of df with 'FDR' and 'neg_log10_FDR' columns added.
    """
    df = df.copy()
    if df.empty:
        df["FDR"] = pd.Series(dtype=float)
        df["neg_log10_FDR"] = pd.Series(dtype=float)
        return df
    pvals = df[pvalue_col].fillna(1.0).values
    _, fdr, _, _ = multipletests(pvals, method="fdr_bh")
    df["FDR"] = fdr
    df["neg_log10_FDR"] = -np.log10(df["FDR"].clip(lower=np.finfo(float).tiny))
    return df
