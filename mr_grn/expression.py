"""Expression matrix preprocessing and TF list preparation.

Pipeline overview:
  1. Parse the expression matrix (genes × samples) and the TF list.
  2. If any value is negative, log-transform the whole matrix with
     log2(x + 1). The check is global, not per gene.
  3. Keep genes expressed above `min_expression` in at least
     `min_fraction` of samples.
  4. Intersect the TF list with the surviving genes.

The resulting matrix is read-only input shared by every per-TF unit.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from .errors import EmptyResultError
from .utils.io import load_expression_matrix, load_gene_list

log = logging.getLogger(__name__)

DEFAULT_MIN_EXPRESSION = 1.0
DEFAULT_MIN_FRACTION = 0.5


def log_transform_if_negative(df: pd.DataFrame) -> pd.DataFrame:
    """Apply log2(x + 1) to every value when the matrix holds any negative value.

    Values below zero are clipped to zero before the transform so the
    result is non-negative.

    Args:
        df: Expression matrix (genes × samples).

    Returns:
        Transformed copy, or the input unchanged if no value is negative.
    """
    if not (df.to_numpy() < 0).any():
        return df
    log.info("Negative values detected; applying log2(x + 1) to the whole matrix")
    return np.log2(df.clip(lower=0.0) + 1.0)


def filter_expressed_genes(
    df: pd.DataFrame,
    min_expression: float = DEFAULT_MIN_EXPRESSION,
    min_fraction: float = DEFAULT_MIN_FRACTION,
) -> pd.DataFrame:
    """Keep genes expressed in a sufficient fraction of samples.

    A gene is kept when the fraction of samples with a value strictly above
    min_expression is at least min_fraction.

    Args:
        df: Expression matrix (genes × samples).
        min_expression: Per-sample expression threshold.
        min_fraction: Minimum fraction of samples above the threshold.

    Returns:
        Filtered matrix.

    Raises:
        EmptyResultError: If no gene passes the filter.
    """
    expressed = (df.to_numpy() > min_expression).mean(axis=1)
    keep = expressed >= min_fraction
    if not keep.any():
        raise EmptyResultError(
            f"Expression filter (>{min_expression} in >={min_fraction:.0%} of samples) "
            f"removed all {len(df)} genes"
        )
    log.info("Expression filter kept %d of %d genes", int(keep.sum()), len(df))
    return df.loc[keep]


def intersect_tfs(tfs: Iterable[str], genes: Iterable[str]) -> list[str]:
    """Restrict a TF list to genes present in the filtered matrix.

    Args:
        tfs: Candidate TF identifiers, in the order they should be processed.
        genes: Gene identifiers surviving the expression filter.

    Returns:
        TFs present in genes, original order preserved.

    Raises:
        EmptyResultError: If no TF is present.
    """
    tfs = list(dict.fromkeys(tfs))
    gene_set = set(genes)
    kept = [tf for tf in tfs if tf in gene_set]
    if not kept:
        raise EmptyResultError(
            f"None of the {len(tfs)} TFs is present among {len(gene_set)} filtered genes"
        )
    if len(kept) < len(tfs):
        log.info("Dropped %d TFs absent from the filtered matrix", len(tfs) - len(kept))
    return kept


def prepare_expression(
    df: pd.DataFrame,
    min_expression: float = DEFAULT_MIN_EXPRESSION,
    min_fraction: float = DEFAULT_MIN_FRACTION,
) -> pd.DataFrame:
    """Log-transform (if needed) and filter a raw expression matrix."""
    df = log_transform_if_negative(df)
    return filter_expressed_genes(df, min_expression, min_fraction)


def load_and_prepare(
    expr_path: str | Path,
    tf_path: Optional[str | Path] = None,
    min_expression: float = DEFAULT_MIN_EXPRESSION,
    min_fraction: float = DEFAULT_MIN_FRACTION,
) -> tuple[pd.DataFrame, list[str]]:
    """Load the expression matrix and TF list and run all preprocessing steps.

    Args:
        expr_path: Expression matrix file.
        tf_path: TF list file. If None, the returned TF list is empty.
        min_expression: Per-sample expression threshold for the gene filter.
        min_fraction: Minimum expressed fraction for the gene filter.

    Returns:
        Tuple (filtered expression matrix, TF list).
    """
    expr = load_expression_matrix(expr_path)
    log.info("Loaded expression matrix %s: %d genes × %d samples",
             expr_path, expr.shape[0], expr.shape[1])
    expr = prepare_expression(expr, min_expression, min_fraction)
    tfs: list[str] = []
    if tf_path is not None:
        tfs = intersect_tfs(load_gene_list(tf_path), expr.index)
    return expr, tfs
