"""Copy-number (CNA) adjustment of TF–target association scores.

A target whose co-expression with a TF is largely explained by shared
copy-number variation is down-weighted: when the Pearson correlation r of
the two genes' CNA profiles satisfies |r| > 0.5, the MI score is multiplied
by (1 - |r|).

CNA data is optional. A missing or unreadable CNA file disables adjustment
for the whole run; a gene absent from the CNA table, or a correlation that
cannot be computed, disables it for that TF–target pair only.
"""

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from .errors import MalformedInputError
from .utils.io import load_numeric_table
from .utils.stats import safe_pearson

log = logging.getLogger(__name__)

DEFAULT_MAX_ABS_CORRELATION = 0.5


class CNAProfile:
    """Read-only lookup from gene identifier to its CNA vector."""

    def __init__(self, cna: pd.DataFrame):
        self._genes = {str(g): i for i, g in enumerate(cna.index)}
        self._values = cna.to_numpy(dtype=float, copy=True)
        self._values.setflags(write=False)
        self.samples = list(cna.columns)

    def __len__(self) -> int:
        return len(self._genes)

    def __contains__(self, gene: str) -> bool:
        return gene in self._genes

    def get(self, gene: str) -> Optional[np.ndarray]:
        """CNA vector of a gene, or None if the gene has no CNA data."""
        idx = self._genes.get(gene)
        if idx is None:
            return None
        return self._values[idx]

    def correlation(self, gene_a: str, gene_b: str) -> Optional[float]:
        """Pearson correlation of two genes' CNA vectors, or None if undefined."""
        a = self.get(gene_a)
        b = self.get(gene_b)
        if a is None or b is None:
            return None
        return safe_pearson(a, b)


def load_cna_profile(path: Optional[str | Path]) -> Optional[CNAProfile]:
    """Load a CNA matrix keyed by gene identifier.

    Args:
        path: CNA matrix file (same layout as the expression matrix), or None.

    Returns:
        CNAProfile, or None when no usable CNA data is available.
    """
    if path is None:
        return None
    path = Path(path)
    if not path.exists():
        log.warning("CNA file %s not found; continuing without CNA adjustment", path)
        return None
    try:
        cna = load_numeric_table(path, allow_missing=True)
    except (MalformedInputError, OSError) as exc:
        log.warning("CNA file %s unreadable (%s); continuing without CNA adjustment",
                    path, exc)
        return None
    log.info("Loaded CNA matrix %s: %d genes × %d samples",
             path, cna.shape[0], cna.shape[1])
    return CNAProfile(cna)


def dampen_score(
    score: float,
    correlation: Optional[float],
    max_abs_correlation: float = DEFAULT_MAX_ABS_CORRELATION,
) -> float:
    """Down-weight an MI score by the CNA correlation of the gene pair.

    Args:
        score: Original MI score.
        correlation: CNA Pearson correlation, or None if undefined.
        max_abs_correlation: Correlations with |r| above this value dampen
            the score.

    Returns:
        score * (1 - |r|) when |r| > max_abs_correlation, otherwise score.
    """
    if correlation is None or not np.isfinite(correlation):
        return score
    r = abs(correlation)
    if r > max_abs_correlation:
        return score * (1.0 - r)
    return score


def adjust_edges(
    edges: pd.DataFrame,
    cna: CNAProfile,
    max_abs_correlation: float = DEFAULT_MAX_ABS_CORRELATION,
) -> pd.DataFrame:
    """Apply CNA dampening to every edge of a TF–Target–MI table.

    Returns:
        Copy of edges with dampened MI values; row order unchanged.
    """
    edges = edges.copy()
    edges["MI"] = [
        dampen_score(mi, cna.correlation(tf, target), max_abs_correlation)
        for tf, target, mi in edges[["TF", "Target", "MI"]].itertuples(index=False)
    ]
    return edges
