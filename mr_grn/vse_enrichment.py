"""Variant Set Enrichment (VSE) of network targets in a reference gene set.

Tests whether the target genes of the inferred network are over-represented
among genes linked to a reference trait/disease variant set (e.g. GWAS
loci). A 2×2 contingency table is constructed:

                      In reference | Not in reference
  In network             a         |      b
  Not in network         c         |      d

  a = network_targets ∩ reference
  b = network_targets − reference
  c = reference − network_targets
  d = |universe| − a − b − c

The default universe is network_targets ∪ reference, so d is 0 and the
table only ever compares the two sets against each other. This is not a
genome-wide background; an explicit background (e.g. every gene of the
filtered expression matrix) can be supplied instead.

The global test is two-sided. The per-regulon test (one table per TF) is
one-sided (alternative='greater') with Benjamini-Hochberg correction.

Degenerate tables (a zero row or column) do not fail: the odds ratio is
reported at its boundary value, 0 when a == 0 and inf otherwise, and the
p-value is 1.

Usage:
    python -m mr_grn.pipeline enrich --edges results/network_edges.tsv \\
        --reference data/gwas_loci.txt --output-dir results/
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np
import pandas as pd
from scipy.stats import fisher_exact

from .utils.stats import apply_bh_correction

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrichmentResult:
    """Odds ratio and p-value of one VSE test, with its contingency table."""

    odds_ratio: float
    p_value: float
    a: int
    b: int
    c: int
    d: int

    def to_frame(self) -> pd.DataFrame:
        """Single-row report table with columns ['OddsRatio', 'P.Value']."""
        return pd.DataFrame({"OddsRatio": [self.odds_ratio], "P.Value": [self.p_value]})


# ── Contingency table helpers ─────────────────────────────────────────────────

def build_vse_contingency(
    network_targets: set,
    reference: set,
    background: Optional[set] = None,
) -> tuple[int, int, int, int]:
    """Build the 2×2 VSE contingency table.

    Args:
        network_targets: Target genes of the network.
        reference: Reference (e.g. GWAS) gene set.
        background: Gene universe. Defaults to network_targets ∪ reference;
            if given, it is extended with both sets so every count is
            non-negative.

    Returns:
        Tuple (a, b, c, d) for the 2×2 table.
    """
    network_targets = set(network_targets)
    reference = set(reference)
    universe = network_targets | reference
    if background is not None:
        universe |= set(background)
    a = len(network_targets & reference)
    b = len(network_targets - reference)
    c = len(reference - network_targets)
    d = len(universe) - a - b - c
    return a, b, c, d


def run_fisher_test(
    a: int, b: int, c: int, d: int, alternative: str = "two-sided"
) -> tuple[float, float]:
    """Run Fisher's exact test on a 2×2 table.

    Args:
        a, b, c, d: Cells of the 2×2 contingency table.
        alternative: Tail direction ('greater', 'less', or 'two-sided').

    Returns:
        Tuple of (odds_ratio, p_value). Undefined odds ratios are replaced
        by their boundary value (0 if a == 0, else inf).
    """
    table = np.array([[a, b], [c, d]])
    odds_ratio, p_value = fisher_exact(table, alternative=alternative)
    odds_ratio = float(odds_ratio)
    p_value = float(p_value)
    if np.isnan(odds_ratio):
        odds_ratio = 0.0 if a == 0 else float("inf")
    if np.isnan(p_value):
        p_value = 1.0
    return odds_ratio, p_value


# ── Enrichment tests ──────────────────────────────────────────────────────────

def vse_enrichment(
    edges: pd.DataFrame,
    reference: Iterable[str],
    background: Optional[Iterable[str]] = None,
) -> EnrichmentResult:
    """Test the network's target genes for enrichment in a reference set.

    Args:
        edges: Merged edge list (TF, Target, MI).
        reference: Reference gene identifiers.
        background: Optional gene universe; see build_vse_contingency.

    Returns:
        EnrichmentResult with a two-sided p-value.
    """
    targets = set(edges["Target"])
    reference = set(reference)
    background = set(background) if background is not None else None
    a, b, c, d = build_vse_contingency(targets, reference, background)
    odds_ratio, p_value = run_fisher_test(a, b, c, d, alternative="two-sided")
    log.info("VSE: %d of %d network targets in reference set of %d genes "
             "(OR=%.3g, p=%.3g)", a, len(targets), len(reference), odds_ratio, p_value)
    return EnrichmentResult(odds_ratio, p_value, a, b, c, d)


def regulon_enrichment(
    edges: pd.DataFrame,
    reference: Iterable[str],
    background: Optional[Iterable[str]] = None,
    alternative: str = "greater",
) -> pd.DataFrame:
    """Test each TF's target set for enrichment in the reference set.

    The universe is shared by all TFs: the background if given, otherwise
    all network targets ∪ reference.

    Args:
        edges: Merged edge list (TF, Target, MI).
        reference: Reference gene identifiers.
        background: Optional gene universe.
        alternative: Fisher test tail direction.

    Returns:
        DataFrame with columns TF, n_targets, n_overlap, odds_ratio, pvalue,
        FDR, neg_log10_FDR, ordered by TF as they appear in edges.
    """
    reference = set(reference)
    universe = set(edges["Target"]) | reference
    if background is not None:
        universe |= set(background)

    records = []
    for tf, sub in edges.groupby("TF", sort=False):
        targets = set(sub["Target"])
        a, b, c, d = build_vse_contingency(targets, reference, universe)
        odds_ratio, pvalue = run_fisher_test(a, b, c, d, alternative)
        records.append({
            "TF": tf,
            "n_targets": len(targets),
            "n_overlap": a,
            "odds_ratio": odds_ratio,
            "pvalue": pvalue,
        })

    columns = ["TF", "n_targets", "n_overlap", "odds_ratio", "pvalue"]
    result_df = pd.DataFrame(records, columns=columns)
    result_df = apply_bh_correction(result_df, pvalue_col="pvalue")
    log.info("Regulon enrichment: %d TFs tested, %d with FDR < 0.05",
             len(result_df), int((result_df["FDR"] < 0.05).sum()))
    return result_df
