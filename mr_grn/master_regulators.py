"""Master regulator ranking.

For each TF in the merged edge list:

  count      number of targets
  mean_MI    mean MI score over its targets
  GWAS_ovlp  number of its targets in the reference gene set
  Score      count × mean_MI + GWAS_ovlp

TFs are ranked by Score, descending. Ties are broken by TF identifier,
ascending, so the ranking is reproducible.
"""

import logging
from typing import Iterable

import pandas as pd

log = logging.getLogger(__name__)

RANKING_COLUMNS = ["TF", "count", "mean_MI", "GWAS_ovlp", "Score"]


def rank_master_regulators(
    edges: pd.DataFrame,
    reference: Iterable[str],
) -> pd.DataFrame:
    """Rank TFs by target count, mean MI and reference-set overlap.

    Args:
        edges: Merged edge list (TF, Target, MI).
        reference: Reference gene identifiers (e.g. GWAS loci).

    Returns:
        DataFrame with columns TF, count, mean_MI, GWAS_ovlp, Score, one row
        per TF present in edges, sorted by Score descending then TF ascending.
    """
    if edges.empty:
        return pd.DataFrame(columns=RANKING_COLUMNS)

    reference = set(reference)
    df = edges.assign(in_reference=edges["Target"].isin(reference))
    summary = df.groupby("TF", sort=False).agg(
        count=("Target", "size"),
        mean_MI=("MI", "mean"),
        GWAS_ovlp=("in_reference", "sum"),
    ).reset_index()
    summary["GWAS_ovlp"] = summary["GWAS_ovlp"].astype(int)
    summary["Score"] = summary["count"] * summary["mean_MI"] + summary["GWAS_ovlp"]

    ranked = summary.sort_values(
        ["Score", "TF"], ascending=[False, True], kind="mergesort"
    ).reset_index(drop=True)
    log.info("Ranked %d TFs; top regulator %s (Score=%.3f)",
             len(ranked), ranked.loc[0, "TF"], ranked.loc[0, "Score"])
    return ranked[RANKING_COLUMNS]


def top_regulators(ranking: pd.DataFrame, n: int = 10) -> list[str]:
    """Identifiers of the n highest-ranked TFs."""
    return ranking["TF"].head(n).tolist()
