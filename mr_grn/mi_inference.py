"""Per-TF network inference by mutual information.

Pipeline overview (one computation unit = one TF):
  1. Discretize every gene of the filtered expression matrix into
     equal-frequency bins. The bin count depends only on the sample count,
     so the discretization is deterministic.
  2. Compute the empirical mutual information (MI) between the TF and every
     other gene.
  3. Keep targets whose MI is strictly above the threshold (default 0.05).
  4. If CNA data is available, dampen each kept score by the CNA
     correlation of the TF–target pair (see cna_adjustment).
  5. Re-apply the threshold; edges that fall below it after dampening are
     dropped.

The unit is a pure function of (TF, shared read-only inputs). The external
dispatcher runs it once per TF and merges the partial files afterwards
(see edge_merge).

Usage:
    python -m mr_grn.mi_inference --config configs/default_config.yaml \\
        --tf STAT3 --expr data/expression_matrix.txt \\
        --cna data/CNA_matrix.txt --output-dir results/mi/
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from .cna_adjustment import (
    DEFAULT_MAX_ABS_CORRELATION,
    CNAProfile,
    adjust_edges,
    load_cna_profile,
)
from .errors import MrGrnError, NotFoundError
from .expression import DEFAULT_MIN_EXPRESSION, DEFAULT_MIN_FRACTION, load_and_prepare
from .utils.io import EDGE_COLUMNS, empty_edges, load_config
from .utils.stats import discretize_matrix, mutual_information_many

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
log = logging.getLogger(__name__)

DEFAULT_MI_THRESHOLD = 0.05


# ── Shared inputs ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class InferenceInputs:
    """Read-only inputs shared by all per-TF units.

    Build with build_inputs() so the discretized matrix and gene index stay
    consistent with the expression matrix.
    """

    expression: pd.DataFrame
    bins: np.ndarray
    gene_index: dict = field(repr=False)
    cna: Optional[CNAProfile] = None
    mi_threshold: float = DEFAULT_MI_THRESHOLD
    cna_max_abs_correlation: float = DEFAULT_MAX_ABS_CORRELATION

    @property
    def genes(self) -> pd.Index:
        return self.expression.index


def build_inputs(
    expression: pd.DataFrame,
    cna: Optional[CNAProfile] = None,
    mi_threshold: float = DEFAULT_MI_THRESHOLD,
    cna_max_abs_correlation: float = DEFAULT_MAX_ABS_CORRELATION,
) -> InferenceInputs:
    """Discretize the filtered expression matrix and bundle the shared inputs.

    Args:
        expression: Filtered expression matrix (genes × samples).
        cna: Optional CNA profile.
        mi_threshold: Minimum MI (exclusive) for an edge to be kept.
        cna_max_abs_correlation: |r| above which CNA dampening applies.

    Returns:
        InferenceInputs with a write-protected bin matrix.
    """
    bins = discretize_matrix(expression)
    bins.setflags(write=False)
    gene_index = {str(g): i for i, g in enumerate(expression.index)}
    return InferenceInputs(
        expression=expression,
        bins=bins,
        gene_index=gene_index,
        cna=cna,
        mi_threshold=mi_threshold,
        cna_max_abs_correlation=cna_max_abs_correlation,
    )


# ── Association estimator ─────────────────────────────────────────────────────

def tf_mi_scores(tf: str, inputs: InferenceInputs) -> pd.Series:
    """MI between a TF and every gene of the filtered matrix (itself included).

    Raises:
        NotFoundError: If the TF is not in the filtered expression matrix.
    """
    idx = inputs.gene_index.get(tf)
    if idx is None:
        raise NotFoundError(
            f"TF {tf} not found among {len(inputs.gene_index)} filtered genes"
        )
    scores = mutual_information_many(inputs.bins[idx], inputs.bins)
    return pd.Series(scores, index=inputs.genes, name="MI")


def infer_tf_edges(tf: str, inputs: InferenceInputs) -> pd.DataFrame:
    """Infer the significant targets of one TF.

    Args:
        tf: TF identifier; must be present in the filtered expression matrix.
        inputs: Shared read-only inputs from build_inputs().

    Returns:
        Edge table with columns ['TF', 'Target', 'MI'], targets in matrix
        order. An empty table means the TF has no significant target.

    Raises:
        NotFoundError: If the TF is absent from the expression data.
    """
    scores = tf_mi_scores(tf, inputs)
    scores = scores.drop(index=tf)
    selected = scores[scores > inputs.mi_threshold]
    if selected.empty:
        return empty_edges()

    edges = pd.DataFrame({
        "TF": tf,
        "Target": selected.index.astype(str),
        "MI": selected.to_numpy(dtype=float),
    })

    if inputs.cna is not None:
        n_before = len(edges)
        edges = adjust_edges(edges, inputs.cna, inputs.cna_max_abs_correlation)
        edges = edges[edges["MI"] > inputs.mi_threshold]
        if len(edges) < n_before:
            log.debug("%s: %d edges dropped after CNA dampening", tf, n_before - len(edges))

    return edges[EDGE_COLUMNS].reset_index(drop=True)


# ── CLI ───────────────────────────────────────────────────────────────────────

def main(argv: Optional[list[str]] = None) -> int:
    """Run one per-TF unit and write its partial edge file."""
    from .partition_runner import run_tf_unit

    parser = argparse.ArgumentParser(
        description="Infer the MI network edges of a single transcription factor."
    )
    parser.add_argument("--config", help="Path to YAML config file.")
    parser.add_argument("--tf", required=True, help="TF identifier to process.")
    parser.add_argument("--expr", help="Expression matrix (genes × samples).")
    parser.add_argument("--cna", help="Optional CNA matrix keyed by gene.")
    parser.add_argument("--output-dir", required=True, help="Directory for partial files.")
    parser.add_argument("--mi-threshold", type=float, default=DEFAULT_MI_THRESHOLD)
    parser.add_argument("--min-expression", type=float, default=DEFAULT_MIN_EXPRESSION)
    parser.add_argument("--min-fraction", type=float, default=DEFAULT_MIN_FRACTION)
    args = parser.parse_args(argv)

    cfg = load_config(args.config) if args.config else {}
    paths_cfg = cfg.get("paths", {})
    expr_cfg = cfg.get("expression", {})
    mi_cfg = cfg.get("mi_inference", {})

    expr_path = args.expr or paths_cfg.get("expression_matrix")
    if expr_path is None:
        parser.error("--expr is required when the config has no paths.expression_matrix")

    try:
        expression, _ = load_and_prepare(
            expr_path,
            min_expression=expr_cfg.get("min_expression", args.min_expression),
            min_fraction=expr_cfg.get("min_fraction", args.min_fraction),
        )
        inputs = build_inputs(
            expression,
            cna=load_cna_profile(args.cna or paths_cfg.get("cna_matrix")),
            mi_threshold=mi_cfg.get("mi_threshold", args.mi_threshold),
            cna_max_abs_correlation=mi_cfg.get(
                "cna_max_abs_correlation", DEFAULT_MAX_ABS_CORRELATION
            ),
        )
        path = run_tf_unit(args.tf, inputs, Path(args.output_dir))
    except (MrGrnError, FileNotFoundError) as exc:
        log.error("TF %s failed: %s", args.tf, exc)
        return 1

    log.info("Completed MI inference for TF %s → %s", args.tf, path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
