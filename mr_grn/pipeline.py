"""Post-processing: merge partial edge files, run VSE, rank master regulators.

Pipeline overview:
  infer   Run every per-TF unit locally (sequentially or in a process pool).
          On a cluster the dispatcher runs `python -m mr_grn.mi_inference`
          once per TF instead.
  merge   Check that every TF partial exists and merge them (TFs in
          lexicographic order) into `{prefix}_edges.tsv`.
  enrich  VSE test of the merged network against the reference gene set
          → `{prefix}_VSE_results.tsv` and `{prefix}_regulon_enrichment.tsv`.
  rank    Master regulator ranking → `{prefix}_MR_ranking.tsv`.
  all     merge + enrich + rank. All tables are computed before any is
          written, so a failing step leaves no partial set of reports.

Usage:
    python -m mr_grn.pipeline infer --config configs/default_config.yaml \\
        --expr data/expression_matrix.txt --tf-list data/TF_list.txt \\
        --output-dir results/ --n-workers 8
    python -m mr_grn.pipeline all --config configs/default_config.yaml \\
        --tf-list data/TF_list.txt --reference data/gwas_loci.txt \\
        --output-dir results/
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

import pandas as pd

from .cna_adjustment import DEFAULT_MAX_ABS_CORRELATION, load_cna_profile
from .edge_merge import merge_partials
from .errors import MrGrnError
from .expression import DEFAULT_MIN_EXPRESSION, DEFAULT_MIN_FRACTION, load_and_prepare
from .master_regulators import rank_master_regulators, top_regulators
from .mi_inference import DEFAULT_MI_THRESHOLD, build_inputs
from .partition_runner import PartitionReport, run_partitions
from .utils.io import load_config, load_edges, load_gene_list, save_table
from .vse_enrichment import EnrichmentResult, regulon_enrichment, vse_enrichment

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
log = logging.getLogger(__name__)

BACKGROUND_MODES = ("union", "expression")


def output_paths(output_dir: str | Path, prefix: str = "network") -> dict[str, Path]:
    """Report file locations for an output directory and file prefix."""
    output_dir = Path(output_dir)
    return {
        "edges": output_dir / f"{prefix}_edges.tsv",
        "vse": output_dir / f"{prefix}_VSE_results.tsv",
        "regulons": output_dir / f"{prefix}_regulon_enrichment.tsv",
        "ranking": output_dir / f"{prefix}_MR_ranking.tsv",
    }


# ── Steps ─────────────────────────────────────────────────────────────────────

def run_inference(
    expr_path: str | Path,
    tf_path: str | Path,
    partial_dir: str | Path,
    cna_path: Optional[str | Path] = None,
    n_workers: int = 1,
    mi_threshold: float = DEFAULT_MI_THRESHOLD,
    min_expression: float = DEFAULT_MIN_EXPRESSION,
    min_fraction: float = DEFAULT_MIN_FRACTION,
    cna_max_abs_correlation: float = DEFAULT_MAX_ABS_CORRELATION,
) -> PartitionReport:
    """Load inputs once and run the per-TF unit for every TF.

    TFs with an existing partial file are skipped, so re-running after a
    partial failure recomputes only the failed TFs.
    """
    expression, tfs = load_and_prepare(expr_path, tf_path, min_expression, min_fraction)
    inputs = build_inputs(
        expression,
        cna=load_cna_profile(cna_path),
        mi_threshold=mi_threshold,
        cna_max_abs_correlation=cna_max_abs_correlation,
    )
    report = run_partitions(tfs, inputs, partial_dir, n_workers=n_workers)
    log.info("Inference: %d completed, %d skipped, %d failed",
             len(report.completed), len(report.skipped), len(report.failed))
    return report


def expected_tfs(
    tf_path: str | Path,
    expr_path: Optional[str | Path] = None,
    min_expression: float = DEFAULT_MIN_EXPRESSION,
    min_fraction: float = DEFAULT_MIN_FRACTION,
) -> list[str]:
    """TFs whose partial file the merge waits for, in lexicographic order.

    With an expression matrix, the TF list is first intersected with the
    filtered genes, matching the TFs the units could actually process.
    """
    if expr_path is not None:
        _, tfs = load_and_prepare(expr_path, tf_path, min_expression, min_fraction)
    else:
        tfs = load_gene_list(tf_path)
    return sorted(tfs)


def resolve_background(
    mode: str,
    expr_path: Optional[str | Path] = None,
    min_expression: float = DEFAULT_MIN_EXPRESSION,
    min_fraction: float = DEFAULT_MIN_FRACTION,
) -> Optional[set]:
    """Gene universe for the enrichment tests.

    'union' returns None (network targets ∪ reference); 'expression' returns
    the genes of the filtered expression matrix.
    """
    if mode not in BACKGROUND_MODES:
        raise ValueError(f"Unknown background '{mode}'. Choose: {', '.join(BACKGROUND_MODES)}.")
    if mode == "union":
        return None
    if expr_path is None:
        raise ValueError("background 'expression' requires an expression matrix")
    expression, _ = load_and_prepare(expr_path, None, min_expression, min_fraction)
    return set(expression.index)


def run_enrichment(
    edges: pd.DataFrame,
    reference: list[str],
    background: Optional[set] = None,
) -> tuple[EnrichmentResult, pd.DataFrame]:
    """Global VSE test plus per-regulon enrichment."""
    return (
        vse_enrichment(edges, reference, background),
        regulon_enrichment(edges, reference, background),
    )


def run_post_processing(
    tfs: list[str],
    partial_dir: str | Path,
    reference_path: str | Path,
    output_dir: str | Path,
    prefix: str = "network",
    background: Optional[set] = None,
) -> dict[str, pd.DataFrame]:
    """Merge, enrich and rank, then write every report table.

    Args:
        tfs: Expected TFs, in merge order.
        partial_dir: Directory of `{TF}_MI.txt` partial files.
        reference_path: Reference gene list (one id per line).
        output_dir: Directory for the report tables.
        prefix: File name prefix of the report tables.
        background: Optional gene universe for enrichment.

    Returns:
        Dict mapping 'edges', 'vse', 'regulons', 'ranking' → DataFrame.
    """
    reference = load_gene_list(reference_path)
    edges = merge_partials(tfs, partial_dir)
    vse, regulons = run_enrichment(edges, reference, background)
    ranking = rank_master_regulators(edges, reference)

    tables = {
        "edges": edges,
        "vse": vse.to_frame(),
        "regulons": regulons,
        "ranking": ranking,
    }
    paths = output_paths(output_dir, prefix)
    for key, df in tables.items():
        save_table(df, paths[key])
        log.info("Saved %s: %s", key, paths[key])
    return tables


# ── CLI ───────────────────────────────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Path to YAML config file.")
    common.add_argument("--output-dir", help="Root output directory.")
    common.add_argument("--partial-dir", help="Directory of per-TF partial files "
                        "(default: OUTPUT_DIR/mi).")
    common.add_argument("--prefix", default="network", help="Report file name prefix.")
    common.add_argument("--expr", help="Expression matrix (genes × samples).")
    common.add_argument("--tf-list", help="File listing transcription factors.")
    common.add_argument("--reference", help="Reference (GWAS) gene list.")
    common.add_argument("--edges", help="Merged edge list (enrich/rank only).")
    common.add_argument("--background", choices=BACKGROUND_MODES, default="union")
    common.add_argument("--min-expression", type=float, default=DEFAULT_MIN_EXPRESSION)
    common.add_argument("--min-fraction", type=float, default=DEFAULT_MIN_FRACTION)
    common.add_argument("--plot", action="store_true", help="Save a ranking bar chart.")

    parser = argparse.ArgumentParser(
        description="MI network inference post-processing: merge, VSE, master regulators."
    )
    sub = parser.add_subparsers(dest="command", required=True)
    infer = sub.add_parser("infer", parents=[common], help="Run all per-TF units locally.")
    infer.add_argument("--cna", help="Optional CNA matrix keyed by gene.")
    infer.add_argument("--n-workers", type=int, default=1)
    infer.add_argument("--mi-threshold", type=float, default=DEFAULT_MI_THRESHOLD)
    sub.add_parser("merge", parents=[common], help="Merge per-TF partial files.")
    sub.add_parser("enrich", parents=[common], help="VSE enrichment of the merged network.")
    sub.add_parser("rank", parents=[common], help="Rank master regulators.")
    sub.add_parser("all", parents=[common], help="Merge, enrich and rank.")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    cfg = load_config(args.config) if args.config else {}
    paths_cfg = cfg.get("paths", {})
    expr_cfg = cfg.get("expression", {})
    mi_cfg = cfg.get("mi_inference", {})
    enrich_cfg = cfg.get("enrichment", {})
    out_cfg = cfg.get("output", {})

    output_dir = Path(args.output_dir or paths_cfg.get("output_dir", "results"))
    partial_dir = Path(args.partial_dir or paths_cfg.get("partial_dir", output_dir / "mi"))
    prefix = out_cfg.get("prefix", args.prefix)
    expr_path = args.expr or paths_cfg.get("expression_matrix")
    tf_path = args.tf_list or paths_cfg.get("tf_list")
    reference_path = args.reference or paths_cfg.get("reference_genes")
    min_expression = expr_cfg.get("min_expression", args.min_expression)
    min_fraction = expr_cfg.get("min_fraction", args.min_fraction)
    background_mode = enrich_cfg.get("background", args.background)
    paths = output_paths(output_dir, prefix)

    def require(value, flag):
        if value is None:
            parser.error(f"{flag} is required for '{args.command}'")
        return value

    try:
        if args.command == "infer":
            report = run_inference(
                require(expr_path, "--expr"),
                require(tf_path, "--tf-list"),
                partial_dir,
                cna_path=args.cna or paths_cfg.get("cna_matrix"),
                n_workers=mi_cfg.get("n_workers", args.n_workers),
                mi_threshold=mi_cfg.get("mi_threshold", args.mi_threshold),
                min_expression=min_expression,
                min_fraction=min_fraction,
                cna_max_abs_correlation=mi_cfg.get(
                    "cna_max_abs_correlation", DEFAULT_MAX_ABS_CORRELATION
                ),
            )
            if not report.ok:
                log.error("%d TF units failed: %s", len(report.failed),
                          ", ".join(report.failed))
                return 1
            return 0

        if args.command in ("merge", "all"):
            tfs = expected_tfs(require(tf_path, "--tf-list"), expr_path,
                               min_expression, min_fraction)

        if args.command == "merge":
            edges = merge_partials(tfs, partial_dir)
            save_table(edges, paths["edges"])
            log.info("Merged edge list saved: %s", paths["edges"])
            return 0

        background = resolve_background(background_mode, expr_path,
                                        min_expression, min_fraction)
        require(reference_path, "--reference")

        if args.command == "all":
            tables = run_post_processing(tfs, partial_dir, reference_path, output_dir,
                                         prefix=prefix, background=background)
            edges, ranking = tables["edges"], tables["ranking"]
        else:
            edges = load_edges(args.edges or paths["edges"])
            reference = load_gene_list(reference_path)
            if args.command == "enrich":
                vse, regulons = run_enrichment(edges, reference, background)
                save_table(vse.to_frame(), paths["vse"])
                save_table(regulons, paths["regulons"])
                log.info("VSE results saved: %s", paths["vse"])
                return 0
            ranking = rank_master_regulators(edges, reference)
            save_table(ranking, paths["ranking"])
            log.info("Master Regulator ranking saved: %s", paths["ranking"])

        if not ranking.empty:
            log.info("Top regulators: %s", ", ".join(top_regulators(ranking)))
        if args.plot and not ranking.empty:
            from .utils.plotting import plot_mi_distribution, plot_regulator_ranking
            plot_regulator_ranking(ranking, output_dir / f"{prefix}_MR_ranking.png")
            plot_mi_distribution(
                edges,
                output_dir / f"{prefix}_MI_distribution.png",
                threshold=mi_cfg.get("mi_threshold", DEFAULT_MI_THRESHOLD),
            )
    except (MrGrnError, ValueError, FileNotFoundError) as exc:
        log.error("%s failed: %s", args.command, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
