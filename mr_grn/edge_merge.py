"""Merge per-TF partial edge files into one edge list.

The merge is the only barrier in the workflow: it refuses to run until a
partial file exists for every expected TF. Partials are concatenated in
the order the TFs are supplied, so TF blocks are never interleaved.
Duplicate (TF, Target) pairs are dropped when their scores agree and
raise ConflictError when they do not.
"""

import logging
from pathlib import Path
from typing import Iterable

import pandas as pd

from .errors import ConflictError, IncompleteInputError, MalformedInputError
from .partition_runner import partial_path, pending_tfs
from .utils.io import EDGE_COLUMNS, empty_edges, load_edges

log = logging.getLogger(__name__)


def merge_edge_frames(frames: Iterable[pd.DataFrame]) -> pd.DataFrame:
    """Concatenate edge tables and resolve duplicate TF–target pairs.

    Args:
        frames: Edge tables (columns ['TF', 'Target', 'MI']) in merge order.

    Returns:
        Edge list with at most one row per (TF, Target) pair; first
        occurrences are kept and row order is otherwise preserved.

    Raises:
        ConflictError: If a pair occurs more than once with different scores.
    """
    frames = [f[EDGE_COLUMNS] for f in frames if not f.empty]
    if not frames:
        return empty_edges()
    merged = pd.concat(frames, ignore_index=True)

    dup_mask = merged.duplicated(["TF", "Target"], keep=False)
    if dup_mask.any():
        dups = merged[dup_mask]
        for (tf, target), group in dups.groupby(["TF", "Target"], sort=False):
            scores = group["MI"].unique().tolist()
            if len(scores) > 1:
                raise ConflictError(tf, target, scores)
        n_dup = int(merged.duplicated(["TF", "Target"]).sum())
        log.warning("Dropping %d duplicated edges with identical scores", n_dup)
        merged = merged.drop_duplicates(["TF", "Target"], keep="first")

    return merged.reset_index(drop=True)


def _load_partial(partial_dir: str | Path, tf: str) -> pd.DataFrame:
    path = partial_path(partial_dir, tf)
    edges = load_edges(path)
    foreign = sorted(set(edges["TF"]) - {tf})
    if foreign:
        raise MalformedInputError(f"Partial file {path} holds edges of other TFs: {foreign}")
    return edges


def merge_partials(tfs: Iterable[str], partial_dir: str | Path) -> pd.DataFrame:
    """Merge the partial edge files of all expected TFs.

    Args:
        tfs: Expected TF identifiers, in merge order (supply a fixed order,
            e.g. sorted, for a reproducible edge list).
        partial_dir: Directory containing `{TF}_MI.txt` files.

    Returns:
        Merged edge list with columns ['TF', 'Target', 'MI'].

    Raises:
        IncompleteInputError: If any expected partial file is missing.
        ConflictError: If partials disagree on the score of a pair.
        MalformedInputError: If a partial file is not a valid edge table or
            holds edges of a TF other than the one it is named after.
    """
    tfs = list(dict.fromkeys(tfs))
    missing = pending_tfs(tfs, partial_dir)
    if missing:
        raise IncompleteInputError(missing, len(tfs))

    merged = merge_edge_frames(_load_partial(partial_dir, tf) for tf in tfs)
    log.info("Merged %d partial files: %d edges across %d TFs",
             len(tfs), len(merged), merged["TF"].nunique())
    return merged
