"""I/O helpers for loading and saving analysis data."""

import os
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import yaml

from ..errors import MalformedInputError

EDGE_COLUMNS = ["TF", "Target", "MI"]


def _sep_for(path: str | Path) -> str:
    return "," if Path(path).suffix.lower() == ".csv" else "\t"


def load_numeric_table(path: str | Path, allow_missing: bool = False) -> pd.DataFrame:
    """Load a gene × sample table with gene identifiers in the first column.

    The header row is required. R-style tables whose header omits the
    row-name column are accepted as well.

    Args:
        path: Tab-separated (or .csv) file.
        allow_missing: If True, empty or non-numeric cells become NaN instead
            of failing the load.

    Returns:
        DataFrame indexed by gene identifier with one float column per sample.

    Raises:
        MalformedInputError: On ragged rows, non-numeric values, duplicate or
            empty gene identifiers, or a table without sample columns.
    """
    try:
        raw = pd.read_csv(path, sep=_sep_for(path), dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise MalformedInputError(f"{path}: cannot parse table ({exc})") from exc

    if not isinstance(raw.index, pd.RangeIndex):
        raw = raw.reset_index()
    if raw.shape[1] < 2 or raw.empty:
        raise MalformedInputError(
            f"{path}: expected a gene column and at least one sample column"
        )

    genes = raw.iloc[:, 0].astype(str).str.strip()
    if (genes == "").any():
        row = int(np.flatnonzero(genes == "")[0]) + 2
        raise MalformedInputError(f"{path}: empty gene identifier on line {row}")
    dupes = genes[genes.duplicated()].unique()
    if len(dupes):
        raise MalformedInputError(
            f"{path}: {len(dupes)} duplicated gene identifiers (e.g. {dupes[0]})"
        )

    values = raw.iloc[:, 1:].apply(pd.to_numeric, errors="coerce")
    if not allow_missing:
        bad = values.isna().any(axis=1).to_numpy()
        if bad.any():
            idx = int(np.flatnonzero(bad)[0])
            raise MalformedInputError(
                f"{path}: missing or non-numeric value for gene {genes.iloc[idx]} "
                f"(line {idx + 2})"
            )

    values.index = pd.Index(genes, name="gene")
    values.columns = [str(c) for c in values.columns]
    return values.astype(float)


def load_expression_matrix(path: str | Path) -> pd.DataFrame:
    """Load an expression matrix (genes × samples).

    Args:
        path: File whose first column holds unique gene identifiers and whose
            remaining columns hold numeric sample values.

    Returns:
        DataFrame indexed by gene identifier.
    """
    return load_numeric_table(path, allow_missing=False)


def load_gene_list(path: str | Path) -> list[str]:
    """Load a headerless list of gene identifiers, one per line.

    Blank lines are ignored and repeated identifiers are kept once, in
    first-seen order.
    """
    with open(path) as f:
        genes = [line.strip() for line in f]
    return list(dict.fromkeys(g for g in genes if g))


def load_edges(path: str | Path) -> pd.DataFrame:
    """Load an edge table (TF–Target–MI).

    Args:
        path: Tab-separated file with columns ['TF', 'Target', 'MI'].

    Returns:
        DataFrame with columns ['TF', 'Target', 'MI'].

    Raises:
        MalformedInputError: If required columns are missing or MI is not numeric.
    """
    try:
        df = pd.read_csv(path, sep="\t", dtype={"TF": str, "Target": str},
                         keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise MalformedInputError(f"{path}: cannot parse edge table ({exc})") from exc
    missing = set(EDGE_COLUMNS) - set(df.columns)
    if missing:
        raise MalformedInputError(f"Edge file {path} missing columns: {sorted(missing)}")
    mi = pd.to_numeric(df["MI"], errors="coerce")
    if mi.isna().any():
        raise MalformedInputError(f"Edge file {path} has non-numeric MI values")
    df["MI"] = mi.astype(float)
    return df[EDGE_COLUMNS]


def empty_edges() -> pd.DataFrame:
    """Return an edge table with no rows and the canonical column types."""
    return pd.DataFrame({
        "TF": pd.Series(dtype=str),
        "Target": pd.Series(dtype=str),
        "MI": pd.Series(dtype=float),
    })


def save_table(df: pd.DataFrame, path: str | Path) -> None:
    """Save a report table as tab-separated text without row names.

    Args:
        df: Table to write.
        path: Output path; parent directories are created.
    """
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, sep="\t", index=False)


def load_config(path: str | Path) -> dict:
    """Load a YAML configuration file.

    Args:
        path: Path to a YAML config file.

    Returns:
        Dictionary of configuration parameters.

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path) as f:
        return yaml.safe_load(f) or {}


def save_edges_atomic(df: pd.DataFrame, path: str | Path) -> Path:
    """Write an edge table so readers see either the old file or the new one.

    The table is written to a temporary file in the destination directory
    and moved into place with os.replace, which replaces any earlier
    version from a previous attempt.

    Args:
        df: DataFrame with columns ['TF', 'Target', 'MI'].
        path: Destination path.

    Returns:
        The destination path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as f:
            df[EDGE_COLUMNS].to_csv(f, sep="\t", index=False)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    return path
