"""
Pytest configuration and shared fixtures.

The scenario matrix has one TF (TF1) and three candidate targets over six
samples: G1 is a monotone function of TF1, while the discretized G2 and G3
are exactly independent of the discretized TF1.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest
from pathlib import Path

from mr_grn.mi_inference import build_inputs


SAMPLES = [f"S{i}" for i in range(1, 7)]


def write_matrix(df: pd.DataFrame, path: Path) -> Path:
    """Write a genes × samples matrix with a 'gene' header column."""
    df.index.name = "gene"
    df.to_csv(path, sep="\t")
    return path


def write_list(items, path: Path) -> Path:
    path.write_text("\n".join(items) + "\n")
    return path


@pytest.fixture
def scenario_expression():
    """TF1 drives G1; G2 and G3 are independent of TF1 after binning."""
    return pd.DataFrame(
        [
            [2.0, 3.0, 4.0, 5.0, 6.0, 7.0],
            [4.1, 6.0, 8.2, 9.9, 12.1, 14.0],
            [5.0, 5.0, 9.0, 5.0, 5.0, 9.0],
            [3.0, 8.0, 3.0, 3.0, 8.0, 3.0],
        ],
        index=["TF1", "G1", "G2", "G3"],
        columns=SAMPLES,
    )


@pytest.fixture
def scenario_inputs(scenario_expression):
    return build_inputs(scenario_expression)


@pytest.fixture
def random_expression():
    """Larger log-normal matrix with two TFs and a correlated target module."""
    rng = np.random.default_rng(7)
    n_samples = 60
    data = rng.lognormal(mean=2.0, sigma=0.5, size=(30, n_samples))
    # TF_A drives the first five genes
    data[2:7] = data[0] * rng.uniform(0.8, 1.2, size=(5, 1)) + rng.normal(0, 0.05, (5, n_samples))
    genes = ["TF_A", "TF_B"] + [f"G{i}" for i in range(2, 30)]
    return pd.DataFrame(data, index=genes, columns=[f"S{i}" for i in range(n_samples)])


@pytest.fixture
def scenario_files(tmp_path, scenario_expression):
    """Expression matrix, TF list and reference gene list on disk."""
    return {
        "expr": write_matrix(scenario_expression.copy(), tmp_path / "expression_matrix.txt"),
        "tfs": write_list(["TF1"], tmp_path / "TF_list.txt"),
        "reference": write_list(["G1"], tmp_path / "gwas_loci.txt"),
    }
