"""Shared visualization functions used across analysis modules.

All plot functions accept an output_path argument and save to disk.
They do not call plt.show() — call that explicitly if running interactively.
"""

from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns


def plot_regulator_ranking(
    ranking: pd.DataFrame,
    output_path: str | Path,
    top_n: int = 20,
    title: str = "Master Regulators",
    figsize: tuple = (8, 6),
) -> None:
    """Plot a horizontal bar chart of the top-ranked master regulators.

    Bar length encodes the composite Score; bar color encodes the number of
    targets in the reference gene set (GWAS_ovlp).

    Args:
        ranking: Output of rank_master_regulators().
        output_path: Path to save the figure (PNG and SVG).
        top_n: Number of TFs shown.
        title: Figure title.
        figsize: Figure width × height in inches.
    """
    top = ranking.head(top_n)
    fig, ax = plt.subplots(figsize=figsize)
    sns.barplot(
        data=top,
        x="Score",
        y="TF",
        hue="GWAS_ovlp",
        dodge=False,
        palette="Reds",
        ax=ax,
    )
    ax.set_title(title)
    ax.set_xlabel("Score (count × mean MI + GWAS overlap)")
    ax.set_ylabel("TF")
    plt.tight_layout()

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    fig.savefig(output_path.with_suffix(".svg"), bbox_inches="tight")
    plt.close(fig)


def plot_mi_distribution(
    edges: pd.DataFrame,
    output_path: str | Path,
    threshold: float = 0.05,
    figsize: tuple = (7, 5),
) -> None:
    """Plot the distribution of edge MI scores with the selection threshold.

    Args:
        edges: Merged edge list (TF, Target, MI).
        output_path: Path to save the figure.
        threshold: MI threshold drawn as a vertical line.
        figsize: Figure dimensions.
    """
    fig, ax = plt.subplots(figsize=figsize)
    sns.histplot(edges["MI"], bins=50, ax=ax, color="steelblue")
    ax.axvline(threshold, color="firebrick", linestyle="--", label=f"threshold={threshold}")
    ax.set_xlabel("Mutual information (nats)")
    ax.set_ylabel("Edges")
    ax.legend()
    plt.tight_layout()

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    fig.savefig(output_path.with_suffix(".svg"), bbox_inches="tight")
    plt.close(fig)
