"""
mr_grn: Mutual-information gene regulatory network inference, variant set
enrichment and master regulator ranking.

Analyses:
    1. expression         — Expression matrix preprocessing and TF list preparation
    2. cna_adjustment     — Copy-number dampening of TF–target scores
    3. mi_inference       — Per-TF mutual information network inference
    4. partition_runner   — Per-TF units with atomic partial results
    5. edge_merge         — Merge of per-TF partial edge files
    6. vse_enrichment     — Fisher's exact test of network targets × reference genes
    7. master_regulators  — Master regulator ranking
"""

__version__ = "0.1.0"
