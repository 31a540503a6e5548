"""
Scoring configuration.
"""

__all__ = ['ScoringConfig']

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ScoringConfig:
    """
    Parameters shared by every scorer in a run.

    Attributes
    ----------
    n_top_genes : int
        Variable genes per sample for the heterogeneity score.
    log_base : float
        Logarithm base of the entropy score.
    cna_neutral : float
        Residual value meaning copy-number neutral (1.0 for inferCNV).
    hvg_flavor : str
        'seurat_v3' or 'seurat', see ``scanpy_feature_selector``.
    target_sum : float, optional
        Library size after normalization; None uses the median.
    on_degenerate : str
        Entropy policy for all-zero cells: 'raise', 'nan' or 'skip'.
    n_workers : int
        Threads for running scorers and samples.
    counts_layer : str, optional
        AnnData layer with raw counts; None reads X.
    """
    n_top_genes: int = 2000
    log_base: float = 2.0
    cna_neutral: float = 1.0
    hvg_flavor: str = "seurat_v3"
    target_sum: Optional[float] = 1e4
    on_degenerate: str = "raise"
    n_workers: int = 4
    counts_layer: Optional[str] = None
