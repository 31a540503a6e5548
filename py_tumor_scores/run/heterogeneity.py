"""
Per-sample transcriptional heterogeneity.

Each sample is normalized, its top-N variable genes are selected, and the
sample score is the mean standardized variance of those genes. Normalization
and variable-feature selection are pluggable callables; the defaults use scanpy.
"""

# Define what gets exported
__all__ = ['split_by_sample', 'heterogeneity_score', 'normalize_log1p',
    'scanpy_feature_selector', 'Normalizer', 'FeatureSelector']

import time
import warnings
import numpy as np
import pandas as pd
import anndata as ad
import scanpy as sc
from scipy import sparse
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Optional, Protocol, Union
from tqdm import tqdm

from py_tumor_scores.errors import ScoringError, ShapeMismatch, InsufficientFeatures
from py_tumor_scores.utils.matrix import resolve_annotation


class Normalizer(Protocol):
    def __call__(self, adata: ad.AnnData) -> ad.AnnData:
        """Return a same-shape AnnData with comparable values across cells."""


class FeatureSelector(Protocol):
    def __call__(self, adata: ad.AnnData, n_top_genes: int) -> pd.Series:
        """Return the standardized variance of the selected genes, indexed by gene."""


def split_by_sample(
    adata: ad.AnnData,
    sample_key: Union[str, pd.Series]
) -> Dict[str, ad.AnnData]:
    """
    Split a combined AnnData into one AnnData per sample.

    Every cell must carry a sample label; the pieces are disjoint copies.
    """
    labels = resolve_annotation(sample_key, adata)
    labels = labels.reindex(pd.Index(adata.obs_names).astype(str))

    missing = labels.index[labels.isna()]
    if len(missing) > 0:
        raise ShapeMismatch(f"{len(missing)} cells have no sample label", ids=missing)

    labels = labels.astype(str).to_numpy()
    return {s: adata[labels == s].copy() for s in sorted(np.unique(labels))}


def normalize_log1p(adata: ad.AnnData, target_sum: Optional[float] = 1e4) -> ad.AnnData:
    """Library-size normalization plus log1p; raw counts kept in layers['counts']."""
    adata = adata.copy()
    adata.layers["counts"] = adata.X.copy()
    if not np.issubdtype(adata.X.dtype, np.floating):
        adata.X = adata.X.astype(np.float64)
    sc.pp.normalize_total(adata, target_sum=target_sum)
    sc.pp.log1p(adata)
    return adata


# non-constant genes with distinct means needed for the seurat_v3 loess trend
MIN_TREND_GENES = 100


def _gene_totals(X) -> np.ndarray:
    if sparse.issparse(X):
        return np.asarray(X.sum(axis=0)).ravel()
    return np.asarray(X).sum(axis=0)


def _gene_ranges(X) -> np.ndarray:
    """Per-gene max - min, sparse input stays sparse."""
    if sparse.issparse(X):
        hi, lo = X.max(axis=0), X.min(axis=0)
        hi = hi.toarray() if sparse.issparse(hi) else np.asarray(hi)
        lo = lo.toarray() if sparse.issparse(lo) else np.asarray(lo)
        return (hi - lo).ravel()
    X = np.asarray(X)
    return (X.max(axis=0) - X.min(axis=0)).ravel()


def _n_trend_genes(X) -> int:
    variable = _gene_ranges(X) > 0
    if not variable.any():
        return 0
    means = _gene_totals(X)[variable] / X.shape[0]
    return len(np.unique(means))


def _run_hvg(adata: ad.AnnData, n_top_genes: int, flavor: str) -> pd.Series:
    # writes into adata.var; the default normalizer hands over a private copy
    if flavor == "seurat_v3":
        layer = "counts" if "counts" in adata.layers else None
        sc.pp.highly_variable_genes(adata, n_top_genes=n_top_genes, flavor="seurat_v3", layer=layer)
        return adata.var["variances_norm"].astype(np.float64)

    # no n_top_genes: scanpy's own cutoff fails when fewer dispersions are finite
    sc.pp.highly_variable_genes(adata, flavor="seurat")
    return adata.var["dispersions_norm"].astype(np.float64)


def scanpy_feature_selector(
    flavor: str = "seurat_v3",
    min_trend_genes: int = MIN_TREND_GENES
) -> FeatureSelector:
    """
    Variable-feature selection backed by ``sc.pp.highly_variable_genes``.

    - 'seurat_v3': variance of counts standardized against a loess fit of the
      mean-variance trend ('variances_norm'); reads layers['counts'].
    - 'seurat': binned, z-scored dispersion of log data ('dispersions_norm').

    The loess fit is unstable on small samples. When fewer than
    ``min_trend_genes`` non-constant genes with distinct means are available,
    'seurat_v3' falls back to 'seurat' with a warning.
    """
    if flavor not in ("seurat_v3", "seurat"):
        raise ValueError(f"flavor {flavor} unrecognized!")

    def select(adata: ad.AnnData, n_top_genes: int) -> pd.Series:
        use = flavor
        if flavor == "seurat_v3":
            counts = adata.layers["counts"] if "counts" in adata.layers else adata.X
            n_trend = _n_trend_genes(counts)
            if n_trend < min_trend_genes:
                warnings.warn(f"Only {n_trend} genes to fit the seurat_v3 mean-variance trend "
                              f"(need {min_trend_genes}), using 'seurat' dispersions")
                use = "seurat"

        stat = _run_hvg(adata, n_top_genes, use)
        # ties at the cutoff can flag more than n_top_genes
        stat = stat.sort_values(ascending=False, kind="stable", na_position="last")
        return stat.iloc[:n_top_genes]

    return select


def _score_sample(sample_id, adata, n_top_genes, normalizer, feature_selector):
    n_expressed = int((_gene_totals(adata.X) > 0).sum())
    if n_expressed < n_top_genes:
        raise InsufficientFeatures(
            f"Sample has {n_expressed} expressed genes, fewer than n_top_genes={n_top_genes}",
            ids=[sample_id]
        )

    # no variance anywhere, the trend fit would have nothing to fit
    if adata.n_obs < 2 or not (_gene_ranges(adata.X) > 0).any():
        return 0.0

    normed = normalizer(adata)
    if normed.shape != adata.shape:
        raise ShapeMismatch(f"Normalizer changed shape {adata.shape} -> {normed.shape}", ids=[sample_id])

    try:
        std_var = feature_selector(normed, n_top_genes)
    except ScoringError:
        raise
    except ValueError as e:
        raise ScoringError(f"Variable-feature selection failed ({e})", ids=[sample_id]) from e

    if len(std_var) != n_top_genes:
        raise ShapeMismatch(f"Feature selector returned {len(std_var)} genes, expected {n_top_genes}",
                            ids=[sample_id])

    n_missing = int(std_var.isna().sum())
    if n_missing > 0:
        raise InsufficientFeatures(
            f"Only {n_top_genes - n_missing} genes have a finite standardized variance, "
            f"fewer than n_top_genes={n_top_genes}",
            ids=[sample_id]
        )

    return float(np.mean(std_var.to_numpy(dtype=np.float64)))


def heterogeneity_score(
    partition: Dict[str, ad.AnnData],
    n_top_genes: int,
    normalizer: Optional[Callable] = None,
    feature_selector: Optional[Callable] = None,
    n_workers: int = 1,
    verbose: bool = False
) -> pd.Series:
    """
    Mean standardized variance of the top variable genes, per sample.

    Parameters
    ----------
    partition : dict
        Sample identifier -> AnnData of raw counts (cells × genes), e.g. from
        ``split_by_sample``.
    n_top_genes : int
        Number of variable genes per sample. Shared across samples so scores
        are comparable.
    normalizer : callable, optional
        ``normalizer(adata) -> adata``. Default ``normalize_log1p``.
    feature_selector : callable, optional
        ``feature_selector(adata, n_top_genes) -> pd.Series`` of standardized
        variance for the selected genes. Default
        ``scanpy_feature_selector('seurat_v3')``.
    n_workers : int, default=1
        Samples scored in parallel threads.
    verbose : bool, default=False
        Progress bar and run time.

    Returns
    -------
    pd.Series
        One float per sample, sorted by sample identifier, named 'heterogeneity'.

    Raises
    ------
    InsufficientFeatures
        If a sample expresses fewer than ``n_top_genes`` genes.
    """
    if n_top_genes < 1:
        raise ValueError(f"n_top_genes must be positive, got {n_top_genes}")

    normalizer = normalizer or normalize_log1p
    feature_selector = feature_selector or scanpy_feature_selector("seurat_v3")

    start = time.time()
    sample_ids = sorted(partition.keys())

    def score(sample_id):
        return _score_sample(sample_id, partition[sample_id], n_top_genes, normalizer, feature_selector)

    if n_workers > 1:
        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            scores = list(tqdm(executor.map(score, sample_ids), total=len(sample_ids),
                               desc="Scoring samples", disable=not verbose))
    else:
        scores = [score(s) for s in tqdm(sample_ids, desc="Scoring samples", disable=not verbose)]

    if verbose:
        print(f"Heterogeneity for {len(sample_ids)} samples, RunTime (s): {time.time() - start:.2f}")

    return pd.Series(scores, index=pd.Index(sample_ids, name="sample"), name="heterogeneity", dtype=np.float64)
