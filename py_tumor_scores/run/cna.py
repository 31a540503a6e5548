"""
Copy-number alteration scores from inferred residual copy-number matrices.
"""

# Define what gets exported
__all__ = ['cna_score', 'cna_correlation', 'tumor_cells']

import time
import numpy as np
import pandas as pd
from typing import Optional, Sequence, Union

from py_tumor_scores.utils.matrix import (
    as_features_by_cells, subset_cells, column_block, resolve_annotation
)


def tumor_cells(
    annotation: pd.Series,
    tumor_label: str = "tumor",
    reference_labels: Optional[Sequence[str]] = None
) -> pd.Index:
    """
    Cell identifiers of the observation (tumor) cells.

    Copy-number inference is run jointly on tumor and reference cells; only the
    tumor columns should be scored.

    Parameters
    ----------
    annotation : pd.Series
        Label per cell identifier.
    tumor_label : str, default="tumor"
        Label of the cells to score.
    reference_labels : list of str, optional
        Labels of the reference cells. If given, every cell must carry either the
        tumor label or one of these.
    """
    annotation = resolve_annotation(annotation)

    if reference_labels is not None:
        known = set(reference_labels) | {tumor_label}
        unknown = annotation[~annotation.isin(known)]
        if len(unknown) > 0:
            raise ValueError(f"Unexpected labels {sorted(unknown.astype(str).unique())} "
                             f"(expected {tumor_label!r} or one of {list(reference_labels)})")

    return pd.Index(annotation.index[annotation == tumor_label])


def _load_residuals(cnv, cells, layer, obsm_key):
    X, _, all_cells = as_features_by_cells(cnv, layer=layer, obsm_key=obsm_key)
    return subset_cells(X, all_cells, cells)


def cna_score(
    cnv,
    cells: Optional[Sequence[str]] = None,
    neutral: float = 1.0,
    layer: Optional[str] = None,
    obsm_key: Optional[str] = None,
    batch_size: int = 5000,
    verbose: bool = False
) -> pd.Series:
    """
    Per-cell CNA score: mean squared deviation from copy-number neutrality.

    score(c) = mean over loci of (M[locus, c] - neutral)^2

    Parameters
    ----------
    cnv : pd.DataFrame or AnnData
        Residual copy-number matrix, loci × cells as a DataFrame, or an AnnData
        (cells × loci) with the residuals in X, a layer or obsm.
    cells : list of str, optional
        Cells to score, typically ``tumor_cells(...)``. Defaults to every column.
    neutral : float, default=1.0
        Value meaning "no alteration". 1.0 for inferCNV residuals, 0.0 for
        log-ratio outputs such as infercnvpy's ``X_cnv``.
    layer, obsm_key : str, optional
        Where to read the residuals from an AnnData.
    batch_size : int, default=5000
        Cells densified at a time for sparse input.
    verbose : bool, default=False
        Print run time.

    Returns
    -------
    pd.Series
        Non-negative float per cell, named 'cna_score'.

    Raises
    ------
    ShapeMismatch
        If a requested cell identifier is absent from the matrix.
    """
    start = time.time()

    X, cells = _load_residuals(cnv, cells, layer, obsm_key)
    n_loci, n_cells = X.shape
    if n_loci == 0:
        raise ValueError("Copy-number matrix has no loci")

    scores = np.empty(n_cells, dtype=np.float64)
    for s in range(0, n_cells, batch_size):
        e = min(s + batch_size, n_cells)
        block = column_block(X, s, e) - neutral
        scores[s:e] = np.mean(block * block, axis=0)

    if verbose:
        print(f"CNA score for {n_cells} cells over {n_loci} loci, RunTime (s): {time.time() - start:.2f}")

    return pd.Series(scores, index=cells, name="cna_score")


def cna_correlation(
    cnv,
    cells: Optional[Sequence[str]] = None,
    neutral: float = 1.0,
    top_fraction: float = 0.05,
    layer: Optional[str] = None,
    obsm_key: Optional[str] = None,
    verbose: bool = False
) -> pd.Series:
    """
    Per-cell CNA correlation.

    Pearson correlation between each cell's residual profile and the mean
    profile of the top ``top_fraction`` cells ranked by ``cna_score``. Paired
    with the CNA score it separates cells carrying the tumor's dominant
    alterations from cells that are merely noisy. Cells with a constant profile
    get NaN.
    """
    if not 0 < top_fraction <= 1:
        raise ValueError(f"top_fraction must be in (0, 1], got {top_fraction}")

    X, cells = _load_residuals(cnv, cells, layer, obsm_key)
    dense = column_block(X, 0, X.shape[1]) - neutral

    scores = np.mean(dense * dense, axis=0)
    n_top = max(1, int(np.ceil(top_fraction * len(cells))))
    # stable sort keeps ties in column order
    top = np.argsort(-scores, kind="stable")[:n_top]
    ref = dense[:, top].mean(axis=1)

    centered = dense - dense.mean(axis=0, keepdims=True)
    ref_centered = ref - ref.mean()
    num = ref_centered @ centered
    den = np.sqrt((centered * centered).sum(axis=0) * (ref_centered @ ref_centered))

    with np.errstate(invalid="ignore", divide="ignore"):
        corr = np.where(den > 0, num / np.where(den > 0, den, 1.0), np.nan)

    if verbose:
        print(f"CNA correlation against top {n_top} cells")

    return pd.Series(corr, index=cells, name="cna_correlation")
