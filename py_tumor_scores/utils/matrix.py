"""
Matrix access helpers shared by the scorers.

Scorers work on features × cells (genes or loci as rows, cells as columns).
AnnData objects are cells × genes and are transposed on the way in.
"""

__all__ = ['as_features_by_cells', 'subset_cells', 'column_block', 'resolve_annotation']

import numpy as np
import pandas as pd
import anndata as ad
from scipy import sparse
from typing import Optional, Sequence, Tuple, Union

from py_tumor_scores.errors import ShapeMismatch

Matrix = Union[np.ndarray, sparse.spmatrix]


def as_features_by_cells(
    mat: Union[pd.DataFrame, ad.AnnData],
    layer: Optional[str] = None,
    obsm_key: Optional[str] = None
) -> Tuple[Matrix, pd.Index, pd.Index]:
    """
    Unpack an expression matrix into (X, feature_names, cell_names).

    Parameters
    ----------
    mat : pd.DataFrame or AnnData
        DataFrame oriented features × cells, or AnnData (cells × genes).
    layer : str, optional
        AnnData layer to read instead of X.
    obsm_key : str, optional
        AnnData obsm entry to read instead of X (e.g. 'X_cnv').

    Returns
    -------
    tuple
        X as features × cells (dense float64 or CSC sparse), feature index, cell index.
    """
    if isinstance(mat, ad.AnnData):
        if layer is not None and obsm_key is not None:
            raise ValueError("Pass either layer or obsm_key, not both")
        if obsm_key is not None:
            if obsm_key not in mat.obsm:
                raise KeyError(f"obsm key '{obsm_key}' not found. Available: {list(mat.obsm.keys())}")
            X = mat.obsm[obsm_key]
            features = pd.Index([str(i) for i in range(X.shape[1])])
        elif layer is not None:
            if layer not in mat.layers:
                raise KeyError(f"Layer '{layer}' not found. Available: {list(mat.layers.keys())}")
            X = mat.layers[layer]
            features = pd.Index(mat.var_names)
        else:
            X = mat.X
            features = pd.Index(mat.var_names)
        cells = pd.Index(mat.obs_names)
        X = X.T
    elif isinstance(mat, pd.DataFrame):
        if layer is not None or obsm_key is not None:
            raise ValueError("layer/obsm_key only apply to AnnData input")
        X = mat.to_numpy(dtype=np.float64)
        features = pd.Index(mat.index)
        cells = pd.Index(mat.columns.astype(str))
    else:
        raise TypeError(f"Expected DataFrame or AnnData, got {type(mat).__name__}")

    if sparse.issparse(X):
        X = sparse.csc_matrix(X, dtype=np.float64)
    else:
        X = np.asarray(X, dtype=np.float64)

    if cells.has_duplicates:
        raise ShapeMismatch("Duplicate cell identifiers", ids=cells[cells.duplicated()].unique())

    return X, features, cells


def subset_cells(
    X: Matrix,
    cells: pd.Index,
    keep: Optional[Sequence[str]] = None
) -> Tuple[Matrix, pd.Index]:
    """Select the requested cells (columns), in the requested order."""
    if keep is None:
        return X, cells

    keep = pd.Index(keep).astype(str)
    if keep.has_duplicates:
        raise ShapeMismatch("Duplicate requested cell identifiers", ids=keep[keep.duplicated()].unique())

    idx = cells.get_indexer(keep)
    missing = keep[idx < 0]
    if len(missing) > 0:
        raise ShapeMismatch(f"{len(missing)} requested cells not found in matrix columns", ids=missing)

    return X[:, idx], keep


def column_block(X: Matrix, start: int, end: int) -> np.ndarray:
    """Dense copy of columns [start, end)."""
    block = X[:, start:end]
    if sparse.issparse(block):
        return block.toarray()
    return np.array(block, dtype=np.float64)


def resolve_annotation(
    annotation: Union[pd.Series, str],
    adata: Optional[ad.AnnData] = None
) -> pd.Series:
    """Annotation Vector from a Series or an adata.obs column name."""
    if isinstance(annotation, str):
        if adata is None:
            raise ValueError("Column-name annotation needs an AnnData")
        if annotation not in adata.obs.columns:
            raise KeyError(f"'{annotation}' not found in adata.obs")
        annotation = adata.obs[annotation]
    annotation = pd.Series(annotation)
    annotation.index = annotation.index.astype(str)
    return annotation
