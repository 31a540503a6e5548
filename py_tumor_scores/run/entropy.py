"""
Shannon entropy of per-cell transcript count distributions.
"""

# Define what gets exported
__all__ = ['entropy_score', 'column_entropy']

import math
import time
import warnings
import numpy as np
import pandas as pd
import torch
from typing import Literal, Optional, Sequence
from tqdm import tqdm

from py_tumor_scores.errors import DegenerateInput
from py_tumor_scores.utils.matrix import as_features_by_cells, subset_cells, column_block


def column_entropy(counts: torch.Tensor, base: float = 2.0) -> torch.Tensor:
    """
    Vectorized Shannon entropy over the rows of each column.

    Zero entries contribute 0 (0 * log 0 = 0). Columns must have a positive sum.
    """
    totals = counts.sum(dim=0, keepdim=True)
    p = counts / totals

    # log of 1 is 0, so masked entries drop out exactly
    safe_p = torch.where(p > 0, p, torch.ones_like(p))
    if base == 2:
        logp = torch.log2(safe_p)
    else:
        logp = torch.log(safe_p) / math.log(base)

    h = -(p * logp).sum(dim=0)
    # one-hot columns give -0.0
    return h + 0.0


def entropy_score(
    counts,
    cells: Optional[Sequence[str]] = None,
    base: float = 2.0,
    on_degenerate: Literal["raise", "nan", "skip"] = "raise",
    normalize: bool = False,
    layer: Optional[str] = None,
    batch_size: int = 1000,
    device: str = "cpu",
    verbose: bool = False
) -> pd.Series:
    """
    Per-cell Shannon entropy of the gene count distribution.

    H(c) = -sum_g p_g log_base(p_g), with p_g = count(g, c) / sum_g' count(g', c).

    Parameters
    ----------
    counts : pd.DataFrame or AnnData
        Raw counts, genes × cells as a DataFrame, or an AnnData (cells × genes).
    cells : list of str, optional
        Cells to score. Defaults to every cell.
    base : float, default=2.0
        Logarithm base.
    on_degenerate : {'raise', 'nan', 'skip'}, default='raise'
        What to do with cells whose counts sum to zero:
        - 'raise': raise DegenerateInput naming the cells
        - 'nan': report NaN for those cells
        - 'skip': leave them out of the result (with a warning)
    normalize : bool, default=False
        Divide by log_base of the number of expressed genes, giving a value in
        [0, 1]. Cells expressing a single gene get 0.
    layer : str, optional
        AnnData layer holding the raw counts.
    batch_size : int, default=1000
        Cells per torch batch.
    device : str, default='cpu'
        Torch device. CPU keeps results bit-for-bit reproducible.
    verbose : bool, default=False
        Show a progress bar and run time.

    Returns
    -------
    pd.Series
        Entropy per cell, named 'entropy'.

    Examples
    --------
    >>> df = pd.DataFrame([[10, 0], [0, 10], [0, 0]], columns=["c1", "c2"])
    >>> entropy_score(df).tolist()
    [0.0, 0.0]
    """
    if on_degenerate not in ("raise", "nan", "skip"):
        raise ValueError(f"on_degenerate {on_degenerate} unrecognized!")
    if base <= 0 or base == 1:
        raise ValueError(f"Invalid logarithm base: {base}")

    start = time.time()

    X, _, all_cells = as_features_by_cells(counts, layer=layer)
    X, cells = subset_cells(X, all_cells, cells)
    n_genes, n_cells = X.shape

    entropy = np.empty(n_cells, dtype=np.float64)
    degenerate = np.zeros(n_cells, dtype=bool)

    batches = range(0, n_cells, batch_size)
    for s in tqdm(batches, desc="Computing entropy", disable=not verbose):
        e = min(s + batch_size, n_cells)
        block = column_block(X, s, e)

        invalid = ~np.isfinite(block).all(axis=0) | (block < 0).any(axis=0)
        if invalid.any():
            raise DegenerateInput("Counts must be finite and non-negative", ids=cells[s:e][invalid])

        block_t = torch.from_numpy(block).to(device=device, dtype=torch.float64)
        zero = (block_t.sum(dim=0) == 0).cpu().numpy()
        degenerate[s:e] = zero

        h = np.full(e - s, np.nan)
        if not zero.all():
            keep = torch.from_numpy(~zero).to(device)
            sub = block_t[:, keep]
            h_keep = column_entropy(sub, base=base)
            if normalize:
                n_expressed = (sub > 0).sum(dim=0).to(torch.float64)
                log_g = torch.log(n_expressed) / math.log(base)
                h_keep = torch.where(n_expressed > 1, h_keep / torch.where(n_expressed > 1, log_g, torch.ones_like(log_g)),
                                     torch.zeros_like(h_keep))
            h[~zero] = h_keep.cpu().numpy()
        entropy[s:e] = h

    result = pd.Series(entropy, index=cells, name="entropy")

    if degenerate.any():
        bad = cells[degenerate]
        if on_degenerate == "raise":
            raise DegenerateInput(f"{len(bad)} cells have an all-zero count column", ids=bad)
        if on_degenerate == "skip":
            warnings.warn(f"Skipping {len(bad)} cells with an all-zero count column")
            result = result[~degenerate]

    if verbose:
        print(f"Entropy for {n_cells} cells over {n_genes} genes, RunTime (s): {time.time() - start:.2f}")

    return result
