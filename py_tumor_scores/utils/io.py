"""
Loading functions for inputs produced by external tools.
"""

# Define what gets exported
__all__ = ['read_infercnv_observations', 'read_name_list']

from pathlib import Path
import logging
import numpy as np
import pandas as pd


def read_infercnv_observations(path, sep: str = " ") -> pd.DataFrame:
    """
    Load an inferCNV residual expression table (genes × cells, neutral = 1.0).

    Handles both the R ``write.table`` layout, where the header has one field
    fewer than the data rows, and a full header with a leading index field.

    Parameters
    ----------
    path : str or Path
        Path to e.g. ``infercnv.observations.txt``.
    sep : str, default=" "
        Field delimiter.

    Returns
    -------
    pd.DataFrame
        Float matrix with genes as index and cell identifiers as columns.
    """
    path = Path(path).resolve()
    with open(path) as f:
        n_header = len(f.readline().rstrip("\n").split(sep))
        n_first = len(f.readline().rstrip("\n").split(sep))

    if n_header == n_first:
        df = pd.read_csv(path, sep=sep, index_col=0)
    else:
        # pandas infers the row names when the header is one field short
        df = pd.read_csv(path, sep=sep)

    df.columns = df.columns.astype(str)
    df = df.astype(np.float64)
    logging.info(f"Loaded inferCNV residuals: {df.shape[0]} genes × {df.shape[1]} cells")
    return df


def read_name_list(path) -> list:
    """One name per line, blank lines ignored."""
    with open(Path(path).resolve()) as f:
        names = [line.strip() for line in f]
    return [n for n in names if n]
