"""
Run the four scorers on one dataset and collect the score vectors.
"""

# Define what gets exported
__all__ = ['score_all', 'merge_cell_scores']

import time
from functools import partial
import numpy as np
import pandas as pd
import anndata as ad
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional, Sequence, Union

from py_tumor_scores.config import ScoringConfig
from py_tumor_scores.run.cna import cna_score
from py_tumor_scores.run.entropy import entropy_score
from py_tumor_scores.run.heterogeneity import (
    heterogeneity_score, split_by_sample, normalize_log1p, scanpy_feature_selector
)
from py_tumor_scores.utils.matrix import resolve_annotation


def score_all(
    counts: Optional[ad.AnnData] = None,
    cnv=None,
    activity: Optional[pd.DataFrame] = None,
    sample_key: Optional[Union[str, pd.Series]] = None,
    tumor_cells: Optional[Sequence[str]] = None,
    config: ScoringConfig = ScoringConfig(),
    verbose: bool = False
) -> Dict[str, Union[pd.Series, pd.DataFrame]]:
    """
    Compute every score whose input is available.

    Parameters
    ----------
    counts : AnnData, optional
        Raw counts (cells × genes). Drives the entropy score and, with
        ``sample_key``, the heterogeneity score.
    cnv : pd.DataFrame or AnnData, optional
        Residual copy-number matrix for the CNA score.
    activity : pd.DataFrame, optional
        Activity matrix from ``read_activity_table``; passed through.
    sample_key : str or pd.Series, optional
        adata.obs column (or Series) with the sample of each cell.
    tumor_cells : list of str, optional
        Restricts the CNA and entropy scores to these cells.
    config : ScoringConfig
        Shared parameters.
    verbose : bool, default=False
        Print per-scorer timings.

    Returns
    -------
    dict
        Any of 'cna_score', 'entropy', 'heterogeneity' (Series) and
        'ppin_activity' (DataFrame, networks × cells).
    """
    tasks = {}

    if cnv is not None:
        tasks["cna_score"] = partial(cna_score, cnv, cells=tumor_cells, neutral=config.cna_neutral)

    if counts is not None:
        tasks["entropy"] = partial(
            entropy_score, counts, cells=tumor_cells, base=config.log_base,
            on_degenerate=config.on_degenerate, layer=config.counts_layer
        )
        if sample_key is not None:
            source = counts
            if config.counts_layer is not None:
                source = ad.AnnData(X=counts.layers[config.counts_layer], obs=counts.obs, var=counts.var)
            partition = split_by_sample(source, sample_key)
            tasks["heterogeneity"] = partial(
                heterogeneity_score, partition, config.n_top_genes,
                normalizer=partial(normalize_log1p, target_sum=config.target_sum),
                feature_selector=scanpy_feature_selector(config.hvg_flavor),
                n_workers=config.n_workers
            )

    def run(name):
        start = time.time()
        result = tasks[name]()
        if verbose:
            print(f"{name}: {len(result)} values, RunTime (s): {time.time() - start:.2f}")
        return result

    names = list(tasks)
    with ThreadPoolExecutor(max_workers=max(1, min(config.n_workers, len(names) or 1))) as executor:
        results = dict(zip(names, executor.map(run, names)))

    if activity is not None:
        results["ppin_activity"] = activity

    return results


def merge_cell_scores(
    scores: Dict[str, Union[pd.Series, pd.DataFrame]],
    sample_labels: Optional[pd.Series] = None
) -> pd.DataFrame:
    """
    Join per-cell scores on cell identifier (outer join).

    Network activities become one 'ppin_activity.<network>' column each. The
    per-sample heterogeneity score is broadcast to cells when ``sample_labels``
    (cell -> sample) is given and dropped otherwise.
    """
    columns = []
    for name, value in scores.items():
        if name == "heterogeneity":
            continue
        if isinstance(value, pd.DataFrame):
            frame = value.T.copy()
            frame.columns = [f"{name}.{c}" for c in frame.columns]
            columns.append(frame)
        else:
            columns.append(value.rename(name).to_frame())

    merged = pd.concat(columns, axis=1, join="outer") if columns else pd.DataFrame()
    merged.index = merged.index.astype(str)

    if sample_labels is not None and "heterogeneity" in scores:
        labels = resolve_annotation(sample_labels)
        if len(merged) == 0:
            merged = pd.DataFrame(index=labels.index)
        sample = labels.reindex(merged.index)
        het = scores["heterogeneity"]
        keys = [str(s) if pd.notna(s) else None for s in sample]
        merged["sample"] = keys
        merged["heterogeneity"] = np.array(
            [het.get(k, np.nan) if k is not None else np.nan for k in keys], dtype=np.float64
        )

    merged.index.name = "cell"
    return merged
