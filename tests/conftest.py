import numpy as np
import pandas as pd
import anndata as ad
import pytest


def make_counts_adata(n_cells_per_sample=(60, 80), n_genes=300, seed=0):
    """Negative-binomial counts for several samples, cells × genes."""
    rng = np.random.default_rng(seed)
    blocks, samples = [], []
    gene_means = rng.gamma(shape=0.8, scale=3.0, size=n_genes)
    for i, n in enumerate(n_cells_per_sample):
        dispersion = 2.0 + 3.0 * i
        p = dispersion / (dispersion + gene_means)
        blocks.append(rng.negative_binomial(dispersion, p, size=(n, n_genes)))
        samples += [f"S{i + 1}"] * n

    X = np.vstack(blocks).astype(np.float64)
    obs = pd.DataFrame(
        {"sample": pd.Categorical(samples)},
        index=[f"cell{i}" for i in range(X.shape[0])]
    )
    var = pd.DataFrame(index=[f"gene{j}" for j in range(n_genes)])
    return ad.AnnData(X=X, obs=obs, var=var)


@pytest.fixture
def counts_adata():
    return make_counts_adata()


@pytest.fixture
def small_counts():
    # genes × cells
    return pd.DataFrame(
        [[10, 0, 1, 5],
         [0, 10, 1, 5],
         [0, 0, 1, 0],
         [0, 0, 1, 0]],
        index=["g1", "g2", "g3", "g4"],
        columns=["c1", "c2", "c3", "c4"],
    )


@pytest.fixture
def residuals():
    # loci × cells, neutral = 1.0
    return pd.DataFrame(
        [[1.0, 2.0, 1.0],
         [1.0, 0.0, 1.2],
         [1.0, 1.5, 0.8]],
        index=["l1", "l2", "l3"],
        columns=["t1", "t2", "t3"],
    )


def variance_selector(adata, n_top_genes):
    """Plain per-gene variance, top n."""
    X = adata.X.toarray() if hasattr(adata.X, "toarray") else np.asarray(adata.X)
    var = pd.Series(X.var(axis=0), index=adata.var_names)
    return var.sort_values(ascending=False, kind="stable").iloc[:n_top_genes]


def identity(adata):
    return adata
