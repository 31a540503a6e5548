import numpy as np
import pandas as pd

from py_tumor_scores.utils.io import read_infercnv_observations


def test_infercnv_r_layout(tmp_path):
    path = tmp_path / "infercnv.observations.txt"
    path.write_text(
        "cellA cellB\n"
        "GENE1 1.02 0.97\n"
        "GENE2 1 1.3\n"
    )
    df = read_infercnv_observations(path)
    assert list(df.columns) == ["cellA", "cellB"]
    assert list(df.index) == ["GENE1", "GENE2"]
    assert df.loc["GENE2", "cellB"] == 1.3
    assert df.dtypes.unique().tolist() == [np.float64]


def test_infercnv_full_header(tmp_path):
    path = tmp_path / "obs.tsv"
    path.write_text("gene\tcellA\nGENE1\t0.9\n")
    df = read_infercnv_observations(path, sep="\t")
    assert list(df.columns) == ["cellA"]
    assert df.loc["GENE1", "cellA"] == 0.9
