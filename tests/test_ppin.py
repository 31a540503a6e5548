import io
import numpy as np
import pandas as pd
import pytest

from py_tumor_scores.errors import ParseError, KeyMismatch
from py_tumor_scores.run.ppin import (
    read_activity_table, write_activity_table, rekey_activity, activity_scores
)
from py_tumor_scores.utils.io import read_name_list

FULL_HEADER = (
    "network\tcell1\tcell2\tcell3\n"
    "1\t0.25\t-1.5\t2.0\n"
    "2\t0.125\t0.0\tNA\n"
)

R_STYLE = (
    "cell1 cell2\n"
    "EGFR 0.5 1.75\n"
    "TP53 -0.25 3.0\n"
)


def test_full_header_parse():
    table = read_activity_table(io.StringIO(FULL_HEADER))
    assert table.shape == (2, 3)
    assert list(table.columns) == ["cell1", "cell2", "cell3"]
    assert list(table.index) == ["1", "2"]
    assert table.loc["1", "cell2"] == -1.5
    assert np.isnan(table.loc["2", "cell3"])


def test_round_trip_full_header():
    table = read_activity_table(io.StringIO(FULL_HEADER))
    assert write_activity_table(table) == FULL_HEADER


def test_round_trip_r_style_header():
    table = read_activity_table(io.StringIO(R_STYLE), sep=" ")
    assert table.index.name is None
    assert write_activity_table(table) == R_STYLE


def test_round_trip_ignores_trailing_whitespace():
    messy = FULL_HEADER.replace("\n", "  \r\n") + "\n\n"
    table = read_activity_table(io.StringIO(messy))
    assert write_activity_table(table) == FULL_HEADER


def test_round_trip_file(tmp_path):
    src = tmp_path / "activity.tsv"
    src.write_text(FULL_HEADER)
    table = read_activity_table(src)
    dst = tmp_path / "out.tsv"
    write_activity_table(table, dst)
    assert dst.read_text() == src.read_text()


def test_wrong_field_count():
    bad = FULL_HEADER + "3\t1.0\t2.0\n"
    with pytest.raises(ParseError) as excinfo:
        read_activity_table(io.StringIO(bad))
    assert excinfo.value.line == 4


def test_wrong_field_count_first_row():
    with pytest.raises(ParseError) as excinfo:
        read_activity_table(io.StringIO("a\tb\tc\n1\n"))
    assert excinfo.value.line == 2


def test_non_numeric_value():
    bad = FULL_HEADER.replace("0.125", "high")
    with pytest.raises(ParseError) as excinfo:
        read_activity_table(io.StringIO(bad))
    assert excinfo.value.line == 3


def test_duplicate_rows():
    bad = FULL_HEADER + "1\t0.5\t0.5\t0.5\n"
    with pytest.raises(ParseError):
        read_activity_table(io.StringIO(bad))


def test_empty_table():
    with pytest.raises(ParseError):
        read_activity_table(io.StringIO(""))


def test_cells_as_rows_transposed():
    text = "cell\tEGFR\tTP53\nc1\t0.5\t1.0\nc2\t0.25\t2.0\n"
    table = read_activity_table(io.StringIO(text), transpose=True)
    assert list(table.index) == ["EGFR", "TP53"]
    assert list(table.columns) == ["c1", "c2"]
    assert write_activity_table(table) == text


def test_rekey_rows():
    table = read_activity_table(io.StringIO(FULL_HEADER))
    rekeyed, mapping = rekey_activity(table, ["EGFR", "TP53"])
    assert list(rekeyed.index) == ["EGFR", "TP53"]
    assert mapping.to_dict() == {"1": "EGFR", "2": "TP53"}
    assert rekeyed.loc["TP53", "cell1"] == 0.125
    # source table untouched
    assert list(table.index) == ["1", "2"]


def test_rekey_length_mismatch():
    table = read_activity_table(io.StringIO(FULL_HEADER))
    with pytest.raises(KeyMismatch):
        rekey_activity(table, ["EGFR"])


def test_rekey_duplicate_names():
    table = read_activity_table(io.StringIO(FULL_HEADER))
    with pytest.raises(KeyMismatch):
        rekey_activity(table, ["EGFR", "EGFR"])


def test_rekey_columns():
    table = read_activity_table(io.StringIO(FULL_HEADER))
    rekeyed, _ = rekey_activity(table, ["a", "b", "c"], axis="columns")
    assert list(rekeyed.columns) == ["a", "b", "c"]


def test_rekey_from_name_file(tmp_path):
    names = tmp_path / "names.txt"
    names.write_text("EGFR\nTP53\n\n")
    table = read_activity_table(io.StringIO(FULL_HEADER))
    rekeyed, _ = rekey_activity(table, read_name_list(names))
    assert list(rekeyed.index) == ["EGFR", "TP53"]


def test_activity_scores():
    table = read_activity_table(io.StringIO(R_STYLE), sep=" ")
    scores = activity_scores(table, "EGFR")
    assert scores.name == "ppin_activity.EGFR"
    assert scores.to_dict() == {"cell1": 0.5, "cell2": 1.75}
    with pytest.raises(KeyMismatch):
        activity_scores(table, "MYC")


def test_round_trip_keeps_original_tokens():
    text = "network\tc1\tc2\nnet1\t3\t1e-04\nnet2\t0.50\t-2\n"
    table = read_activity_table(io.StringIO(text))
    assert table.loc["net1", "c2"] == 1e-4
    assert table.loc["net2", "c2"] == -2.0
    assert write_activity_table(table) == text


def test_changed_values_are_rewritten():
    text = "network\tc1\tc2\nnet1\t3\t1e-04\n"
    table = read_activity_table(io.StringIO(text))
    table.loc["net1", "c1"] = 4.5
    assert write_activity_table(table) == "network\tc1\tc2\nnet1\t4.5\t1e-04\n"


def test_quoted_r_table():
    text = '"c1"\t"c2"\n"net1"\t0.5\t0.25\n'
    table = read_activity_table(io.StringIO(text))
    assert list(table.index) == ["net1"]
    assert list(table.columns) == ["c1", "c2"]
    assert write_activity_table(table) == text


def test_extra_field_on_first_row_of_full_header():
    bad = "network\tc1\tc2\nnet1\t1.0\t2.0\t3.0\nnet2\t1.0\t2.0\n"
    with pytest.raises(ParseError) as excinfo:
        read_activity_table(io.StringIO(bad))
    assert excinfo.value.line == 2
