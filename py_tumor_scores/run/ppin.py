"""
Network (PPIN) activity tables produced by an external inference tool.

Nothing is computed here: the table is parsed, validated and, when the tool
writes positional row ids, explicitly re-keyed against a separate name list.
"""

# Define what gets exported
__all__ = ['read_activity_table', 'write_activity_table', 'rekey_activity', 'activity_scores']

import io
import logging
from pathlib import Path
import numpy as np
import pandas as pd
from typing import Sequence, Tuple

from py_tumor_scores.errors import ParseError, KeyMismatch

NA_TOKENS = {"NA", "NaN", "nan", ""}


def _read_text(path_or_buffer) -> str:
    if hasattr(path_or_buffer, "read"):
        return path_or_buffer.read()
    with open(Path(path_or_buffer).resolve()) as f:
        return f.read()


def _parse_value(token: str, line: int) -> float:
    if token in NA_TOKENS:
        return np.nan
    try:
        return float(token)
    except ValueError:
        raise ParseError(f"non-numeric value {token!r}", line=line) from None


def _tokenize(lines, sep) -> pd.DataFrame:
    """Split lines into string fields; missing trailing fields come back as NaN."""
    width = max(line.count(sep) for line in lines) + 1
    return pd.read_csv(
        io.StringIO("\n".join(lines) + "\n"),
        sep=sep,
        header=None,
        names=list(range(width)),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=False,
    )


def read_activity_table(
    path_or_buffer,
    sep: str = "\t",
    transpose: bool = False
) -> pd.DataFrame:
    """
    Parse a delimiter-separated activity table with a header row.

    Two header layouts are accepted:
    - full header: the first field names the row-id column
    - R ``write.table`` header: one field fewer than the data rows

    Quoted identifiers (R's default ``quote=TRUE``) are unquoted.

    Parameters
    ----------
    path_or_buffer : str, Path or file-like
        Table to read.
    sep : str, default='\\t'
        Field delimiter.
    transpose : bool, default=False
        Set when the table has cells as rows, so the result is always
        networks × cells like an expression matrix.

    Returns
    -------
    pd.DataFrame
        Float activity matrix. ``attrs`` records the layout and the original
        value tokens for ``write_activity_table``.

    Raises
    ------
    ParseError
        On a row with the wrong number of fields, a non-numeric value, or
        duplicated identifiers.
    """
    lines = [line.rstrip(" \r") for line in _read_text(path_or_buffer).split("\n")]
    while lines and not lines[-1]:
        lines.pop()
    if not lines:
        raise ParseError("empty activity table")

    raw = _tokenize(lines, sep)
    n_present = raw.notna().sum(axis=1).to_numpy()

    n_header = int(n_present[0])
    header = [str(t) for t in raw.iloc[0, :n_header]]
    row_counts = n_present[1:]

    # layout follows the majority of rows, ties go to the full header
    r_style = bool((row_counts == n_header + 1).sum() > (row_counts == n_header).sum())
    if r_style:
        index_name, columns = None, header
    else:
        index_name, columns = header[0], header[1:]

    n_fields = len(columns) + 1
    bad = np.flatnonzero(row_counts != n_fields)
    if len(bad) > 0:
        raise ParseError(f"expected {n_fields} fields, got {row_counts[bad[0]]}", line=int(bad[0]) + 2)

    row_ids = [str(t) for t in raw.iloc[1:, 0]]
    tokens = raw.iloc[1:, 1:n_fields].to_numpy(dtype=object)
    values = np.empty(tokens.shape, dtype=np.float64)
    for i, fields in enumerate(tokens):
        values[i] = [_parse_value(tok, i + 2) for tok in fields]

    index = pd.Index(row_ids, name=index_name or None)
    if index.has_duplicates:
        raise ParseError("duplicated row identifiers", ids=index[index.duplicated()].unique())
    columns = pd.Index(columns)
    if columns.has_duplicates:
        raise ParseError("duplicated column identifiers", line=1, ids=columns[columns.duplicated()].unique())

    table = pd.DataFrame(values, index=index, columns=columns)
    if transpose:
        table = table.T

    table.attrs = {
        "sep": sep,
        "index_name": index_name,
        "r_style_header": r_style,
        "quoted": lines[0].startswith('"'),
        "transposed": transpose,
        "tokens": tuple(tuple(row) for row in tokens),
    }
    logging.info(f"Loaded activity table: {table.shape[0]} networks × {table.shape[1]} cells")
    return table


def _format_value(v, token=None) -> str:
    v = float(v)
    # an unchanged value is written back exactly as it was read
    if token is not None:
        if token in NA_TOKENS:
            if np.isnan(v):
                return token
        elif float(token) == v:
            return token
    if np.isnan(v):
        return "NA"
    return repr(v)


def write_activity_table(table: pd.DataFrame, path_or_buffer=None, sep: str = None) -> str:
    """
    Serialize an activity table in the layout it was read with.

    Values that still equal the token they were parsed from are written as that
    token, so a read/write cycle reproduces the file. Returns the text; also
    writes it when ``path_or_buffer`` is given.
    """
    attrs = table.attrs or {}
    sep = sep if sep is not None else attrs.get("sep", "\t")
    if attrs.get("transposed", False):
        table = table.T

    if attrs.get("quoted", False):
        def fmt_id(s):
            return f'"{s}"'
    else:
        fmt_id = str

    columns = [fmt_id(c) for c in table.columns]
    if attrs.get("r_style_header", False):
        header = columns
    else:
        index_name = attrs.get("index_name")
        if index_name is None:
            index_name = table.index.name or ""
        header = [fmt_id(index_name)] + columns

    tokens = attrs.get("tokens")
    n_rows, n_cols = table.shape
    if tokens is None or len(tokens) != n_rows or any(len(row) != n_cols for row in tokens):
        tokens = [[None] * n_cols for _ in range(n_rows)]

    out = io.StringIO()
    out.write(sep.join(header) + "\n")
    for row_id, row, row_tokens in zip(table.index, table.to_numpy(), tokens):
        fields = [_format_value(v, tok) for v, tok in zip(row, row_tokens)]
        out.write(sep.join([fmt_id(row_id)] + fields) + "\n")
    text = out.getvalue()

    if path_or_buffer is not None:
        if hasattr(path_or_buffer, "write"):
            path_or_buffer.write(text)
        else:
            with open(Path(path_or_buffer).resolve(), "w") as f:
                f.write(text)

    return text


def rekey_activity(
    table: pd.DataFrame,
    names: Sequence[str],
    axis: str = "index"
) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Replace positional row (or column) ids with names from a separate list.

    The i-th name labels the i-th row. The returned mapping (old id -> new id)
    is the audit trail of the substitution.

    Raises
    ------
    KeyMismatch
        If the list length differs from the table, or names repeat.
    """
    if axis not in ("index", "columns"):
        raise ValueError(f"axis must be 'index' or 'columns', got {axis}")

    old = table.index if axis == "index" else table.columns
    names = pd.Index([str(n) for n in names])
    if len(names) != len(old):
        raise KeyMismatch(f"{len(names)} names for {len(old)} {'rows' if axis == 'index' else 'columns'}")
    if names.has_duplicates:
        raise KeyMismatch("duplicated names in re-keying list", ids=names[names.duplicated()].unique())

    mapping = pd.Series(names, index=pd.Index(old, name="old_id"), name="new_id")

    rekeyed = table.copy()
    if axis == "index":
        rekeyed.index = names.rename(table.index.name)
    else:
        rekeyed.columns = names

    return rekeyed, mapping


def activity_scores(table: pd.DataFrame, network: str) -> pd.Series:
    """One network's activity per cell."""
    if network not in table.index:
        raise KeyMismatch("network not found in activity table", ids=[network])
    scores = table.loc[network].astype(np.float64)
    return scores.rename(f"ppin_activity.{network}")
