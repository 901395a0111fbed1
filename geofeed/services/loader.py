"""
Tabular Point Loader
====================
Reads a delimited text file (header row first) into immutable Records,
selecting / renaming columns and filtering rows.

    CSV ──read_csv──▶ DataFrame ──column_map──▶ renamed ──where──▶ Records

Row policy
----------
A row with more fields than the header is malformed.  By default the
first malformed row aborts the load with ``ParseError``; with
``skip_invalid_rows=True`` such rows are dropped and logged.  Short rows
are padded with missing values by pandas and are not malformed.

An over-long *first* data row is caught too: pandas would otherwise
read its extra field as an implicit index and shift every column left.
"""

from __future__ import annotations

import logging
import re
import warnings
from collections.abc import Callable, Mapping
from os import PathLike
from pathlib import Path
from typing import Any, Union

import pandas as pd

from geofeed.config import get_settings
from geofeed.exceptions import NotFound, ParseError, SchemaMismatch
from geofeed.spatial.features import Record

logger = logging.getLogger(__name__)

RecordPredicate = Callable[[Record], bool]
# Either a callable over a Record or a pandas query expression over the
# renamed fields, e.g. "DrainAreaSqMiles > 500".
Where = Union[RecordPredicate, str, None]

_LINE_NO = re.compile(r"line (\d+)")
_UNDEFINED_NAME = re.compile(r"name '([^']+)' is not defined")


def _read_csv(path: Path, options: dict[str, Any]) -> pd.DataFrame:
    try:
        return pd.read_csv(path, **options)
    except pd.errors.EmptyDataError as exc:
        raise ParseError(f"No header row or data in {path}") from exc
    except pd.errors.ParserError as exc:
        match = _LINE_NO.search(str(exc))
        raise ParseError(
            f"Malformed row in {path}: {exc}",
            line=int(match.group(1)) if match else None,
        ) from exc
    except pd.errors.ParserWarning as exc:
        raise ParseError(f"Malformed row in {path}: a row has more fields than the header") from exc
    except UnicodeDecodeError as exc:
        raise ParseError(f"Cannot decode {path}: {exc}") from exc


def _implicit_index(df: pd.DataFrame, read_kwargs: dict[str, Any]) -> bool:
    # pandas turns the leading field(s) into the index when the first data
    # row is longer than the header, shifting every column left.
    return "index_col" not in read_kwargs and len(df) > 0 and not isinstance(df.index, pd.RangeIndex)


def _first_data_line(path: Path, read_kwargs: dict[str, Any]) -> int:
    """0-based file line of the first data row, for ``skiprows``."""
    header = read_kwargs.get("header", "infer")
    if header == "infer":
        header = None if "names" in read_kwargs else 0
    if "skiprows" in read_kwargs or not (header is None or isinstance(header, int)):
        raise ParseError(
            f"Malformed first row in {path}: it has more fields than the header "
            "and cannot be skipped when 'skiprows' or a multi-row header is given"
        )
    return 0 if header is None else header + 1


def _read_frame(path: Path, skip_invalid_rows: bool, read_kwargs: dict[str, Any]) -> pd.DataFrame:
    if skip_invalid_rows:
        return _read_frame_tolerant(path, read_kwargs)

    options: dict[str, Any] = {"on_bad_lines": "error", "index_col": False}
    options.update(read_kwargs)
    with warnings.catch_warnings():
        # With index_col=False pandas truncates an over-long first row and
        # only warns about it.
        warnings.filterwarnings(
            "error", message="Length of header", category=pd.errors.ParserWarning
        )
        df = _read_csv(path, options)
    if _implicit_index(df, read_kwargs):
        raise ParseError(f"Malformed row in {path}: a row has more fields than the header")
    return df


def _read_frame_tolerant(path: Path, read_kwargs: dict[str, Any]) -> pd.DataFrame:
    skiprows: list[int] = []
    previous_len: int | None = None
    while True:
        bad_rows: list[list[str]] = []

        def _drop(fields: list[str]) -> None:
            bad_rows.append(fields)
            return None

        # Callable bad-line handlers need the python engine.
        options: dict[str, Any] = {"on_bad_lines": _drop, "engine": "python"}
        if skiprows:
            options["skiprows"] = list(skiprows)
        options.update(read_kwargs)
        df = _read_csv(path, options)

        if not _implicit_index(df, read_kwargs):
            break
        if previous_len is not None and len(df) >= previous_len:
            raise ParseError(f"Cannot recover column alignment in {path}")
        previous_len = len(df)
        line = _first_data_line(path, read_kwargs) + len(skiprows)
        logger.warning(
            "Skipping malformed row in %s: line %d has more fields than the header",
            path.name, line + 1,
        )
        skiprows.append(line)

    for fields in bad_rows:
        logger.warning("Skipping malformed row in %s: %s", path.name, fields)
    dropped = len(bad_rows) + len(skiprows)
    if dropped:
        logger.warning("Dropped %d malformed row(s) from %s", dropped, path)
    return df


def _select_columns(df: pd.DataFrame, column_map: Mapping[str, str] | None) -> pd.DataFrame:
    if not column_map:
        return df
    missing = [src for src in column_map.values() if src not in df.columns]
    if missing:
        raise SchemaMismatch(missing, [str(c) for c in df.columns])
    return pd.DataFrame({dest: df[src] for dest, src in column_map.items()}, index=df.index)


def _query_frame(df: pd.DataFrame, expression: str) -> pd.DataFrame:
    try:
        return df.query(expression)
    except pd.errors.UndefinedVariableError as exc:
        match = _UNDEFINED_NAME.search(str(exc))
        name = match.group(1) if match else expression
        raise SchemaMismatch([name], [str(c) for c in df.columns]) from exc
    except (SyntaxError, ValueError, TypeError, KeyError) as exc:
        raise ParseError(f"Invalid filter expression {expression!r}: {exc}") from exc


def _to_records(df: pd.DataFrame) -> tuple[Record, ...]:
    # object dtype first so numpy scalars become Python ints / floats and
    # NaN can be replaced by None.
    clean = df.astype(object).where(df.notna(), None)
    return tuple(Record(row) for row in clean.to_dict(orient="records"))


def load(
    path: str | PathLike[str],
    column_map: Mapping[str, str] | None = None,
    where: Where = None,
    *,
    skip_invalid_rows: bool | None = None,
    **read_kwargs: Any,
) -> tuple[Record, ...]:
    """
    Load a delimited file into Records.

    Parameters
    ----------
    path : path-like
        Delimited text file; the first row is the header.
    column_map : mapping, optional
        Output field name → source column name.  Output fields follow the
        mapping's order and unselected columns are dropped.  ``None`` (or
        empty) keeps every column under its source name.
    where : callable or str, optional
        Row filter over the *renamed* fields: a ``Record -> bool`` callable
        or a pandas query expression such as ``"DrainAreaSqMiles > 500"``.
    skip_invalid_rows : bool, optional
        Drop malformed rows instead of aborting
        (default ``Settings.skip_invalid_rows``).
    **read_kwargs
        Passed through to ``pandas.read_csv`` (``sep``, ``encoding``, …).
        Column types are inferred, so identifiers with leading zeros
        (USGS gauge numbers such as ``01010000``) need
        ``dtype={"SOURCE_FEA": str}`` to survive as text.

    Returns
    -------
    tuple[Record, ...]
        Matching rows in file order.

    Raises
    ------
    NotFound, SchemaMismatch, ParseError
    """
    path = Path(path)
    if not path.is_file():
        raise NotFound(path)
    if skip_invalid_rows is None:
        skip_invalid_rows = get_settings().skip_invalid_rows

    df = _read_frame(path, skip_invalid_rows, read_kwargs)
    total = len(df)
    logger.debug("Read %d row(s) x %d column(s) from %s", total, len(df.columns), path)

    df = _select_columns(df, column_map)

    if isinstance(where, str):
        df = _query_frame(df, where)
        records = _to_records(df)
    else:
        records = _to_records(df)
        if where is not None:
            records = tuple(r for r in records if where(r))

    logger.info("Loaded %d of %d row(s) from %s", len(records), total, path.name)
    return records
