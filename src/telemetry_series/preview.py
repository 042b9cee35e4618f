"""Tabular preview of loaded datasets: filters, statistics and row search."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Optional, Sequence

import pandas as pd

from .aggregate.filters import is_all
from .ingest.pipeline import LoadedDataset
from .schema.records import RecordKind

LISTING_COLUMNS = ["file_name", "kind", "date", "rows"]


def filter_datasets(
    datasets: Iterable[LoadedDataset],
    kind: Optional[str] = None,
    date: Optional[str] = None,
) -> list[LoadedDataset]:
    """Keep datasets matching ``kind`` and ``date``; ``None`` / ``"all"`` match anything."""
    wanted_kind = None if is_all(kind) else RecordKind.parse(kind)
    wanted_date = None if is_all(date) else date
    return [
        d
        for d in datasets
        if (wanted_kind is None or d.kind == wanted_kind)
        and (wanted_date is None or d.date == wanted_date)
    ]


def available_kinds(datasets: Iterable[LoadedDataset]) -> list[str]:
    """Distinct kinds present, sorted by name."""
    return sorted({d.kind.value for d in datasets})


def available_dates(datasets: Iterable[LoadedDataset]) -> list[str]:
    """Distinct date labels present, sorted. Datasets without one are ignored."""
    return sorted({d.date for d in datasets if d.date})


def summarize(datasets: Sequence[LoadedDataset]) -> dict:
    """Preview statistics.

    Returns:
        Dictionary with ``total_files``, ``total_rows`` and ``rows_by_kind``
    """
    rows_by_kind: Counter[str] = Counter()
    for d in datasets:
        rows_by_kind[d.kind.value] += d.row_count
    return {
        "total_files": len(datasets),
        "total_rows": sum(rows_by_kind.values()),
        "rows_by_kind": dict(sorted(rows_by_kind.items())),
    }


def search_rows(dataset: LoadedDataset, text: str) -> pd.DataFrame:
    """Rows where any cell contains ``text`` (case-insensitive).

    Numeric cells are matched on their string form. An empty query returns
    every row.
    """
    records = dataset.records
    if not text or records.empty:
        return records.copy()

    needle = text.lower()
    as_text = records.astype(str).apply(lambda col: col.str.lower())
    hits = as_text.apply(lambda col: col.str.contains(needle, regex=False)).any(axis=1)
    return records.loc[hits].reset_index(drop=True)


def file_listing(datasets: Iterable[LoadedDataset]) -> pd.DataFrame:
    """One row per dataset: file name, kind, date label and row count."""
    rows = [
        {"file_name": d.file_name, "kind": d.kind.value, "date": d.date or "", "rows": d.row_count}
        for d in datasets
    ]
    return pd.DataFrame(rows, columns=LISTING_COLUMNS)
