"""Extraction + cleaning pipeline — pure functions, no side effects."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

from finsheets.models import Cell, Document, ExtractionReport, ExtractionResult, Record, Row

_PLACEHOLDER_HEADER_RE = re.compile(r"^_\d+$")


# ── Header handling ─────────────────────────────────────────────


def _header_text(value: Cell) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _unique_headers(header_row: Row) -> list[str]:
    """Return header keys, suffixing repeats with ``_1``, ``_2``, ...

    A second blank header therefore becomes ``"_1"``.
    """
    headers: list[str] = []
    seen: set[str] = set()
    for value in header_row:
        base = _header_text(value)
        key = base
        n = 0
        while key in seen:
            n += 1
            key = f"{base}_{n}"
        seen.add(key)
        headers.append(key)
    return headers


def _row_to_record(headers: Sequence[str], row: Row) -> Record:
    record: Record = {}
    for idx, key in enumerate(headers):
        if idx < len(row) and row[idx] is not None:
            record[key] = row[idx]
    return record


def grid_to_records(grid: Sequence[Row]) -> list[Record]:
    """Convert a table grid into one header-keyed record per data row."""
    if not grid:
        return []
    headers = _unique_headers(grid[0])
    return [_row_to_record(headers, row) for row in grid[1:]]


# ── Extraction ──────────────────────────────────────────────────


def extract_tables(
    document: Document,
    table_names: Sequence[str],
    report: ExtractionReport | None = None,
) -> ExtractionResult:
    """Return ``{name: records | None}`` for every name in *table_names*.

    Repeated names are looked up once. A name with no matching sheet maps
    to ``None`` and adds a warning to *report*; it never raises.
    """
    result: ExtractionResult = {}
    for name in dict.fromkeys(table_names):
        if report is not None:
            report.tables_requested += 1
        if name in document:
            result[name] = grid_to_records(document.table(name))
            if report is not None:
                report.tables_found += 1
        else:
            result[name] = None
            if report is not None:
                report.missing_tables.append(name)
                report.warnings.append(f'Sheet "{name}" not found in workbook')
    return result


# ── Column cleaning ─────────────────────────────────────────────


def _is_placeholder_header(key: str) -> bool:
    return key == "" or bool(_PLACEHOLDER_HEADER_RE.match(key))


def _is_empty(value: Cell) -> bool:
    return value is None or value == ""


def find_vestigial_columns(records: Sequence[Record] | None) -> list[str]:
    """Return keys that are blank/placeholder headers AND empty in every record."""
    if not records:
        return []
    all_keys: dict[str, None] = {}
    for record in records:
        for key in record:
            all_keys.setdefault(key, None)
    return sorted(
        key
        for key in all_keys
        if _is_placeholder_header(key)
        and all(_is_empty(record.get(key)) for record in records)
    )


def clean_empty_columns(records: Sequence[Record] | None) -> Sequence[Record] | None:
    """Strip vestigial columns from every record.

    Columns with real header text are kept even when every value is empty.
    Values ``0`` and ``False`` count as data.
    """
    if not records:
        return records
    return _drop_columns(records, find_vestigial_columns(records))


def _drop_columns(records: Sequence[Record], dropped: Sequence[str]) -> list[Record]:
    drop = set(dropped)
    return [
        {key: value for key, value in record.items() if key not in drop}
        for record in records
    ]


# ── Name mapping ────────────────────────────────────────────────


def find_mapping_collisions(
    mapping: Mapping[str, str], table_names: Sequence[str]
) -> dict[str, list[str]]:
    """Return ``{output_key: [source, ...]}`` for keys produced by more than one name."""
    sources_by_key: dict[str, list[str]] = {}
    for name in dict.fromkeys(table_names):
        sources_by_key.setdefault(mapping.get(name, name), []).append(name)
    return {key: sources for key, sources in sources_by_key.items() if len(sources) > 1}


def remap_table_names(
    results: Mapping[str, list[Record] | None],
    mapping: Mapping[str, str],
    report: ExtractionReport | None = None,
) -> ExtractionResult:
    """Rename result keys through *mapping*; unmapped names pass through.

    On a collision the later source name wins and a warning is recorded.
    """
    mapped: ExtractionResult = {}
    source_for: dict[str, str] = {}
    for name, records in results.items():
        key = mapping.get(name, name)
        if key in source_for and report is not None:
            report.warnings.append(
                f"Table names {source_for[key]!r} + {name!r} both map to {key!r}; "
                f"keeping {name!r}"
            )
        source_for[key] = name
        mapped[key] = records
    return mapped


# ── Entry point ─────────────────────────────────────────────────


def process(
    document: Document,
    table_names: Sequence[str],
    name_mapping: Mapping[str, str],
    report: ExtractionReport | None = None,
) -> ExtractionResult:
    """Extract *table_names*, strip vestigial columns, rename to canonical keys."""
    extracted = extract_tables(document, table_names, report)

    cleaned: ExtractionResult = {}
    for name, records in extracted.items():
        if records is None:
            cleaned[name] = None
            continue
        dropped = find_vestigial_columns(records)
        if dropped and report is not None:
            report.dropped_columns[name] = dropped
        cleaned[name] = _drop_columns(records, dropped)

    if report is not None:
        report.check()
    return remap_table_names(cleaned, name_mapping, report)
