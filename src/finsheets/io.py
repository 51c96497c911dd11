"""I/O helpers — load workbook documents, write JSON artifacts."""

from __future__ import annotations

import io
import json
import zipfile
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any, BinaryIO, cast

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from finsheets.models import Cell, Document, Row


class DocumentParseError(ValueError):
    """Raised when workbook bytes cannot be parsed into a :class:`Document`."""


# ── Loading ──────────────────────────────────────────────────────


def _to_cell(value: Any) -> Cell:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (datetime, date, time)):
        if pd.isna(value):
            return None
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    item = getattr(value, "item", None)
    if callable(item):
        value = item()
    if isinstance(value, float) and pd.isna(value):
        return None
    if isinstance(value, (bool, int, float)):
        return value
    return str(value)


def _is_blank(value: Cell) -> bool:
    return value is None or value == ""


def _trim(row: list[Cell]) -> list[Cell]:
    while row and _is_blank(row[-1]):
        row.pop()
    return row


def _frame_to_grid(frame: pd.DataFrame) -> list[Row]:
    rows = [
        _trim([_to_cell(value) for value in raw])
        for raw in frame.itertuples(index=False, name=None)
    ]
    rows = [row for row in rows if row]
    if not rows:
        return []
    header, data = rows[0], rows[1:]
    width = max((len(row) for row in data), default=0)
    # header keeps a position for every column that holds data
    header = header + [""] * (width - len(header))
    return [tuple(header), *(tuple(row) for row in data)]


def load_document(source: bytes | BinaryIO | Path) -> Document:
    """Parse workbook bytes (or a path / binary stream) into a :class:`Document`.

    Every sheet is read without header inference so the header row stays
    part of the grid. Empty cells read as ``""``; trailing empty cells of a
    data row are trimmed, blank rows are skipped, and the header row is padded
    with ``""`` so every column holding data keeps a header position.

    Raises
    ------
    FileNotFoundError
        If *source* is a path that does not exist.
    DocumentParseError
        If the content is empty or is not a readable workbook.
    """
    if isinstance(source, Path):
        if not source.exists():
            raise FileNotFoundError(f"Input file not found: {source}")
        if source.is_dir():
            raise DocumentParseError(f"Input path is a directory, not a file: {source}")
        source = source.read_bytes()
    if isinstance(source, (bytes, bytearray)):
        if not source:
            raise DocumentParseError("Workbook is empty (0 bytes)")
        source = io.BytesIO(source)

    read_excel = cast(Callable[..., dict[str, pd.DataFrame]], getattr(pd, "read_excel"))
    try:
        frames = read_excel(
            source,
            sheet_name=None,
            header=None,
            dtype=object,
            engine="openpyxl",
            na_filter=False,
        )
    except (
        zipfile.BadZipFile,
        InvalidFileException,
        SyntaxError,  # malformed XML part (ElementTree / lxml)
        KeyError,
        ValueError,
        EOFError,
    ) as exc:
        raise DocumentParseError(f"Could not parse workbook: {exc}") from exc

    return Document({str(name): _frame_to_grid(frame) for name, frame in frames.items()})


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any, *, sort_keys: bool = True) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic).

    Pass ``sort_keys=False`` where key order carries meaning (sheet columns).
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=sort_keys,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
