from __future__ import annotations

import io
import zipfile
from collections.abc import Callable, Sequence

import pytest
from openpyxl import Workbook

WorkbookFactory = Callable[[dict[str, Sequence[Sequence[object]]]], bytes]


def _build_workbook(sheets: dict[str, Sequence[Sequence[object]]]) -> bytes:
    wb = Workbook()
    default = wb.active
    if sheets:
        wb.remove(default)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(list(row))
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def make_workbook() -> WorkbookFactory:
    return _build_workbook


@pytest.fixture
def statement_workbook() -> bytes:
    return _build_workbook(
        {
            "BALANCE SHEET": [
                ["Particulars", "2023", "2022", None],
                ["Total Assets", 1200, 1100],
                ["Total Liabilities", 700, 650],
            ],
            "PROFIT AND LOSS": [
                ["Particulars", "2023", None, "2022"],
                ["Revenue", 500, None, 450],
                ["Net Profit", 80, None, 0],
            ],
            "Notes": [["free text"]],
        }
    )


def _corrupt_sheet_xml(payload: bytes) -> bytes:
    """Return *payload* with every worksheet part replaced by truncated XML."""
    src = zipfile.ZipFile(io.BytesIO(payload))
    buf = io.BytesIO()
    with src, zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as dst:
        for item in src.infolist():
            data = src.read(item.filename)
            if item.filename.startswith("xl/worksheets/sheet"):
                data = b"<worksheet><sheetData><row"
            dst.writestr(item, data)
    return buf.getvalue()


@pytest.fixture
def broken_xml_workbook() -> bytes:
    return _corrupt_sheet_xml(_build_workbook({"BALANCE SHEET": [["Assets"], [100]]}))
