"""Data models / typed containers used across the package."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from numbers import Integral
from types import MappingProxyType
from typing import Any, Union

Cell = Union[str, int, float, bool, None]
Row = tuple[Cell, ...]
Grid = tuple[Row, ...]
Record = dict[str, Cell]
ExtractionResult = dict[str, Union[list[Record], None]]


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


# ── Document ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Document:
    """An ordered, read-only collection of named tables (workbook sheets).

    Each table is a grid of rows; the first row holds the column headers and
    ``None`` marks a position with no cell. Rows may be shorter than the
    header row.
    """

    tables: Mapping[str, Iterable[Iterable[Cell]]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen: dict[str, Grid] = {}
        for name, grid in self.tables.items():
            if not isinstance(name, str):
                raise TypeError("table names must be strings")
            frozen[name] = tuple(tuple(row) for row in grid)
        object.__setattr__(self, "tables", MappingProxyType(frozen))

    @property
    def sheet_names(self) -> tuple[str, ...]:
        return tuple(self.tables)

    def __contains__(self, name: object) -> bool:
        return name in self.tables

    def table(self, name: str) -> Grid:
        """Return the grid for *name*; raises ``KeyError`` if absent."""
        return self.tables[name]  # type: ignore[return-value]


# ── Reports ──────────────────────────────────────────────────────


@dataclass
class ExtractionReport:
    """Audit report emitted alongside every extraction run.

    Contract invariant: ``len(missing_tables) == tables_requested - tables_found``.
    """

    tables_requested: int = 0
    tables_found: int = 0
    missing_tables: list[str] = field(default_factory=list)
    dropped_columns: dict[str, list[str]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.tables_requested = _to_non_negative_int(self.tables_requested, "tables_requested")
        self.tables_found = _to_non_negative_int(self.tables_found, "tables_found")
        self.missing_tables = _to_string_list(self.missing_tables, "missing_tables")
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.dropped_columns is None:
            self.dropped_columns = {}
        self.dropped_columns = {
            str(table): _to_string_list(columns, "dropped_columns")
            for table, columns in self.dropped_columns.items()
        }
        self.check()

    def check(self) -> None:
        """Raise ``ValueError`` if the table counts are inconsistent."""
        if self.tables_found > self.tables_requested:
            raise ValueError("tables_found must be <= tables_requested")
        if len(self.missing_tables) != self.tables_requested - self.tables_found:
            raise ValueError("missing_tables must match tables_requested - tables_found")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tables_requested": self.tables_requested,
            "tables_found": self.tables_found,
            "missing_tables": list(self.missing_tables),
            "dropped_columns": {k: list(v) for k, v in self.dropped_columns.items()},
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single extraction run."""

    tool: str = "finsheets"
    version: str = ""
    run_id: str = ""
    source: str = ""
    output_dir: str = ""
    created_at_utc: str = ""
    tables_requested: int = 0
    tables_found: int = 0
    sha256: str = ""
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.tables_requested = _to_non_negative_int(self.tables_requested, "tables_requested")
        self.tables_found = _to_non_negative_int(self.tables_found, "tables_found")
        if self.status not in ("success", "failed"):
            raise ValueError("status must be 'success' or 'failed'")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "run_id": self.run_id,
            "source": self.source,
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "tables_requested": self.tables_requested,
            "tables_found": self.tables_found,
            "sha256": self.sha256,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


# ── Request / response ───────────────────────────────────────────


@dataclass
class FinancialDataRequest:
    """Inbound request: which entity and which financial years to fetch."""

    entity_id: str
    financial_year: list[str]

    def __post_init__(self) -> None:
        if not isinstance(self.entity_id, str):
            raise TypeError("entity_id must be a string")
        self.entity_id = self.entity_id.strip()
        if not self.entity_id:
            raise ValueError("entity_id must be non-empty")
        if self.financial_year is None:
            raise ValueError("financial_year must be a non-empty list of strings")
        self.financial_year = _to_string_list(self.financial_year, "financial_year")
        if not self.financial_year:
            raise ValueError("financial_year must be a non-empty list of strings")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> FinancialDataRequest:
        """Build from the wire shape ``{"entityId": ..., "financialYear": [...]}``."""
        if not isinstance(payload, Mapping):
            raise TypeError("request payload must be a JSON object")
        entity_id = payload.get("entityId")
        years = payload.get("financialYear")
        if not entity_id or not isinstance(years, list):
            raise ValueError(
                "Invalid request parameters. Required: entityId, financialYear (array)"
            )
        return cls(entity_id=entity_id, financial_year=years)


@dataclass
class FinancialDataResponse:
    """Outbound payload wrapping the canonical per-sheet records."""

    entity_id: str
    financial_year: list[str]
    financial_summary_data: ExtractionResult = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entityId": self.entity_id,
            "financialYear": list(self.financial_year),
            "financial_summary_data": self.financial_summary_data,
        }
