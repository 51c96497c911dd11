"""CLI entry point for finsheets."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import httpx
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable

from finsheets import DEFAULT_SHEETS, SHEET_NAME_MAPPING, __version__
from finsheets.io import DocumentParseError, load_document, write_json
from finsheets.models import (
    ExtractionReport,
    ExtractionResult,
    FinancialDataRequest,
    RunManifest,
)
from finsheets.pipeline import find_mapping_collisions, process
from finsheets.provider import DEFAULT_PROVIDER_URL, ProviderError
from finsheets.service import fetch_financial_data
from finsheets.utils import sha256_bytes, utcnow_iso

app = typer.Typer(
    name="finsheets",
    help="finsheets — Extract financial statement sheets into clean JSON records.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

DATA_FILENAME = "financial_data.json"
REPORT_FILENAME = "extraction_report.json"
MANIFEST_FILENAME = "run_manifest.json"


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"finsheets v{__version__}")
        raise typer.Exit()


def _parse_name_map(raw: list[str] | None, *, quiet: bool = False) -> dict[str, str]:
    """Parse ``--map target=source`` pairs into ``{source: target}``."""
    if not raw:
        return {}
    mapping: dict[str, str] = {}
    for item in raw:
        if "=" not in item:
            raise ValueError(f"Invalid --map value: {item!r}  (expected target=source)")
        target, source = (part.strip() for part in item.split("=", 1))
        if not target or not source:
            raise ValueError("--map entries must have non-empty target and source (target=source)")
        if source in mapping and not quiet:
            console.print(f"[yellow]![/yellow] Overriding mapping for sheet {source!r}")
        mapping[source] = target
    return mapping


def _load_profile_map(profile: Path | None) -> list[str]:
    """Return list of ``target=source`` strings from a profile file."""
    if not profile:
        return []
    if not profile.exists():
        raise ValueError(
            f"Profile not found: {profile} (expected lines like balanceSheet=BALANCE SHEET)"
        )
    if profile.is_dir():
        raise ValueError(f"Profile is a directory, not a file: {profile}")
    try:
        text = profile.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read profile {profile}: {exc}") from exc

    lines: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lines.append(stripped)
    return lines


def _resolve_config(
    sheets: list[str] | None,
    col_map: list[str] | None,
    profile: Path | None,
    *,
    quiet: bool,
) -> tuple[list[str], dict[str, str]]:
    """Return ``(sheet names, name mapping)`` with CLI overrides applied."""
    mapping = dict(SHEET_NAME_MAPPING)
    overrides = _parse_name_map(_load_profile_map(profile) + (col_map or []), quiet=quiet)
    if not quiet:
        for source, target in overrides.items():
            if source in mapping and mapping[source] != target:
                console.print(f"[yellow]![/yellow] Overriding mapping for sheet {source!r}")
    mapping.update(overrides)
    table_names = list(sheets) if sheets else list(DEFAULT_SHEETS)

    collisions = find_mapping_collisions(mapping, table_names)
    if collisions and not quiet:
        for key in sorted(collisions):
            console.print(
                f"[yellow]![/yellow] Mapping collision: {' + '.join(collisions[key])} -> "
                f"{key!r} (last sheet wins)"
            )
    return table_names, mapping


def _write_manifest(
    out_dir: Path,
    source: str,
    run_id: str,
    created_at: str,
    report: ExtractionReport,
    *,
    sha256: str = "",
    status: str = "success",
    error_code: int | None = None,
    error_message: str = "",
) -> Path:
    manifest = RunManifest(
        version=__version__,
        run_id=run_id,
        source=source,
        output_dir=str(out_dir.resolve()),
        created_at_utc=created_at,
        tables_requested=report.tables_requested,
        tables_found=report.tables_found,
        sha256=sha256,
        status=status,
        error_code=error_code,
        error_message=error_message,
    )
    return write_json(out_dir / MANIFEST_FILENAME, manifest.to_dict())


def _write_failure_artifacts(
    out_dir: Path,
    source: str,
    run_id: str,
    created_at: str,
    *,
    message: str,
    sha256: str = "",
    error_code: int = 2,
) -> tuple[Path, Path]:
    report = ExtractionReport(warnings=[message])
    report_path = write_json(out_dir / REPORT_FILENAME, report.to_dict())
    manifest_path = _write_manifest(
        out_dir,
        source,
        run_id,
        created_at,
        report,
        sha256=sha256,
        status="failed",
        error_code=error_code,
        error_message=message,
    )
    return report_path, manifest_path


def _fail(
    out_dir: Path,
    source: str,
    run_id: str,
    created_at: str,
    *,
    message: str,
    sha256: str = "",
    error_code: int = 2,
) -> typer.Exit:
    report_path, manifest_path = _write_failure_artifacts(
        out_dir,
        source,
        run_id,
        created_at,
        message=message,
        sha256=sha256,
        error_code=error_code,
    )
    _err(message)
    console.print(f"  Report   -> {report_path}")
    console.print(f"  Manifest -> {manifest_path}")
    return typer.Exit(code=error_code)


def _print_summary(
    data: ExtractionResult,
    report: ExtractionReport,
    table_names: Sequence[str],
    mapping: Mapping[str, str],
) -> None:
    tbl = RichTable(title="Extraction Summary", show_lines=True)
    tbl.add_column("Sheet", style="bold")
    tbl.add_column("Key")
    tbl.add_column("Rows")
    tbl.add_column("Dropped columns")

    for name in dict.fromkeys(table_names):
        key = mapping.get(name, name)
        records = data.get(key)
        rows = "[red]missing[/red]" if records is None else str(len(records))
        dropped = ", ".join(repr(c) for c in report.dropped_columns.get(name, [])) or "-"
        tbl.add_row(name, key, rows, dropped)
    for w in report.warnings:
        tbl.add_row("Warning", f"[yellow]{w}[/yellow]", "", "")
    console.print(tbl)


def _make_client(timeout: float) -> httpx.Client:
    return httpx.Client(timeout=httpx.Timeout(timeout))


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """finsheets CLI."""


# ── extract command ──────────────────────────────────────────────


@app.command()
def extract(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the XLSX workbook.",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for data + report + manifest.",
    ),
    sheets: list[str] | None = typer.Option(
        None, "--sheet", "-s",
        help="Sheet to extract (repeatable). Defaults to the four statement sheets.",
    ),
    col_map: list[str] | None = typer.Option(
        None, "--map", "-m",
        help=(
            "Sheet name mapping: target=source (rename sheet->output key). "
            "E.g. --map bs=BALANCE SHEET"
        ),
    ),
    profile: Path | None = typer.Option(
        None, "--profile",
        help="Profile file containing sheet name mappings (target=source lines).",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
) -> None:
    """Extract the statement sheets of a local workbook into JSON."""
    echo = _printer(quiet)
    created_at = utcnow_iso()
    run_id = created_at
    source = str(input_file.resolve())
    out_dir.mkdir(parents=True, exist_ok=True)
    try:
        table_names, mapping = _resolve_config(sheets, col_map, profile, quiet=quiet)
    except ValueError as exc:
        raise _fail(out_dir, source, run_id, created_at, message=str(exc))

    if not quiet:
        console.print(Panel(
            f"[bold]finsheets[/bold] v{__version__}\n"
            f"Input:  {input_file}\nOutput: {out_dir}",
            title="Extract", border_style="blue",
        ))
        if profile:
            console.print(f"  Using profile: {profile}")
        console.print(f"  Sheets: {', '.join(table_names)}")

    # ── Load ─────────────────────────────────────────────────────
    echo("[blue]>[/blue] Loading workbook …")
    sha256 = ""
    try:
        payload = input_file.read_bytes()
        sha256 = sha256_bytes(payload)
        document = load_document(payload)
    except (FileNotFoundError, DocumentParseError, OSError) as exc:
        raise _fail(out_dir, source, run_id, created_at, message=str(exc), sha256=sha256)

    echo(f"  {len(document.sheet_names)} sheets: {', '.join(document.sheet_names)}")

    try:
        # ── Extract + clean ──────────────────────────────────────
        echo("[blue]>[/blue] Extracting …")
        report = ExtractionReport()
        data = process(document, table_names, mapping, report)

        data_path = write_json(out_dir / DATA_FILENAME, data, sort_keys=False)
        report_path = write_json(out_dir / REPORT_FILENAME, report.to_dict())
        manifest_path = _write_manifest(
            out_dir, source, run_id, created_at, report, sha256=sha256
        )

        if not quiet:
            _print_summary(data, report, table_names, mapping)
            console.print(f"  Data     -> {data_path}")
            console.print(f"  Report   -> {report_path}")
            console.print(f"  Manifest -> {manifest_path}")
            console.print(Panel(
                f"[green]Done[/green] — {report.tables_found}/{report.tables_requested} "
                f"sheets -> {data_path}",
                title="Extract Complete", border_style="green",
            ))
    except Exception as exc:
        raise _fail(
            out_dir,
            source,
            run_id,
            created_at,
            message=f"Unexpected internal error: {exc}",
            sha256=sha256,
            error_code=1,
        )


# ── fetch command ────────────────────────────────────────────────


@app.command()
def fetch(
    entity_id: str = typer.Option(
        ..., "--entity-id", "-e",
        help="Provider entity identifier.",
    ),
    years: list[str] = typer.Option(
        ..., "--year", "-y",
        help="Financial year to request (repeatable).",
    ),
    api_key: str = typer.Option(
        ..., "--api-key",
        envvar="FINSHEETS_API_KEY",
        help="Provider API key.",
    ),
    provider_url: str = typer.Option(
        DEFAULT_PROVIDER_URL, "--provider-url",
        envvar="FINSHEETS_PROVIDER_URL",
        help="Provider financial summary endpoint.",
    ),
    timeout: float = typer.Option(
        30.0, "--timeout",
        min=0.1,
        help="HTTP timeout in seconds.",
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for data + report + manifest.",
    ),
    sheets: list[str] | None = typer.Option(
        None, "--sheet", "-s",
        help="Sheet to extract (repeatable). Defaults to the four statement sheets.",
    ),
    col_map: list[str] | None = typer.Option(
        None, "--map", "-m",
        help="Sheet name mapping: target=source (rename sheet->output key).",
    ),
    profile: Path | None = typer.Option(
        None, "--profile",
        help="Profile file containing sheet name mappings (target=source lines).",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
) -> None:
    """Fetch an entity's financial workbook from the provider and extract it."""
    echo = _printer(quiet)
    created_at = utcnow_iso()
    run_id = created_at
    source = provider_url
    out_dir.mkdir(parents=True, exist_ok=True)
    try:
        request = FinancialDataRequest(entity_id=entity_id, financial_year=years)
        table_names, mapping = _resolve_config(sheets, col_map, profile, quiet=quiet)
    except (TypeError, ValueError) as exc:
        raise _fail(out_dir, source, run_id, created_at, message=str(exc))

    if not quiet:
        console.print(Panel(
            f"[bold]finsheets[/bold] v{__version__}\n"
            f"Entity: {request.entity_id}  Years: {', '.join(request.financial_year)}\n"
            f"Output: {out_dir}",
            title="Fetch", border_style="blue",
        ))

    echo("[blue]>[/blue] Requesting workbook from provider …")
    try:
        with _make_client(timeout) as client:
            response, report, sha256 = fetch_financial_data(
                client,
                request,
                api_key=api_key,
                provider_url=provider_url,
                table_names=table_names,
                name_mapping=mapping,
            )
    except (ProviderError, DocumentParseError) as exc:
        raise _fail(out_dir, source, run_id, created_at, message=str(exc))
    except Exception as exc:
        raise _fail(
            out_dir,
            source,
            run_id,
            created_at,
            message=f"Unexpected internal error: {exc}",
            error_code=1,
        )

    data_path = write_json(out_dir / DATA_FILENAME, response.to_dict(), sort_keys=False)
    report_path = write_json(out_dir / REPORT_FILENAME, report.to_dict())
    manifest_path = _write_manifest(
        out_dir, source, run_id, created_at, report, sha256=sha256
    )

    if not quiet:
        _print_summary(response.financial_summary_data, report, table_names, mapping)
        console.print(f"  Data     -> {data_path}")
        console.print(f"  Report   -> {report_path}")
        console.print(f"  Manifest -> {manifest_path}")
