"""End-to-end flow: provider lookup, download, extraction."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import httpx

from finsheets import DEFAULT_SHEETS, SHEET_NAME_MAPPING
from finsheets.io import load_document
from finsheets.models import ExtractionReport, FinancialDataRequest, FinancialDataResponse
from finsheets.pipeline import process
from finsheets.provider import DEFAULT_PROVIDER_URL, acquire_document, fetch_excel_link
from finsheets.utils import sha256_bytes


def fetch_financial_data(
    client: httpx.Client,
    request: FinancialDataRequest,
    *,
    api_key: str,
    provider_url: str = DEFAULT_PROVIDER_URL,
    table_names: Sequence[str] = DEFAULT_SHEETS,
    name_mapping: Mapping[str, str] = SHEET_NAME_MAPPING,
) -> tuple[FinancialDataResponse, ExtractionReport, str]:
    """Run the full request flow and return ``(response, report, sha256)``.

    Provider and parse failures propagate (``ProviderError``,
    ``DocumentParseError``); missing sheets only add report warnings.
    """
    link = fetch_excel_link(client, request, api_key=api_key, url=provider_url)
    with acquire_document(client, link) as buffer:
        digest = sha256_bytes(buffer.getvalue())
        document = load_document(buffer)

    report = ExtractionReport()
    data = process(document, table_names, name_mapping, report)
    response = FinancialDataResponse(
        entity_id=request.entity_id,
        financial_year=list(request.financial_year),
        financial_summary_data=data,
    )
    return response, report, digest
