"""Financial-data provider client — Excel link lookup and document download."""

from __future__ import annotations

import io
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx

from finsheets.models import FinancialDataRequest

DEFAULT_PROVIDER_URL = "https://api.karza.in/kscan/test/v3/corp/docs/financialSummary"
API_KEY_HEADER = "x-karza-key"


class ProviderError(RuntimeError):
    """The provider call or the document download failed."""


class ExcelLinkNotFoundError(ProviderError):
    """The provider answered, but without a consolidated Excel link."""


def build_payload(request: FinancialDataRequest) -> dict[str, Any]:
    return {
        "consent": "Y",
        "entityId": request.entity_id,
        "financialYear": list(request.financial_year),
        "financialType": "both",
    }


def _excel_link(body: Any) -> str:
    try:
        consolidated = body["result"]["consolidated"]
    except (KeyError, TypeError):
        consolidated = None
    if not consolidated:
        raise ExcelLinkNotFoundError("Excel link not found in consolidated data")
    try:
        link = consolidated[0]["metadata"]["excelLink"]
    except (KeyError, TypeError, IndexError):
        link = None
    if not link or not isinstance(link, str):
        raise ExcelLinkNotFoundError("Excel link not found in consolidated data")
    return link


def fetch_excel_link(
    client: httpx.Client,
    request: FinancialDataRequest,
    *,
    api_key: str,
    url: str = DEFAULT_PROVIDER_URL,
) -> str:
    """Ask the provider for the financial summary and return its Excel link.

    Raises
    ------
    ProviderError
        On transport errors, non-2xx responses or a non-JSON body.
    ExcelLinkNotFoundError
        If the response carries no consolidated Excel link.
    """
    try:
        response = client.post(
            url,
            json=build_payload(request),
            headers={"Content-Type": "application/json", API_KEY_HEADER: api_key},
        )
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise ProviderError(f"Provider request failed: {exc}") from exc
    try:
        body = response.json()
    except ValueError as exc:
        raise ProviderError("Provider returned a non-JSON response") from exc
    return _excel_link(body)


def download_document(client: httpx.Client, url: str) -> bytes:
    """Download *url* and return the raw bytes."""
    try:
        response = client.get(url, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise ProviderError(f"Document download failed: {exc}") from exc
    return response.content


@contextmanager
def acquire_document(client: httpx.Client, url: str) -> Iterator[io.BytesIO]:
    """Download *url* into an in-memory buffer that is closed on exit."""
    buffer = io.BytesIO(download_document(client, url))
    try:
        yield buffer
    finally:
        buffer.close()
