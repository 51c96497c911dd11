"""finsheets — Extract financial statement sheets into clean JSON records."""

from types import MappingProxyType

__version__ = "0.1.0"

DEFAULT_SHEETS: tuple[str, ...] = (
    "BALANCE SHEET",
    "CASH FLOW STATEMENT",
    "PROFIT AND LOSS",
    "financialSummary",
)

SHEET_NAME_MAPPING: MappingProxyType[str, str] = MappingProxyType(
    {
        "BALANCE SHEET": "balanceSheet",
        "CASH FLOW STATEMENT": "cashFlowStatement",
        "PROFIT AND LOSS": "profitAndLoss",
        "financialSummary": "financialSummary",
    }
)
"""Source sheet name -> canonical output key. Read-only; pass overrides explicitly."""
