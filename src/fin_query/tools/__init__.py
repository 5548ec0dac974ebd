from .catalog import CATALOG_VERSION, FINANCIAL_TOOLS
from .executor import ToolExecutor
from .queries import (
    AccountInfo,
    AccountSummary,
    CategoryNode,
    FinancialQueries,
    GroupTotal,
    TransactionSummary,
)

__all__ = [
    "CATALOG_VERSION",
    "FINANCIAL_TOOLS",
    "ToolExecutor",
    "FinancialQueries",
    "AccountInfo",
    "AccountSummary",
    "CategoryNode",
    "GroupTotal",
    "TransactionSummary",
]
