"""The fixed set of read-only tools offered to the model during a query."""

from __future__ import annotations

from typing import Final

from fin_query.types import ToolDefinition

# Bump when a tool is added, removed, or its schema changes shape
CATALOG_VERSION: Final = 1

_DATE = "YYYY-MM-DD"

FINANCIAL_TOOLS: Final[tuple[ToolDefinition, ...]] = (
    ToolDefinition(
        name="query_transactions",
        description=(
            "Search and aggregate transaction data. Returns totals, counts, and breakdowns "
            "- never individual transaction details. Use this for questions about spending, "
            "income, or transaction patterns."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "startDate": {"type": "string", "description": f"Start date in {_DATE} format"},
                "endDate": {"type": "string", "description": f"End date in {_DATE} format"},
                "categoryNames": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": (
                        'Filter by category names (e.g., ["Groceries", "Dining Out"]). '
                        "Use exact names from the user's category list."
                    ),
                },
                "accountNames": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": (
                        "Filter by account names. Use exact names from the user's account list."
                    ),
                },
                "searchText": {
                    "type": "string",
                    "description": "Search payee names or transaction descriptions",
                },
                "groupBy": {
                    "type": "string",
                    "enum": ["category", "payee", "month", "week"],
                    "description": "How to group results for breakdown",
                },
                "direction": {
                    "type": "string",
                    "enum": ["expenses", "income", "both"],
                    "description": (
                        "Filter by direction: 'expenses' for negative amounts, 'income' for "
                        "positive, 'both' for all. Default: both."
                    ),
                },
            },
            "required": ["startDate", "endDate"],
        },
    ),
    ToolDefinition(
        name="get_account_balances",
        description=(
            "Get current account balances, total assets, total liabilities, and net worth. "
            "Use this for questions about how much money the user has."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "accountNames": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Optional: filter to specific account names",
                },
            },
        },
    ),
    ToolDefinition(
        name="get_spending_by_category",
        description=(
            "Get a breakdown of spending (expenses) by category for a given date range. "
            "Returns each category with its total amount, percentage of total spending, and "
            "transaction count. Sorted by amount descending."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "startDate": {"type": "string", "description": f"Start date ({_DATE})"},
                "endDate": {"type": "string", "description": f"End date ({_DATE})"},
                "topN": {
                    "type": "number",
                    "description": "Limit to top N categories by amount (default: all)",
                },
            },
            "required": ["startDate", "endDate"],
        },
    ),
    ToolDefinition(
        name="get_income_summary",
        description=(
            "Get income summary for a date range, broken down by category, payee (source), "
            "or month."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "startDate": {"type": "string", "description": f"Start date ({_DATE})"},
                "endDate": {"type": "string", "description": f"End date ({_DATE})"},
                "groupBy": {
                    "type": "string",
                    "enum": ["category", "payee", "month"],
                    "description": "How to group income (default: category)",
                },
            },
            "required": ["startDate", "endDate"],
        },
    ),
    ToolDefinition(
        name="get_net_worth_history",
        description=(
            "Get monthly net worth history showing assets, liabilities, and net worth over "
            "time. Use for trend questions about overall financial health."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "startDate": {
                    "type": "string",
                    "description": f"Start date ({_DATE}). Defaults to 12 months ago.",
                },
                "endDate": {
                    "type": "string",
                    "description": f"End date ({_DATE}). Defaults to today.",
                },
            },
        },
    ),
    ToolDefinition(
        name="compare_periods",
        description=(
            "Compare spending or income between two time periods. Returns a side-by-side "
            "comparison showing absolute and percentage changes. Use for questions like "
            "'compare this month vs last month'."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "period1Start": {
                    "type": "string",
                    "description": f"First period start date ({_DATE})",
                },
                "period1End": {"type": "string", "description": f"First period end date ({_DATE})"},
                "period2Start": {
                    "type": "string",
                    "description": f"Second period start date ({_DATE})",
                },
                "period2End": {
                    "type": "string",
                    "description": f"Second period end date ({_DATE})",
                },
                "groupBy": {
                    "type": "string",
                    "enum": ["category", "payee"],
                    "description": "How to group comparison (default: category)",
                },
                "direction": {
                    "type": "string",
                    "enum": ["expenses", "income", "both"],
                    "description": "Filter by direction (default: expenses)",
                },
            },
            "required": ["period1Start", "period1End", "period2Start", "period2End"],
        },
    ),
)
