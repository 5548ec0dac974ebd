"""Builds the system prompt that grounds a query in the user's own data."""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Final, Iterable, Sequence

from fin_query.tools.queries import AccountInfo, CategoryNode, FinancialQueries

__all__ = ["QUERY_SYSTEM_PROMPT", "QueryContextBuilder", "format_accounts", "format_categories"]

DEFAULT_CURRENCY: Final = "USD"

QUERY_SYSTEM_PROMPT: Final = """\
You are a personal finance assistant answering questions about the user's own \
financial data. You cannot see any transactions directly; use the provided tools \
to look up balances, spending, income, net worth history and period comparisons.

Guidelines:
- Always call a tool before quoting a number. Never guess or invent figures.
- Resolve relative dates ("last month", "this year") against TODAY'S DATE.
- Use account and category names exactly as they appear in the lists below.
- Report amounts in the account's currency with two decimal places.
- Keep answers short and lead with the direct answer, then supporting detail.
- Only discuss aggregates; do not list individual transactions.
- If the data cannot answer the question, say so plainly."""


def format_accounts(accounts: Iterable[AccountInfo]) -> str:
    lines = [
        f"- {a.name} ({a.account_type}, {a.currency}, balance: {float(a.balance):.2f})"
        for a in accounts
    ]
    return "\n".join(lines) if lines else "(No accounts configured)"


def format_categories(tree: Sequence[CategoryNode]) -> str:
    lines: list[str] = []

    def visit(node: CategoryNode, depth: int) -> None:
        kind = "Income" if node.is_income else "Expense"
        lines.append(f"{'  ' * depth}- {node.name} [{kind}]")
        for child in node.children:
            visit(child, depth + 1)

    for root in tree:
        visit(root, 0)
    return "\n".join(lines) if lines else "(No categories configured)"


class QueryContextBuilder:
    def __init__(self, queries: FinancialQueries) -> None:
        self._queries = queries

    async def build_query_context(self, user_id: str) -> str:
        accounts, tree, currency = await asyncio.gather(
            self._queries.list_accounts(user_id),
            self._queries.category_tree(user_id),
            self._queries.default_currency(user_id),
        )
        return "\n\n".join([
            QUERY_SYSTEM_PROMPT,
            f"TODAY'S DATE: {date.today().isoformat()}",
            f"USER'S DEFAULT CURRENCY: {currency or DEFAULT_CURRENCY}",
            f"USER'S ACCOUNTS:\n{format_accounts(accounts)}",
            f"USER'S CATEGORIES:\n{format_categories(tree)}",
        ])

    async def build_category_context(self, user_id: str) -> str:
        return format_categories(await self._queries.category_tree(user_id))
