"""Dispatches model tool calls to the read-only analytics layer."""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import date
from typing import Any, Awaitable, Callable, Optional, Sequence

from fin_query.types import Source, ToolExecutionResult

from .queries import FinancialQueries

__all__ = ["ToolExecutor"]

Handler = Callable[[str, dict[str, Any]], Awaitable[ToolExecutionResult]]


def _round2(value: float) -> float:
    """Round half away from zero to 2 places (``round`` uses banker's rounding)."""
    return math.copysign(math.floor(abs(value) * 100 + 0.5) / 100, value)


def _percent(part: float, whole: float) -> float:
    return _round2(part / whole * 100)


def _plain(value: float) -> str:
    # 12.0 -> "12", 12.5 -> "12.5"
    return str(int(value)) if float(value).is_integer() else str(value)


def _signed(value: float, text: str) -> str:
    return f"+{text}" if value >= 0 else text


def _names(value: Any) -> Optional[list[str]]:
    if not value:
        return None
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


class ToolExecutor:
    """
    Runs one named tool for one user and never raises.

    Failures come back as a result whose ``data`` is ``{"error": ...}`` so the
    model can read the problem and adjust, instead of the whole query aborting.
    Summaries only ever carry aggregates: they are echoed into the model
    context and, from there, into the user-visible answer.
    """

    def __init__(self, queries: FinancialQueries, logger: Optional[logging.Logger] = None) -> None:
        self._queries = queries
        self.logger = logger or logging.getLogger(__name__)
        self._handlers: dict[str, Handler] = {
            "query_transactions": self._query_transactions,
            "get_account_balances": self._get_account_balances,
            "get_spending_by_category": self._get_spending_by_category,
            "get_income_summary": self._get_income_summary,
            "get_net_worth_history": self._get_net_worth_history,
            "compare_periods": self._compare_periods,
        }

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers)

    async def execute(
        self, user_id: str, name: str, input: dict[str, Any]
    ) -> ToolExecutionResult:
        handler = self._handlers.get(name)
        if handler is None:
            message = f"Unknown tool: {name}"
            self.logger.warning(message)
            return ToolExecutionResult(data={"error": message}, summary=message)

        try:
            return await handler(user_id, input or {})
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            self.logger.warning("Tool %s failed: %s", name, message)
            return ToolExecutionResult(
                data={"error": message},
                summary=f"Error executing {name}: {message}",
            )

    # name resolution

    async def _resolve_account_ids(
        self, user_id: str, names: Optional[Sequence[str]]
    ) -> Optional[list[str]]:
        if not names:
            return None
        lookup = {a.name.lower(): a.id for a in await self._queries.list_accounts(user_id)}
        return [lookup[n.lower()] for n in names if n.lower() in lookup]

    async def _resolve_category_ids(
        self, user_id: str, names: Optional[Sequence[str]]
    ) -> Optional[list[str]]:
        if not names:
            return None
        lookup = {
            node.name.lower(): node.id
            for root in await self._queries.category_tree(user_id)
            for node in root.walk()
        }
        return [lookup[n.lower()] for n in names if n.lower() in lookup]

    # tools

    async def _query_transactions(self, user_id: str, input: dict[str, Any]) -> ToolExecutionResult:
        start, end = input["startDate"], input["endDate"]
        category_names = _names(input.get("categoryNames"))
        account_names = _names(input.get("accountNames"))
        search_text = input.get("searchText") or None
        group_by = input.get("groupBy") or None
        direction = input.get("direction") or "both"

        account_ids = await self._resolve_account_ids(user_id, account_names)
        category_ids = await self._resolve_category_ids(user_id, category_names)

        summary = await self._queries.transaction_summary(
            user_id,
            start,
            end,
            account_ids=account_ids,
            category_ids=category_ids,
            search_text=search_text,
        )
        data: dict[str, Any] = {
            "totalIncome": summary.total_income,
            "totalExpenses": summary.total_expenses,
            "netCashFlow": summary.net_cash_flow,
            "transactionCount": summary.transaction_count,
        }
        if len(summary.by_currency) > 1:
            data["byCurrency"] = summary.by_currency

        if group_by in ("category", "payee", "month", "week"):
            rows = await self._queries.grouped_totals(
                user_id,
                start,
                end,
                group_by=group_by,
                direction=direction,
                account_ids=account_ids,
                category_ids=category_ids,
                search_text=search_text,
            )
            breakdown = [{group_by: r.label, "total": r.total, "count": r.count} for r in rows]
            if group_by in ("category", "payee"):
                breakdown.sort(key=lambda b: b["total"], reverse=True)
            else:
                breakdown.sort(key=lambda b: b[group_by])
            data["breakdown"] = breakdown

        description = "Transaction summary"
        if category_names:
            description += f" for {', '.join(category_names)}"
        if account_names:
            description += f" in {', '.join(account_names)}"

        return ToolExecutionResult(
            data=data,
            summary=(
                f"Found {summary.transaction_count} transactions from {start} to {end}. "
                f"Income: {summary.total_income:.2f}, Expenses: {summary.total_expenses:.2f}, "
                f"Net: {summary.net_cash_flow:.2f}"
            ),
            sources=[Source("transactions", description, f"{start} to {end}")],
        )

    async def _get_account_balances(self, user_id: str, input: dict[str, Any]) -> ToolExecutionResult:
        account_names = _names(input.get("accountNames"))
        accounts, totals = await asyncio.gather(
            self._queries.list_accounts(user_id),
            self._queries.account_summary(user_id),
        )
        if account_names:
            wanted = {n.lower() for n in account_names}
            accounts = [a for a in accounts if a.name.lower() in wanted]

        data = {
            "accounts": [
                {"name": a.name, "type": a.account_type, "balance": a.balance, "currency": a.currency}
                for a in accounts
            ],
            "totalAssets": totals.total_assets,
            "totalLiabilities": totals.total_liabilities,
            "netWorth": totals.net_worth,
            "totalAccounts": totals.total_accounts,
        }
        description = (
            f"Balances for {', '.join(account_names)}" if account_names else "All account balances"
        )
        return ToolExecutionResult(
            data=data,
            summary=(
                f"{len(accounts)} accounts. Net worth: {totals.net_worth:.2f}, "
                f"Assets: {totals.total_assets:.2f}, Liabilities: {totals.total_liabilities:.2f}"
            ),
            sources=[Source("accounts", description)],
        )

    async def _get_spending_by_category(
        self, user_id: str, input: dict[str, Any]
    ) -> ToolExecutionResult:
        start, end = input["startDate"], input["endDate"]
        top_n = input.get("topN")

        rows = sorted(
            await self._queries.grouped_totals(
                user_id, start, end, group_by="category", direction="expenses"
            ),
            key=lambda r: r.total,
            reverse=True,
        )
        total_spending = sum(r.total for r in rows)
        categories = [
            {
                "category": r.label,
                "amount": r.total,
                "percentage": _percent(r.total, total_spending) if total_spending > 0 else 0,
                "transactionCount": r.count,
            }
            for r in rows
        ]
        if top_n and int(top_n) > 0:
            categories = categories[: int(top_n)]

        return ToolExecutionResult(
            data={"categories": categories, "totalSpending": total_spending},
            summary=(
                f"Total spending: {total_spending:.2f} across {len(rows)} categories "
                f"from {start} to {end}"
            ),
            sources=[Source("spending", "Spending breakdown by category", f"{start} to {end}")],
        )

    async def _get_income_summary(self, user_id: str, input: dict[str, Any]) -> ToolExecutionResult:
        start, end = input["startDate"], input["endDate"]
        group_by = input.get("groupBy") or "category"
        if group_by not in ("payee", "month"):
            group_by = "category"

        rows = await self._queries.grouped_totals(
            user_id, start, end, group_by=group_by, direction="income"
        )
        if group_by == "month":
            rows = sorted(rows, key=lambda r: r.label)
        else:
            rows = sorted(rows, key=lambda r: r.total, reverse=True)

        items = [{"label": r.label, "amount": r.total, "count": r.count} for r in rows]
        total_income = sum(r.total for r in rows)
        return ToolExecutionResult(
            data={"items": items, "totalIncome": total_income, "groupedBy": group_by},
            summary=(
                f"Total income: {total_income:.2f} from {start} to {end}, grouped by {group_by}"
            ),
            sources=[Source("income", f"Income summary by {group_by}", f"{start} to {end}")],
        )

    async def _get_net_worth_history(
        self, user_id: str, input: dict[str, Any]
    ) -> ToolExecutionResult:
        today = date.today()
        start = input.get("startDate") or date(today.year - 1, today.month, 1).isoformat()
        end = input.get("endDate") or today.isoformat()

        history = list(await self._queries.monthly_net_worth(user_id, start, end))
        return ToolExecutionResult(
            data={"months": history},
            summary=f"Net worth history: {len(history)} months from {start} to {end}",
            sources=[Source("net_worth", "Monthly net worth history", f"{start} to {end}")],
        )

    async def _compare_periods(self, user_id: str, input: dict[str, Any]) -> ToolExecutionResult:
        p1_start, p1_end = input["period1Start"], input["period1End"]
        p2_start, p2_end = input["period2Start"], input["period2End"]
        group_by = "payee" if input.get("groupBy") == "payee" else "category"
        direction = input.get("direction") or "expenses"

        period1, period2 = await asyncio.gather(
            self._queries.grouped_totals(
                user_id, p1_start, p1_end, group_by=group_by, direction=direction
            ),
            self._queries.grouped_totals(
                user_id, p2_start, p2_end, group_by=group_by, direction=direction
            ),
        )

        p1_map = {r.label: r.total for r in period1}
        p2_map = {r.label: r.total for r in period2}
        # dict keys keep first-seen order across both periods
        labels = list(dict.fromkeys([*p1_map, *p2_map]))

        comparison = []
        for label in labels:
            p1_amount = p1_map.get(label, 0)
            p2_amount = p2_map.get(label, 0)
            change = p2_amount - p1_amount
            if p1_amount != 0:
                change_percent = _percent(change, p1_amount)
            else:
                change_percent = 100 if p2_amount != 0 else 0
            comparison.append({
                "label": label,
                "period1Amount": p1_amount,
                "period2Amount": p2_amount,
                "change": change,
                "changePercent": change_percent,
            })
        comparison.sort(key=lambda c: abs(c["change"]), reverse=True)

        p1_total = sum(r.total for r in period1)
        p2_total = sum(r.total for r in period2)
        total_change = p2_total - p1_total
        total_change_percent = _percent(total_change, p1_total) if p1_total != 0 else 0

        return ToolExecutionResult(
            data={
                "period1": {"start": p1_start, "end": p1_end, "total": p1_total},
                "period2": {"start": p2_start, "end": p2_end, "total": p2_total},
                "totalChange": total_change,
                "totalChangePercent": total_change_percent,
                "comparison": comparison,
            },
            summary=(
                f"Period 1 ({p1_start} to {p1_end}): {p1_total:.2f}, "
                f"Period 2 ({p2_start} to {p2_end}): {p2_total:.2f}, "
                f"Change: {_signed(total_change, f'{total_change:.2f}')} "
                f"({_signed(total_change_percent, _plain(total_change_percent))}%)"
            ),
            sources=[
                Source(
                    "comparison",
                    f"Period comparison by {group_by}",
                    f"{p1_start} to {p1_end} vs {p2_start} to {p2_end}",
                )
            ],
        )
