"""Read-only analytics contract the tool executor and context builder call into."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Protocol, Sequence

Direction = Literal["expenses", "income", "both"]
GroupBy = Literal["category", "payee", "month", "week"]


@dataclass(slots=True)
class AccountInfo:
    id: str
    name: str
    account_type: str
    balance: float
    currency: str


@dataclass(slots=True)
class CategoryNode:
    id: str
    name: str
    is_income: bool = False
    children: list[CategoryNode] = field(default_factory=list)

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(slots=True)
class AccountSummary:
    total_assets: float
    total_liabilities: float
    net_worth: float
    total_accounts: int


@dataclass(slots=True)
class TransactionSummary:
    total_income: float
    total_expenses: float
    net_cash_flow: float
    transaction_count: int
    by_currency: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class GroupTotal:
    """One bucket of a grouped aggregate; ``total`` is an absolute amount."""

    label: str
    total: float
    count: int = 0


class FinancialQueries(Protocol):
    async def list_accounts(self, user_id: str) -> Sequence[AccountInfo]: ...

    async def category_tree(self, user_id: str) -> Sequence[CategoryNode]: ...

    async def default_currency(self, user_id: str) -> Optional[str]: ...

    async def account_summary(self, user_id: str) -> AccountSummary: ...

    async def transaction_summary(
        self,
        user_id: str,
        start_date: str,
        end_date: str,
        *,
        account_ids: Optional[Sequence[str]] = None,
        category_ids: Optional[Sequence[str]] = None,
        search_text: Optional[str] = None,
    ) -> TransactionSummary: ...

    async def grouped_totals(
        self,
        user_id: str,
        start_date: str,
        end_date: str,
        *,
        group_by: GroupBy,
        direction: Direction = "both",
        account_ids: Optional[Sequence[str]] = None,
        category_ids: Optional[Sequence[str]] = None,
        search_text: Optional[str] = None,
    ) -> Sequence[GroupTotal]: ...

    async def monthly_net_worth(
        self, user_id: str, start_date: str, end_date: str
    ) -> Sequence[dict[str, Any]]: ...
