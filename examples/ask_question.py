from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any, Optional, Sequence

from fin_query import (
    InMemoryConfigStore,
    InMemoryUsageLog,
    ProviderConfig,
    ProviderFactory,
    ProviderKind,
    ProviderSelector,
    QueryAgent,
    QueryContextBuilder,
    QueryError,
    Settings,
    ToolExecutor,
    encode_sse,
)
from fin_query.tools import (
    AccountInfo,
    AccountSummary,
    CategoryNode,
    GroupTotal,
    TransactionSummary,
)

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


class PlainCipher:
    """Stores keys as-is. Only good enough for a local demo."""

    def is_configured(self) -> bool:
        return True

    def encrypt(self, plaintext: str) -> str:
        return plaintext

    def decrypt(self, ciphertext: str) -> str:
        return ciphertext


class DemoQueries:
    """A tiny fixed household ledger."""

    ACCOUNTS = [
        AccountInfo("acc-1", "Checking", "checking", 5000.0, "USD"),
        AccountInfo("acc-2", "Credit Card", "credit_card", -1200.5, "USD"),
        AccountInfo("acc-3", "Savings", "savings", 15000.75, "USD"),
    ]
    CATEGORIES = [
        CategoryNode(
            "cat-1",
            "Food",
            children=[CategoryNode("cat-1a", "Groceries"), CategoryNode("cat-1b", "Dining Out")],
        ),
        CategoryNode("cat-2", "Housing", children=[CategoryNode("cat-2a", "Rent")]),
        CategoryNode("cat-3", "Salary", is_income=True),
    ]

    async def list_accounts(self, user_id: str) -> Sequence[AccountInfo]:
        return self.ACCOUNTS

    async def category_tree(self, user_id: str) -> Sequence[CategoryNode]:
        return self.CATEGORIES

    async def default_currency(self, user_id: str) -> Optional[str]:
        return "USD"

    async def account_summary(self, user_id: str) -> AccountSummary:
        return AccountSummary(20000.75, 1200.5, 18800.25, len(self.ACCOUNTS))

    async def transaction_summary(self, user_id, start_date, end_date, **filters) -> TransactionSummary:
        return TransactionSummary(6200.0, 3450.4, 2749.6, 58)

    async def grouped_totals(self, user_id, start_date, end_date, *, group_by, direction="both", **filters):
        if direction == "income":
            return [GroupTotal("Salary", 6200.0, 2)]
        return [
            GroupTotal("Rent", 1800.0, 1),
            GroupTotal("Groceries", 912.35, 14),
            GroupTotal("Dining Out", 402.1, 9),
        ]

    async def monthly_net_worth(self, user_id, start_date, end_date) -> list[dict[str, Any]]:
        return [
            {"month": "2026-08", "assets": 19500.0, "liabilities": 1400.0, "netWorth": 18100.0},
            {"month": "2026-09", "assets": 20000.75, "liabilities": 1200.5, "netWorth": 18800.25},
        ]


async def ask(
    question: str,
    provider: Optional[ProviderKind],
    model: Optional[str],
    base_url: Optional[str],
    stream: bool,
) -> None:
    store = InMemoryConfigStore()
    if provider is not None:
        # no api_key_enc: the SDK falls back to its own env var
        store.add(ProviderConfig(user_id="demo", provider=provider, model=model, base_url=base_url))

    usage = InMemoryUsageLog()
    queries = DemoQueries()
    selector = ProviderSelector(store, ProviderFactory(PlainCipher()), usage, Settings.from_env())
    agent = QueryAgent(selector, QueryContextBuilder(queries), ToolExecutor(queries), usage)

    if stream:
        async for event in agent.run("demo", question):
            logger.info("%s", encode_sse(event).rstrip())
        return

    try:
        result = await agent.execute("demo", question)
    except QueryError as exc:
        logger.error("Query failed: %s", exc)
        return
    logger.info("Answer: %s", result.answer)
    logger.info("Usage summary: %s", usage.summary("demo"))


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("question", nargs="?", default="How much did I spend on groceries last month?")
    parser.add_argument("--provider", choices=[p.value for p in ProviderKind], default=None)
    parser.add_argument("--model", default=None)
    parser.add_argument("--base-url", default=None)
    parser.add_argument("--stream", action="store_true", help="log each SSE frame as it is produced")
    args = parser.parse_args()

    kind = ProviderKind(args.provider) if args.provider else None
    asyncio.run(ask(args.question, kind, args.model, args.base_url, args.stream))
