"""ToolExecutor against an in-memory analytics layer."""

import asyncio
from datetime import date

import pytest

from fin_query.tools import (
    AccountInfo,
    AccountSummary,
    CategoryNode,
    GroupTotal,
    ToolExecutor,
    TransactionSummary,
)


class FakeQueries:
    def __init__(self):
        self.accounts = [
            AccountInfo("acc-1", "Checking", "checking", 2500.0, "USD"),
            AccountInfo("acc-2", "Visa", "credit_card", -400.0, "USD"),
        ]
        self.categories = [
            CategoryNode("cat-food", "Food", children=[CategoryNode("cat-groc", "Groceries")]),
            CategoryNode("cat-sal", "Salary", is_income=True),
        ]
        self.grouped = {}
        self.calls = []

    async def list_accounts(self, user_id):
        return self.accounts

    async def category_tree(self, user_id):
        return self.categories

    async def default_currency(self, user_id):
        return "USD"

    async def account_summary(self, user_id):
        return AccountSummary(2500.0, 400.0, 2100.0, 2)

    async def transaction_summary(self, user_id, start_date, end_date, **filters):
        self.calls.append(("transaction_summary", start_date, end_date, filters))
        return TransactionSummary(3000.0, 1234.5, 1765.5, 42)

    async def grouped_totals(self, user_id, start_date, end_date, **kwargs):
        self.calls.append(("grouped_totals", start_date, end_date, kwargs))
        return self.grouped.get((start_date, kwargs["group_by"]), [])

    async def monthly_net_worth(self, user_id, start_date, end_date):
        self.calls.append(("monthly_net_worth", start_date, end_date))
        return [{"month": "2026-08", "netWorth": 1000}, {"month": "2026-09", "netWorth": 1200}]


@pytest.fixture
def queries():
    return FakeQueries()


@pytest.fixture
def executor(queries):
    return ToolExecutor(queries)


def run(executor, name, input):
    return asyncio.run(executor.execute("user-1", name, input))


class TestQueryTransactions:
    def test_summary_and_name_resolution(self, executor, queries):
        result = run(
            executor,
            "query_transactions",
            {
                "startDate": "2026-09-01",
                "endDate": "2026-09-30",
                "categoryNames": ["groceries"],
                "accountNames": ["Checking", "Nope"],
            },
        )

        assert result.summary == (
            "Found 42 transactions from 2026-09-01 to 2026-09-30. "
            "Income: 3000.00, Expenses: 1234.50, Net: 1765.50"
        )
        assert result.data["transactionCount"] == 42
        assert "byCurrency" not in result.data
        _, _, _, filters = queries.calls[0]
        assert filters["category_ids"] == ["cat-groc"]
        assert filters["account_ids"] == ["acc-1"]
        (source,) = result.sources
        assert source.type == "transactions"
        assert source.description == "Transaction summary for groceries in Checking, Nope"
        assert source.date_range == "2026-09-01 to 2026-09-30"

    def test_breakdown_by_payee_sorted_by_total(self, executor, queries):
        queries.grouped[("2026-09-01", "payee")] = [
            GroupTotal("Cafe", 20.0, 2),
            GroupTotal("Market", 80.0, 3),
        ]

        result = run(
            executor,
            "query_transactions",
            {"startDate": "2026-09-01", "endDate": "2026-09-30", "groupBy": "payee"},
        )

        assert result.data["breakdown"] == [
            {"payee": "Market", "total": 80.0, "count": 3},
            {"payee": "Cafe", "total": 20.0, "count": 2},
        ]

    def test_breakdown_by_month_sorted_by_label(self, executor, queries):
        queries.grouped[("2026-01-01", "month")] = [
            GroupTotal("2026-03", 10.0),
            GroupTotal("2026-01", 30.0),
        ]

        result = run(
            executor,
            "query_transactions",
            {"startDate": "2026-01-01", "endDate": "2026-03-31", "groupBy": "month"},
        )

        assert [b["month"] for b in result.data["breakdown"]] == ["2026-01", "2026-03"]


def test_account_balances_filter(executor):
    result = run(executor, "get_account_balances", {"accountNames": ["visa"]})

    assert [a["name"] for a in result.data["accounts"]] == ["Visa"]
    assert result.data["netWorth"] == 2100.0
    assert result.summary == "1 accounts. Net worth: 2100.00, Assets: 2500.00, Liabilities: 400.00"
    assert result.sources[0].description == "Balances for visa"


def test_account_balances_all(executor):
    result = run(executor, "get_account_balances", {})

    assert len(result.data["accounts"]) == 2
    assert result.sources[0].description == "All account balances"


class TestSpendingByCategory:
    def test_percentages_and_top_n(self, executor, queries):
        queries.grouped[("2026-09-01", "category")] = [
            GroupTotal("Transport", 50.0, 1),
            GroupTotal("Groceries", 300.0, 6),
            GroupTotal("Dining", 150.0, 4),
        ]

        result = run(
            executor,
            "get_spending_by_category",
            {"startDate": "2026-09-01", "endDate": "2026-09-30", "topN": 2},
        )

        assert result.data["categories"] == [
            {"category": "Groceries", "amount": 300.0, "percentage": 60.0, "transactionCount": 6},
            {"category": "Dining", "amount": 150.0, "percentage": 30.0, "transactionCount": 4},
        ]
        assert result.data["totalSpending"] == 500.0
        assert result.summary == (
            "Total spending: 500.00 across 3 categories from 2026-09-01 to 2026-09-30"
        )
        assert queries.calls[0][3]["direction"] == "expenses"

    def test_no_spending(self, executor):
        result = run(
            executor, "get_spending_by_category", {"startDate": "2026-09-01", "endDate": "2026-09-30"}
        )

        assert result.data == {"categories": [], "totalSpending": 0}
        assert result.summary.startswith("Total spending: 0.00 across 0 categories")


def test_income_summary_defaults_to_category(executor, queries):
    queries.grouped[("2026-01-01", "category")] = [
        GroupTotal("Bonus", 500.0, 1),
        GroupTotal("Salary", 6000.0, 2),
    ]

    result = run(
        executor,
        "get_income_summary",
        {"startDate": "2026-01-01", "endDate": "2026-02-28", "groupBy": "weekday"},
    )

    assert result.data["groupedBy"] == "category"
    assert [i["label"] for i in result.data["items"]] == ["Salary", "Bonus"]
    assert result.summary == (
        "Total income: 6500.00 from 2026-01-01 to 2026-02-28, grouped by category"
    )
    assert queries.calls[0][3]["direction"] == "income"


def test_net_worth_history_default_window(executor, queries):
    today = date.today()

    result = run(executor, "get_net_worth_history", {})

    expected_start = date(today.year - 1, today.month, 1).isoformat()
    assert queries.calls[0] == ("monthly_net_worth", expected_start, today.isoformat())
    assert result.summary == (
        f"Net worth history: 2 months from {expected_start} to {today.isoformat()}"
    )
    assert result.sources[0].type == "net_worth"


class TestComparePeriods:
    PERIODS = {
        "period1Start": "2026-08-01",
        "period1End": "2026-08-31",
        "period2Start": "2026-09-01",
        "period2End": "2026-09-30",
    }

    def test_rows_sorted_by_absolute_change(self, executor, queries):
        queries.grouped[("2026-08-01", "category")] = [
            GroupTotal("Groceries", 200.0),
            GroupTotal("Dining", 100.0),
        ]
        queries.grouped[("2026-09-01", "category")] = [
            GroupTotal("Groceries", 250.0),
            GroupTotal("Travel", 400.0),
        ]

        result = run(executor, "compare_periods", self.PERIODS)

        rows = {r["label"]: r for r in result.data["comparison"]}
        assert [r["label"] for r in result.data["comparison"]] == ["Travel", "Dining", "Groceries"]
        assert rows["Travel"]["changePercent"] == 100
        assert rows["Dining"]["changePercent"] == -100.0
        assert rows["Groceries"]["changePercent"] == 25.0
        assert result.data["totalChangePercent"] == 116.67
        assert result.summary == (
            "Period 1 (2026-08-01 to 2026-08-31): 300.00, "
            "Period 2 (2026-09-01 to 2026-09-30): 650.00, "
            "Change: +350.00 (+116.67%)"
        )
        assert result.sources[0].date_range == "2026-08-01 to 2026-08-31 vs 2026-09-01 to 2026-09-30"

    def test_decrease_is_not_prefixed(self, executor, queries):
        queries.grouped[("2026-08-01", "category")] = [GroupTotal("Groceries", 200.0)]
        queries.grouped[("2026-09-01", "category")] = [GroupTotal("Groceries", 150.0)]

        result = run(executor, "compare_periods", self.PERIODS)

        assert result.summary.endswith("Change: -50.00 (-25%)")

    def test_empty_first_period(self, executor, queries):
        queries.grouped[("2026-09-01", "category")] = [GroupTotal("Groceries", 80.0)]

        result = run(executor, "compare_periods", self.PERIODS)

        assert result.data["totalChangePercent"] == 0
        assert result.data["comparison"][0]["changePercent"] == 100
        assert result.summary.endswith("Change: +80.00 (+0%)")

    def test_defaults_to_expenses_by_category(self, executor, queries):
        run(executor, "compare_periods", {**self.PERIODS, "groupBy": "month"})

        for _, _, _, kwargs in queries.calls:
            assert kwargs == {"group_by": "category", "direction": "expenses"}


class TestFailures:
    def test_unknown_tool(self, executor):
        result = run(executor, "delete_everything", {})

        assert result.data == {"error": "Unknown tool: delete_everything"}
        assert result.summary == "Unknown tool: delete_everything"
        assert result.sources == []

    def test_handler_exception_becomes_result(self, executor, queries):
        async def broken(*args, **kwargs):
            raise RuntimeError("database unavailable")

        queries.monthly_net_worth = broken

        result = run(executor, "get_net_worth_history", {})

        assert result.data == {"error": "database unavailable"}
        assert result.summary == "Error executing get_net_worth_history: database unavailable"

    def test_missing_required_argument(self, executor):
        result = run(executor, "get_spending_by_category", {"startDate": "2026-09-01"})

        assert result.summary.startswith("Error executing get_spending_by_category:")
        assert "error" in result.data


def test_tool_names_match_catalog(executor):
    from fin_query.tools import FINANCIAL_TOOLS

    assert executor.tool_names == [t.name for t in FINANCIAL_TOOLS]
