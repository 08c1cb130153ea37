"""Unit tests for the guest LocalLedger."""

import asyncio
import json

import pytest

from fintrack.exceptions import NotFoundError, StorageQuotaError, ValidationError
from fintrack.guest import LocalLedger, MemorySessionStorage, Notifier
from fintrack.guest.ledger import calc_trend, schedule_later
from fintrack.guest.notifications import GUEST_STORAGE_WARNING, STORAGE_FULL


def _seed(ledger: LocalLedger, *items: dict) -> list[dict]:
    return [ledger.create(item) for item in items]


class TestCreate:
    def test_applies_defaults(self, ledger) -> None:
        tx = ledger.create({"amount": 12.5, "category": "Food"})

        assert tx["id"].startswith("local_")
        assert tx["type"] == "expense"
        assert tx["amount"] == 12.5
        assert tx["description"] == ""
        assert tx["notes"] == ""
        assert tx["tags"] == []
        assert tx["createdAt"] == tx["updatedAt"]
        assert tx["createdAt"].endswith("Z")
        assert tx["date"] == tx["createdAt"]

    @pytest.mark.parametrize(
        "amount, expected",
        [("42.10", 42.1), (-20, 20.0), ("abc", 0.0), (None, 0.0), (float("nan"), 0.0)],
    )
    def test_amount_is_coerced(self, ledger, amount, expected) -> None:
        assert ledger.create({"amount": amount})["amount"] == expected

    def test_newest_first(self, ledger) -> None:
        first, second = _seed(ledger, {"amount": 1}, {"amount": 2})

        assert [tx["id"] for tx in ledger.get_all()] == [second["id"], first["id"]]

    def test_ids_are_unique(self, ledger) -> None:
        ids = {ledger.generate_id() for _ in range(50)}

        assert len(ids) == 50

    def test_invalid_type_rejected(self, ledger) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ledger.create({"type": "transfer", "amount": 5})

        assert "type" in exc_info.value.fields
        assert ledger.get_all() == []

    def test_persisted_as_json_array(self, ledger) -> None:
        tx = ledger.create({"amount": 5, "category": "Food"})

        raw = ledger.storage.get_item("test_transactions")
        assert json.loads(raw) == [tx]


class TestGuestNotice:
    def test_first_transaction_schedules_notice_once(
        self, ledger, scheduled, notifications
    ) -> None:
        _seed(ledger, {"amount": 1}, {"amount": 2})

        assert len(scheduled) == 1
        delay, callback = scheduled[0]
        assert delay == 2.0
        assert notifications == []

        callback()

        assert len(notifications) == 1
        assert notifications[0].type == "info"
        assert notifications[0].message == GUEST_STORAGE_WARNING
        assert notifications[0].duration == 8.0

    def test_not_rescheduled_after_deleting_all(self, ledger, scheduled) -> None:
        tx = ledger.create({"amount": 1})
        ledger.delete(tx["id"])
        ledger.create({"amount": 2})

        assert len(scheduled) == 1

    def test_clear_resets_notice(self, ledger, scheduled) -> None:
        ledger.create({"amount": 1})
        ledger.clear()
        ledger.create({"amount": 2})

        assert len(scheduled) == 2

    def test_schedule_later_without_loop_runs_now(self) -> None:
        calls: list[int] = []

        schedule_later(5.0, lambda: calls.append(1))

        assert calls == [1]

    async def test_default_scheduler_defers_notice_on_loop(self, notifications) -> None:
        notifier = Notifier()
        notifier.subscribe(notifications.append)
        ledger = LocalLedger(MemorySessionStorage(), notifier, "k", notice_delay=0.01)

        ledger.create({"amount": 1})
        assert notifications == []

        await asyncio.sleep(0.05)

        assert [n.message for n in notifications] == [GUEST_STORAGE_WARNING]

    def test_default_scheduler_without_loop_notifies_at_once(self, notifications) -> None:
        notifier = Notifier()
        notifier.subscribe(notifications.append)
        ledger = LocalLedger(MemorySessionStorage(), notifier, "k", notice_delay=5.0)

        ledger.create({"amount": 1})

        assert [n.message for n in notifications] == [GUEST_STORAGE_WARNING]

    async def test_schedule_later_on_loop_is_deferred(self) -> None:
        calls: list[int] = []

        handle = schedule_later(0.01, lambda: calls.append(1))
        assert calls == []

        await asyncio.sleep(0.05)

        assert calls == [1]
        handle.cancel()


class TestUpdateDelete:
    def test_update_merges_and_keeps_id(self, ledger) -> None:
        tx = ledger.create({"amount": 10, "category": "Food", "description": "Lunch"})

        updated = ledger.update(tx["id"], {"amount": "-15", "id": "hijack"})

        assert updated["id"] == tx["id"]
        assert updated["amount"] == 15.0
        assert updated["description"] == "Lunch"
        assert updated["createdAt"] == tx["createdAt"]
        assert ledger.get(tx["id"]) == updated

    def test_update_missing(self, ledger) -> None:
        with pytest.raises(NotFoundError):
            ledger.update("local_missing", {"amount": 1})

    def test_get_missing(self, ledger) -> None:
        with pytest.raises(NotFoundError):
            ledger.get("local_missing")

    def test_delete_is_idempotent(self, ledger) -> None:
        keep, drop = _seed(ledger, {"amount": 1}, {"amount": 2})

        ledger.delete(drop["id"])
        ledger.delete(drop["id"])
        ledger.delete("local_unknown")

        assert ledger.get_all() == [keep]

    def test_delete_unknown_does_not_write(self) -> None:
        storage = MemorySessionStorage()
        ledger = LocalLedger(storage, Notifier(), "k", 0, scheduler=lambda d, cb: None)

        ledger.delete("local_unknown")

        assert len(storage) == 0

    def test_clear(self, ledger) -> None:
        _seed(ledger, {"amount": 1}, {"amount": 2})

        ledger.clear()

        assert ledger.get_all() == []
        assert ledger.storage.get_item("test_transactions") is None

    def test_unreadable_storage_is_empty(self, ledger, log_messages) -> None:
        ledger.storage.set_item("test_transactions", "{not json")

        assert ledger.get_all() == []
        assert any("unreadable" in m for m in log_messages)


class TestQuota:
    def test_full_storage_notifies_and_keeps_previous_data(self, notifications) -> None:
        notifier = Notifier()
        notifier.subscribe(notifications.append)
        storage = MemorySessionStorage(quota_bytes=600)
        ledger = LocalLedger(storage, notifier, "k", 0, scheduler=lambda d, cb: None)

        first = ledger.create({"amount": 1, "description": "short"})
        before = storage.get_item("k")

        with pytest.raises(StorageQuotaError):
            ledger.create({"amount": 2, "description": "x" * 1000})

        assert storage.get_item("k") == before
        assert ledger.get_all() == [first]
        assert len(notifications) == 1
        assert notifications[0].type == "error"
        assert notifications[0].message == STORAGE_FULL
        assert notifications[0].duration == 10.0


class TestList:
    @pytest.fixture
    def seeded(self, ledger) -> list[dict]:
        return _seed(
            ledger,
            {"type": "income", "amount": 3000, "category": "Salary", "date": "2024-03-01",
             "description": "March salary"},
            {"type": "expense", "amount": 45.5, "category": "Food", "date": "2024-03-05",
             "description": "Groceries", "notes": "weekly SHOP"},
            {"type": "expense", "amount": 900, "category": "Rent", "date": "2024-03-02"},
            {"type": "expense", "amount": 12, "category": "Food",
             "date": "2024-03-15T18:30:00Z", "description": "Pizza"},
            {"type": "income", "amount": 150, "category": "Freelance", "date": "2024-03-20"},
        )

    def test_pagination(self, ledger, seeded) -> None:
        result = ledger.list_transactions(page=2, limit=2)

        assert len(result["data"]) == 2
        assert result["pagination"] == {"page": 2, "limit": 2, "total": 5, "pages": 3}

    def test_page_past_end_is_empty(self, ledger, seeded) -> None:
        result = ledger.list_transactions(page=9, limit=2)

        assert result["data"] == []
        assert result["pagination"]["total"] == 5

    def test_empty_has_one_page(self, ledger) -> None:
        result = ledger.list_transactions()

        assert result["pagination"] == {"page": 1, "limit": 10, "total": 0, "pages": 1}

    def test_default_sort_is_date_desc(self, ledger, seeded) -> None:
        dates = [tx["date"] for tx in ledger.list_transactions()["data"]]

        assert dates == [
            "2024-03-20",
            "2024-03-15T18:30:00Z",
            "2024-03-05",
            "2024-03-02",
            "2024-03-01",
        ]

    def test_sort_by_amount_asc(self, ledger, seeded) -> None:
        result = ledger.list_transactions(sort_by="amount", sort_order="asc")

        assert [tx["amount"] for tx in result["data"]] == [12, 45.5, 150, 900, 3000]

    def test_type_and_category(self, ledger, seeded) -> None:
        result = ledger.list_transactions({"type": "expense", "category": "Food"})

        assert {tx["description"] for tx in result["data"]} == {"Groceries", "Pizza"}

    def test_date_range_includes_whole_end_day(self, ledger, seeded) -> None:
        result = ledger.list_transactions(
            {"start_date": "2024-03-05", "end_date": "2024-03-15"}
        )

        assert [tx["amount"] for tx in result["data"]] == [12, 45.5]

    def test_search_is_case_insensitive(self, ledger, seeded) -> None:
        by_notes = ledger.list_transactions({"search_query": "shop"})
        by_category = ledger.list_transactions({"search_query": "FREELANCE"})

        assert [tx["description"] for tx in by_notes["data"]] == ["Groceries"]
        assert [tx["amount"] for tx in by_category["data"]] == [150]


class TestDashboard:
    @pytest.fixture
    def seeded(self, ledger) -> None:
        _seed(
            ledger,
            {"type": "income", "amount": 1000, "category": "Salary", "date": "2024-02-05"},
            {"type": "expense", "amount": 400, "category": "Rent", "date": "2024-02-14"},
            {"type": "income", "amount": 1500, "category": "Salary", "date": "2024-03-01"},
            {"type": "expense", "amount": 300, "category": "Food", "date": "2024-03-10"},
            {"type": "expense", "amount": 100, "category": "Transport",
             "date": "2024-03-20T23:30:00Z"},
            # April in UTC
            {"type": "expense", "amount": 999, "category": "Food",
             "date": "2024-03-31T23:30:00-05:00"},
        )

    def test_summary_and_trends(self, ledger, seeded) -> None:
        summary = ledger.compute_dashboard(3, 2024)["summary"]

        assert summary["currentMonth"] == {
            "income": 1500,
            "expense": 400,
            "balance": 1100,
            "transactionCount": 3,
        }
        assert summary["previousMonth"]["balance"] == 600
        assert summary["totalTransactions"] == 3
        assert summary["trends"] == {"income": 50, "expense": 0, "balance": 83}

    def test_category_breakdown(self, ledger, seeded) -> None:
        breakdown = ledger.compute_dashboard(3, 2024)["categoryBreakdown"]

        assert breakdown == [
            {"type": "income", "category": "Salary", "total": 1500, "count": 1},
            {"type": "expense", "category": "Food", "total": 300, "count": 1},
            {"type": "expense", "category": "Transport", "total": 100, "count": 1},
        ]

    def test_monthly_trend_spans_six_months(self, ledger, seeded) -> None:
        trend = ledger.compute_dashboard(3, 2024)["monthlyTrend"]

        assert [(p["month"], p["year"]) for p in trend] == [
            (10, 2023), (11, 2023), (12, 2023), (1, 2024), (2, 2024), (3, 2024),
        ]
        assert trend[4] == {"month": 2, "year": 2024, "income": 1000, "expense": 400}
        assert trend[0]["income"] == 0

    def test_recent_transactions(self, ledger, seeded) -> None:
        recent = ledger.compute_dashboard(3, 2024)["recentTransactions"]

        assert [tx["category"] for tx in recent] == ["Transport", "Food", "Salary"]

    def test_recent_capped_at_five(self, ledger) -> None:
        _seed(ledger, *({"amount": i, "date": f"2024-05-{i + 10}"} for i in range(7)))

        recent = ledger.compute_dashboard(5, 2024)["recentTransactions"]

        assert [tx["amount"] for tx in recent] == [6, 5, 4, 3, 2]

    def test_january_compares_with_december(self, ledger) -> None:
        _seed(
            ledger,
            {"type": "expense", "amount": 200, "category": "Gifts", "date": "2023-12-20"},
            {"type": "income", "amount": 500, "category": "Salary", "date": "2024-01-03"},
            {"type": "expense", "amount": 100, "category": "Food", "date": "2024-01-04"},
        )

        summary = ledger.compute_dashboard(1, 2024)["summary"]

        assert summary["previousMonth"]["expense"] == 200
        assert summary["trends"]["income"] == 100
        assert summary["trends"]["expense"] == -50

    def test_empty_ledger(self, ledger) -> None:
        dashboard = ledger.compute_dashboard(3, 2024)

        assert dashboard["summary"]["trends"] == {"income": 0, "expense": 0, "balance": 0}
        assert dashboard["categoryBreakdown"] == []
        assert len(dashboard["monthlyTrend"]) == 6
        assert dashboard["recentTransactions"] == []


class TestCalcTrend:
    @pytest.mark.parametrize(
        "current, previous, expected",
        [
            (150, 100, 50),
            (50, 100, -50),
            (0, 0, 0),
            (10, 0, 100),
            (-10, 0, 0),
            (1100, 600, 83),
            (1, 3, -67),
        ],
    )
    def test_values(self, current, previous, expected) -> None:
        assert calc_trend(current, previous) == expected
