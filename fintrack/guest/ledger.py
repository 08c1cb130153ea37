"""
LocalLedger - guest-mode transaction store.

Mirrors the backend's transaction CRUD and dashboard aggregation over a
session-scoped key/value storage, for use without a backend session.
The whole collection lives under one key as a JSON array, most recent
first. All operations are synchronous.
"""

import asyncio
import json
import math
import random
import string
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pydantic
from loguru import logger

from fintrack.exceptions import NotFoundError, StorageQuotaError, ValidationError
from fintrack.guest.models import LocalTransaction
from fintrack.guest.notifications import GUEST_STORAGE_WARNING, STORAGE_FULL, Notifier
from fintrack.guest.storage import MemorySessionStorage, SessionStorage
from fintrack.settings import global_settings
from fintrack.utils import is_date_only, parse_iso_datetime, round_half_up, utc_now_iso

ID_ALPHABET = string.ascii_lowercase + string.digits
EARLIEST = datetime.min.replace(tzinfo=timezone.utc)

Scheduler = Callable[[float, Callable[[], None]], Any]


def schedule_later(delay: float, callback: Callable[[], None]) -> Any:
    """Run callback after delay on the running event loop, or now if none runs."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        callback()
        return None
    return loop.call_later(delay, callback)


def calc_trend(current: float, previous: float) -> int:
    """Percent change; a zero baseline counts as +100% when current is positive."""
    if previous == 0:
        return 100 if current > 0 else 0
    return int(round_half_up((current - previous) / previous * 100))


def _sum_by_type(transactions: list[dict[str, Any]], tx_type: str) -> float:
    return sum(tx.get("amount", 0) for tx in transactions if tx.get("type") == tx_type)


def _tx_datetime(tx: dict[str, Any]) -> datetime | None:
    try:
        return parse_iso_datetime(tx["date"])
    except (KeyError, AttributeError, TypeError, ValueError):
        return None


def _filter_by_month(
    transactions: list[dict[str, Any]], month: int, year: int
) -> list[dict[str, Any]]:
    result = []
    for tx in transactions:
        when = _tx_datetime(tx)
        if when is not None and when.month == month and when.year == year:
            result.append(tx)
    return result


class LocalLedger:
    """
    Guest transaction store.

    Usage:
        ledger = LocalLedger(MemorySessionStorage(), Notifier())
        tx = ledger.create({"type": "income", "amount": 1200, "category": "Salary"})
        page = ledger.list_transactions({"type": "income"}, page=1, limit=10)
        dashboard = ledger.compute_dashboard(month=3, year=2024)

    The guest-mode notice for the first transaction goes through
    `scheduler(delay, callback)`. The default `schedule_later` defers it by
    `notice_delay` on the running event loop; with no loop running it is
    delivered immediately, since nothing would be left to run a timer.
    Pass a custom scheduler to change that.
    """

    def __init__(
        self,
        storage: SessionStorage | None = None,
        notifier: Notifier | None = None,
        storage_key: str | None = None,
        notice_delay: float | None = None,
        scheduler: Scheduler = schedule_later,
    ):
        self.storage = storage if storage is not None else MemorySessionStorage()
        self.notifier = notifier or Notifier()
        self.storage_key = storage_key or global_settings.guest_storage_key
        self.notice_delay = (
            notice_delay if notice_delay is not None else global_settings.guest_notice_delay
        )
        self._schedule = scheduler

        self._id_counter = 0
        self._last_id_timestamp = 0
        self._notice_scheduled = False

    # Storage

    def _read(self) -> list[dict[str, Any]]:
        raw = self.storage.get_item(self.storage_key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding unreadable guest data under '{self.storage_key}'")
            return []
        return data if isinstance(data, list) else []

    def _write(self, transactions: list[dict[str, Any]]) -> None:
        try:
            self.storage.set_item(self.storage_key, json.dumps(transactions))
        except StorageQuotaError as e:
            logger.error(f"Failed to save guest transactions: {e}")
            self.notifier.notify("error", STORAGE_FULL, duration=10.0)
            raise
        except Exception as e:
            logger.error(f"Failed to save guest transactions: {e}")
            raise

    def generate_id(self) -> str:
        """local_<ms>_<same-ms counter>_<random suffix>."""
        now = int(time.time() * 1000)
        if now == self._last_id_timestamp:
            self._id_counter += 1
        else:
            self._id_counter = 0
            self._last_id_timestamp = now

        suffix = "".join(random.choices(ID_ALPHABET, k=7))
        return f"local_{now}_{self._id_counter}_{suffix}"

    # CRUD

    def get_all(self) -> list[dict[str, Any]]:
        return self._read()

    def get(self, transaction_id: str) -> dict[str, Any]:
        for tx in self._read():
            if tx.get("id") == transaction_id:
                return tx
        raise NotFoundError("Transaction not found")

    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        """Normalize and store a new transaction at the head of the list."""
        transactions = self._read()
        is_first = not transactions and not self._notice_scheduled

        now = utc_now_iso()
        record = self._validate(
            {
                "id": self.generate_id(),
                "type": data.get("type") or "expense",
                "amount": data.get("amount"),
                "category": data.get("category") or "",
                "description": data.get("description") or "",
                "date": data.get("date") or now,
                "tags": data.get("tags") or [],
                "notes": data.get("notes") or "",
                "createdAt": now,
                "updatedAt": now,
            }
        )

        transactions.insert(0, record)
        self._write(transactions)

        if is_first:
            self._notice_scheduled = True
            self._schedule(self.notice_delay, self._notify_guest_mode)

        return record

    def update(self, transaction_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Merge fields onto an existing transaction, keeping its id."""
        transactions = self._read()
        for index, tx in enumerate(transactions):
            if tx.get("id") == transaction_id:
                break
        else:
            raise NotFoundError("Transaction not found")

        record = self._validate(
            {
                **transactions[index],
                **data,
                "id": transaction_id,
                "updatedAt": utc_now_iso(),
            }
        )
        transactions[index] = record
        self._write(transactions)
        return record

    def delete(self, transaction_id: str) -> None:
        """Remove by id; missing ids are ignored."""
        transactions = self._read()
        remaining = [tx for tx in transactions if tx.get("id") != transaction_id]
        if len(remaining) != len(transactions):
            self._write(remaining)

    def clear(self) -> None:
        """Wipe all guest transactions, e.g. on logout."""
        self.storage.remove_item(self.storage_key)
        self._notice_scheduled = False
        logger.debug("Guest transactions cleared")

    # Queries

    def list_transactions(
        self,
        filter: dict[str, Any] | None = None,
        sort_by: str = "date",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> dict[str, Any]:
        """
        Filter, sort and paginate.

        Filters apply in order: type, category, start_date, end_date,
        search_query (description/category/notes, case-insensitive). Date
        bounds are inclusive; a date-only end_date covers the whole day.

        Returns:
            {"data": [...], "pagination": {page, limit, total, pages}}
        """
        filter = filter or {}
        transactions = self._read()

        if filter.get("type"):
            transactions = [tx for tx in transactions if tx.get("type") == filter["type"]]

        if filter.get("category"):
            transactions = [
                tx for tx in transactions if tx.get("category") == filter["category"]
            ]

        if filter.get("start_date"):
            start = parse_iso_datetime(filter["start_date"])
            transactions = [
                tx for tx in transactions if (d := _tx_datetime(tx)) and d >= start
            ]

        if filter.get("end_date"):
            end = parse_iso_datetime(filter["end_date"])
            if is_date_only(filter["end_date"]):
                end += timedelta(days=1) - timedelta(microseconds=1)
            transactions = [
                tx for tx in transactions if (d := _tx_datetime(tx)) and d <= end
            ]

        if filter.get("search_query"):
            query = filter["search_query"].lower()
            transactions = [
                tx
                for tx in transactions
                if any(
                    query in (tx.get(field) or "").lower()
                    for field in ("description", "category", "notes")
                )
            ]

        reverse = sort_order == "desc"
        if sort_by == "date":
            transactions.sort(
                key=lambda tx: _tx_datetime(tx) or EARLIEST,
                reverse=reverse,
            )
        elif sort_by == "amount":
            transactions.sort(key=lambda tx: tx.get("amount", 0), reverse=reverse)

        page = max(1, page)
        limit = max(1, limit)
        total = len(transactions)
        pages = math.ceil(total / limit) or 1
        offset = (page - 1) * limit

        return {
            "data": transactions[offset : offset + limit],
            "pagination": {"page": page, "limit": limit, "total": total, "pages": pages},
        }

    def compute_dashboard(self, month: int, year: int) -> dict[str, Any]:
        """
        Dashboard data in the backend's response shape.

        Returns:
            summary (current and previous month totals, trends),
            categoryBreakdown, monthlyTrend (six months ending with
            month/year) and recentTransactions (latest five this month).
        """
        all_transactions = self._read()

        current = _filter_by_month(all_transactions, month, year)
        current_income = _sum_by_type(current, "income")
        current_expense = _sum_by_type(current, "expense")

        prev_month = 12 if month == 1 else month - 1
        prev_year = year - 1 if month == 1 else year
        previous = _filter_by_month(all_transactions, prev_month, prev_year)
        prev_income = _sum_by_type(previous, "income")
        prev_expense = _sum_by_type(previous, "expense")

        summary = {
            "currentMonth": {
                "income": current_income,
                "expense": current_expense,
                "balance": current_income - current_expense,
                "transactionCount": len(current),
            },
            "previousMonth": {
                "income": prev_income,
                "expense": prev_expense,
                "balance": prev_income - prev_expense,
                "transactionCount": len(previous),
            },
            "totalTransactions": len(current),
            "trends": {
                "income": calc_trend(current_income, prev_income),
                "expense": calc_trend(current_expense, prev_expense),
                "balance": calc_trend(
                    current_income - current_expense, prev_income - prev_expense
                ),
            },
        }

        categories: dict[tuple[str, str], dict[str, Any]] = {}
        for tx in current:
            key = (tx.get("type"), tx.get("category"))
            item = categories.setdefault(
                key, {"type": key[0], "category": key[1], "total": 0.0, "count": 0}
            )
            item["total"] += tx.get("amount", 0)
            item["count"] += 1

        category_breakdown = sorted(
            (
                {**item, "total": round_half_up(item["total"], 2)}
                for item in categories.values()
            ),
            key=lambda item: item["total"],
            reverse=True,
        )

        monthly_trend = []
        for offset in range(5, -1, -1):
            m, y = month - offset, year
            while m <= 0:
                m += 12
                y -= 1
            month_tx = _filter_by_month(all_transactions, m, y)
            monthly_trend.append(
                {
                    "month": m,
                    "year": y,
                    "income": _sum_by_type(month_tx, "income"),
                    "expense": _sum_by_type(month_tx, "expense"),
                }
            )

        recent_transactions = sorted(current, key=_tx_datetime, reverse=True)[:5]

        return {
            "summary": summary,
            "categoryBreakdown": category_breakdown,
            "monthlyTrend": monthly_trend,
            "recentTransactions": recent_transactions,
        }

    # Internals

    @staticmethod
    def _validate(data: dict[str, Any]) -> dict[str, Any]:
        try:
            return LocalTransaction.model_validate(data).to_storage()
        except pydantic.ValidationError as e:
            fields = {
                ".".join(str(part) for part in err["loc"]): err["msg"]
                for err in e.errors()
            }
            raise ValidationError("Invalid transaction", fields) from e

    def _notify_guest_mode(self) -> None:
        self.notifier.notify("info", GUEST_STORAGE_WARNING, duration=8.0)
