"""
TransactionService - domain operations on the transactions resource.

Reads go through the response cache when caching is enabled; every
mutation invalidates the transaction and stats cache families.
"""

from datetime import date, timedelta
from typing import Any

from loguru import logger

from fintrack.api import endpoints
from fintrack.api.invalidation import CacheInvalidator
from fintrack.exceptions import FeatureDisabledError, ValidationError
from fintrack.services.client import ApiClient
from fintrack.settings import Settings, global_settings
from fintrack.utils import parse_iso_datetime

TRANSACTION_TYPES = ("income", "expense")
MAX_DESCRIPTION_LENGTH = 255
MAX_PAGE_SIZE = 100

EMPTY_PAGINATION = {"page": 1, "limit": 10, "total": 0, "pages": 0}


class TransactionService:
    """
    Transaction operations against the backend.

    Usage:
        service = TransactionService(client)
        page = await service.get_transactions({"type": "expense", "page": 2})
        created = await service.create_transaction({
            "type": "expense",
            "description": "Groceries",
            "amount": "42.10",
            "category": "Food",
        })
    """

    def __init__(
        self,
        client: ApiClient,
        invalidator: CacheInvalidator | None = None,
        settings: Settings | None = None,
    ):
        self.client = client
        self.invalidator = invalidator or CacheInvalidator(client.cache)
        self.settings = settings or global_settings

    @property
    def _cache_options(self) -> dict[str, Any]:
        return {
            "cache": self.settings.cache_enabled,
            "cache_ttl": timedelta(seconds=self.settings.cache_ttl),
        }

    async def get_transactions(
        self, filters: dict[str, Any] | None = None, force_refresh: bool = False
    ) -> dict[str, Any]:
        """
        List transactions.

        Args:
            filters: page, limit, type, category, start_date, end_date,
                sort_by ('date' | 'amount'), sort_order ('asc' | 'desc').
                'all' for type or category means no filter.
            force_refresh: Bypass the cached page

        Returns:
            {"data": [...], "pagination": {page, limit, total, pages}}
        """
        filters = filters or {}
        query: dict[str, Any] = {
            "page": self._positive_int(filters, "page", 1),
            "limit": min(self._positive_int(filters, "limit", 10), MAX_PAGE_SIZE),
            "sort": filters.get("sort_by") or "date",
            "order": filters.get("sort_order") or "desc",
        }
        for field in ("type", "category"):
            value = filters.get(field)
            if value and value != "all":
                query[field] = value
        if filters.get("start_date"):
            query["startDate"] = filters["start_date"]
        if filters.get("end_date"):
            query["endDate"] = filters["end_date"]

        response = await self.client.get(
            endpoints.TRANSACTIONS,
            query,
            force_refresh=force_refresh,
            **self._cache_options,
        )

        return {
            "data": response.get("data") or [],
            "pagination": response.get("pagination") or dict(EMPTY_PAGINATION),
        }

    async def get_transaction(self, transaction_id: str) -> dict[str, Any]:
        """Fetch a single transaction by id."""
        self._require_id(transaction_id)
        response = await self.client.get(
            endpoints.transaction_detail(transaction_id), **self._cache_options
        )
        return response.get("data")

    async def create_transaction(self, data: dict[str, Any]) -> dict[str, Any]:
        """Validate and create a transaction."""
        errors = self.validate_transaction(data)
        if errors:
            raise ValidationError("Validation failed", errors)

        payload = {
            "type": data.get("type") or "expense",
            "description": data["description"].strip(),
            "amount": float(data["amount"]),
            "category": data["category"],
            "date": data.get("date") or date.today().isoformat(),
        }

        response = await self.client.post(endpoints.TRANSACTIONS, payload)
        await self.invalidator.on_transaction_created()
        logger.debug(f"Created transaction: {payload['description']}")
        return response.get("data")

    async def update_transaction(
        self, transaction_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        """Send only the provided fields of a transaction."""
        self._require_id(transaction_id)

        update_data: dict[str, Any] = {}
        if updates.get("type"):
            update_data["type"] = updates["type"]
        if updates.get("description"):
            update_data["description"] = updates["description"].strip()
        if updates.get("amount"):
            update_data["amount"] = float(updates["amount"])
        if updates.get("category"):
            update_data["category"] = updates["category"]
        if updates.get("date"):
            update_data["date"] = updates["date"]

        if not update_data:
            raise ValidationError("No fields to update", {})

        response = await self.client.put(
            endpoints.transaction_detail(transaction_id), update_data
        )
        await self.invalidator.on_transaction_updated(transaction_id)
        return response.get("data")

    async def delete_transaction(self, transaction_id: str) -> dict[str, Any]:
        """Delete a single transaction."""
        self._require_id(transaction_id)
        response = await self.client.delete(
            endpoints.transaction_detail(transaction_id)
        )
        await self.invalidator.on_transaction_deleted(transaction_id)
        return response

    async def delete_all_transactions(self, confirm: bool = False) -> dict[str, Any]:
        """Bulk delete; the backend rejects the call without confirm=true."""
        if not self.settings.feature_bulk_delete:
            raise FeatureDisabledError("bulk_delete")
        if not confirm:
            raise ValidationError(
                "Confirmation required", {"confirm": "Must be confirmed"}
            )

        response = await self.client.delete(
            endpoints.TRANSACTIONS, params={"confirm": "true"}
        )
        await self.invalidator.on_transaction_deleted()
        logger.warning("All transactions deleted")
        return response.get("data")

    async def get_statistics(
        self, start_date: str | None = None, end_date: str | None = None
    ) -> dict[str, Any]:
        """Summary totals: totalIncome, totalExpense, balance, transactionCount."""
        if not self.settings.feature_stats:
            raise FeatureDisabledError("stats")

        response = await self.client.get(
            endpoints.TRANSACTIONS_SUMMARY,
            {"startDate": start_date, "endDate": end_date},
            **self._cache_options,
        )
        return response.get("data")

    @staticmethod
    def validate_transaction(data: dict[str, Any]) -> dict[str, str]:
        """Return field -> message for every invalid field (empty when valid)."""
        errors: dict[str, str] = {}

        if data.get("type") not in TRANSACTION_TYPES:
            errors["type"] = 'Type must be "income" or "expense"'

        description = data.get("description")
        if not isinstance(description, str) or not description.strip():
            errors["description"] = "Description is required"
        elif len(description) > MAX_DESCRIPTION_LENGTH:
            errors["description"] = (
                f"Description must be less than {MAX_DESCRIPTION_LENGTH} characters"
            )

        amount = data.get("amount")
        if amount in (None, ""):
            errors["amount"] = "Amount is required"
        else:
            try:
                if float(amount) <= 0:
                    errors["amount"] = "Amount must be greater than 0"
            except (TypeError, ValueError):
                errors["amount"] = "Amount must be a valid number"

        category = data.get("category")
        if not isinstance(category, str) or not category.strip():
            errors["category"] = "Category is required"

        if data.get("date"):
            try:
                parse_iso_datetime(data["date"])
            except (AttributeError, TypeError, ValueError):
                errors["date"] = "Invalid date format (use YYYY-MM-DD)"

        return errors

    @staticmethod
    def _positive_int(filters: dict[str, Any], name: str, default: int) -> int:
        value = filters.get(name)
        if value in (None, ""):
            return default
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationError(
                f"Invalid {name}", {name: "Must be a positive integer"}
            ) from None
        if number < 1:
            raise ValidationError(f"Invalid {name}", {name: "Must be a positive integer"})
        return number

    @staticmethod
    def _require_id(transaction_id: str) -> None:
        if not transaction_id:
            raise ValidationError("Transaction ID is required", {"id": "Required"})
