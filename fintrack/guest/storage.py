"""
Session-scoped key/value storage port.

The guest ledger and the auth token store only need get/set/remove of
string values, the same surface a browser's sessionStorage offers.
"""

from typing import Protocol

from fintrack.exceptions import StorageQuotaError


class SessionStorage(Protocol):
    """Minimal key/value storage interface."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemorySessionStorage:
    """
    In-process storage living as long as the object does.

    Args:
        quota_bytes: Optional size limit over all keys and values; a write
            that would exceed it raises StorageQuotaError and leaves the
            previous value in place.
    """

    def __init__(self, quota_bytes: int | None = None):
        self._items: dict[str, str] = {}
        self._quota_bytes = quota_bytes

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self._quota_bytes is not None:
            used = sum(
                len(k) + len(v) for k, v in self._items.items() if k != key
            )
            if used + len(key) + len(value) > self._quota_bytes:
                raise StorageQuotaError(
                    f"Writing '{key}' exceeds the {self._quota_bytes} byte quota"
                )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)
