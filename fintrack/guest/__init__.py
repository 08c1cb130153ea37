"""
Guest mode: transactions kept in session storage when no backend session exists.
"""

from fintrack.guest.ledger import LocalLedger
from fintrack.guest.models import LocalTransaction
from fintrack.guest.notifications import Notification, Notifier
from fintrack.guest.storage import MemorySessionStorage, SessionStorage

__all__ = [
    "LocalLedger",
    "LocalTransaction",
    "Notification",
    "Notifier",
    "MemorySessionStorage",
    "SessionStorage",
]
