"""
Backend-facing domain services built on ApiClient.
"""

from fintrack.api.auth import AuthService
from fintrack.api.invalidation import CacheInvalidator
from fintrack.api.transactions import TransactionService

__all__ = ["AuthService", "CacheInvalidator", "TransactionService"]
