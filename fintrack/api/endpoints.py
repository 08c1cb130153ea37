"""
Backend endpoint paths, relative to the configured API URL.
"""

TRANSACTIONS = "/transactions"
TRANSACTIONS_SUMMARY = "/transactions/stats/summary"


def transaction_detail(transaction_id: str) -> str:
    return f"{TRANSACTIONS}/{transaction_id}"


AUTH_LOGIN = "/auth/login"
AUTH_REFRESH = "/auth/refresh"
AUTH_PROFILE = "/auth/profile"
AUTH_LOGOUT = "/auth/logout"
