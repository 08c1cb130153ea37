"""
AuthService - token lifecycle for the API client.

Stores access/refresh tokens in a session storage, keeps the client's
bearer header in sync and serves as the client's 401 refresh handler.
"""

import asyncio
import time
from typing import Any, Callable

from loguru import logger

from fintrack.api import endpoints
from fintrack.guest.ledger import LocalLedger
from fintrack.guest.storage import MemorySessionStorage, SessionStorage
from fintrack.services.client import ApiClient

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
TOKEN_EXPIRY_KEY = "tokenExpiry"


class AuthService:
    """
    Login, logout and single-flight token refresh.

    Usage:
        auth = AuthService(client, ledger=guest_ledger)
        user = await auth.login("me@example.com", "secret")
        ...
        auth.logout()  # also wipes guest transactions
    """

    def __init__(
        self,
        client: ApiClient,
        token_storage: SessionStorage | None = None,
        ledger: LocalLedger | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.storage = token_storage if token_storage is not None else MemorySessionStorage()
        self.ledger = ledger
        self._clock = clock

        self.access_token: str | None = None
        self.refresh_token: str | None = None
        self.token_expiry: float | None = None  # Epoch seconds
        self._refresh_task: asyncio.Task[str] | None = None

        client.set_refresh_handler(self.refresh_access_token)

    @property
    def is_authenticated(self) -> bool:
        return self.get_access_token() is not None

    def set_tokens(
        self, access_token: str, refresh_token: str, expires_in: float = 3600
    ) -> None:
        """Store tokens and attach the access token to the client."""
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.token_expiry = self._clock() + expires_in

        self.storage.set_item(ACCESS_TOKEN_KEY, access_token)
        self.storage.set_item(REFRESH_TOKEN_KEY, refresh_token)
        self.storage.set_item(TOKEN_EXPIRY_KEY, str(self.token_expiry))

        self.client.set_auth_token(access_token)

    def get_access_token(self) -> str | None:
        if self.is_token_expired():
            return None
        return self.access_token

    def is_token_expired(self, buffer: float = 60.0) -> bool:
        """True when no expiry is known or it falls within buffer seconds."""
        if self.token_expiry is None:
            return True
        return self._clock() > self.token_expiry - buffer

    async def refresh_access_token(self) -> str:
        """
        Exchange the refresh token for a new access token.

        Concurrent callers share one refresh request. On failure the
        session is logged out and the error re-raised.
        """
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh())
        return await asyncio.shield(self._refresh_task)

    async def _refresh(self) -> str:
        try:
            response = await self.client.post(
                endpoints.AUTH_REFRESH,
                {"refreshToken": self.refresh_token},
                retry=False,
                allow_refresh=False,
            )
            data = response["data"]
            self.set_tokens(
                data["accessToken"],
                data["refreshToken"],
                data.get("expiresIn", 3600),
            )
            logger.info("Access token refreshed")
            return data["accessToken"]
        except Exception as e:
            logger.warning(f"Token refresh failed, logging out: {e}")
            self.logout()
            raise
        finally:
            self._refresh_task = None

    async def login(self, email: str, password: str) -> dict[str, Any]:
        response = await self.client.post(
            endpoints.AUTH_LOGIN,
            {"email": email, "password": password},
            allow_refresh=False,
        )
        data = response["data"]
        self.set_tokens(
            data["accessToken"], data["refreshToken"], data.get("expiresIn", 3600)
        )
        logger.info("Logged in")
        return data.get("user")

    def logout(self) -> None:
        """Drop tokens and any guest data left on this device."""
        self.access_token = None
        self.refresh_token = None
        self.token_expiry = None

        self.storage.remove_item(ACCESS_TOKEN_KEY)
        self.storage.remove_item(REFRESH_TOKEN_KEY)
        self.storage.remove_item(TOKEN_EXPIRY_KEY)

        self.client.set_auth_token(None)
        if self.ledger is not None:
            self.ledger.clear()
        logger.info("Logged out")

    async def load_stored_tokens(self) -> bool:
        """Restore a session from storage, refreshing if the token expired."""
        access_token = self.storage.get_item(ACCESS_TOKEN_KEY)
        refresh_token = self.storage.get_item(REFRESH_TOKEN_KEY)
        token_expiry = self.storage.get_item(TOKEN_EXPIRY_KEY)

        if not (access_token and refresh_token and token_expiry):
            return False

        self.access_token = access_token
        self.refresh_token = refresh_token
        try:
            self.token_expiry = float(token_expiry)
        except ValueError:
            self.token_expiry = None

        if not self.is_token_expired():
            self.client.set_auth_token(access_token)
            return True

        try:
            await self.refresh_access_token()
        except Exception as e:
            logger.info(f"Stored session could not be restored: {e}")
            return False
        return True
