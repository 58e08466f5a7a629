"""
Authentication and Token Lifecycle

Handles:
- Login exchange, MFA continuation, token refresh and logout
- Token persistence through a pluggable TokenStore
- Signed headers for the auth endpoints

Token expiry is evaluated when the token is read; nothing runs in the
background.
"""

from __future__ import annotations

import asyncio
import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from loguru import logger

from .config import WebullConfig
from .errors import (
    ApiError,
    AuthenticationError,
    InvalidRequest,
    MfaRequired,
    RateLimitExceeded,
    SerializationError,
    Unauthorized,
)
from .signing import generate_signature, generate_timestamp
from .transport import HttpResponse, HttpTransport

LOGIN_PATH = "/api/passport/login/v5/account"
MFA_PATH = "/api/passport/verificationCode/verify"
REFRESH_PATH = "/api/passport/refreshToken"
LOGOUT_PATH = "/api/passport/logout"

DEVICE_NAME = "webull-core"
MFA_REQUIRED_CODE = "mfa_required"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Credentials:
    """Username/password pair held in memory for MFA continuation."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"

    def to_dict(self) -> Dict[str, str]:
        return {"username": self.username, "password": self.password}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credentials":
        try:
            return cls(username=data["username"], password=data["password"])
        except (KeyError, TypeError) as e:
            raise SerializationError(f"Invalid credentials document: {e}") from e


@dataclass
class AccessToken:
    """
    Bearer token with absolute expiry.

    A token is usable only while ``now < expires_at``.
    """

    token: str
    expires_at: datetime
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def expires_within(self, seconds: float, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at - timedelta(seconds=seconds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "expires_at": self.expires_at.isoformat(),
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccessToken":
        try:
            expires_at = datetime.fromisoformat(data["expires_at"])
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            return cls(
                token=data["token"],
                expires_at=expires_at,
                refresh_token=data.get("refresh_token"),
                token_type=data.get("token_type") or "Bearer",
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Invalid token document: {e}") from e

    def __repr__(self) -> str:
        return (
            f"AccessToken(token='{self.token[:6]}***', expires_at={self.expires_at.isoformat()}, "
            f"has_refresh={self.refresh_token is not None})"
        )


# =============================================================================
# Token stores
# =============================================================================

class TokenStore(ABC):
    """Single-slot persistence for the current session token."""

    @abstractmethod
    def get(self) -> Optional[AccessToken]:
        ...

    @abstractmethod
    def store(self, token: AccessToken) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemoryTokenStore(TokenStore):
    """Process-lifetime token slot guarded by a lock."""

    def __init__(self) -> None:
        self._token: Optional[AccessToken] = None
        self._lock = threading.Lock()

    def get(self) -> Optional[AccessToken]:
        with self._lock:
            return self._token

    def store(self, token: AccessToken) -> None:
        with self._lock:
            self._token = token

    def clear(self) -> None:
        with self._lock:
            self._token = None


# =============================================================================
# Auth manager
# =============================================================================

class AuthManager:
    """
    Owns one session's token lifecycle.

    States: unauthenticated (no token), authenticated (``now < expires_at``),
    expired (treated as unauthenticated). revoke_token() returns to
    unauthenticated.

    Args:
        config: Client configuration (api credentials, base URL, device id).
        transport: HTTP transport used for the auth exchanges.
        token_store: Token persistence. Defaults to MemoryTokenStore.
        clock: Source of the current UTC time, injectable for tests.

    Example:
        >>> auth = AuthManager(config, AiohttpTransport())
        >>> token = await auth.authenticate("user", "pass")
        >>> auth.get_token().token == token.token
        True
    """

    def __init__(
        self,
        config: WebullConfig,
        transport: HttpTransport,
        token_store: Optional[TokenStore] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self._transport = transport
        self._token_store = token_store or MemoryTokenStore()
        self._clock = clock
        self._credentials: Optional[Credentials] = None
        self._credentials_lock = threading.Lock()
        self._exchange_lock = asyncio.Lock()

    @property
    def token_store(self) -> TokenStore:
        return self._token_store

    @property
    def credentials(self) -> Optional[Credentials]:
        with self._credentials_lock:
            return self._credentials

    def _set_credentials(self, credentials: Optional[Credentials]) -> None:
        with self._credentials_lock:
            self._credentials = credentials

    @property
    def is_authenticated(self) -> bool:
        token = self._token_store.get()
        return token is not None and not token.is_expired(self._clock())

    # -------------------------------------------------------------------------
    # Wire helpers
    # -------------------------------------------------------------------------

    def _signed_headers(self, body: str, bearer: Optional[str] = None) -> Dict[str, str]:
        timestamp = generate_timestamp()
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "api-key": self.config.api_key,
            "device-id": self.config.device_id,
            "timestamp": timestamp,
            "signature": generate_signature(self.config.api_secret, timestamp, body),
        }
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    async def _post(self, path: str, payload: Dict[str, Any], bearer: Optional[str] = None) -> HttpResponse:
        body = json.dumps(payload)
        return await self._transport.request(
            "POST",
            f"{self.config.api_url}{path}",
            headers=self._signed_headers(body, bearer),
            body=body,
            timeout=self.config.timeout,
        )

    @staticmethod
    def _raise_for_status(resp: HttpResponse) -> None:
        if resp.status == 401:
            raise Unauthorized()
        if resp.status == 429:
            raise RateLimitExceeded(resp.retry_after())
        raise ApiError(str(resp.status), resp.text)

    def _parse_token(self, resp: HttpResponse, previous_refresh: Optional[str] = None) -> AccessToken:
        data = resp.json()
        try:
            expires_in = float(data["expires_in"])
            token = AccessToken(
                token=str(data["access_token"]),
                expires_at=self._clock() + timedelta(seconds=expires_in),
                refresh_token=data.get("refresh_token") or previous_refresh,
                token_type=data.get("token_type") or "Bearer",
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Invalid token response: {e}") from e
        return token

    @staticmethod
    def _check_login_body(resp: HttpResponse) -> None:
        """Raise when a 2xx login answer carries a challenge or a failure instead of a token."""
        data = resp.json()
        if not isinstance(data, dict) or "access_token" in data:
            return
        code = data.get("code")
        if data.get("mfa_required") or (code is not None and str(code) == MFA_REQUIRED_CODE):
            raise MfaRequired(data.get("message") or "Verification code required")
        if data.get("success") is False:
            raise AuthenticationError(f"Login failed: {code}: {data.get('message') or 'unknown'}")

    async def _exchange(
        self,
        path: str,
        payload: Dict[str, Any],
        previous_refresh: Optional[str] = None,
        login: bool = False,
    ) -> AccessToken:
        resp = await self._post(path, payload)
        if not resp.ok:
            logger.warning(f"Auth exchange {path} failed with HTTP {resp.status}")
            self._raise_for_status(resp)
        if login:
            self._check_login_body(resp)
        token = self._parse_token(resp, previous_refresh)
        self._token_store.store(token)
        return token

    # -------------------------------------------------------------------------
    # Lifecycle operations
    # -------------------------------------------------------------------------

    async def authenticate(self, username: str, password: str) -> AccessToken:
        """
        Log in with username and password.

        Args:
            username: Account username.
            password: Account password.

        Returns:
            The new AccessToken, already stored in the token store.

        Raises:
            MfaRequired: The server wants a verification code; finish with
                multi_factor_auth(). The credentials are kept for that call.
            AuthenticationError: A 2xx answer that is a failed envelope.
            Unauthorized: HTTP 401.
            RateLimitExceeded: HTTP 429.
            ApiError: Any other non-2xx status.
            NetworkError: Transport failure.
        """
        async with self._exchange_lock:
            self._set_credentials(Credentials(username, password))
            token = await self._exchange(LOGIN_PATH, {
                "username": username,
                "password": password,
                "deviceId": self.config.device_id,
                "deviceName": DEVICE_NAME,
                "deviceType": "Web",
            }, login=True)
            logger.info(f"Authenticated as {username}")
            return token

    async def multi_factor_auth(self, code: str) -> AccessToken:
        """
        Complete a login that requires a verification code.

        Raises:
            InvalidRequest: If authenticate() was not called on this manager first.
        """
        credentials = self.credentials
        if credentials is None:
            raise InvalidRequest("No credentials available for MFA; call authenticate() first")
        async with self._exchange_lock:
            token = await self._exchange(MFA_PATH, {
                "username": credentials.username,
                "verificationCode": code,
                "deviceId": self.config.device_id,
            })
            logger.info("MFA verification succeeded")
            return token

    async def refresh_token(self) -> AccessToken:
        """
        Exchange the stored refresh token for a new access token.

        Raises:
            InvalidRequest: No stored token, or the token has no refresh token.
                No request is sent in that case.
        """
        current = self._token_store.get()
        if current is None:
            raise InvalidRequest("No token to refresh")
        if not current.refresh_token:
            raise InvalidRequest("No refresh token available")

        async with self._exchange_lock:
            logger.info("Refreshing access token...")
            token = await self._exchange(
                REFRESH_PATH,
                {"refreshToken": current.refresh_token, "deviceId": self.config.device_id},
                previous_refresh=current.refresh_token,
            )
            logger.info("Access token refreshed successfully")
            return token

    def get_token(self) -> AccessToken:
        """
        Return the current token if present and unexpired.

        Raises:
            Unauthorized: No token, or the token has expired.
        """
        token = self._token_store.get()
        if token is None:
            raise Unauthorized("Not authenticated")
        if token.is_expired(self._clock()):
            raise Unauthorized("Access token expired")
        return token

    async def ensure_token(self, refresh_buffer: Optional[float] = None) -> AccessToken:
        """
        Return a usable token, refreshing first when it is close to expiry.

        Falls back to get_token() semantics when no refresh token is held.
        """
        buffer = self.config.token_refresh_buffer if refresh_buffer is None else refresh_buffer
        token = self._token_store.get()
        if token is None or not token.expires_within(buffer, self._clock()):
            return self.get_token()
        if not token.refresh_token:
            return self.get_token()

        # Double-check after acquiring the exchange lock: a concurrent caller
        # may have refreshed already
        async with self._exchange_lock:
            latest = self._token_store.get()
            if latest is not None and not latest.expires_within(buffer, self._clock()):
                return latest
        return await self.refresh_token()

    async def revoke_token(self) -> None:
        """
        Log out and forget the token and credentials.

        HTTP 401 from the logout endpoint means the token is already invalid
        and is not an error. Without a stored token this only clears the
        in-memory credentials.
        """
        token = self._token_store.get()
        if token is None:
            self._set_credentials(None)
            return

        async with self._exchange_lock:
            resp = await self._post(
                LOGOUT_PATH,
                {"accessToken": token.token, "deviceId": self.config.device_id},
                bearer=token.token,
            )
            if resp.status == 401:
                logger.warning("Logout returned 401; token already invalid")
            elif not resp.ok:
                self._raise_for_status(resp)

            self._token_store.clear()
            self._set_credentials(None)
            logger.info("Logged out")

    def __repr__(self) -> str:
        return (
            f"AuthManager(base_url={self.config.base_url!r}, "
            f"authenticated={self.is_authenticated})"
        )

