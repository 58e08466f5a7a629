"""
Webull Client - top-level facade.

Handles:
- Wiring config, transport, AuthManager and one shared RequestDispatcher
- Login / MFA / logout with optional credential persistence
- Endpoint groups (accounts, orders, market data, watchlists)
- StreamingClient construction from the same session
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from loguru import logger

from .auth import AccessToken, AuthManager, Credentials, TokenStore
from .config import WebullConfig, build_config_from_env, load_config
from .credentials import CredentialStore, PersistentTokenStore
from .dispatcher import RequestDispatcher
from .endpoints import AccountsEndpoint, MarketDataEndpoint, OrdersEndpoint, WatchlistsEndpoint
from .transport import AiohttpTransport, HttpTransport
from .ws_client import Connector, StreamingClient


class WebullClient:
    """
    Async Webull API client.

    Example:
        >>> async with WebullClient.from_env() as client:
        ...     await client.login("user", "pass")
        ...     accounts = await client.accounts.get_accounts()
        ...     quote = await client.market_data.get_quote("AAPL")
    """

    def __init__(
        self,
        config: WebullConfig,
        token_store: Optional[TokenStore] = None,
        credential_store: Optional[CredentialStore] = None,
        transport: Optional[HttpTransport] = None,
        ws_connector: Optional[Connector] = None,
    ):
        """
        Args:
            config: Client settings. Validated here.
            token_store: Token persistence. When omitted and a credential
                store is given, tokens live in the credential store.
            credential_store: Where login credentials are remembered.
            transport: HTTP transport. Defaults to AiohttpTransport.
            ws_connector: Socket opener handed to streaming clients.

        Raises:
            ValueError: Invalid config.
        """
        config.validate()
        self.config = config
        self._owns_transport = transport is None
        self._transport = transport or AiohttpTransport(timeout=config.timeout)
        self._credential_store = credential_store
        if token_store is None and credential_store is not None:
            token_store = PersistentTokenStore(credential_store)
        self._ws_connector = ws_connector

        self.auth = AuthManager(config, self._transport, token_store)
        self.dispatcher = RequestDispatcher(config, self.auth, self._transport)

        self._accounts = AccountsEndpoint(self.dispatcher)
        self._orders = OrdersEndpoint(self.dispatcher)
        self._market_data = MarketDataEndpoint(self.dispatcher)
        self._watchlists = WatchlistsEndpoint(self.dispatcher)

    # =========================================================================
    # Construction helpers
    # =========================================================================

    @classmethod
    def from_config_file(cls, path: Union[str, Path], **kwargs) -> "WebullClient":
        return cls(load_config(path), **kwargs)

    @classmethod
    def from_env(cls, prefix: str = "WEBULL_", **kwargs) -> "WebullClient":
        return cls(build_config_from_env(prefix), **kwargs)

    def paper_trading(self) -> "WebullClient":
        """A client on the paper server sharing this client's stores and transport."""
        client = WebullClient(
            self.config.with_paper_trading(True),
            token_store=self.auth.token_store,
            credential_store=self._credential_store,
            transport=self._transport,
            ws_connector=self._ws_connector,
        )
        logger.info(f"Paper trading client created ({client.config.api_url})")
        return client

    @property
    def is_paper_trading(self) -> bool:
        return self.config.paper_trading

    # =========================================================================
    # Endpoint groups
    # =========================================================================

    @property
    def accounts(self) -> AccountsEndpoint:
        return self._accounts

    @property
    def orders(self) -> OrdersEndpoint:
        return self._orders

    @property
    def market_data(self) -> MarketDataEndpoint:
        return self._market_data

    @property
    def watchlists(self) -> WatchlistsEndpoint:
        return self._watchlists

    # =========================================================================
    # Session
    # =========================================================================

    async def login(self, username: str, password: str) -> AccessToken:
        token = await self.auth.authenticate(username, password)
        if self._credential_store is not None:
            self._credential_store.store_credentials(Credentials(username, password))
        return token

    async def verify_mfa(self, code: str) -> AccessToken:
        return await self.auth.multi_factor_auth(code)

    async def refresh_token(self) -> AccessToken:
        return await self.auth.refresh_token()

    async def logout(self) -> None:
        """Revoke the session and forget stored credentials and token."""
        await self.auth.revoke_token()
        if self._credential_store is not None:
            self._credential_store.clear_credentials()
            self._credential_store.clear_token()
        self.dispatcher.caches.clear_all()

    def get_credentials(self) -> Optional[Credentials]:
        """Credentials from the credential store, else those of the live session."""
        if self._credential_store is not None:
            stored = self._credential_store.get_credentials()
            if stored is not None:
                return stored
        return self.auth.credentials

    @property
    def is_authenticated(self) -> bool:
        return self.auth.is_authenticated

    # =========================================================================
    # Streaming
    # =========================================================================

    def streaming(self) -> StreamingClient:
        """A StreamingClient authenticated by this client's session."""
        return StreamingClient(
            self.config.ws_url,
            self.auth,
            heartbeat_interval=self.config.heartbeat_interval,
            max_reconnect_attempts=self.config.max_reconnect_attempts,
            reconnect_delay=self.config.reconnect_delay,
            connect_timeout=self.config.timeout,
            connector=self._ws_connector,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        if self._owns_transport:
            await self._transport.close()

    async def __aenter__(self) -> "WebullClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"WebullClient(api_url={self.config.api_url!r}, authenticated={self.is_authenticated})"
