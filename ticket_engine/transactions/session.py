"""
Wallet session context.

Holds the clients created when a wallet connects and drops them when it
disconnects. It is passed to step machines and actions explicitly instead of
being read from ambient global state.
"""

from typing import Optional

import structlog

from ..errors import SessionClosedError
from ..interfaces import BridgeClient, ExchangeClient

logger = structlog.get_logger(__name__)


class SessionContext:
    """Connected wallet session with its signing clients."""

    def __init__(self):
        self.logger = logger
        self.address: Optional[str] = None
        self._trading_client: Optional[ExchangeClient] = None
        self._account_client: Optional[ExchangeClient] = None
        self._bridge_client: Optional[BridgeClient] = None

    @classmethod
    def connected(
        cls,
        address: str,
        trading_client: ExchangeClient,
        account_client: Optional[ExchangeClient] = None,
        bridge_client: Optional[BridgeClient] = None
    ) -> 'SessionContext':
        """Create an already opened session."""
        session = cls()
        session.open(address, trading_client, account_client, bridge_client)
        return session

    def open(
        self,
        address: str,
        trading_client: ExchangeClient,
        account_client: Optional[ExchangeClient] = None,
        bridge_client: Optional[BridgeClient] = None
    ) -> None:
        """
        Open the session on wallet connect.

        Args:
            address: Connected wallet address
            trading_client: Client signing orders with the session key
            account_client: Client signing balance moves with the user wallet,
                defaults to the trading client
            bridge_client: Bridge deposit client, if deposits are supported
        """
        self.address = address
        self._trading_client = trading_client
        self._account_client = account_client or trading_client
        self._bridge_client = bridge_client
        self.logger.info("Session opened", address=address, bridge=bridge_client is not None)

    def close(self) -> None:
        """Tear the session down on wallet disconnect."""
        if self.address is not None:
            self.logger.info("Session closed", address=self.address)
        self.address = None
        self._trading_client = None
        self._account_client = None
        self._bridge_client = None

    @property
    def is_open(self) -> bool:
        return self._trading_client is not None

    @property
    def trading_client(self) -> ExchangeClient:
        """Session-key client for orders, cancels and leverage updates."""
        if self._trading_client is None:
            raise SessionClosedError()
        return self._trading_client

    @property
    def account_client(self) -> ExchangeClient:
        """User-signed client for withdrawals, transfers and staking."""
        if self._account_client is None:
            raise SessionClosedError()
        return self._account_client

    @property
    def bridge_client(self) -> BridgeClient:
        if self._bridge_client is None:
            raise SessionClosedError("Bridge deposits are not available for this wallet"
                                     if self.is_open else "Wallet not connected")
        return self._bridge_client
