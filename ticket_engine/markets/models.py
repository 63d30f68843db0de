"""
Canonical market data models.

This module defines immutable data structures describing tradable
instruments, the instrument catalog and order book snapshots as supplied by
the market data collaborator. All of them are hashable so they can take
part in memoized order computations.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MarketKind(str, Enum):
    """Market classification."""
    PERPETUAL = "perpetual"
    SPOT = "spot"


class Side(str, Enum):
    """Order side."""
    BUY = "buy"
    SELL = "sell"

    @property
    def sign(self) -> int:
        return 1 if self is Side.BUY else -1

    @property
    def opposite(self) -> "Side":
        return Side.SELL if self is Side.BUY else Side.BUY


class OrderKind(str, Enum):
    """Order ticket kind."""
    LIMIT = "limit"
    MARKET = "market"


class TimeInForce(str, Enum):
    """Order lifetime policy."""
    GTC = "Gtc"
    IOC = "Ioc"
    ALO = "Alo"


class MarginMode(str, Enum):
    """Perpetual margin mode."""
    CROSS = "cross"
    ISOLATED = "isolated"


@dataclass(frozen=True)
class Instrument:
    """A tradable market as described by the instrument catalog."""
    symbol: str                                      # "BTC", "PURR/USDC", "NVDA"
    kind: MarketKind
    index: int                                       # Index within its venue's universe
    size_decimals: int
    venue: str = ""                                  # "" = default venue
    max_leverage: Optional[int] = None               # Perpetual only
    only_isolated: bool = False

    @property
    def is_perp(self) -> bool:
        return self.kind == MarketKind.PERPETUAL

    @property
    def is_alternate_venue(self) -> bool:
        return self.venue != ""

    @property
    def base_token(self) -> str:
        """Base token of a spot pair ("PURR/USDC" -> "PURR"), or the symbol itself."""
        return self.symbol.split("/")[0]

    @property
    def key(self) -> str:
        """Catalog key, "venue:symbol" for alternate venues."""
        return f"{self.venue}:{self.symbol}" if self.venue else self.symbol


@dataclass(frozen=True)
class MarketCatalog:
    """Snapshot of every instrument the exchange currently lists."""
    perps: tuple[Instrument, ...] = ()
    spots: tuple[Instrument, ...] = ()

    def find(self, symbol: str, kind: MarketKind, venue: str = "") -> Optional[Instrument]:
        """Find an instrument by symbol, kind and venue."""
        pool = self.perps if kind == MarketKind.PERPETUAL else self.spots
        for instrument in pool:
            if instrument.symbol == symbol and instrument.venue == venue:
                return instrument
        return None


@dataclass(frozen=True)
class BookLevel:
    """Single order book level with price and size."""
    price: float
    size: float


@dataclass(frozen=True)
class BookSnap:
    """Order book snapshot with sorted levels."""
    bids: tuple[BookLevel, ...] = ()                 # Sorted by price descending
    asks: tuple[BookLevel, ...] = ()                 # Sorted by price ascending

    @property
    def best_bid(self) -> Optional[float]:
        """Best bid price, None if no bids."""
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> Optional[float]:
        """Best ask price, None if no asks."""
        return self.asks[0].price if self.asks else None
