"""Venue metadata: collateral tokens and display names."""

from ..config.defaults import VenueParams
from .models import Instrument

_DEFAULT_VENUES = VenueParams()

# Wrapped spot tokens and the asset they represent
SPOT_TICKER_MAP: dict[str, str] = {
    "UBTC": "BTC",
    "USOL": "SOL",
    "UETH": "ETH",
    "UXPL": "XPL",
    "UPUMP": "PUMP",
    "UUUSPX": "SPX",
    "UBONK": "BONK",
    "UMOG": "MOG",
    "UWLD": "WLD",
    "UENA": "ENA",
    "UFART": "FART",
}


def venue_collateral(venue: str, venues: VenueParams = _DEFAULT_VENUES) -> str:
    """Collateral token used for margin on a venue."""
    if not venue:
        return venues.default_collateral
    return venues.venue_collateral.get(venue, venues.default_collateral)


def display_name(symbol: str, venue: str, venues: VenueParams = _DEFAULT_VENUES) -> str:
    """"NVDA-USDH" style name for alternate-venue markets, symbol unchanged otherwise."""
    if not venue:
        return symbol
    return f"{symbol}-{venues.venue_collateral.get(venue, 'USD')}"


def display_ticker(ticker: str) -> str:
    """Map wrapped spot tokens to display names ("UBTC/USDC" -> "BTC/USDC")."""
    if "/" in ticker:
        base, quote = ticker.split("/", 1)
        return f"{SPOT_TICKER_MAP.get(base, base)}/{quote}"
    return SPOT_TICKER_MAP.get(ticker, ticker)


def is_isolated_only(instrument: Instrument) -> bool:
    """Alternate-venue perpetuals only support isolated margin."""
    return instrument.only_isolated or (instrument.is_perp and instrument.is_alternate_venue)
