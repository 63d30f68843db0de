"""
Asset identifier resolution.

The exchange addresses every instrument by an integer asset id. This module
is the only place the id encoding lives:

- default-venue perpetual: the market's index
- default-venue spot: spot offset (10000) + index
- alternate-venue perpetual: venue base (100000) + venue index * stride (10000) + index
- alternate-venue spot: spot offset + index, the spot universe is shared

An id is derived again for every submission from the live catalog. A
wrong id silently trades a different instrument, so anything that cannot be
matched fails with MarketNotFound rather than defaulting to 0.
"""

import structlog

from ..config.defaults import VenueParams
from ..errors import MarketNotFound
from .models import Instrument, MarketCatalog, MarketKind

logger = structlog.get_logger(__name__)

_DEFAULT_VENUES = VenueParams()


def encode_asset_id(
    kind: MarketKind,
    venue: str,
    index: int,
    venues: VenueParams = _DEFAULT_VENUES
) -> int:
    """
    Encode an asset id from market kind, venue and local index.

    Args:
        kind: Perpetual or spot
        venue: Venue identifier, "" for the default venue
        index: Index of the market within its venue's universe
        venues: Venue encoding parameters

    Returns:
        Integer asset id for order, cancel and leverage actions

    Raises:
        MarketNotFound: Negative index or unknown alternate venue
    """
    if index < 0:
        raise MarketNotFound(
            f"Market index {index} is not loaded for trading",
            venue=venue,
            context={"kind": kind.value, "index": index}
        )

    if kind == MarketKind.SPOT:
        return venues.spot_offset + index

    if not venue:
        return index

    venue_index = venues.venue_indices.get(venue)
    if venue_index is None:
        raise MarketNotFound(
            f"Unknown venue '{venue}'",
            venue=venue,
            context={"known_venues": sorted(venues.venue_indices)}
        )
    return venues.venue_base + venue_index * venues.venue_stride + index


class AssetResolver:
    """Resolves instruments against the live catalog into wire asset ids."""

    def __init__(self, venues: VenueParams = _DEFAULT_VENUES):
        self.logger = logger
        self.venues = venues

    def lookup(self, instrument: Instrument, catalog: MarketCatalog) -> Instrument:
        """Return the live catalog entry matching an instrument."""
        entry = catalog.find(instrument.symbol, instrument.kind, instrument.venue)
        if entry is None:
            self.logger.error(
                "Instrument not found in catalog",
                symbol=instrument.symbol,
                kind=instrument.kind.value,
                venue=instrument.venue or "default"
            )
            raise MarketNotFound(
                f"Market {instrument.symbol} not found",
                symbol=instrument.symbol,
                venue=instrument.venue
            )

        if entry.index != instrument.index or entry.size_decimals != instrument.size_decimals:
            self.logger.error(
                "Instrument metadata is stale",
                symbol=instrument.symbol,
                venue=instrument.venue or "default",
                held_index=instrument.index,
                catalog_index=entry.index
            )
            raise MarketNotFound(
                f"Market {instrument.symbol} changed, reselect the instrument",
                symbol=instrument.symbol,
                venue=instrument.venue,
                context={"held_index": instrument.index, "catalog_index": entry.index}
            )

        return entry

    def resolve(self, instrument: Instrument, catalog: MarketCatalog) -> int:
        """Resolve an instrument to its asset id."""
        entry = self.lookup(instrument, catalog)
        if entry.index < 0:
            raise MarketNotFound(
                f"Market {instrument.symbol} is not available for trading yet",
                symbol=instrument.symbol,
                venue=instrument.venue
            )

        asset_id = encode_asset_id(entry.kind, entry.venue, entry.index, self.venues)

        self.logger.debug(
            "Resolved asset id",
            symbol=entry.symbol,
            kind=entry.kind.value,
            venue=entry.venue or "default",
            index=entry.index,
            asset_id=asset_id
        )
        return asset_id


def resolve_asset_id(
    instrument: Instrument,
    catalog: MarketCatalog,
    venues: VenueParams = _DEFAULT_VENUES
) -> int:
    """Resolve an instrument to its asset id against a catalog snapshot."""
    return AssetResolver(venues).resolve(instrument, catalog)
