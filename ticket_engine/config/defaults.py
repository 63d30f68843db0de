"""Default configuration parameters for order construction and transactions."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PrecisionParams:
    """Exchange precision rules for prices, sizes and balance moves."""
    perp_max_decimals: int = 6                       # Price decimals cap for perps
    spot_max_decimals: int = 8                       # Price decimals cap for spot
    significant_figures: int = 5                     # Max significant figures in a price
    sub_unit_price_decimals: int = 6                 # Decimals allowed for prices below 1
    usdc_decimals: int = 6                           # USDC transfer precision
    min_order_value: float = 10.0                    # Exchange minimum notional (USD)


@dataclass(frozen=True)
class SlippageParams:
    """Protective offsets applied when pricing market orders."""
    perp_mid_offset: float = 0.001                   # 10 bps fallback against a stale mid
    spot_mid_offset: float = 0.01                    # 1% fallback for spot without a book
    book_slippage: float = 0.02                      # IOC allowance against best bid/ask
    close_position_offset: float = 0.001             # Reduce-only close against mid


@dataclass(frozen=True)
class RefreshParams:
    """Delay (seconds) before re-reading account state after a success."""
    perp_order: float = 1.0
    spot_order: float = 2.0
    close_position: float = 2.0
    tpsl_edit: float = 1.5
    withdraw: float = 5.0
    perp_spot_transfer: float = 3.0
    staking_transfer: float = 3.0
    delegate: float = 3.0
    deposit: float = 3.0


def _default_venue_indices() -> dict[str, int]:
    return {"xyz": 1, "flx": 2, "vntl": 3, "hyna": 4}


def _default_venue_collateral() -> dict[str, str]:
    return {"xyz": "USDC", "flx": "USDH", "vntl": "USDH", "hyna": "USDE"}


@dataclass(frozen=True)
class VenueParams:
    """Asset identifier encoding for default and alternate venues."""
    spot_offset: int = 10000                         # Spot ids live above the perp space
    venue_base: int = 100000                         # First id of alternate-venue perps
    venue_stride: int = 10000                        # Id range reserved per venue
    default_collateral: str = "USDC"
    venue_indices: dict[str, int] = field(default_factory=_default_venue_indices)
    venue_collateral: dict[str, str] = field(default_factory=_default_venue_collateral)


@dataclass(frozen=True)
class StakingParams:
    """Staking and bridge parameters."""
    native_token: str = "HYPE"
    wei_decimals: int = 8                            # Native token wei precision
    amount_decimals: int = 8                         # Decimals accepted for staking amounts
    min_deposit_usdc: float = 5.0                    # Bridge minimum
    default_validator: str = ""


@dataclass(frozen=True)
class EngineConfig:
    """Complete engine configuration."""
    precision: PrecisionParams
    slippage: SlippageParams
    refresh: RefreshParams
    venues: VenueParams
    staking: StakingParams


def get_default_config() -> EngineConfig:
    """Get the default configuration instance."""
    return EngineConfig(
        precision=PrecisionParams(),
        slippage=SlippageParams(),
        refresh=RefreshParams(),
        venues=VenueParams(),
        staking=StakingParams(),
    )
