"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ConfigIssue:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_precision_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate precision parameters."""
        errors = []

        for name in ("perp_max_decimals", "spot_max_decimals", "sub_unit_price_decimals", "usdc_decimals"):
            if name in params:
                value = params[name]
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    errors.append(ConfigIssue(
                        field=name,
                        message="Must be a non-negative integer",
                        value=value
                    ))

        if "significant_figures" in params:
            value = params["significant_figures"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ConfigIssue(
                    field="significant_figures",
                    message="Must be a positive integer",
                    value=value
                ))

        if "min_order_value" in params:
            value = params["min_order_value"]
            if not _is_number(value) or value < 0:
                errors.append(ConfigIssue(
                    field="min_order_value",
                    message="Must be a non-negative number",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_slippage_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate market-order slippage offsets."""
        errors = []

        for name, value in params.items():
            if not _is_number(value) or value < 0 or value >= 1:
                errors.append(ConfigIssue(
                    field=name,
                    message="Must be a number between 0 and 1",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_refresh_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate post-success refresh delays."""
        errors = []

        for name, value in params.items():
            if not _is_number(value) or value < 0:
                errors.append(ConfigIssue(
                    field=name,
                    message="Must be a non-negative number of seconds",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_venue_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate asset id encoding parameters."""
        errors = []

        for name in ("spot_offset", "venue_base", "venue_stride"):
            if name in params:
                value = params[name]
                if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                    errors.append(ConfigIssue(
                        field=name,
                        message="Must be a positive integer",
                        value=value
                    ))

        indices = params.get("venue_indices", {})
        if not isinstance(indices, dict):
            errors.append(ConfigIssue(
                field="venue_indices",
                message="Must be a mapping of venue name to index",
                value=indices
            ))
        else:
            for venue, index in indices.items():
                if not venue or not isinstance(index, int) or isinstance(index, bool) or index < 1:
                    errors.append(ConfigIssue(
                        field=f"venue_indices.{venue}",
                        message="Venue index must be an integer >= 1",
                        value=index
                    ))
            seen = list(indices.values())
            if len(seen) != len(set(seen)):
                errors.append(ConfigIssue(
                    field="venue_indices",
                    message="Venue indices must be unique",
                    value=indices
                ))

        return errors

    @staticmethod
    def validate_staking_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate staking and bridge parameters."""
        errors = []

        for name in ("wei_decimals", "amount_decimals"):
            if name in params:
                value = params[name]
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    errors.append(ConfigIssue(
                        field=name,
                        message="Must be a non-negative integer",
                        value=value
                    ))

        if "min_deposit_usdc" in params:
            value = params["min_deposit_usdc"]
            if not _is_number(value) or value < 0:
                errors.append(ConfigIssue(
                    field="min_deposit_usdc",
                    message="Must be a non-negative number",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ConfigIssue]:
        """Validate complete configuration."""
        errors = []

        if "precision" in config:
            errors.extend(ConfigValidator.validate_precision_params(config["precision"]))

        if "slippage" in config:
            errors.extend(ConfigValidator.validate_slippage_params(config["slippage"]))

        if "refresh" in config:
            errors.extend(ConfigValidator.validate_refresh_params(config["refresh"]))

        if "venues" in config:
            errors.extend(ConfigValidator.validate_venue_params(config["venues"]))

        if "staking" in config:
            errors.extend(ConfigValidator.validate_staking_params(config["staking"]))

        return errors
