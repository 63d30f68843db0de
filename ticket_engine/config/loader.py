"""Configuration loader with 3-tier parameter precedence."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

from ..errors import ValidationError
from .defaults import (
    EngineConfig,
    PrecisionParams,
    RefreshParams,
    SlippageParams,
    StakingParams,
    VenueParams,
    get_default_config,
)
from .validation import ConfigValidator

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: EngineConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def load_file_config(self) -> dict[str, Any]:
        """Load deployment overrides from engine.yaml."""
        config_file = self.config_dir / "engine.yaml"

        if not config_file.exists():
            return {}

        with open(config_file) as f:
            file_config = yaml.safe_load(f)

        return file_config or {}

    def merge_config(self, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides (highest priority)
        2. engine.yaml in the config directory
        3. Global defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)

        config = self._deep_merge(config, self.load_file_config())

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def load(self, overrides: Optional[dict[str, Any]] = None) -> EngineConfig:
        """Merge, validate and build a typed EngineConfig."""
        merged = self.merge_config(overrides)

        issues = ConfigValidator.validate_config(merged)
        if issues:
            messages = [f"{issue.field}: {issue.message} (got: {issue.value})" for issue in issues]
            logger.error("Configuration validation failed", errors=messages)
            raise ValidationError(
                "Invalid engine configuration: " + "; ".join(messages),
                field=issues[0].field,
                context={"errors": messages},
            )

        return EngineConfig(
            precision=PrecisionParams(**merged["precision"]),
            slippage=SlippageParams(**merged["slippage"]),
            refresh=RefreshParams(**merged["refresh"]),
            venues=VenueParams(**merged["venues"]),
            staking=StakingParams(**merged["staking"]),
        )

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name, _field in obj.__dataclass_fields__.items():
                value = getattr(obj, field_name)
                if hasattr(value, '__dataclass_fields__'):
                    result[field_name] = self._dataclass_to_dict(value)
                elif isinstance(value, dict):
                    result[field_name] = dict(value)
                else:
                    result[field_name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
