"""
Engine configuration: typed defaults, YAML overrides and validation.
"""
from .defaults import EngineConfig, get_default_config
from .loader import ConfigLoader

__all__ = ["EngineConfig", "ConfigLoader", "get_default_config"]
