"""Configuration for the aya runtime."""

from aya.config.loader import get_config_path, load_config, save_config
from aya.config.schema import AyaConfig

__all__ = ["AyaConfig", "get_config_path", "load_config", "save_config"]
