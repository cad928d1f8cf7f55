"""Configuration schema and loading."""

from store_scrap.config.loader import YamlConfigLoader
from store_scrap.config.models import AppConfig, ConfigLoadRequest

__all__ = ["AppConfig", "ConfigLoadRequest", "YamlConfigLoader"]
