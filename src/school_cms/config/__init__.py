"""Configuration package for the school CMS."""

from school_cms.config.app_config import (
    AppConfig,
    AuthConfig,
    SeedConfig,
    ServerConfig,
    StorageConfig,
    clear_config_cache,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "AuthConfig",
    "SeedConfig",
    "ServerConfig",
    "StorageConfig",
    "clear_config_cache",
    "load_app_config",
]
