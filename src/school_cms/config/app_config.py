"""Application configuration loader.

Loads centralized configuration from config/school_cms.yaml (or the file
named by $SCHOOL_CMS_CONFIG) on top of built-in defaults, then applies
environment overrides.

Usage:
    from school_cms.config.app_config import load_app_config

    config = load_app_config()
    db_path = config.storage.db_path
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("config/school_cms.yaml")
CONFIG_ENV = "SCHOOL_CMS_CONFIG"

DEFAULT_JWT_SECRET = "school-management-secret-key-2025"


@dataclass
class ServerConfig:
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = 8083
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    frontend_dist: str = "dist"
    log_format: str = "console"  # console | json


@dataclass
class AuthConfig:
    """Token and password hashing settings."""

    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    token_expiry_days: int = 7
    bcrypt_rounds: int = 10


@dataclass
class StorageConfig:
    """Database and upload locations."""

    db_path: str = "data/school.db"
    uploads_dir: str = "data/uploads"
    max_file_size: int = 1024 * 1024 * 1024  # 1 GiB per file
    max_files_per_upload: int = 10


@dataclass
class SeedConfig:
    """Data inserted on first initialization."""

    admin_username: str = "admin"
    admin_password: str = "admin123"
    admin_full_name: str = "Administrator"
    subjects: list[dict[str, str]] = field(default_factory=list)


@dataclass
class AppConfig:
    """Application-wide configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    seed: SeedConfig = field(default_factory=SeedConfig)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "server": {
            "host": "0.0.0.0",
            "port": 8083,
            "cors_origins": ["*"],
            "frontend_dist": "dist",
            "log_format": "console",
        },
        "auth": {
            "jwt_secret": DEFAULT_JWT_SECRET,
            "jwt_algorithm": "HS256",
            "token_expiry_days": 7,
            "bcrypt_rounds": 10,
        },
        "storage": {
            "db_path": "data/school.db",
            "uploads_dir": "data/uploads",
            "max_file_size": 1024 * 1024 * 1024,
            "max_files_per_upload": 10,
        },
        "seed": {
            "admin_username": "admin",
            "admin_password": "admin123",
            "admin_full_name": "Administrator",
            "subjects": [
                {"id": "1", "name": "رياضيات", "description": "Mathematics"},
                {"id": "2", "name": "عربي", "description": "Arabic Language"},
                {"id": "3", "name": "إنكليزي", "description": "English Language"},
                {"id": "4", "name": "أمن الشبكات", "description": "Network Security"},
                {
                    "id": "5",
                    "name": "حماية أنظمة التشغيل",
                    "description": "Operating System Protection",
                },
                {"id": "6", "name": "القرآن الكريم", "description": "Holy Quran"},
                {"id": "7", "name": "التطبيقات", "description": "Applications"},
                {
                    "id": "8",
                    "name": "أساسيات الأمن السيبراني",
                    "description": "Cybersecurity Fundamentals",
                },
            ],
        },
    }


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base (override wins)."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides."""
    if secret := os.environ.get("JWT_SECRET"):
        data["auth"]["jwt_secret"] = secret
    if port := os.environ.get("PORT"):
        data["server"]["port"] = int(port)
    if db_path := os.environ.get("SCHOOL_CMS_DB_PATH"):
        data["storage"]["db_path"] = db_path
    if uploads_dir := os.environ.get("SCHOOL_CMS_UPLOADS_DIR"):
        data["storage"]["uploads_dir"] = uploads_dir
    return data


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    server = data.get("server", {})
    auth = data.get("auth", {})
    storage = data.get("storage", {})
    seed = data.get("seed", {})

    return AppConfig(
        server=ServerConfig(
            host=server.get("host", "0.0.0.0"),
            port=int(server.get("port", 8083)),
            cors_origins=list(server.get("cors_origins", ["*"])),
            frontend_dist=server.get("frontend_dist", "dist"),
            log_format=server.get("log_format", "console"),
        ),
        auth=AuthConfig(
            jwt_secret=auth.get("jwt_secret", DEFAULT_JWT_SECRET),
            jwt_algorithm=auth.get("jwt_algorithm", "HS256"),
            token_expiry_days=int(auth.get("token_expiry_days", 7)),
            bcrypt_rounds=int(auth.get("bcrypt_rounds", 10)),
        ),
        storage=StorageConfig(
            db_path=storage.get("db_path", "data/school.db"),
            uploads_dir=storage.get("uploads_dir", "data/uploads"),
            max_file_size=int(storage.get("max_file_size", 1024 * 1024 * 1024)),
            max_files_per_upload=int(storage.get("max_files_per_upload", 10)),
        ),
        seed=SeedConfig(
            admin_username=seed.get("admin_username", "admin"),
            admin_password=seed.get("admin_password", "admin123"),
            admin_full_name=seed.get("admin_full_name", "Administrator"),
            subjects=list(seed.get("subjects", [])),
        ),
    )


def _config_path() -> Path:
    env_path = os.environ.get(CONFIG_ENV)
    return Path(env_path) if env_path else CONFIG_FILE


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data = _get_defaults()
    config_path = _config_path()

    if config_path.exists():
        logger.debug("loading_app_config", source=str(config_path))
        file_data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        data = _merge(data, file_data)
    else:
        logger.debug("using_default_config")

    _cached_config = _parse_config(_apply_env_overrides(data))
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
