"""
config.py - Configuration model for ReelName
"""

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from reelname.errors import ConfigError

try:
    import tomllib
except ModuleNotFoundError:
    import tomli as tomllib

TMDB_API_KEY_ENV = "TMDB_API_KEY"


class CatalogConfig(BaseModel):
    api_key: str = ""
    base_url: str = "https://api.themoviedb.org/3"
    language: str = "en-US"
    timeout: float = Field(default=10.0, gt=0)
    rate_limit_quota: int = Field(
        default=35,
        ge=1,
        description="Maximum catalog requests inside one rolling window (TMDB allows 40 per 10s)"
    )
    rate_limit_window: float = Field(
        default=10.0,
        gt=0,
        description="Length of the rolling rate-limit window in seconds"
    )


class MatchingConfig(BaseModel):
    """Parameters that control the auto-match policy."""

    auto_match_threshold: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="Minimum top confidence for accepting a match without review"
    )


class TransferConfig(BaseModel):
    max_concurrent_transfers: int = Field(default=2, ge=1)
    chunk_size: int = Field(default=1024 * 1024, ge=4096)
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds allowed for establishing an SSH session"
    )
    known_hosts: Optional[str] = Field(
        default=None,
        description="known_hosts file for SSH host key checks; unset disables checking"
    )


class NamingConfig(BaseModel):
    preset: Literal["jellyfin", "plex"] = "jellyfin"
    specials_folder_name: str = "Specials"
    extras_folder_name: str = "Extras"


class StoreConfig(BaseModel):
    path: Path = Path("reelname.db")


class ReelNameConfig(BaseModel):
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    naming: NamingConfig = Field(default_factory=NamingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    config_path: Optional[Path] = None


def load_config(config_path: Path) -> ReelNameConfig:
    """Load configuration from TOML file"""

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}\n"
            "Create config.toml with your TMDB API key and store path."
        )

    try:
        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"TOML parse error in {config_path}: {e}") from e

    try:
        config = ReelNameConfig(
            catalog=CatalogConfig(**config_data.get("catalog", {})),
            matching=MatchingConfig(**config_data.get("matching", {})),
            transfer=TransferConfig(**config_data.get("transfer", {})),
            naming=NamingConfig(**config_data.get("naming", {})),
            store=StoreConfig(**config_data.get("store", {})),
            config_path=config_path,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e

    if not config.catalog.api_key:
        config.catalog.api_key = os.environ.get(TMDB_API_KEY_ENV, "")

    # Relative store paths live next to the config file.
    if not config.store.path.is_absolute():
        config.store.path = config_path.parent / config.store.path

    return config
