"""
Configuration module for vaultgraph.

Uses pydantic-settings for configuration management with environment variable support.
Environment variables use VAULTGRAPH_ prefix (e.g., VAULTGRAPH_VAULT_PATH).
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_default_vault_path() -> Path:
    """Get default vault path."""
    return Path.home() / "Documents" / "Vault"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Environment variables:
    - VAULTGRAPH_VAULT_PATH: Path to the vault to process
    - VAULTGRAPH_CACHE_TTL: Lifetime of a built site graph in seconds
    - VAULTGRAPH_MAX_EMBED_DEPTH: Maximum nesting of embedded documents
    - VAULTGRAPH_MAX_CONCURRENT_READS: Concurrent file reads during ingestion
    - VAULTGRAPH_LOG_LEVEL: Minimum log level (DEBUG, INFO, WARNING, ...)
    """

    vault_path: Path = Field(default_factory=_get_default_vault_path)
    cache_ttl: int = 60
    max_embed_depth: int = 4
    max_concurrent_reads: int = 32
    search_snippet_length: int = 500
    log_level: str = "INFO"

    # Metadata keys whose string values are parsed as dates
    date_keys: list[str] = ["date", "created", "updated", "modified", "published", "due"]

    # Embeds of these are assets for the formatter, not documents
    asset_extensions: list[str] = [
        ".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".bmp", ".pdf", ".mp3", ".mp4",
    ]

    note_suffix: str = ".md"
    collection_suffix: str = ".base"

    model_config = SettingsConfigDict(env_prefix="VAULTGRAPH_")


# Global settings instance
settings = Settings()
