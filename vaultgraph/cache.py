"""
In-memory cache module for vaultgraph.

Contains the SiteGraphCache class that keeps the last built site graph.
"""

import time
from pathlib import Path

import structlog

from .config import Settings, settings
from .loader import discover_files
from .pipeline import SiteGraph, load_site_graph

logger = structlog.get_logger(__name__)


class SiteGraphCache:
    """Keeps a built site graph in memory. Avoids rebuilding on every request.

    When the TTL expires the vault's file listing and mtimes are compared
    with the last build; the graph is only rebuilt when something changed.
    """

    def __init__(self, vault_path: Path, ttl: int = 60, config: Settings | None = None):
        self.vault_path = Path(vault_path).expanduser()
        self.ttl = ttl
        self.config = config or settings
        self._site: SiteGraph | None = None
        self._fingerprint: dict[str, float] = {}
        self._loaded_at: float = 0

    @property
    def is_stale(self) -> bool:
        return (time.time() - self._loaded_at) > self.ttl

    def _scan(self) -> dict[str, float]:
        """Relative path -> mtime for every note and collection file."""
        if not self.vault_path.is_dir():
            return {}
        fingerprint: dict[str, float] = {}
        suffixes = (self.config.note_suffix, self.config.collection_suffix)
        for path in discover_files(self.vault_path, suffixes):
            try:
                fingerprint[path.relative_to(self.vault_path).as_posix()] = path.stat().st_mtime
            except OSError:
                # File was deleted between listing and stat
                continue
        return fingerprint

    async def refresh(self, force: bool = False) -> None:
        """Rebuild the site graph if the cache is stale and the vault changed.

        Args:
            force: If True, rebuilds regardless of TTL and file state.
        """
        if not force and not self.is_stale:
            return

        start_time = time.time()
        fingerprint = self._scan()

        if not force and self._site is not None and fingerprint == self._fingerprint:
            refresh_type = "unchanged"
        else:
            self._site = await load_site_graph(self.vault_path, config=self.config)
            self._fingerprint = fingerprint
            refresh_type = "full"

        self._loaded_at = time.time()
        logger.info(
            "cache_refreshed",
            refresh_type=refresh_type,
            files=len(fingerprint),
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )

    async def get_site(self) -> SiteGraph:
        """Return the current site graph, rebuilding it when needed."""
        await self.refresh()
        return self._site

    def invalidate(self) -> None:
        """Force the next access to rebuild."""
        self._loaded_at = 0
        self._fingerprint = {}


# Global cache instance
site_cache = SiteGraphCache(settings.vault_path, settings.cache_ttl)
