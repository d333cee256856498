"""
Vault ingestion for vaultgraph.

Reads note and collection files from a vault folder concurrently and turns
them into raw inputs for the pipeline.
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiofiles
import structlog

from .config import Settings, settings as default_settings
from .diagnostics import DiagnosticCode, DiagnosticLog
from .models import FileStats, RawCollection, RawDocument
from .utils import VaultNotFoundError, extract_links, split_frontmatter

logger = structlog.get_logger(__name__)


class ContentFormatter(Protocol):
    """Turns raw note markup into the body stored on a document."""

    def format(self, path: str, body: str) -> str:
        ...


class PassthroughFormatter:
    """Keeps the markup as written. Embeds stay in their ![[...]] form."""

    def format(self, path: str, body: str) -> str:
        return body


def _is_hidden(rel_path: Path) -> bool:
    return any(part.startswith(".") for part in rel_path.parts)


def _stats(path: Path) -> FileStats:
    stat = path.stat()
    return FileStats(
        size=stat.st_size,
        mtime=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        ctime=datetime.fromtimestamp(stat.st_ctime, tz=timezone.utc),
    )


def discover_files(vault_path: Path, suffixes: tuple[str, ...]) -> list[Path]:
    """List vault files with the given suffixes, skipping hidden paths, sorted by relative path."""
    found = [
        path for path in vault_path.rglob("*")
        if path.suffix.lower() in suffixes
        and path.is_file()
        and not _is_hidden(path.relative_to(vault_path))
    ]
    return sorted(found, key=lambda p: p.relative_to(vault_path).as_posix())


async def _read(path: Path, semaphore: asyncio.Semaphore) -> str:
    async with semaphore:
        async with aiofiles.open(path, encoding="utf-8") as f:
            return await f.read()


async def _load_document(
    path: Path,
    vault_path: Path,
    formatter: ContentFormatter,
    semaphore: asyncio.Semaphore,
) -> RawDocument:
    rel_path = path.relative_to(vault_path).as_posix()
    content = await _read(path, semaphore)
    raw_metadata, body = split_frontmatter(content)
    return RawDocument(
        path=rel_path,
        raw_metadata=raw_metadata,
        body=formatter.format(rel_path, body),
        links=extract_links(content),
        source=content,
        stats=_stats(path),
    )


async def _load_collection(path: Path, vault_path: Path, semaphore: asyncio.Semaphore) -> RawCollection:
    return RawCollection(
        path=path.relative_to(vault_path).as_posix(),
        definition=await _read(path, semaphore),
    )


async def load_vault(
    vault_path: Path | None = None,
    formatter: ContentFormatter | None = None,
    diagnostics: DiagnosticLog | None = None,
    config: Settings | None = None,
) -> tuple[list[RawDocument], list[RawCollection]]:
    """Read every note and collection file under the vault.

    Files are read in parallel (bounded by max_concurrent_reads) and the
    results come back in sorted path order. A file that cannot be read is
    reported and skipped.

    Raises:
        VaultNotFoundError: If the vault root does not exist or is not a directory
    """
    config = config or default_settings
    vault_path = Path(vault_path or config.vault_path).expanduser()
    formatter = formatter or PassthroughFormatter()
    diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()

    if not vault_path.is_dir():
        raise VaultNotFoundError(f"Vault not found: {vault_path}")

    note_files = discover_files(vault_path, (config.note_suffix,))
    collection_files = discover_files(vault_path, (config.collection_suffix,))
    semaphore = asyncio.Semaphore(max(config.max_concurrent_reads, 1))

    results = await asyncio.gather(
        *[_load_document(path, vault_path, formatter, semaphore) for path in note_files],
        *[_load_collection(path, vault_path, semaphore) for path in collection_files],
        return_exceptions=True,
    )

    documents: list[RawDocument] = []
    collections: list[RawCollection] = []
    for path, result in zip(note_files + collection_files, results):
        if isinstance(result, (OSError, UnicodeDecodeError)):
            diagnostics.warn(
                DiagnosticCode.UNREADABLE_FILE,
                f"Could not read file: {result}",
                target=path.relative_to(vault_path).as_posix(),
            )
        elif isinstance(result, BaseException):
            raise result
        elif isinstance(result, RawDocument):
            documents.append(result)
        else:
            collections.append(result)

    logger.info(
        "vault_loaded",
        vault=str(vault_path),
        documents=len(documents),
        collections=len(collections),
    )
    return documents, collections
