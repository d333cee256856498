"""
Pipeline orchestration for vaultgraph.

Runs the processing phases in their fixed order and assembles the
finished site graph handed to the renderer.
"""

import time
from collections.abc import Iterable
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict

from .collections_store import CollectionStore, build_collection_store
from .config import Settings, settings as default_settings
from .diagnostics import DiagnosticLog
from .embeds import EmbedResolver
from .graph import LinkGraph, build_link_graph
from .indices import category_index, folder_tree, tag_index
from .loader import ContentFormatter, load_vault
from .models import FolderNode, RawCollection, RawDocument
from .render import EmbedRenderer
from .store import DocumentStore, build_store
from .utils import EmptyVaultError

logger = structlog.get_logger(__name__)


class SiteGraph(BaseModel):
    """Everything the renderer needs from one run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    documents: DocumentStore
    collections: CollectionStore
    graph: LinkGraph
    tags: dict[str, list[str]] = {}
    categories: dict[str, list[str]] = {}
    folders: list[FolderNode] = []
    diagnostics: DiagnosticLog


def build_site_graph(
    raw_documents: Iterable[RawDocument],
    raw_collections: Iterable[RawCollection] = (),
    config: Settings | None = None,
    renderer: EmbedRenderer | None = None,
    diagnostics: DiagnosticLog | None = None,
) -> SiteGraph:
    """Build the site graph from raw inputs.

    Phases: document store, link graph, collection evaluation, embed
    resolution, indices. Each phase works on the snapshot the previous
    one returned.

    Raises:
        EmptyVaultError: If there are no documents at all
    """
    config = config or default_settings
    diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
    raw_documents = list(raw_documents)
    if not raw_documents:
        raise EmptyVaultError("No documents to process")

    start_time = time.time()

    store = build_store(raw_documents, diagnostics, config.date_keys)
    graph, store = build_link_graph(store, diagnostics)

    collections = build_collection_store(raw_collections, diagnostics)
    collections = collections.evaluate(store, diagnostics)

    resolver = EmbedResolver(
        store,
        collections,
        renderer=renderer,
        diagnostics=diagnostics,
        max_depth=config.max_embed_depth,
        asset_extensions=config.asset_extensions,
    )
    store = resolver.resolve_all(store)

    site = SiteGraph(
        documents=store,
        collections=collections,
        graph=graph,
        tags=tag_index(store),
        categories=category_index(store),
        folders=folder_tree(store, collections),
        diagnostics=diagnostics,
    )

    logger.info(
        "site_graph_built",
        documents=len(store),
        collections=len(collections),
        diagnostics=len(diagnostics),
        duration_ms=round((time.time() - start_time) * 1000, 2),
    )
    return site


async def load_site_graph(
    vault_path: Path | None = None,
    formatter: ContentFormatter | None = None,
    config: Settings | None = None,
    renderer: EmbedRenderer | None = None,
) -> SiteGraph:
    """Read a vault from disk and build its site graph.

    Raises:
        VaultNotFoundError: If the vault folder is missing
        EmptyVaultError: If the vault holds no notes
    """
    diagnostics = DiagnosticLog()
    raw_documents, raw_collections = await load_vault(vault_path, formatter, diagnostics, config)
    return build_site_graph(raw_documents, raw_collections, config, renderer, diagnostics)
