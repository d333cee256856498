"""
Embed resolution for vaultgraph.

Expands embed markers in formatted document bodies, recursively, into
rendered embedded content. Recognised markers:

- the formatter's placeholder element:
  <div class="embed-placeholder" data-embed-target="Note" data-embed-view="..." data-embed-display="..."></div>
- the bare wiki form: ![[Note]], ![[Note#Heading]], ![[Projects.base#Board|Label]]

Cycles, excessive nesting and missing targets render inline placeholders
and are reported as diagnostics.
"""

import html
import re
from collections.abc import Iterable
from pathlib import PurePosixPath

import structlog

from .collections_store import CollectionStore
from .config import settings
from .diagnostics import DiagnosticCode, DiagnosticLog
from .models import Collection, Document, ViewResult
from .render import EmbedRenderer, HtmlEmbedRenderer
from .store import DocumentStore

logger = structlog.get_logger(__name__)

EMBED_MARKER_PATTERN = re.compile(
    r'<div class="embed-placeholder"(?P<attrs>[^>]*)>\s*</div>'
    r'|!\[\[(?P<target>[^\]|#]+)(?:#(?P<fragment>[^\]|]*))?(?:\|(?P<display>[^\]]*))?\]\]'
)
EMBED_ATTR_PATTERN = re.compile(r'data-embed-(target|view|display)="([^"]*)"')


def parse_marker(match: re.Match) -> tuple[str, str | None, str | None]:
    """Return (target, fragment, display) for a matched embed marker."""
    if match.group("attrs") is not None:
        attrs = {key: html.unescape(value) for key, value in EMBED_ATTR_PATTERN.findall(match.group("attrs"))}
        target = attrs.get("target", "")
        fragment = attrs.get("view") or None
        if fragment is None and "#" in target:
            target, fragment = target.split("#", 1)
        return target.strip(), (fragment or "").strip() or None, attrs.get("display") or None

    fragment = (match.group("fragment") or "").strip() or None
    display = (match.group("display") or "").strip() or None
    return match.group("target").strip(), fragment, display


class EmbedResolver:
    """Expands embeds against a document store and an evaluated collection store.

    Each top-level resolve() walks its own embed path; a target already on
    the path is a cycle. Depth counts nested embeds below the top-level
    document.
    """

    def __init__(
        self,
        store: DocumentStore,
        collections: CollectionStore,
        renderer: EmbedRenderer | None = None,
        diagnostics: DiagnosticLog | None = None,
        max_depth: int | None = None,
        asset_extensions: Iterable[str] | None = None,
    ):
        self.store = store
        self.collections = collections
        self.renderer = renderer or HtmlEmbedRenderer()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.max_depth = settings.max_embed_depth if max_depth is None else max_depth
        extensions = settings.asset_extensions if asset_extensions is None else asset_extensions
        self.asset_extensions = {ext.lower() for ext in extensions}
        self.collection_suffix = settings.collection_suffix

    def resolve(self, document: Document) -> str:
        """Return the document's body with every embed expanded."""
        return self._expand(document.body, [document.id])

    def resolve_all(self, store: DocumentStore | None = None) -> DocumentStore:
        """Resolve every document; returns a new store snapshot with expanded bodies."""
        store = store or self.store
        updated = [
            document.model_copy(update={"expanded_body": self.resolve(document)})
            for document in store
        ]
        logger.info("embeds_resolved", documents=len(updated))
        return store.replace(updated)

    def _is_asset(self, target: str) -> bool:
        return PurePosixPath(target).suffix.lower() in self.asset_extensions

    def _expand(self, body: str, path: list[str]) -> str:
        def replace(match: re.Match) -> str:
            target, fragment, display = parse_marker(match)
            if not target or self._is_asset(target):
                return match.group(0)
            return self._embed(target, fragment, display, path)

        return EMBED_MARKER_PATTERN.sub(replace, body)

    def _lookup(self, target: str) -> Document | Collection | None:
        if target.lower().endswith(self.collection_suffix):
            return self.collections.resolve(target) or self.store.resolve(target)
        return self.store.resolve(target) or self.collections.resolve(target)

    def _embed(self, target: str, fragment: str | None, display: str | None, path: list[str]) -> str:
        container = path[-1]
        found = self._lookup(target)

        if found is None:
            message = f"Embed target '{target}' not found"
            self.diagnostics.warn(DiagnosticCode.BROKEN_EMBED, message, document_id=container, target=target)
            return self.renderer.placeholder(DiagnosticCode.BROKEN_EMBED, target, message)

        if isinstance(found, Collection):
            return self._embed_collection(found, fragment, display, container)

        if found.id in path:
            message = f"Embedding '{found.id}' here would loop: {' -> '.join(path + [found.id])}"
            self.diagnostics.warn(DiagnosticCode.CYCLE_DETECTED, message, document_id=container, target=found.id)
            return self.renderer.placeholder(DiagnosticCode.CYCLE_DETECTED, target, message)

        # path[0] is the top-level document
        if len(path) > self.max_depth:
            message = f"Embed of '{found.id}' exceeds maximum depth {self.max_depth}"
            self.diagnostics.warn(
                DiagnosticCode.EMBED_DEPTH_EXCEEDED, message, document_id=container, target=found.id
            )
            return self.renderer.placeholder(DiagnosticCode.EMBED_DEPTH_EXCEEDED, target, message)

        if fragment:
            self.diagnostics.info(
                DiagnosticCode.HEADING_UNSUPPORTED,
                f"Section '{fragment}' of '{found.id}' embedded as the whole document",
                document_id=container,
                target=found.id,
            )

        path.append(found.id)
        try:
            content = self._expand(found.body, path)
        finally:
            path.pop()
        return self.renderer.document_embed(found, content, display)

    def _embed_collection(
        self,
        collection: Collection,
        fragment: str | None,
        display: str | None,
        container: str,
    ) -> str:
        view = collection.find_view(fragment)
        if fragment and view is None:
            self.diagnostics.warn(
                DiagnosticCode.UNKNOWN_VIEW,
                f"Collection '{collection.id}' has no view '{fragment}'; using the default view",
                document_id=container,
                target=collection.id,
            )
        view = view or collection.default_view()
        result = collection.results.get(view.name) or ViewResult(view=view)
        return self.renderer.collection_embed(collection, result, display)
