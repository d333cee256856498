"""
Embed rendering interface.

The embed resolver decides what an embed marker becomes; an EmbedRenderer
decides what that looks like. The default renderer emits small HTML
wrappers the site templates style.
"""

import html
from typing import Protocol

from .diagnostics import DiagnosticCode
from .models import Collection, Document, ViewResult


class EmbedRenderer(Protocol):
    """Narrow interface the embed resolver renders through."""

    def document_embed(self, document: Document, content: str, display: str | None) -> str:
        ...

    def collection_embed(self, collection: Collection, result: ViewResult, display: str | None) -> str:
        ...

    def placeholder(self, code: DiagnosticCode, target: str, message: str) -> str:
        ...


class HtmlEmbedRenderer:
    """Minimal HTML for embedded content."""

    def document_embed(self, document: Document, content: str, display: str | None) -> str:
        title = html.escape(display or document.title)
        return (
            f'<div class="embed embed-note" data-embed-id="{html.escape(document.id)}">'
            f'<div class="embed-title">{title}</div>'
            f'<div class="embed-content">{content}</div>'
            f'</div>'
        )

    def collection_embed(self, collection: Collection, result: ViewResult, display: str | None) -> str:
        # The browser-side renderer draws the view from this descriptor.
        ids = html.escape(",".join(result.document_ids))
        return (
            f'<div class="embed embed-base" data-base-id="{html.escape(collection.id)}" '
            f'data-view-name="{html.escape(result.view.name)}" '
            f'data-view-type="{result.view.type}" '
            f'data-documents="{ids}">'
            f'<div class="embed-title">{html.escape(display or collection.title)}</div>'
            f'</div>'
        )

    def placeholder(self, code: DiagnosticCode, target: str, message: str) -> str:
        return (
            f'<div class="embed embed-error" data-embed-error="{code.value}" '
            f'data-embed-target="{html.escape(target)}">{html.escape(message)}</div>'
        )
