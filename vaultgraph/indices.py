"""
Aggregate indices over a finished graph.

Tag and category lookups, the navigation folder tree, and the search
index the site's client-side search loads.
"""

from collections.abc import Iterable

from .collections_store import CollectionStore
from .config import settings
from .models import FolderNode
from .store import DocumentStore
from .utils import WHITESPACE_PATTERN, clean_wikilink


def tag_index(store: DocumentStore) -> dict[str, list[str]]:
    """Map each tag to the IDs of documents carrying it, in store order."""
    tags: dict[str, list[str]] = {}
    for document in store:
        for tag in document.tags:
            ids = tags.setdefault(tag, [])
            if document.id not in ids:
                ids.append(document.id)
    return tags


def category_index(store: DocumentStore, key: str = "categories") -> dict[str, list[str]]:
    """Map each category to document IDs. Values like "[[Projects]]" index as "Projects"."""
    categories: dict[str, list[str]] = {}
    for document in store:
        raw = document.metadata.get(key)
        if raw is None:
            continue
        values = raw if isinstance(raw, (list, tuple)) else [raw]
        for value in values:
            if value is None:
                continue
            category = clean_wikilink(str(value))
            if not category:
                continue
            ids = categories.setdefault(category, [])
            if document.id not in ids:
                ids.append(document.id)
    return categories


def _sort_tree(nodes: list[FolderNode]) -> list[FolderNode]:
    ordered = sorted(nodes, key=lambda n: (n.type != "folder", n.name.lower()))
    for node in ordered:
        if node.children:
            node.children = _sort_tree(node.children)
    return ordered


def folder_tree(store: DocumentStore, collections: CollectionStore | None = None) -> list[FolderNode]:
    """Build the navigation tree. Folders come first, then files, each alphabetical."""
    folders: dict[str, FolderNode] = {}
    roots: list[FolderNode] = []

    def parent_for(folder: str) -> list[FolderNode]:
        siblings = roots
        current = ""
        for part in [p for p in folder.split("/") if p]:
            current = f"{current}/{part}" if current else part
            node = folders.get(current)
            if node is None:
                node = FolderNode(name=part, path=current, type="folder")
                folders[current] = node
                siblings.append(node)
            siblings = node.children
        return siblings

    for document in store:
        parent_for(document.folder).append(
            FolderNode(name=document.title, path=document.path, type="file", document_id=document.id)
        )
    for collection in collections or []:
        parent_for(collection.folder).append(
            FolderNode(name=collection.title, path=collection.path, type="collection", collection_id=collection.id)
        )

    return _sort_tree(roots)


def search_index(store: DocumentStore, snippet_length: int | None = None) -> list[dict]:
    """Entries for client-side search: id, title, path, tags, and truncated text."""
    length = settings.search_snippet_length if snippet_length is None else snippet_length
    entries = []
    for document in store:
        text = WHITESPACE_PATTERN.sub(" ", document.body).strip()
        entries.append({
            "id": document.id,
            "title": document.title,
            "path": document.path,
            "tags": document.tags,
            "content": text[:length],
        })
    return entries


def documents_for(ids: Iterable[str], store: DocumentStore) -> list[dict]:
    """Short summaries for a list of document IDs, skipping unknown IDs."""
    summaries = []
    for doc_id in ids:
        document = store.get(doc_id)
        if document is not None:
            summaries.append({"id": document.id, "title": document.title, "path": document.path})
    return summaries
