"""
Document store for vaultgraph.

Assembles raw documents into an in-memory map of canonical ID -> Document
and resolves link text against it.
"""

from collections.abc import Iterable, Iterator

import structlog

from .config import settings
from .diagnostics import DiagnosticCode, DiagnosticLog
from .identifiers import IdentifierRegistry, basename, normalize
from .models import Document, RawDocument
from .utils import MetadataError, parse_date, parse_metadata

logger = structlog.get_logger(__name__)


def split_link(link_text: str) -> tuple[str, str | None]:
    """Split "Target#Section|Display" into (target, section)."""
    target = link_text.split("|", 1)[0]
    section = None
    if "#" in target:
        target, section = target.split("#", 1)
        section = section.strip() or None
    return target.strip(), section


class DocumentStore:
    """Read-only snapshot of all documents for one run.

    Iteration follows insertion order. Lookup of link text goes canonical
    ID -> file stem -> title, each a dict lookup.
    """

    def __init__(
        self,
        documents: dict[str, Document] | None = None,
        by_stem: dict[str, str] | None = None,
        by_title: dict[str, str] | None = None,
    ):
        self._documents: dict[str, Document] = dict(documents or {})
        self._by_stem: dict[str, str] = dict(by_stem or {})
        self._by_title: dict[str, str] = dict(by_title or {})

    def __iter__(self) -> Iterator[Document]:
        return iter(self._documents.values())

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._documents

    @property
    def ids(self) -> list[str]:
        return list(self._documents)

    def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    def resolve(self, link_text: str) -> Document | None:
        """Find the document a link or embed target refers to.

        Accepts full relative paths ("Projects/Alpha.md"), bare names
        ("Alpha"), titles, and targets carrying "#section" or "|display".
        """
        target, _ = split_link(link_text)
        if not target:
            return None

        key = normalize(target)
        if key in self._documents:
            return self._documents[key]

        stem_key = normalize(basename(target))
        if stem_key in self._by_stem:
            return self._documents[self._by_stem[stem_key]]

        if key in self._by_title:
            return self._documents[self._by_title[key]]
        return None

    def replace(self, documents: Iterable[Document]) -> "DocumentStore":
        """Return a new snapshot with the given documents swapped in by ID."""
        updated = dict(self._documents)
        for document in documents:
            if document.id not in updated:
                raise KeyError(f"Unknown document id: {document.id}")
            updated[document.id] = document
        return DocumentStore(updated, self._by_stem, self._by_title)


def _clean_path(path: str) -> str:
    return path.replace("\\", "/").lstrip("/")


def _folder_of(path: str) -> str:
    parts = path.rsplit("/", 1)
    return parts[0] if len(parts) == 2 else ""


def _coerce_dates(
    metadata: dict,
    document_id: str,
    diagnostics: DiagnosticLog,
    date_keys: Iterable[str],
) -> dict:
    """Parse string values under date keys; unparseable ones stay strings."""
    result = dict(metadata)
    for key in date_keys:
        value = result.get(key)
        if not isinstance(value, str) or not value.strip():
            continue
        parsed = parse_date(value)
        if parsed is None:
            diagnostics.warn(
                DiagnosticCode.UNPARSEABLE_DATE,
                f"Could not parse '{key}' value {value!r} as a date",
                document_id=document_id,
            )
        else:
            result[key] = parsed
    return result


def build_store(
    raw_documents: Iterable[RawDocument],
    diagnostics: DiagnosticLog,
    date_keys: Iterable[str] | None = None,
) -> DocumentStore:
    """Build the document store from raw documents.

    - A malformed metadata block stores the document with empty metadata.
    - Two documents normalizing to the same ID: the first keeps it, later
      ones get a suffixed ID and record which ID they shadow.
    """
    date_keys = list(settings.date_keys if date_keys is None else date_keys)
    raw_documents = list(raw_documents)
    registry = IdentifierRegistry(normalize(_clean_path(raw.path)) for raw in raw_documents)
    documents: dict[str, Document] = {}
    by_stem: dict[str, str] = {}
    by_title: dict[str, str] = {}

    for raw in raw_documents:
        path = _clean_path(raw.path)
        base_id = normalize(path)
        document_id, collided = registry.assign(base_id)

        if collided:
            first = documents.get(base_id)
            diagnostics.warn(
                DiagnosticCode.IDENTIFIER_COLLISION,
                f"'{path}' normalizes to '{base_id}' already used by "
                f"'{first.path if first else base_id}'; stored as '{document_id}'",
                document_id=document_id,
                target=base_id,
            )

        try:
            metadata = parse_metadata(raw.raw_metadata)
        except MetadataError as e:
            diagnostics.warn(
                DiagnosticCode.MALFORMED_METADATA,
                f"Ignoring metadata block: {e}",
                document_id=document_id,
            )
            metadata = {}

        metadata = _coerce_dates(metadata, document_id, diagnostics, date_keys)

        name = basename(path)
        stem = name[: -len(settings.note_suffix)] if name.endswith(settings.note_suffix) else name
        title = metadata.get("title")
        title = str(title).strip() if title is not None and str(title).strip() else stem

        document = Document(
            id=document_id,
            title=title,
            path=path,
            folder=_folder_of(path),
            source=raw.source,
            body=raw.body,
            metadata=metadata,
            links=list(raw.links),
            stats=raw.stats,
            shadows=base_id if collided else None,
        )
        documents[document_id] = document
        by_stem.setdefault(normalize(stem), document_id)
        by_title.setdefault(normalize(title), document_id)

    logger.info("store_built", documents=len(documents))
    return DocumentStore(documents, by_stem, by_title)
