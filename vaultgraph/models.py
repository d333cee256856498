"""
Pydantic models for vaultgraph.

Contains data models for raw inputs, documents, collections and their views,
view results, and the folder tree handed to the renderer.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from .filters import FilterExpr
from .identifiers import basename

ViewType = Literal["table", "cards", "calendar"]
SortDirection = Literal["ASC", "DESC"]


class FileStats(BaseModel):
    """File statistics captured at ingestion."""

    size: int
    mtime: datetime
    ctime: datetime


class RawDocument(BaseModel):
    """A document as produced by ingestion, before store assembly.

    Reference extraction and body formatting happen outside the core;
    `links` and `body` are consumed as given.
    """

    path: str
    raw_metadata: str | dict | None = None
    body: str = ""
    links: list[str] = []
    source: str = ""
    stats: FileStats | None = None


class RawCollection(BaseModel):
    """A collection definition as read from disk (YAML/JSON text or mapping)."""

    path: str
    definition: Any = None


class Document(BaseModel):
    """A note in the document store.

    `metadata` is the canonical block and is never changed after assembly.
    `outgoing` and `backlinks` are filled by the link graph builder,
    `expanded_body` by the embed resolver. Each phase returns copies.
    """

    id: str
    title: str
    path: str
    folder: str = ""
    source: str = ""
    body: str = ""
    metadata: dict[str, Any] = {}
    links: list[str] = []
    outgoing: list[str] = []
    backlinks: list[str] = []
    expanded_body: str | None = None
    stats: FileStats | None = None
    shadows: str | None = None

    @property
    def stem(self) -> str:
        """File name without folder and suffix."""
        name = basename(self.path)
        return name.rsplit(".", 1)[0] if "." in name else name

    @property
    def extension(self) -> str:
        name = basename(self.path)
        return name.rsplit(".", 1)[1].lower() if "." in name else ""

    @property
    def tags(self) -> list[str]:
        """Tags from metadata, without leading '#'."""
        raw = self.metadata.get("tags") or []
        if isinstance(raw, str):
            raw = [t for t in raw.replace(",", " ").split() if t]
        if not isinstance(raw, (list, tuple)):
            raw = [raw]
        return [str(t).lstrip("#") for t in raw if t is not None and str(t).strip()]


class SortRule(BaseModel):
    """One key of a multi-key sort."""

    model_config = ConfigDict(frozen=True)

    property: str
    direction: SortDirection = "ASC"

    @property
    def descending(self) -> bool:
        return self.direction == "DESC"


class View(BaseModel):
    """One rendering configuration of a collection."""

    type: ViewType = "table"
    name: str = "Table"
    order: list[str] = []
    sort: list[SortRule] = []
    column_size: dict[str, int] = {}
    limit: int | None = None
    filter: FilterExpr | None = None
    group_by: str | None = None
    image: str | None = None
    date_property: str | None = None


class PropertyDef(BaseModel):
    """A declared collection property."""

    name: str
    type: str | None = None
    default: Any = None
    required: bool = False
    format: str | None = None
    display_name: str | None = None


class FormulaDef(BaseModel):
    """A derived property computed per matched document."""

    name: str
    expression: str
    result_type: str | None = None


class ViewResult(BaseModel):
    """The evaluated result of one view: which documents, in what order."""

    view: View
    document_ids: list[str] = []
    display: dict[str, dict[str, Any]] = {}
    groups: dict[str, list[str]] | None = None


class Collection(BaseModel):
    """A declarative, filterable and sortable view over documents.

    `matched_documents` and `results` are filled once by the query engine.
    """

    id: str
    title: str
    path: str = ""
    folder: str = ""
    description: str | None = None
    views: list[View] = []
    filter: FilterExpr | None = None
    properties: dict[str, PropertyDef] = {}
    formulas: list[FormulaDef] = []
    matched_documents: list[str] = []
    results: dict[str, ViewResult] = {}

    @property
    def stem(self) -> str:
        name = basename(self.path)
        return name.rsplit(".", 1)[0] if "." in name else name

    def default_view(self) -> View:
        return self.views[0] if self.views else View()

    def find_view(self, name_or_type: str | None) -> View | None:
        """Find a view by name, then by type. None when absent."""
        if not name_or_type:
            return None
        for view in self.views:
            if view.name == name_or_type:
                return view
        for view in self.views:
            if view.type == name_or_type:
                return view
        return None


class FolderNode(BaseModel):
    """A node of the folder tree shown in site navigation."""

    name: str
    path: str
    type: Literal["folder", "file", "collection"]
    children: list["FolderNode"] = []
    document_id: str | None = None
    collection_id: str | None = None
