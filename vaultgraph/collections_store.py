"""
Collection definitions and their evaluation.

Parses declarative collection files (views, filters, properties, formulas)
and evaluates them against the document store to fill in each view's
ordered result set.
"""

from collections.abc import Iterable, Iterator
from typing import Any

import structlog
import yaml

from .diagnostics import DiagnosticCode, DiagnosticLog
from .filters import parse_filter
from .formulas import evaluate_formulas
from .identifiers import IdentifierRegistry, basename, normalize, normalize_collection_id
from .models import Collection, Document, FormulaDef, PropertyDef, RawCollection, SortRule, View, ViewResult
from .query import PropertyResolver, apply_view_filter, filter_collection, sort_documents
from .store import DocumentStore, split_link
from .utils import split_frontmatter

logger = structlog.get_logger(__name__)

VIEW_TYPES = ("table", "cards", "calendar")
SORT_DIRECTIONS = {
    "asc": "ASC",
    "ascending": "ASC",
    "desc": "DESC",
    "descending": "DESC",
}


# ============== Parsing ==============

def _load_definition(raw: RawCollection) -> tuple[Any, str | None]:
    """Return (parsed data, description body) for a raw definition.

    Text definitions may start with a '---' block holding the YAML, followed
    by a free-form description.

    Raises:
        yaml.YAMLError: If the YAML does not parse
    """
    if not isinstance(raw.definition, str):
        return raw.definition, None

    meta, rest = split_frontmatter(raw.definition)
    if meta is not None:
        return yaml.safe_load(meta), rest.strip() or None
    return yaml.safe_load(raw.definition), None


def _parse_sort(raw: Any, context: str, diagnostics: DiagnosticLog) -> list[SortRule]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raw = [raw]

    rules: list[SortRule] = []
    for item in raw:
        if isinstance(item, str) and item.strip():
            rules.append(SortRule(property=item.strip()))
            continue
        if not isinstance(item, dict) or not str(item.get("property") or "").strip():
            diagnostics.warn(DiagnosticCode.MALFORMED_SORT, f"Ignoring sort rule {item!r}", target=context)
            continue

        direction_raw = str(item.get("direction") or "ASC").strip().lower()
        direction = SORT_DIRECTIONS.get(direction_raw)
        if direction is None:
            diagnostics.warn(
                DiagnosticCode.MALFORMED_SORT,
                f"Unknown sort direction {item.get('direction')!r}; using ascending",
                target=context,
            )
            direction = "ASC"
        rules.append(SortRule(property=str(item["property"]).strip(), direction=direction))
    return rules


def _parse_limit(raw: Any, context: str, diagnostics: DiagnosticLog) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, int) and not isinstance(raw, bool) and raw > 0:
        return raw
    if isinstance(raw, str) and raw.strip().isdigit() and int(raw) > 0:
        return int(raw)
    diagnostics.warn(DiagnosticCode.MALFORMED_VIEW, f"Ignoring limit {raw!r}", target=context)
    return None


def _parse_column_size(raw: Any) -> dict[str, int]:
    if not isinstance(raw, dict):
        return {}
    sizes: dict[str, int] = {}
    for key, value in raw.items():
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            sizes[str(key)] = int(value)
    return sizes


def parse_view(raw: Any, collection_id: str, diagnostics: DiagnosticLog) -> View | None:
    """Parse one view definition. Returns None for non-mapping input."""
    if not isinstance(raw, dict):
        diagnostics.warn(DiagnosticCode.MALFORMED_VIEW, f"Ignoring view {raw!r}", target=collection_id)
        return None

    view_type = str(raw.get("type") or "table").strip().lower()
    if view_type not in VIEW_TYPES:
        diagnostics.warn(
            DiagnosticCode.MALFORMED_VIEW,
            f"Unknown view type {raw.get('type')!r}; using table",
            target=collection_id,
        )
        view_type = "table"

    name = str(raw.get("name") or view_type.title()).strip()
    context = f"{collection_id}#{name}"

    group_by = raw.get("groupBy")
    if isinstance(group_by, dict):
        group_by = group_by.get("property")

    order = raw.get("order") or []
    filters = raw.get("filters")

    return View(
        type=view_type,
        name=name,
        order=[str(key) for key in order] if isinstance(order, list) else [],
        sort=_parse_sort(raw.get("sort"), context, diagnostics),
        column_size=_parse_column_size(raw.get("columnSize")),
        limit=_parse_limit(raw.get("limit"), context, diagnostics),
        filter=parse_filter(filters, diagnostics, context) if filters is not None else None,
        group_by=str(group_by) if group_by else None,
        image=str(raw["image"]) if raw.get("image") else None,
        date_property=str(raw.get("dateProperty") or raw.get("date") or "") or None,
    )


def _parse_properties(raw: Any) -> dict[str, PropertyDef]:
    properties: dict[str, PropertyDef] = {}
    if isinstance(raw, dict):
        items = raw.items()
    elif isinstance(raw, list):
        items = [(item, None) if isinstance(item, str) else (item.get("name"), item) for item in raw
                 if isinstance(item, (str, dict))]
    else:
        return properties

    for name, config in items:
        if not name:
            continue
        config = config if isinstance(config, dict) else {}
        properties[str(name)] = PropertyDef(
            name=str(name),
            type=str(config["type"]) if config.get("type") else None,
            default=config.get("default"),
            required=bool(config.get("required", False)),
            format=str(config["format"]) if config.get("format") else None,
            display_name=str(config.get("displayName") or config.get("display_name") or "") or None,
        )
    return properties


def _parse_formulas(raw: Any, collection_id: str, diagnostics: DiagnosticLog) -> list[FormulaDef]:
    formulas: list[FormulaDef] = []
    if isinstance(raw, dict):
        entries = [{"name": name, "formula": value} for name, value in raw.items()]
    elif isinstance(raw, list):
        entries = raw
    else:
        return formulas

    for entry in entries:
        if not isinstance(entry, dict):
            diagnostics.warn(DiagnosticCode.FORMULA_ERROR, f"Ignoring formula {entry!r}", target=collection_id)
            continue
        body = entry.get("formula", entry.get("expression"))
        result_type = entry.get("type") or entry.get("result_type")
        if isinstance(body, dict):
            result_type = body.get("type") or result_type
            body = body.get("formula", body.get("expression"))
        if not entry.get("name") or not isinstance(body, (str, int, float)):
            diagnostics.warn(DiagnosticCode.FORMULA_ERROR, f"Ignoring formula {entry!r}", target=collection_id)
            continue
        formulas.append(FormulaDef(
            name=str(entry["name"]),
            expression=str(body),
            result_type=str(result_type) if result_type else None,
        ))
    return formulas


def parse_collection(raw: RawCollection, diagnostics: DiagnosticLog) -> Collection | None:
    """Parse a raw collection definition.

    Returns None, with a malformed-collection diagnostic, when the
    definition is not a YAML/JSON mapping.
    """
    path = raw.path.replace("\\", "/").lstrip("/")
    try:
        data, description = _load_definition(raw)
    except yaml.YAMLError as e:
        diagnostics.warn(DiagnosticCode.MALFORMED_COLLECTION, f"Invalid YAML: {e}", target=path)
        return None

    if data is None:
        data = {}
    if not isinstance(data, dict):
        diagnostics.warn(
            DiagnosticCode.MALFORMED_COLLECTION,
            f"Definition must be a mapping, got {type(data).__name__}",
            target=path,
        )
        return None

    name = basename(path)
    stem = name.rsplit(".", 1)[0] if "." in name else name
    collection_id = normalize_collection_id(name)

    views: list[View] = []
    seen_names: set[str] = set()
    raw_views = data.get("views") or []
    if not isinstance(raw_views, list):
        diagnostics.warn(DiagnosticCode.MALFORMED_VIEW, "'views' must be a list", target=collection_id)
        raw_views = []
    for raw_view in raw_views:
        view = parse_view(raw_view, collection_id, diagnostics)
        if view is None:
            continue
        if view.name in seen_names:
            counter = 2
            while f"{view.name} ({counter})" in seen_names:
                counter += 1
            view = view.model_copy(update={"name": f"{view.name} ({counter})"})
        seen_names.add(view.name)
        views.append(view)
    if not views:
        views = [View()]

    filters = data.get("filters")
    folder = path.rsplit("/", 1)[0] if "/" in path else ""

    return Collection(
        id=collection_id,
        title=str(data.get("title") or stem),
        path=path,
        folder=folder,
        description=description or (str(data["description"]) if data.get("description") else None),
        views=views,
        filter=parse_filter(filters, diagnostics, collection_id) if filters is not None else None,
        properties=_parse_properties(data.get("properties")),
        formulas=_parse_formulas(data.get("formulas"), collection_id, diagnostics),
    )


# ============== Store ==============

class CollectionStore:
    """Collections keyed by canonical ID, in load order."""

    def __init__(self, collections: dict[str, Collection] | None = None):
        self._collections: dict[str, Collection] = dict(collections or {})
        self._by_title: dict[str, str] = {}
        for collection in self._collections.values():
            self._by_title.setdefault(normalize(collection.title), collection.id)

    def __iter__(self) -> Iterator[Collection]:
        return iter(self._collections.values())

    def __len__(self) -> int:
        return len(self._collections)

    def __contains__(self, collection_id: str) -> bool:
        return collection_id in self._collections

    def get(self, collection_id: str) -> Collection | None:
        return self._collections.get(collection_id)

    def resolve(self, reference: str) -> Collection | None:
        """Find a collection by path ("Bases/Projects.base"), file name, or title."""
        target, _ = split_link(reference)
        if not target:
            return None
        key = normalize_collection_id(basename(target))
        if key in self._collections:
            return self._collections[key]
        title_key = normalize(target)
        if title_key in self._by_title:
            return self._collections[self._by_title[title_key]]
        return None

    def evaluate(self, documents: DocumentStore, diagnostics: DiagnosticLog) -> "CollectionStore":
        """Evaluate every collection against the store; returns a new snapshot."""
        evaluated = {
            collection.id: evaluate_collection(collection, documents, diagnostics)
            for collection in self
        }
        return CollectionStore(evaluated)


def build_collection_store(raw_collections: Iterable[RawCollection], diagnostics: DiagnosticLog) -> CollectionStore:
    """Parse raw collection definitions. Colliding IDs get a numeric suffix."""
    parsed = [parse_collection(raw, diagnostics) for raw in raw_collections]
    parsed = [collection for collection in parsed if collection is not None]
    registry = IdentifierRegistry(collection.id for collection in parsed)
    collections: dict[str, Collection] = {}
    for collection in parsed:
        collection_id, collided = registry.assign(collection.id)
        if collided:
            diagnostics.warn(
                DiagnosticCode.IDENTIFIER_COLLISION,
                f"Collection '{collection.path}' normalizes to '{collection.id}'; stored as '{collection_id}'",
                target=collection.id,
            )
            collection = collection.model_copy(update={"id": collection_id})
        collections[collection_id] = collection

    logger.info("collections_parsed", collections=len(collections))
    return CollectionStore(collections)


# ============== Evaluation ==============

def _display_properties(
    document: Document,
    collection: Collection,
    view: View,
    resolver: PropertyResolver,
    derived: dict[str, Any],
) -> dict[str, Any]:
    keys = view.order or list(collection.properties)
    display: dict[str, Any] = {}
    for key in keys:
        value = resolver.resolve(document, key)
        if value.is_absent:
            declared = collection.properties.get(key)
            display[key] = declared.default if declared is not None else None
        else:
            display[key] = value.to_python()
    for name, value in derived.items():
        display.setdefault(f"formula.{name}", value)
    return display


def evaluate_collection(collection: Collection, documents: DocumentStore, diagnostics: DiagnosticLog) -> Collection:
    """Fill in a collection's matched documents and per-view results.

    Order of work: collection filter over the store (store order kept),
    formulas over the matches, then for each view: view filter, sort,
    limit, display properties, grouping.
    """
    resolver = PropertyResolver(collection.properties)
    matched = filter_collection(collection, documents, resolver)

    for name, declared in collection.properties.items():
        if not declared.required:
            continue
        missing = [doc.id for doc in matched if resolver.resolve(doc, name).is_absent]
        if missing:
            diagnostics.info(
                DiagnosticCode.MALFORMED_COLLECTION,
                f"{len(missing)} matched document(s) lack required property '{name}'",
                target=collection.id,
            )

    derived = evaluate_formulas(collection, matched, diagnostics)
    resolver = PropertyResolver(collection.properties, derived)

    results: dict[str, ViewResult] = {}
    for view in collection.views:
        rows = apply_view_filter(view, matched, resolver)
        rows = sort_documents(rows, view.sort, resolver)
        if view.limit is not None:
            rows = rows[: view.limit]

        groups: dict[str, list[str]] | None = None
        if view.group_by:
            groups = {}
            for doc in rows:
                groups.setdefault(resolver.resolve(doc, view.group_by).display(), []).append(doc.id)

        results[view.name] = ViewResult(
            view=view,
            document_ids=[doc.id for doc in rows],
            display={
                doc.id: _display_properties(doc, collection, view, resolver, derived.get(doc.id, {}))
                for doc in rows
            },
            groups=groups,
        )

    logger.debug("collection_evaluated", collection=collection.id, matched=len(matched), views=len(results))
    return collection.model_copy(update={
        "matched_documents": [doc.id for doc in matched],
        "results": results,
    })
