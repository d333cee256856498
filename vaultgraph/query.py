"""
Collection query engine for vaultgraph.

Pure functions that evaluate filter expressions against single documents,
narrow document lists by collection and view filters, and sort them.
Nothing here mutates a document or raises for data-shape problems.
"""

import re
from collections.abc import Iterable, Mapping
from functools import cmp_to_key
from typing import Any

from .filters import (
    AndFilter,
    FilterExpr,
    InvalidFilter,
    NotFilter,
    OrFilter,
    PropertyClause,
    PropertyFilter,
    TextFilter,
)
from .models import Collection, Document, PropertyDef, SortRule, View
from .utils import parse_date, same_day
from .values import DECLARED_TYPES, PropertyValue, ValueKind

TAG_KEYS = ("file.tag", "file.tags", "file.hasTag")
METADATA_PREFIXES = ("note.", "frontmatter.")
FORMULA_PREFIX = "formula."

TEXT_HAS_TAG_PATTERN = re.compile(r'^(?:file\.)?hasTag\(\s*"([^"]*)"\s*\)$')
TEXT_COMPARISON_PATTERN = re.compile(r'^([\w.\-]+)\s*(==|!=)\s*"([^"]*)"$')

STRING_OPERATORS = {"contains", "startsWith", "endsWith", "matches", "=", "==", "!="}
NUMBER_OPERATORS = {"=", "==", "!=", ">", ">=", "<", "<="}
DATE_OPERATORS = {"before", "after", "on", "=", "==", "!=", ">", ">=", "<", "<="}
BOOLEAN_OPERATORS = {"=", "==", "!="}
LIST_OPERATORS = {"contains"}


class PropertyResolver:
    """Resolves property names to typed values for one collection.

    Built-in names:
    - file.name, file.path, file.folder, file.ext
    - file.size, file.mtime, file.ctime
    - file.tags / file.tag / file.hasTag, file.links, file.backlinks, file.starred
    - formula.<name> (derived values, when available)
    - note.<key>, frontmatter.<key>, or a bare <key> for metadata

    Declared property types coerce metadata values (e.g. a "date" property
    stored as a string in metadata).
    """

    def __init__(
        self,
        properties: Mapping[str, PropertyDef] | None = None,
        derived: Mapping[str, Mapping[str, Any]] | None = None,
    ):
        self.properties = dict(properties or {})
        self.derived = derived if derived is not None else {}

    def resolve(self, document: Document, name: str) -> PropertyValue:
        name = name.strip()

        if name.startswith("file."):
            return self._builtin(document, name)

        if name.startswith(FORMULA_PREFIX):
            values = self.derived.get(document.id, {})
            return PropertyValue.from_raw(values.get(name[len(FORMULA_PREFIX):]))

        key = name
        for prefix in METADATA_PREFIXES:
            if name.startswith(prefix):
                key = name[len(prefix):]
                break

        value = PropertyValue.from_raw(document.metadata.get(key))
        declared = self.properties.get(name) or self.properties.get(key)
        if declared is not None and declared.type:
            kind = DECLARED_TYPES.get(declared.type.lower())
            if kind is not None:
                value = value.coerce(kind)
        return value

    def _builtin(self, document: Document, name: str) -> PropertyValue:
        stats = document.stats
        if name == "file.name":
            return PropertyValue(kind=ValueKind.STRING, value=document.title)
        if name == "file.path":
            return PropertyValue(kind=ValueKind.STRING, value=document.path)
        if name == "file.folder":
            return PropertyValue(kind=ValueKind.STRING, value=document.folder)
        if name == "file.ext":
            return PropertyValue(kind=ValueKind.STRING, value=document.extension)
        if name == "file.size":
            return PropertyValue.from_raw(stats.size if stats else None)
        if name == "file.mtime":
            return PropertyValue.from_raw(stats.mtime if stats else None)
        if name == "file.ctime":
            return PropertyValue.from_raw(stats.ctime if stats else None)
        if name in TAG_KEYS:
            return PropertyValue(kind=ValueKind.LIST, value=document.tags)
        if name == "file.links":
            return PropertyValue(kind=ValueKind.LIST, value=list(document.outgoing))
        if name == "file.backlinks":
            return PropertyValue(kind=ValueKind.LIST, value=list(document.backlinks))
        if name == "file.starred":
            starred = document.metadata.get("starred") is True or document.metadata.get("pinned") is True
            return PropertyValue(kind=ValueKind.BOOLEAN, value=starred)
        return PropertyValue.absent()


_DEFAULT_RESOLVER = PropertyResolver()


# ============== Filter evaluation ==============

def evaluate_filter(
    expr: FilterExpr | None,
    document: Document,
    resolver: PropertyResolver | None = None,
) -> bool:
    """Evaluate a filter expression against one document.

    None matches everything. Unknown shapes never match.
    """
    resolver = resolver or _DEFAULT_RESOLVER

    if expr is None:
        return True
    if isinstance(expr, AndFilter):
        return all(evaluate_filter(operand, document, resolver) for operand in expr.operands)
    if isinstance(expr, OrFilter):
        return any(evaluate_filter(operand, document, resolver) for operand in expr.operands)
    if isinstance(expr, NotFilter):
        return not evaluate_filter(expr.operand, document, resolver)
    if isinstance(expr, TextFilter):
        return _evaluate_text(expr.text, document, resolver)
    if isinstance(expr, PropertyFilter):
        return all(_evaluate_clause(clause, document, resolver) for clause in expr.clauses)
    if isinstance(expr, InvalidFilter):
        return False
    return False


def _evaluate_text(text: str, document: Document, resolver: PropertyResolver) -> bool:
    """Evaluate a textual predicate.

    Only two forms are understood: hasTag("x") and <property> ==|!= "literal".
    Anything else does not match.
    """
    match = TEXT_HAS_TAG_PATTERN.match(text)
    if match:
        return _has_tag(document, match.group(1))

    match = TEXT_COMPARISON_PATTERN.match(text)
    if match:
        name, operator, literal = match.groups()
        if name in TAG_KEYS:
            equal = _has_tag(document, literal)
        else:
            equal = _equals(resolver.resolve(document, name), literal)
        return equal if operator == "==" else not equal

    return False


def _has_tag(document: Document, tag: Any) -> bool:
    tags = document.tags
    if isinstance(tag, (list, tuple)):
        return any(str(t).lstrip("#") in tags for t in tag)
    return str(tag).lstrip("#") in tags


def _in_folder(document: Document, folder: Any) -> bool:
    if not isinstance(folder, str):
        return False
    folder = folder.strip("/")
    return document.folder == folder or document.folder.startswith(folder + "/")


def _evaluate_clause(clause: PropertyClause, document: Document, resolver: PropertyResolver) -> bool:
    name = clause.property

    if clause.operators is None:
        if name in TAG_KEYS:
            return _has_tag(document, clause.value)
        if name == "file.inFolder":
            return _in_folder(document, clause.value)
        return _equals(resolver.resolve(document, name), clause.value)

    value = resolver.resolve(document, name)
    return all(_apply_operator(value, op, operand) for op, operand in clause.operators.items())


def _equals(value: PropertyValue, literal: Any) -> bool:
    """Literal equality against a typed value."""
    if literal is None:
        return value.is_absent
    if value.is_absent:
        return False

    if value.kind is ValueKind.LIST:
        if isinstance(literal, (list, tuple)):
            return [str(item) for item in literal] == value.value
        return str(literal) in value.value

    if value.kind is ValueKind.NUMBER:
        number = _to_number(literal)
        return number is not None and number == value.value

    if value.kind is ValueKind.BOOLEAN:
        if isinstance(literal, bool):
            return literal == value.value
        if isinstance(literal, str) and literal.lower() in ("true", "false"):
            return (literal.lower() == "true") == value.value
        return False

    if value.kind is ValueKind.DATE:
        other = parse_date(literal)
        return other is not None and same_day(value.value, other)

    if isinstance(literal, bool):
        return value.value.lower() == ("true" if literal else "false")
    if isinstance(literal, float) and literal.is_integer():
        literal = int(literal)
    return value.value == str(literal)


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _apply_operator(value: PropertyValue, operator: str, operand: Any) -> bool:
    """Dispatch one operator to the comparator family of the value's kind."""
    if value.is_absent:
        return False

    kind = value.kind
    if kind is ValueKind.STRING and operator not in STRING_OPERATORS:
        # Strings holding dates or numbers can still be compared as such
        if operator in DATE_OPERATORS and parse_date(value.value) is not None:
            value = PropertyValue(kind=ValueKind.DATE, value=parse_date(value.value))
        elif operator in NUMBER_OPERATORS and _to_number(value.value) is not None:
            value = PropertyValue(kind=ValueKind.NUMBER, value=_to_number(value.value))
        else:
            return False
        kind = value.kind

    if kind is ValueKind.STRING:
        return _compare_string(value.value, operator, operand)
    if kind is ValueKind.NUMBER:
        return operator in NUMBER_OPERATORS and _compare_number(value.value, operator, operand)
    if kind is ValueKind.DATE:
        return operator in DATE_OPERATORS and _compare_date(value.value, operator, operand)
    if kind is ValueKind.BOOLEAN:
        return operator in BOOLEAN_OPERATORS and _compare_boolean(value.value, operator, operand)
    if kind is ValueKind.LIST:
        if operator not in LIST_OPERATORS:
            return False
        needles = operand if isinstance(operand, (list, tuple)) else [operand]
        lowered = [item.lower() for item in value.value]
        return all(str(needle).lstrip("#").lower() in lowered for needle in needles)
    return False


def _compare_string(text: str, operator: str, operand: Any) -> bool:
    target = str(operand)
    if operator == "contains":
        return target.lower() in text.lower()
    if operator == "startsWith":
        return text.lower().startswith(target.lower())
    if operator == "endsWith":
        return text.lower().endswith(target.lower())
    if operator == "matches":
        try:
            return re.search(target, text, re.IGNORECASE) is not None
        except re.error:
            return False
    if operator in ("=", "=="):
        return text == target
    if operator == "!=":
        return text != target
    return False


def _compare_number(number: float, operator: str, operand: Any) -> bool:
    other = _to_number(operand)
    if other is None:
        return False
    if operator in ("=", "=="):
        return number == other
    if operator == "!=":
        return number != other
    if operator == ">":
        return number > other
    if operator == ">=":
        return number >= other
    if operator == "<":
        return number < other
    if operator == "<=":
        return number <= other
    return False


def _compare_date(instant, operator: str, operand: Any) -> bool:
    other = parse_date(operand)
    if other is None:
        return False
    if operator in ("on", "=", "=="):
        return same_day(instant, other)
    if operator == "!=":
        return not same_day(instant, other)
    if operator in ("after", ">"):
        return instant > other
    if operator == ">=":
        return instant >= other
    if operator in ("before", "<"):
        return instant < other
    if operator == "<=":
        return instant <= other
    return False


def _compare_boolean(flag: bool, operator: str, operand: Any) -> bool:
    if isinstance(operand, str) and operand.lower() in ("true", "false"):
        operand = operand.lower() == "true"
    if not isinstance(operand, bool):
        return False
    return flag == operand if operator in ("=", "==") else flag != operand


# ============== Collection filtering ==============

def filter_collection(
    collection: Collection,
    documents: Iterable[Document],
    resolver: PropertyResolver | None = None,
) -> list[Document]:
    """Apply the collection's root filter, preserving store order."""
    resolver = resolver or PropertyResolver(collection.properties)
    return [doc for doc in documents if evaluate_filter(collection.filter, doc, resolver)]


def apply_view_filter(
    view: View,
    documents: Iterable[Document],
    resolver: PropertyResolver,
) -> list[Document]:
    """Narrow an already filtered list with the view's own filter.

    The resolver must be the collection's, so declared property types and
    formula outputs apply to the view filter as well.
    """
    if view.filter is None:
        return list(documents)
    return [doc for doc in documents if evaluate_filter(view.filter, doc, resolver)]


# ============== Sorting ==============

# Values of different kinds order by kind first
KIND_RANK = {
    ValueKind.DATE: 0,
    ValueKind.NUMBER: 1,
    ValueKind.BOOLEAN: 2,
    ValueKind.STRING: 3,
    ValueKind.LIST: 3,
}


def compare_values(a: PropertyValue, b: PropertyValue) -> int:
    """Type-aware comparison of two non-absent values.

    Values of different kinds compare by kind rank (date, number, boolean,
    then text) so that the ordering stays total over mixed columns.
    """
    rank_a, rank_b = KIND_RANK.get(a.kind, 3), KIND_RANK.get(b.kind, 3)
    if rank_a != rank_b:
        return (rank_a > rank_b) - (rank_a < rank_b)
    if a.kind is ValueKind.DATE and b.kind is ValueKind.DATE:
        left, right = a.value.timestamp(), b.value.timestamp()
    elif a.kind is ValueKind.NUMBER and b.kind is ValueKind.NUMBER:
        left, right = a.value, b.value
    elif a.kind is ValueKind.BOOLEAN and b.kind is ValueKind.BOOLEAN:
        left, right = int(a.value), int(b.value)
    else:
        left, right = a.display().casefold(), b.display().casefold()
        if left == right:
            left, right = a.display(), b.display()
    return (left > right) - (left < right)


def sort_documents(
    documents: Iterable[Document],
    rules: list[SortRule],
    resolver: PropertyResolver | None = None,
) -> list[Document]:
    """Stable multi-key sort.

    Rules apply in order, the first being the primary key. A rule's
    direction only reverses that key. Absent values sort after all present
    values whatever the direction. Unknown properties compare equal.
    """
    documents = list(documents)
    if not rules:
        return documents
    resolver = resolver or _DEFAULT_RESOLVER

    keyed = [
        (doc, [resolver.resolve(doc, rule.property) for rule in rules])
        for doc in documents
    ]

    def compare(left, right) -> int:
        for index, rule in enumerate(rules):
            a, b = left[1][index], right[1][index]
            if a.is_absent and b.is_absent:
                continue
            if a.is_absent:
                return 1
            if b.is_absent:
                return -1
            result = compare_values(a, b)
            if result:
                return -result if rule.descending else result
        return 0

    return [doc for doc, _ in sorted(keyed, key=cmp_to_key(compare))]
