"""
Filter expressions for collection queries.

Filters arrive as YAML data; parse_filter() turns them into a tagged union
with one model per form so the evaluator can dispatch on the variant.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .diagnostics import DiagnosticCode, DiagnosticLog

COMBINATORS = ("and", "or", "not")


class AndFilter(BaseModel):
    """All operands must match. An empty list matches everything."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["and"] = "and"
    operands: list["FilterExpr"] = []


class OrFilter(BaseModel):
    """At least one operand must match. An empty list matches nothing."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["or"] = "or"
    operands: list["FilterExpr"] = []


class NotFilter(BaseModel):
    """Negates its operand."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["not"] = "not"
    operand: "FilterExpr"


class TextFilter(BaseModel):
    """A raw textual predicate such as 'status == "done"' or 'hasTag("x")'."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str


class PropertyClause(BaseModel):
    """One key of a map-form predicate: a literal or an operator object."""

    model_config = ConfigDict(frozen=True)

    property: str
    value: Any = None
    operators: dict[str, Any] | None = None


class PropertyFilter(BaseModel):
    """Map-form predicate: every clause must hold."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["property"] = "property"
    clauses: list[PropertyClause] = []


class InvalidFilter(BaseModel):
    """A shape the parser could not interpret. Never matches."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["invalid"] = "invalid"
    reason: str


FilterExpr = Annotated[
    Union[AndFilter, OrFilter, NotFilter, TextFilter, PropertyFilter, InvalidFilter],
    Field(discriminator="kind"),
]

AndFilter.model_rebuild()
OrFilter.model_rebuild()
NotFilter.model_rebuild()


def parse_filter(
    raw: Any,
    diagnostics: DiagnosticLog | None = None,
    context: str | None = None,
) -> FilterExpr:
    """Parse raw filter data into a FilterExpr.

    Accepted shapes:
    - str: a textual predicate
    - {"and": [...]}, {"or": [...]}, {"not": expr | [...]}
    - {"<property>": literal | {"<operator>": value, ...}, ...}
    - a list, read as an implicit "and"
    - {}, which holds no clauses and matches everything

    Uninterpretable shapes become InvalidFilter and are reported on
    `diagnostics` as malformed-filter.
    """
    if isinstance(raw, str):
        return TextFilter(text=raw.strip())

    if isinstance(raw, list):
        return AndFilter(operands=[parse_filter(item, diagnostics, context) for item in raw])

    if isinstance(raw, dict) and not raw:
        return AndFilter(operands=[])

    if not isinstance(raw, dict):
        return _invalid(f"unsupported filter shape: {raw!r}", diagnostics, context)

    parts: list = []
    for combinator in COMBINATORS:
        if combinator not in raw:
            continue
        operand = raw[combinator]
        if combinator == "not":
            if isinstance(operand, list):
                # "not" over a list means none of the conditions hold
                inner = OrFilter(operands=[parse_filter(item, diagnostics, context) for item in operand])
            else:
                inner = parse_filter(operand, diagnostics, context)
            parts.append(NotFilter(operand=inner))
        elif isinstance(operand, list):
            operands = [parse_filter(item, diagnostics, context) for item in operand]
            parts.append(AndFilter(operands=operands) if combinator == "and" else OrFilter(operands=operands))
        else:
            parts.append(_invalid(f"'{combinator}' expects a list, got {operand!r}", diagnostics, context))

    clauses: list[PropertyClause] = []
    for key, value in raw.items():
        if key in COMBINATORS:
            continue
        if isinstance(value, dict):
            if not value:
                parts.append(_invalid(f"empty operator object for '{key}'", diagnostics, context))
                continue
            clauses.append(PropertyClause(property=str(key), operators={str(k): v for k, v in value.items()}))
        else:
            clauses.append(PropertyClause(property=str(key), value=value))

    if clauses:
        parts.append(PropertyFilter(clauses=clauses))

    if len(parts) == 1:
        return parts[0]
    return AndFilter(operands=parts)


def _invalid(reason: str, diagnostics: DiagnosticLog | None, context: str | None) -> InvalidFilter:
    if diagnostics is not None:
        diagnostics.warn(DiagnosticCode.MALFORMED_FILTER, reason, target=context)
    return InvalidFilter(reason=reason)
