"""
Typed property values for vaultgraph.

Metadata blocks are arbitrarily keyed, so every value read by the query
engine is wrapped in a PropertyValue whose kind drives comparator dispatch.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from .utils import parse_date


class ValueKind(str, Enum):
    """Kinds a property value can take."""

    STRING = "string"
    LIST = "list"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ABSENT = "absent"


# Declared property types (collection "properties" block) mapped to kinds
DECLARED_TYPES: dict[str, ValueKind] = {
    "text": ValueKind.STRING,
    "string": ValueKind.STRING,
    "list": ValueKind.LIST,
    "tags": ValueKind.LIST,
    "multitext": ValueKind.LIST,
    "number": ValueKind.NUMBER,
    "checkbox": ValueKind.BOOLEAN,
    "boolean": ValueKind.BOOLEAN,
    "date": ValueKind.DATE,
    "datetime": ValueKind.DATE,
}


class PropertyValue(BaseModel):
    """A tagged metadata value.

    `value` holds a str, list[str], float, bool, timezone-aware datetime,
    or None, according to `kind`.
    """

    model_config = ConfigDict(frozen=True)

    kind: ValueKind
    value: Any = None

    @property
    def is_absent(self) -> bool:
        return self.kind is ValueKind.ABSENT

    @classmethod
    def absent(cls) -> "PropertyValue":
        return _ABSENT

    @classmethod
    def from_raw(cls, raw: Any) -> "PropertyValue":
        """Wrap a raw metadata value, inferring its kind."""
        if raw is None:
            return _ABSENT
        if isinstance(raw, PropertyValue):
            return raw
        if isinstance(raw, bool):
            return cls(kind=ValueKind.BOOLEAN, value=raw)
        if isinstance(raw, (int, float)):
            return cls(kind=ValueKind.NUMBER, value=float(raw))
        if isinstance(raw, (datetime, date)):
            return cls(kind=ValueKind.DATE, value=parse_date(raw))
        if isinstance(raw, (list, tuple, set)):
            return cls(kind=ValueKind.LIST, value=[str(item) for item in raw if item is not None])
        if isinstance(raw, str):
            return cls(kind=ValueKind.STRING, value=raw)
        return cls(kind=ValueKind.STRING, value=str(raw))

    def coerce(self, kind: ValueKind) -> "PropertyValue":
        """Convert to a declared kind; values that do not convert become absent."""
        if self.kind is kind or self.is_absent:
            return self

        if kind is ValueKind.DATE:
            parsed = parse_date(self.value) if self.kind is ValueKind.STRING else None
            return PropertyValue(kind=kind, value=parsed) if parsed else _ABSENT

        if kind is ValueKind.NUMBER:
            if self.kind is ValueKind.STRING:
                try:
                    return PropertyValue(kind=kind, value=float(self.value))
                except ValueError:
                    return _ABSENT
            return _ABSENT

        if kind is ValueKind.BOOLEAN:
            if self.kind is ValueKind.STRING and self.value.strip().lower() in ("true", "false"):
                return PropertyValue(kind=kind, value=self.value.strip().lower() == "true")
            return _ABSENT

        if kind is ValueKind.LIST:
            return PropertyValue(kind=kind, value=[self.display()])

        if kind is ValueKind.STRING:
            return PropertyValue(kind=kind, value=self.display())

        return _ABSENT

    def display(self) -> str:
        """Render the value as plain text (used for grouping and string comparison)."""
        if self.kind is ValueKind.ABSENT:
            return ""
        if self.kind is ValueKind.LIST:
            return ", ".join(self.value)
        if self.kind is ValueKind.BOOLEAN:
            return "true" if self.value else "false"
        if self.kind is ValueKind.NUMBER:
            return str(int(self.value)) if float(self.value).is_integer() else str(self.value)
        if self.kind is ValueKind.DATE:
            return self.value.isoformat()
        return str(self.value)

    def to_python(self) -> Any:
        """Plain value for display properties and formula evaluation."""
        if self.kind is ValueKind.NUMBER and float(self.value).is_integer():
            return int(self.value)
        return self.value


_ABSENT = PropertyValue(kind=ValueKind.ABSENT)
