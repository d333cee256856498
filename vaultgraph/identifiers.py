"""
Identifier normalization for vaultgraph.

Maps document paths and link text to canonical IDs, and hands out
disambiguated IDs when distinct items normalize to the same value.
"""

import re
from typing import Iterable

import structlog

logger = structlog.get_logger(__name__)

_DISALLOWED_CHARS = re.compile(r'[^\w\-/]')
_WHITESPACE_RUN = re.compile(r'\s+')
_DASH_RUN = re.compile(r'-{2,}')
_SLASH_RUN = re.compile(r'/{2,}')

UNTITLED_ID = "untitled"


def normalize(text: str, suffix: str = ".md") -> str:
    """Normalize a relative path or link text to a canonical ID.

    Lower-cases, drops the file suffix, collapses whitespace to a single
    dash, removes punctuation, and strips leading/trailing separators while
    keeping internal "/" path separators.

        >>> normalize("/Projects/My Note.md")
        'projects/my-note'
        >>> normalize("My  Note")
        'my-note'

    The function is total and idempotent: normalize(normalize(x)) == normalize(x).
    """
    value = str(text).strip().replace("\\", "/").lower()
    if suffix and value.endswith(suffix):
        value = value[: -len(suffix)]
    value = _WHITESPACE_RUN.sub("-", value.strip())
    value = _DISALLOWED_CHARS.sub("", value)
    value = _DASH_RUN.sub("-", value)
    value = _SLASH_RUN.sub("/", value)
    return value.strip("-/")


def normalize_collection_id(text: str) -> str:
    """Normalize a collection path or reference (".base" suffix dropped)."""
    return normalize(text, suffix=".base")


def basename(path_or_link: str) -> str:
    """Return the last path segment of a path or link text."""
    return str(path_or_link).replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]


class IdentifierRegistry:
    """Hands out unique IDs within one namespace (documents or collections).

    The first item claiming an ID keeps it. Later claims get a numeric
    suffix ("notes/a-2", "notes/a-3", ...). Suffixes skip any ID reserved
    up front, so an item whose own base ID looks like a suffixed one
    ("notes/a-2.md") keeps that ID even when it is seen later.
    """

    def __init__(self, reserved: Iterable[str] = ()):
        self._taken: set[str] = set()
        self._reserved: set[str] = {base or UNTITLED_ID for base in reserved}

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._taken

    def assign(self, base: str) -> tuple[str, bool]:
        """Claim an ID derived from base.

        Returns:
            (assigned ID, collided) where collided is True when base was
            already taken and a suffixed ID was assigned instead.
        """
        base = base or UNTITLED_ID
        if base not in self._taken:
            self._taken.add(base)
            return base, False

        counter = 2
        while f"{base}-{counter}" in self._taken or f"{base}-{counter}" in self._reserved:
            counter += 1
        assigned = f"{base}-{counter}"
        self._taken.add(assigned)
        logger.debug("identifier_suffixed", base=base, assigned=assigned)
        return assigned, True
