"""
Utility functions and compiled regex patterns for vaultgraph.

Contains parsing functions, date helpers, exceptions, and pre-compiled patterns.
"""

import re
from datetime import date, datetime, time, timezone

import yaml

# Pre-compiled regex patterns for performance
WIKILINK_PATTERN = re.compile(r'\[\[([^\]|#]+)(?:#[^\]|]*)?(?:\|[^\]]+)?\]\]')
FRONTMATTER_PATTERN = re.compile(r'^---\s*\n(.*?)\n?---\s*(?:\n|$)', re.DOTALL)
WIKILINK_BRACKETS_PATTERN = re.compile(r'^\[\[|\]\]$')
WHITESPACE_PATTERN = re.compile(r'\s+')


# ============== Exceptions ==============

class VaultGraphError(Exception):
    """Base class for unrecoverable setup failures."""
    pass


class EmptyVaultError(VaultGraphError):
    """Raised when the input set contains no documents at all."""
    pass


class VaultNotFoundError(VaultGraphError):
    """Raised when the vault root is missing or not a directory."""
    pass


class MetadataError(ValueError):
    """Raised when a metadata block cannot be parsed into a mapping."""
    pass


# ============== Front matter ==============

def split_frontmatter(content: str) -> tuple[str | None, str]:
    """Split raw note content into (metadata text, body).

    Returns None for the metadata text when the note has no front matter block.
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return None, content
    return match.group(1), content[match.end():]


def parse_metadata(raw: str | dict | None) -> dict:
    """Parse a raw metadata block into a dict.

    Accepts YAML text, an already-parsed mapping, or None.

    Raises:
        MetadataError: If the block is not valid YAML or not a mapping
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if not isinstance(raw, str):
        raise MetadataError(f"metadata must be a mapping, got {type(raw).__name__}")

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise MetadataError(f"invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MetadataError(f"metadata must be a mapping, got {type(data).__name__}")
    return {str(k): v for k, v in data.items()}


# ============== Links ==============

def extract_links(content: str) -> list[str]:
    """Extract all wiki-link targets from content, in order, deduplicated.

    Handles [[target]], [[target|display]], [[target#section]] and the
    embed form ![[target]]. Targets are returned as written.
    """
    seen: set[str] = set()
    result: list[str] = []
    for match in WIKILINK_PATTERN.findall(content):
        target = match.strip()
        if target and target not in seen:
            seen.add(target)
            result.append(target)
    return result


def clean_wikilink(value: str) -> str:
    """Strip surrounding [[ ]] from a metadata value like "[[Projects]]"."""
    text = WIKILINK_BRACKETS_PATTERN.sub('', str(value).strip())
    return text.split("|", 1)[0].strip()


# ============== Dates ==============

def parse_date(value) -> datetime | None:
    """Parse a date-like value into a timezone-aware datetime.

    Accepts datetime, date, epoch seconds, and ISO 8601 strings
    (with or without time). Naive values are taken as UTC.
    Returns None when the value cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time())
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def same_day(a: datetime, b: datetime) -> bool:
    """Check if two instants fall on the same UTC calendar day."""
    return a.astimezone(timezone.utc).date() == b.astimezone(timezone.utc).date()
