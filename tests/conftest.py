"""
Pytest configuration and fixtures for vaultgraph tests.
"""

import pytest
from pathlib import Path


@pytest.fixture
def temp_vault(tmp_path: Path):
    """Create a temporary vault with notes and a collection definition."""
    vault_path = tmp_path / "vault"
    vault_path.mkdir()

    (vault_path / "Projects").mkdir()
    (vault_path / "Bases").mkdir()
    (vault_path / "Loops").mkdir()
    (vault_path / ".obsidian").mkdir()

    # Note 1: active project with links, an unresolved link and an embed
    (vault_path / "Projects" / "Alpha.md").write_text("""---
title: Alpha
status: active
priority: 2
due: 2024-03-01
tags:
  - project
categories:
  - "[[Work]]"
---

# Alpha

Alpha depends on [[Beta]] and [[Missing Note]].

![[Snippet]]
""", encoding="utf-8")

    # Note 2: archived project linking back
    (vault_path / "Projects" / "Beta.md").write_text("""---
title: Beta
status: done
priority: 1
due: 2024-01-15
tags:
  - project
  - archived
categories: "[[Work]]"
---

# Beta

Beta was split out of [[Alpha]].
""", encoding="utf-8")

    # Note 3: project without a priority, linking by full path
    (vault_path / "Projects" / "Gamma.md").write_text("""---
title: Gamma
status: active
tags: [project]
---

# Gamma

Follows [[Projects/Alpha.md|alpha]] and embeds the board:

![[Projects.base#Board]]
""", encoding="utf-8")

    # Note 4: no front matter, embeds an image
    (vault_path / "Snippet.md").write_text("""A reusable snippet.

![[diagram.png]]
""", encoding="utf-8")

    # Notes 5 and 6: embed each other
    (vault_path / "Loops" / "Loop A.md").write_text("Loop A start\n\n![[Loop B]]\n", encoding="utf-8")
    (vault_path / "Loops" / "Loop B.md").write_text("Loop B start\n\n![[Loop A]]\n", encoding="utf-8")

    # Note 7: malformed front matter
    (vault_path / "invalid_frontmatter.md").write_text("""---
title: [invalid yaml
---

This note has invalid YAML front matter.
""", encoding="utf-8")

    # Hidden folder, never loaded
    (vault_path / ".obsidian" / "workspace.md").write_text("hidden", encoding="utf-8")

    (vault_path / "Bases" / "Projects.base").write_text("""filters:
  and:
    - file.tag: project
    - not:
        file.tag: archived
properties:
  status:
    type: text
  priority:
    type: number
    displayName: Priority
formulas:
  label: 'concat(upper(status), "-", file.name)'
views:
  - type: table
    name: By priority
    order:
      - file.name
      - status
      - priority
    sort:
      - property: priority
        direction: DESC
  - type: cards
    name: Board
    groupBy: status
    sort:
      - property: file.name
        direction: ASC
""", encoding="utf-8")

    yield vault_path


@pytest.fixture
def make_raw():
    """Factory for raw documents with links taken from the body."""
    from vaultgraph.models import RawDocument
    from vaultgraph.utils import extract_links

    def _make(path: str, metadata=None, body: str = "") -> "RawDocument":
        return RawDocument(path=path, raw_metadata=metadata, body=body, links=extract_links(body), source=body)

    return _make


@pytest.fixture
def diagnostics():
    """A fresh diagnostics log."""
    from vaultgraph.diagnostics import DiagnosticLog
    return DiagnosticLog()
