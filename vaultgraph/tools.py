"""
MCP Tools module for vaultgraph.

Contains the MCP tool handlers (list_tools and call_tool) that expose the
cached site graph read-only.
"""

import json
from typing import Any

from mcp.server import Server
from mcp.types import (
    Resource,
    TextContent,
    Tool,
)

from .cache import site_cache
from .diagnostics import DiagnosticCode
from .indices import documents_for

# Initialize server
server = Server("vaultgraph")


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="vault_document",
            description="Read a processed document: metadata, resolved links, backlinks and expanded body.",
            inputSchema={
                "type": "object",
                "properties": {
                    "target": {
                        "type": "string",
                        "description": "Relative path (e.g., 'Projects/Alpha.md'), file name, or title"
                    }
                },
                "required": ["target"]
            }
        ),
        Tool(
            name="vault_backlinks",
            description="List documents that link to a document.",
            inputSchema={
                "type": "object",
                "properties": {
                    "target": {
                        "type": "string",
                        "description": "Relative path, file name, or title of the linked document"
                    }
                },
                "required": ["target"]
            }
        ),
        Tool(
            name="vault_collection",
            description="Show the evaluated result of a collection view (matched documents in view order).",
            inputSchema={
                "type": "object",
                "properties": {
                    "collection": {
                        "type": "string",
                        "description": "Collection path (e.g., 'Bases/Projects.base'), file name, or title"
                    },
                    "view": {
                        "type": "string",
                        "description": "View name or type (default: first view)"
                    }
                },
                "required": ["collection"]
            }
        ),
        Tool(
            name="vault_tag",
            description="List documents carrying a tag.",
            inputSchema={
                "type": "object",
                "properties": {
                    "tag": {
                        "type": "string",
                        "description": "Tag name, with or without '#'"
                    }
                },
                "required": ["tag"]
            }
        ),
        Tool(
            name="vault_graph",
            description="Get the link graph: the neighbourhood of one document, or the most connected hubs.",
            inputSchema={
                "type": "object",
                "properties": {
                    "center": {
                        "type": "string",
                        "description": "Document to center the graph on (optional)"
                    },
                    "depth": {
                        "type": "integer",
                        "description": "Levels of connections around the center (default: 2)",
                        "default": 2
                    },
                    "top_n": {
                        "type": "integer",
                        "description": "Number of hubs when no center is given (default: 10)",
                        "default": 10
                    }
                }
            }
        ),
        Tool(
            name="vault_diagnostics",
            description="List warnings collected while building the site graph.",
            inputSchema={
                "type": "object",
                "properties": {
                    "code": {
                        "type": "string",
                        "description": "Only show this diagnostic code (e.g., 'broken-embed')"
                    },
                    "document": {
                        "type": "string",
                        "description": "Only show diagnostics for this document ID"
                    }
                }
            }
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    site = await site_cache.get_site()

    if name == "vault_document":
        target = arguments.get("target", "")
        document = site.documents.resolve(target)

        if not document:
            return [TextContent(type="text", text=f"Document not found: '{target}'")]

        output = f"# {document.title}\n\n"
        output += f"**ID:** {document.id}\n"
        output += f"**Path:** {document.path}\n"
        output += f"**Tags:** {', '.join(document.tags) or 'none'}\n"
        output += f"**Links:** {', '.join(document.outgoing[:10]) or 'none'}\n"
        output += f"**Backlinks:** {', '.join(document.backlinks[:10]) or 'none'}\n\n"
        output += "---\n\n"
        output += document.expanded_body if document.expanded_body is not None else document.body

        return [TextContent(type="text", text=output)]

    elif name == "vault_backlinks":
        target = arguments.get("target", "")
        document = site.documents.resolve(target)

        if not document:
            return [TextContent(type="text", text=f"Document not found: '{target}'")]
        if not document.backlinks:
            return [TextContent(type="text", text=f"No backlinks found for: '{document.title}'")]

        output = f"Found {len(document.backlinks)} documents linking to '{document.title}':\n\n"
        for entry in documents_for(document.backlinks, site.documents):
            output += f"- **{entry['title']}** ({entry['path']})\n"

        return [TextContent(type="text", text=output)]

    elif name == "vault_collection":
        reference = arguments.get("collection", "")
        collection = site.collections.resolve(reference)

        if not collection:
            return [TextContent(type="text", text=f"Collection not found: '{reference}'")]

        view_name = arguments.get("view")
        view = collection.find_view(view_name) if view_name else collection.default_view()
        if view is None:
            names = ", ".join(v.name for v in collection.views)
            return [TextContent(type="text", text=f"Error: No view '{view_name}'. Views: {names}")]

        result = collection.results.get(view.name)
        payload = {
            "collection": collection.id,
            "title": collection.title,
            "view": view.model_dump(include={"name", "type", "order", "limit", "group_by"}),
            "matched": len(collection.matched_documents),
            "documents": result.document_ids if result else [],
            "display": result.display if result else {},
            "groups": result.groups if result else None,
        }
        return [TextContent(type="text", text=json.dumps(payload, indent=2, default=str))]

    elif name == "vault_tag":
        tag = arguments.get("tag", "").lstrip("#")
        ids = site.tags.get(tag, [])

        if not ids:
            return [TextContent(type="text", text=f"No documents found with tag: '{tag}'")]

        output = f"Found {len(ids)} documents with tag '#{tag}':\n\n"
        for entry in documents_for(ids, site.documents):
            output += f"- **{entry['title']}** ({entry['path']})\n"

        return [TextContent(type="text", text=output)]

    elif name == "vault_graph":
        center = arguments.get("center")
        depth = arguments.get("depth", 2)

        if center:
            document = site.documents.resolve(center)
            if not document:
                return [TextContent(type="text", text=f"Error: Document not found: {center}")]
            result = site.graph.neighbourhood(document.id, depth)
        else:
            result = site.graph.to_dict(site.documents)["stats"]
            result = {
                "stats": result,
                "clusters": site.graph.clusters(arguments.get("top_n", 10)),
                "orphans": site.graph.orphans(),
            }

        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    elif name == "vault_diagnostics":
        items = site.diagnostics.to_list()
        code = arguments.get("code")
        if code:
            try:
                items = [d for d in items if d.code is DiagnosticCode(code)]
            except ValueError:
                valid = ", ".join(c.value for c in DiagnosticCode)
                return [TextContent(type="text", text=f"Error: Invalid code '{code}'. Valid codes: {valid}")]
        document_id = arguments.get("document")
        if document_id:
            items = [d for d in items if d.document_id == document_id]

        if not items:
            return [TextContent(type="text", text="No diagnostics.")]

        output = f"{len(items)} diagnostics:\n\n"
        output += "\n".join(f"- {d}" for d in items)
        return [TextContent(type="text", text=output)]

    return [TextContent(type="text", text=f"Unknown tool: {name}")]


# ============== Resources ==============

@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri="vault://stats",
            name="Vault Statistics",
            description="Document, collection, link and diagnostic counts for the vault",
            mimeType="application/json"
        ),
    ]


async def get_vault_stats() -> dict:
    """Summary counts for the current site graph."""
    site = await site_cache.get_site()
    graph_stats = site.graph.to_dict()["stats"]
    return {
        "total_documents": len(site.documents),
        "total_collections": len(site.collections),
        "total_links": graph_stats["total_edges"],
        "orphan_count": graph_stats["orphan_count"],
        "top_tags": sorted(
            ((tag, len(ids)) for tag, ids in site.tags.items()),
            key=lambda x: x[1],
            reverse=True,
        )[:15],
        "categories": {name: len(ids) for name, ids in site.categories.items()},
        "diagnostics": site.diagnostics.counts(),
    }


@server.read_resource()
async def read_resource(uri: str) -> str:
    """Read a resource."""
    if str(uri) == "vault://stats":
        stats = await get_vault_stats()
        return json.dumps(stats, indent=2)

    return json.dumps({"error": f"Unknown resource: {uri}"})
