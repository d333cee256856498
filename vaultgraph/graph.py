"""
Link graph functions for vaultgraph.

Contains the link graph builder and the queries the renderer uses for
graph views (neighbourhoods, hubs, orphans).
"""

import structlog

from .diagnostics import DiagnosticCode, DiagnosticLog
from .store import DocumentStore

logger = structlog.get_logger(__name__)


class LinkGraph:
    """Bidirectional adjacency over document IDs.

    Invariant: target in outgoing[source] iff source in backlinks[target].
    Both sides keep insertion order.
    """

    def __init__(self, ids: list[str]):
        self.outgoing: dict[str, list[str]] = {doc_id: [] for doc_id in ids}
        self.backlinks: dict[str, list[str]] = {doc_id: [] for doc_id in ids}
        self._edges: set[tuple[str, str]] = set()

    def add_edge(self, source: str, target: str) -> bool:
        """Add source -> target. Returns False when the edge already exists."""
        if (source, target) in self._edges:
            return False
        self._edges.add((source, target))
        self.outgoing[source].append(target)
        self.backlinks[target].append(source)
        return True

    def edges(self) -> list[tuple[str, str]]:
        return [(source, target) for source, targets in self.outgoing.items() for target in targets]

    def connections(self, doc_id: str) -> int:
        """Number of outgoing plus incoming edges."""
        return len(self.outgoing.get(doc_id, [])) + len(self.backlinks.get(doc_id, []))

    def orphans(self) -> list[str]:
        """Documents with no incoming and no outgoing links."""
        return [doc_id for doc_id in self.outgoing if self.connections(doc_id) == 0]

    def neighbourhood(self, center: str, depth: int = 2) -> dict:
        """Get the subgraph around a document, following links both ways.

        Args:
            center: Document ID of the center node
            depth: How many levels of connections to include (default: 2)

        Returns:
            dict with nodes[], edges[], center, and stats
        """
        if center not in self.outgoing:
            return {"error": f"Document not found: {center}"}

        visited: dict[str, None] = {center: None}
        frontier = [center]
        for _ in range(max(depth, 0)):
            new_frontier: list[str] = []
            for node_id in frontier:
                for neighbour in self.outgoing[node_id] + self.backlinks[node_id]:
                    if neighbour not in visited:
                        visited[neighbour] = None
                        new_frontier.append(neighbour)
            frontier = new_frontier

        edges = [
            {"source": source, "target": target}
            for source in visited
            for target in self.outgoing[source]
            if target in visited
        ]
        nodes = [
            {
                "id": node_id,
                "connections": sum(1 for e in edges if node_id in (e["source"], e["target"])),
                "is_center": node_id == center,
            }
            for node_id in visited
        ]
        return {
            "nodes": nodes,
            "edges": edges,
            "center": center,
            "stats": {
                "total_nodes": len(nodes),
                "total_edges": len(edges),
                "depth": depth,
            },
        }

    def clusters(self, top_n: int = 10) -> list[dict]:
        """Most connected documents and their immediate neighbours."""
        ranked = sorted(self.outgoing, key=self.connections, reverse=True)[:top_n]
        clusters = []
        for hub in ranked:
            neighbours = list(dict.fromkeys(self.outgoing[hub] + self.backlinks[hub]))
            clusters.append({
                "hub": hub,
                "connections": self.connections(hub),
                "neighbours": neighbours,
            })
        return clusters

    def to_dict(self, store: DocumentStore | None = None) -> dict:
        """Export nodes, edges and stats for a graph view."""
        nodes = []
        for doc_id in self.outgoing:
            node = {"id": doc_id, "connections": self.connections(doc_id)}
            document = store.get(doc_id) if store is not None else None
            if document is not None:
                node["title"] = document.title
                node["path"] = document.path
            nodes.append(node)

        edges = [{"source": s, "target": t} for s, t in self.edges()]
        return {
            "nodes": nodes,
            "edges": edges,
            "stats": {
                "total_nodes": len(nodes),
                "total_edges": len(edges),
                "orphan_count": len(self.orphans()),
                "avg_connections": round(sum(n["connections"] for n in nodes) / len(nodes), 2) if nodes else 0,
            },
        }


def build_link_graph(store: DocumentStore, diagnostics: DiagnosticLog) -> tuple[LinkGraph, DocumentStore]:
    """Resolve every document's raw references and build the link graph.

    Sources are visited in store order, so each target's backlinks are in
    insertion order of the linking documents. Unresolved references are
    left out of the graph and reported.

    Returns:
        (graph, new store snapshot with outgoing and backlinks filled in)
    """
    graph = LinkGraph(store.ids)
    unresolved = 0

    for document in store:
        for link in document.links:
            target = store.resolve(link)
            if target is None:
                unresolved += 1
                diagnostics.info(
                    DiagnosticCode.UNRESOLVED_REFERENCE,
                    f"Link target '{link}' does not match any document",
                    document_id=document.id,
                    target=link,
                )
                continue
            graph.add_edge(document.id, target.id)

    updated = [
        document.model_copy(update={
            "outgoing": list(graph.outgoing[document.id]),
            "backlinks": list(graph.backlinks[document.id]),
        })
        for document in store
    ]

    logger.info("link_graph_built", edges=len(graph.edges()), unresolved=unresolved)
    return graph, store.replace(updated)
