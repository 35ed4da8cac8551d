"""Query-time resolution and traversal over the link graph."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import heapq
import logging
from pathlib import PurePosixPath
from typing import Dict, List, Mapping, Optional, Set, Tuple

from ..models.graph import GraphData, GraphLink, GraphNode
from .errors import NoPathError, NotFoundError
from .graph import GraphSnapshot, LinkGraph
from .links import Link, document_identifier, normalize_slug, normalize_target, stem_identifier

logger = logging.getLogger(__name__)

ROOT_GROUP = "root"
MISSING_GROUP = "missing"


def _index(table: Dict[str, List[str]], key: str, doc_id: str) -> None:
    if key:
        table.setdefault(key, []).append(doc_id)


class TargetResolver:
    """
    Resolve normalised link targets against the current document set.

    Targets containing ``/`` match document paths, exactly first and then by
    trailing path segments. Bare names match a path, then a file stem, then
    a title slug; a file stem always wins over another document's title.
    Several candidates prefer the source's folder, then the smallest id.
    """

    def __init__(self, nodes: Mapping[str, str]) -> None:
        self._by_path: Dict[str, List[str]] = {}
        self._by_suffix: Dict[str, List[str]] = {}
        self._by_stem: Dict[str, List[str]] = {}
        self._by_title: Dict[str, List[str]] = {}
        for doc_id, title in nodes.items():
            identifier = document_identifier(doc_id)
            _index(self._by_path, identifier, doc_id)
            segments = identifier.split("/")
            for start in range(1, len(segments) - 1):
                _index(self._by_suffix, "/".join(segments[start:]), doc_id)
            _index(self._by_stem, stem_identifier(doc_id), doc_id)
            _index(self._by_title, normalize_slug(title), doc_id)

    def candidates(self, target: str) -> List[str]:
        if not target:
            return []
        if "/" in target:
            return self._by_path.get(target) or self._by_suffix.get(target, [])
        return (
            self._by_path.get(target)
            or self._by_stem.get(target)
            or self._by_title.get(target, [])
        )

    def resolve(self, target: str, source: Optional[str] = None) -> Optional[str]:
        candidates = self.candidates(target)
        if not candidates:
            return None
        folder = PurePosixPath(source).parent if source else None
        return sorted(
            set(candidates),
            key=lambda candidate: (PurePosixPath(candidate).parent != folder, candidate),
        )[0]


@dataclass
class ResolvedView:
    """Edges of one snapshot with targets resolved to document ids."""

    revision: int
    nodes: Mapping[str, str]
    resolver: TargetResolver
    edges: List[Tuple[Link, Optional[str]]]
    out_adj: Dict[str, Set[str]] = field(default_factory=dict)
    in_adj: Dict[str, Set[str]] = field(default_factory=dict)

    def degree(self, doc_id: str) -> Tuple[int, int]:
        return len(self.in_adj.get(doc_id, ())), len(self.out_adj.get(doc_id, ()))

    def undirected(self, doc_id: str) -> Set[str]:
        return self.out_adj.get(doc_id, set()) | self.in_adj.get(doc_id, set())


def resolve_snapshot(snapshot: GraphSnapshot) -> ResolvedView:
    """Resolve every edge of ``snapshot`` in one pass."""
    resolver = TargetResolver(snapshot.nodes)
    view = ResolvedView(
        revision=snapshot.revision,
        nodes=snapshot.nodes,
        resolver=resolver,
        edges=[],
    )
    for source, links in snapshot.outgoing.items():
        for link in links:
            target = resolver.resolve(link.target, source)
            view.edges.append((link, target))
            if target is None or target == source or source not in snapshot.nodes:
                continue
            view.out_adj.setdefault(source, set()).add(target)
            view.in_adj.setdefault(target, set()).add(source)
    return view


class GraphQueryEngine:
    """Neighbour, backlink, path, orphan and hub queries over a LinkGraph."""

    def __init__(self, graph: LinkGraph) -> None:
        self.graph = graph
        self._view: Optional[ResolvedView] = None

    def view(self) -> ResolvedView:
        """Resolved view of the current graph, cached per graph revision."""
        snapshot = self.graph.snapshot()
        cached = self._view
        if cached is not None and cached.revision == snapshot.revision:
            return cached
        view = resolve_snapshot(snapshot)
        self._view = view
        return view

    def resolve_document(self, identifier: str, view: Optional[ResolvedView] = None) -> str:
        """Map a document id or link-style name onto a known document id."""
        view = view or self.view()
        if identifier in view.nodes:
            return identifier
        resolved = view.resolver.resolve(normalize_target(identifier))
        if resolved is None:
            raise NotFoundError(f"No document matches '{identifier}'", field="path")
        return resolved

    def neighbors(self, doc_id: str) -> List[str]:
        view = self.view()
        doc_id = self.resolve_document(doc_id, view)
        return sorted(view.undirected(doc_id))

    def backlinks(self, doc_id: str) -> List[Link]:
        """Links that resolve to ``doc_id``, ordered by source then line."""
        view = self.view()
        doc_id = self.resolve_document(doc_id, view)
        matches = [link for link, target in view.edges if target == doc_id]
        return sorted(matches, key=lambda link: (link.source, link.line, link.target))

    def outgoing_links(self, doc_id: str) -> List[Tuple[Link, Optional[str]]]:
        view = self.view()
        doc_id = self.resolve_document(doc_id, view)
        return [(link, target) for link, target in view.edges if link.source == doc_id]

    def find_path(self, source: str, target: str, max_depth: Optional[int] = None) -> List[str]:
        """
        Shortest path over the undirected closure of the graph.

        Neighbours are expanded in id order, which makes the returned path the
        lexicographically smallest among the shortest ones.
        """
        view = self.view()
        start = self.resolve_document(source, view)
        goal = self.resolve_document(target, view)
        if start == goal:
            return [start]
        if max_depth is not None and max_depth <= 0:
            raise NoPathError(f"No path from {start} to {goal} within depth {max_depth}")

        parents: Dict[str, Optional[str]] = {start: None}
        frontier = deque([(start, 0)])
        while frontier:
            node, depth = frontier.popleft()
            if max_depth is not None and depth >= max_depth:
                continue
            for neighbor in sorted(view.undirected(node)):
                if neighbor in parents:
                    continue
                parents[neighbor] = node
                if neighbor == goal:
                    return self._unwind(parents, goal)
                frontier.append((neighbor, depth + 1))

        limit = "" if max_depth is None else f" within depth {max_depth}"
        raise NoPathError(f"No path from {start} to {goal}{limit}")

    @staticmethod
    def _unwind(parents: Dict[str, Optional[str]], goal: str) -> List[str]:
        path = [goal]
        while parents[path[-1]] is not None:
            path.append(parents[path[-1]])
        path.reverse()
        return path

    def orphans(self) -> List[str]:
        view = self.view()
        return sorted(doc_id for doc_id in view.nodes if not view.undirected(doc_id))

    def hub_notes(self, limit: int = 10) -> List[Tuple[str, int, int]]:
        """Top ``limit`` documents as ``(doc_id, in_degree, out_degree)``."""
        view = self.view()
        if limit <= 0:
            return []
        ranked = heapq.nsmallest(
            limit,
            view.nodes,
            key=lambda doc_id: (-sum(view.degree(doc_id)), doc_id),
        )
        return [(doc_id, *view.degree(doc_id)) for doc_id in ranked]

    def graph_snapshot(self) -> GraphData:
        """Topology dump: documents, missing placeholders and weighted edges."""
        view = self.view()
        nodes: Dict[str, GraphNode] = {}
        for doc_id, title in sorted(view.nodes.items()):
            in_degree, out_degree = view.degree(doc_id)
            parts = PurePosixPath(doc_id).parts
            nodes[doc_id] = GraphNode(
                id=doc_id,
                label=title or PurePosixPath(doc_id).stem,
                val=max(1, in_degree + out_degree),
                group=parts[0] if len(parts) > 1 else ROOT_GROUP,
                in_degree=in_degree,
                out_degree=out_degree,
            )

        weights: Dict[Tuple[str, str, bool], int] = {}
        for link, target in view.edges:
            if link.source not in view.nodes:
                continue
            resolved = target is not None
            key = (link.source, target if resolved else link.target, resolved)
            if not resolved and key not in weights:
                placeholder = nodes.get(link.target)
                if placeholder is None:
                    placeholder = nodes[link.target] = GraphNode(
                        id=link.target,
                        label=link.target,
                        group=MISSING_GROUP,
                        missing=True,
                    )
                placeholder.in_degree += 1
                placeholder.val = placeholder.in_degree
            weights[key] = weights.get(key, 0) + 1

        links = [
            GraphLink(source=source, target=target, resolved=resolved, weight=weight)
            for (source, target, resolved), weight in sorted(weights.items())
        ]
        logger.debug(
            "Graph snapshot built",
            extra={"node_count": len(nodes), "link_count": len(links), "revision": view.revision},
        )
        return GraphData(nodes=list(nodes.values()), links=links)


__all__ = ["GraphQueryEngine", "TargetResolver", "ResolvedView", "resolve_snapshot"]
