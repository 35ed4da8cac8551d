"""In-memory wiki-link graph keyed by document identifier."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Tuple

from .links import Link

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable view of the graph at one instant."""

    nodes: Mapping[str, str]
    outgoing: Mapping[str, Tuple[Link, ...]]
    revision: int

    @property
    def edge_count(self) -> int:
        return sum(len(links) for links in self.outgoing.values())


class LinkGraph:
    """
    Directed graph of documents and their outgoing links.

    Nodes are document ids mapped to display titles. Edges are stored per
    source document and replaced wholesale by :meth:`update_graph`; targets
    stay as normalised identifiers and are resolved at query time, so links
    to documents opened later resolve without touching their sources.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._nodes: Dict[str, str] = {}
        self._outgoing: Dict[str, Tuple[Link, ...]] = {}
        self._revision = 0

    def add_node(self, doc_id: str, title: str) -> None:
        with self._lock:
            nodes = dict(self._nodes)
            nodes[doc_id] = title
            self._nodes = nodes
            self._revision += 1

    def remove_node(self, doc_id: str) -> None:
        """Drop a document and the edges it owns."""
        with self._lock:
            if doc_id not in self._nodes and doc_id not in self._outgoing:
                return
            nodes = dict(self._nodes)
            nodes.pop(doc_id, None)
            outgoing = dict(self._outgoing)
            outgoing.pop(doc_id, None)
            self._nodes = nodes
            self._outgoing = outgoing
            self._revision += 1
        logger.debug("Graph node removed", extra={"doc_id": doc_id})

    def update_graph(self, doc_id: str, new_links: Iterable[Link]) -> None:
        """
        Replace every outgoing edge of ``doc_id`` with ``new_links``.

        The swap happens under the graph lock, so readers see either the full
        previous edge set or the full new one.
        """
        links = tuple(sorted(link for link in new_links if link.source == doc_id))
        with self._lock:
            outgoing = dict(self._outgoing)
            if links:
                outgoing[doc_id] = links
            else:
                outgoing.pop(doc_id, None)
            self._outgoing = outgoing
            self._revision += 1
        logger.debug(
            "Graph edges replaced",
            extra={"doc_id": doc_id, "link_count": len(links)},
        )

    def outgoing(self, doc_id: str) -> Tuple[Link, ...]:
        with self._lock:
            return self._outgoing.get(doc_id, ())

    def __contains__(self, doc_id: object) -> bool:
        with self._lock:
            return doc_id in self._nodes

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def snapshot(self) -> GraphSnapshot:
        # Mutations replace the dicts instead of editing them, so wrapping
        # the current objects is enough for a consistent view.
        with self._lock:
            return GraphSnapshot(
                nodes=MappingProxyType(self._nodes),
                outgoing=MappingProxyType(self._outgoing),
                revision=self._revision,
            )


__all__ = ["LinkGraph", "GraphSnapshot"]
