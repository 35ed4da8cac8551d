from typing import Dict, List

import pytest

from lazymd_brain.services.errors import NoPathError, NotFoundError
from lazymd_brain.services.graph import LinkGraph
from lazymd_brain.services.graph_query import GraphQueryEngine, TargetResolver
from lazymd_brain.services.links import Link


def link(source: str, target: str, line: int = 0, section=()) -> Link:
    return Link(source=source, line=line, target=target, raw=target, section_path=tuple(section))


def build(edges: Dict[str, List[str]], extra_nodes: List[str] = ()) -> GraphQueryEngine:
    graph = LinkGraph()
    for doc_id in list(edges) + list(extra_nodes):
        graph.add_node(doc_id, doc_id[:-3])
    for source, targets in edges.items():
        graph.update_graph(source, [link(source, target, line) for line, target in enumerate(targets)])
    return GraphQueryEngine(graph)


def test_update_graph_replaces_all_outgoing_edges() -> None:
    graph = LinkGraph()
    graph.add_node("a.md", "a")
    graph.update_graph("a.md", [link("a.md", "b"), link("a.md", "c", 1)])
    before = graph.snapshot()

    graph.update_graph("a.md", [link("a.md", "d")])

    assert [item.target for item in graph.outgoing("a.md")] == ["d"]
    assert [item.target for item in before.outgoing["a.md"]] == ["b", "c"]
    assert graph.snapshot().revision > before.revision

    graph.update_graph("a.md", [])
    assert graph.outgoing("a.md") == ()


def test_remove_node_drops_owned_edges() -> None:
    graph = LinkGraph()
    graph.add_node("a.md", "a")
    graph.update_graph("a.md", [link("a.md", "b")])

    graph.remove_node("a.md")

    assert "a.md" not in graph
    assert graph.snapshot().edge_count == 0


def test_resolver_prefers_same_folder_then_smallest_id() -> None:
    resolver = TargetResolver({"x/note.md": "Note", "y/note.md": "Note", "y/src.md": "Src"})

    assert resolver.resolve("note", "y/src.md") == "y/note.md"
    assert resolver.resolve("note", "root.md") == "x/note.md"
    assert resolver.resolve("y/note") == "y/note.md"
    assert resolver.resolve("ghost") is None


def test_resolver_matches_titles() -> None:
    resolver = TargetResolver({"2024-01-01.md": "Daily Standup"})

    assert resolver.resolve("daily-standup") == "2024-01-01.md"


def test_backlinks_mirror_resolved_links() -> None:
    graph = LinkGraph()
    for doc_id in ("a.md", "b.md", "c.md"):
        graph.add_node(doc_id, doc_id[:-3])
    graph.update_graph("a.md", [link("a.md", "c", 3, ["Refs"])])
    graph.update_graph("b.md", [link("b.md", "c", 1), link("b.md", "ghost", 2)])
    engine = GraphQueryEngine(graph)

    for source in ("a.md", "b.md"):
        for outgoing, target in engine.outgoing_links(source):
            if target is None:
                continue
            assert any(
                back.source == source and back.section_path == outgoing.section_path
                for back in engine.backlinks(target)
            )

    backlinks = engine.backlinks("c.md")
    assert [(item.source, item.line, item.section_path) for item in backlinks] == [
        ("a.md", 3, ("Refs",)),
        ("b.md", 1, ()),
    ]


def test_new_link_heals_orphan_without_touching_target() -> None:
    engine = build({}, ["a.md", "b.md"])
    assert engine.orphans() == ["a.md", "b.md"]

    engine.graph.update_graph("a.md", [link("a.md", "b")])

    assert engine.orphans() == []
    assert engine.graph.outgoing("b.md") == ()


def test_self_links_do_not_count() -> None:
    engine = build({"a.md": ["a"]})

    assert engine.orphans() == ["a.md"]
    assert engine.neighbors("a.md") == []


def test_find_path_same_node_and_depth_zero() -> None:
    engine = build({"a.md": ["b"]}, ["b.md"])

    assert engine.find_path("a.md", "a.md", 0) == ["a.md"]
    with pytest.raises(NoPathError):
        engine.find_path("a.md", "b.md", 0)


def test_find_path_ignores_direction_and_breaks_ties_by_id() -> None:
    engine = build({"a.md": ["c", "b"], "b.md": ["d"], "c.md": ["d"], "e.md": ["d"]}, ["d.md"])

    assert engine.find_path("a.md", "d.md") == ["a.md", "b.md", "d.md"]
    assert engine.find_path("e.md", "a.md") == ["e.md", "d.md", "b.md", "a.md"]
    with pytest.raises(NoPathError):
        engine.find_path("e.md", "a.md", 2)


def test_find_path_unknown_document() -> None:
    engine = build({"a.md": []})

    with pytest.raises(NotFoundError):
        engine.find_path("a.md", "nowhere")


def test_hub_notes_rank_by_degree_then_id() -> None:
    engine = build({"a.md": ["b", "c"], "b.md": ["c"], "d.md": ["c"]}, ["c.md"])

    assert engine.hub_notes(3) == [("c.md", 3, 0), ("a.md", 0, 2), ("b.md", 1, 1)]


def test_graph_snapshot_includes_missing_targets() -> None:
    engine = build({"a.md": ["ghost", "ghost", "b"], "b.md": ["ghost"]})

    data = engine.graph_snapshot()
    nodes = {node.id: node for node in data.nodes}
    links = {(item.source, item.target): item for item in data.links}

    assert nodes["ghost"].missing is True
    assert nodes["ghost"].group == "missing"
    assert nodes["ghost"].in_degree == 2
    assert nodes["a.md"].out_degree == 1
    assert links[("a.md", "ghost")].weight == 2
    assert links[("a.md", "ghost")].resolved is False
    assert links[("a.md", "b.md")].resolved is True


def test_resolver_prefers_file_stem_over_title() -> None:
    resolver = TargetResolver({"intro.md": "Intro", "root.md": "Intro"})

    assert resolver.resolve("intro") == "intro.md"
    assert TargetResolver({"root.md": "Intro"}).resolve("intro") == "root.md"


def test_resolver_matches_trailing_path_segments() -> None:
    resolver = TargetResolver({"deep/x/note.md": "Note", "other/note.md": "Note"})

    assert resolver.resolve("x/note") == "deep/x/note.md"
    assert resolver.resolve("deep/x/note") == "deep/x/note.md"
    assert resolver.resolve("y/note") is None


def test_resolver_ignores_empty_identifiers() -> None:
    resolver = TargetResolver({"!!!.md": "", "日本.md": "日本"})

    assert resolver.candidates("") == []
    assert resolver.resolve("日本") == "日本.md"
