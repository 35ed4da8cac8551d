import json
from pathlib import Path

import pytest

from lazymd_brain.services import AppConfig, DispatcherState, DocumentRegistry, ToolDispatcher

CATALOG = [
    "open_file",
    "read_document",
    "write_document",
    "search_content",
    "edit_section",
    "read_section",
    "get_structure",
    "list_headings",
    "get_breadcrumb",
    "move_section",
    "list_tasks",
    "update_task",
    "list_links",
    "get_backlinks",
    "get_graph",
    "get_neighbors",
    "find_path",
    "get_orphans",
    "get_hub_notes",
]


def ok(dispatcher: ToolDispatcher, name: str, **arguments):
    response = dispatcher.dispatch(name, arguments)
    assert response.ok, response.error
    return response.result


def fail(dispatcher: ToolDispatcher, name: str, **arguments):
    response = dispatcher.dispatch(name, arguments)
    assert not response.ok
    assert response.result is None
    return response.error


def edges(dispatcher: ToolDispatcher, doc_id: str):
    view = dispatcher.queries.view()
    return sorted(view.out_adj.get(doc_id, ()))


def test_catalog_lists_every_tool_with_schema(dispatcher: ToolDispatcher) -> None:
    catalog = dispatcher.catalog()

    assert [entry["name"] for entry in catalog] == CATALOG
    assert dispatcher.tool_names == CATALOG
    by_name = {entry["name"]: entry for entry in catalog}
    assert by_name["move_section"]["mutates"] is True
    assert by_name["get_graph"]["mutates"] is False
    assert "path" in by_name["read_document"]["inputSchema"]["properties"]


def test_unknown_tool(dispatcher: ToolDispatcher) -> None:
    error = fail(dispatcher, "delete_everything")

    assert error.kind == "UnknownTool"
    assert dispatcher.state is DispatcherState.IDLE


@pytest.mark.parametrize(
    "name,arguments,field",
    [
        ("read_document", {"path": "root.md", "start_line": -1}, "start_line"),
        ("read_document", {"path": "root.md", "bogus": True}, "bogus"),
        ("read_document", {}, "path"),
        ("open_file", {"path": "../etc/passwd.md"}, "path"),
        ("open_file", {"path": "notes.txt"}, "path"),
        ("move_section", {"path": "root.md", "section": "Usage", "target": "Intro", "position": "under"}, "position"),
        ("search_content", {"query": "(", "regex": True}, "query"),
        ("get_hub_notes", {"limit": 0}, "limit"),
    ],
)
def test_invalid_arguments_name_the_field(
    dispatcher: ToolDispatcher, name: str, arguments: dict, field: str
) -> None:
    error = dispatcher.dispatch(name, arguments).error

    assert error.kind == "InvalidArguments"
    assert error.offending_field == field


def test_non_object_arguments_are_rejected(dispatcher: ToolDispatcher) -> None:
    error = dispatcher.dispatch("get_graph", ["not", "a", "dict"]).error

    assert error.kind == "InvalidArguments"


def test_open_file_summarises_document(dispatcher: ToolDispatcher) -> None:
    result = ok(dispatcher, "open_file", path="root.md")

    assert result["path"] == "root.md"
    assert result["title"] == "Intro"
    assert result["line_count"] == 7
    assert result["heading_count"] == 3
    assert result["task_count"] == 2
    assert result["link_count"] == 3
    assert result["dirty"] is False


def test_open_missing_file(dispatcher: ToolDispatcher) -> None:
    error = fail(dispatcher, "open_file", path="absent.md")

    assert error.kind == "NotFound"
    assert error.offending_field == "path"


def test_read_document_range(dispatcher: ToolDispatcher) -> None:
    result = ok(dispatcher, "read_document", path="root.md", start_line=2, end_line=4)

    assert result["content"] == "## Setup\n- [ ] install"
    assert result["end_line"] == 4
    error = fail(dispatcher, "read_document", path="root.md", start_line=5, end_line=99)
    assert error.kind == "OutOfRange"
    assert error.offending_field == "end_line"
    assert fail(dispatcher, "read_document", path="root.md", start_line=9).offending_field == "start_line"


def test_write_document_creates_and_persists(
    dispatcher: ToolDispatcher, loaded_registry, workspace: Path
) -> None:
    result = ok(dispatcher, "write_document", path="drafts/new.md", content="# New\nSee [[lonely]].\n")

    assert result["created"] is True
    assert result["saved"] is True
    assert result["dirty"] is False
    assert (workspace / "drafts" / "new.md").read_text(encoding="utf-8") == "# New\nSee [[lonely]].\n"
    assert ok(dispatcher, "get_neighbors", path="drafts/new.md")["neighbors"] == ["lonely.md"]


def test_write_document_replaces_existing_file(dispatcher: ToolDispatcher, workspace: Path) -> None:
    result = ok(dispatcher, "write_document", path="lonely.md", content="# Still lonely\n")

    assert result["created"] is False
    assert result["title"] == "Still lonely"
    assert (workspace / "lonely.md").read_text(encoding="utf-8") == "# Still lonely\n"


def test_write_document_rejects_oversized_content(workspace: Path) -> None:
    registry = DocumentRegistry(AppConfig(workspace_root=workspace, max_document_bytes=8))
    error = ToolDispatcher(registry).dispatch("write_document", {"path": "x.md", "content": "x" * 9}).error

    assert error.kind == "InvalidArguments"
    assert error.offending_field == "content"


def test_search_content_reports_section(dispatcher: ToolDispatcher, loaded_registry) -> None:
    result = ok(dispatcher, "search_content", query="INSTALL")

    assert result["results"] == [
        {"path": "root.md", "line": 3, "text": "- [ ] install", "section": ["Intro", "Setup"]}
    ]
    assert ok(dispatcher, "search_content", query="INSTALL", case_sensitive=True)["count"] == 0


def test_search_content_truncates(dispatcher: ToolDispatcher, loaded_registry) -> None:
    result = ok(dispatcher, "search_content", query=r"^#", regex=True, limit=2)

    assert result["count"] == 2
    assert result["truncated"] is True


def test_structure_tools(dispatcher: ToolDispatcher) -> None:
    structure = ok(dispatcher, "get_structure", path="root.md")
    intro, usage = structure["root"]["children"]

    assert (intro["level"], intro["title"]) == (1, "Intro")
    assert [child["title"] for child in intro["children"]] == ["Setup"]
    assert intro["children"][0]["level"] == 2
    assert (usage["level"], usage["title"]) == (1, "Usage")

    headings = ok(dispatcher, "list_headings", path="root.md")["headings"]
    assert [(h["level"], h["title"], h["line"]) for h in headings] == [
        (1, "Intro", 0),
        (2, "Setup", 2),
        (1, "Usage", 5),
    ]

    assert ok(dispatcher, "get_breadcrumb", path="root.md", line=4)["breadcrumb"] == ["Intro", "Setup"]
    assert fail(dispatcher, "get_breadcrumb", path="root.md", line=7).kind == "OutOfRange"


def test_read_section(dispatcher: ToolDispatcher) -> None:
    result = ok(dispatcher, "read_section", path="root.md", section=["Intro", "Setup"])

    assert result["content"] == "## Setup\n- [ ] install\n- [x] configure"
    assert fail(dispatcher, "read_section", path="root.md", section="Intro > Nope").kind == "SectionNotFound"


def test_ambiguous_sections_follow_strict_flag(dispatcher: ToolDispatcher, workspace: Path) -> None:
    (workspace / "dup.md").write_text("# A\n## X\none\n## X\ntwo\n", encoding="utf-8")

    assert ok(dispatcher, "read_section", path="dup.md", section="A/X")["content"] == "## X\none"
    error = fail(dispatcher, "read_section", path="dup.md", section="A/X", strict=True)
    assert error.kind == "AmbiguousPath"
    assert error.offending_field == "section"


def test_edit_section_reindexes_links(dispatcher: ToolDispatcher, loaded_registry, workspace: Path) -> None:
    assert ok(dispatcher, "get_orphans")["orphans"] == ["lonely.md"]

    result = ok(dispatcher, "edit_section", path="root.md", section="Usage", content="Now see [[Lonely]].\n")

    assert result["saved"] is True
    assert (workspace / "root.md").read_text(encoding="utf-8").endswith("# Usage\nNow see [[Lonely]].\n")
    assert ok(dispatcher, "get_orphans")["orphans"] == []
    graph = ok(dispatcher, "get_graph")
    assert not [node for node in graph["nodes"] if node["missing"]]


def test_update_task_flips_one_checkbox(dispatcher: ToolDispatcher, workspace: Path) -> None:
    before = ok(dispatcher, "list_tasks", path="root.md")["tasks"]

    result = ok(dispatcher, "update_task", path="root.md", task=0)

    after = ok(dispatcher, "list_tasks", path="root.md")["tasks"]
    assert result["task"]["completed"] is True
    assert [task["completed"] for task in before] == [False, True]
    assert [task["completed"] for task in after] == [True, True]
    assert before[1] == after[1]
    on_disk = (workspace / "root.md").read_text(encoding="utf-8")
    assert "- [x] install\n- [x] configure\n" in on_disk
    assert ok(dispatcher, "list_tasks", path="root.md", completed=False)["count"] == 0
    assert ok(dispatcher, "list_tasks", path="root.md", section="Intro > Setup")["count"] == 2
    assert fail(dispatcher, "update_task", path="root.md", task=5).kind == "OutOfRange"


def test_move_section_updates_breadcrumbs_not_edges(dispatcher: ToolDispatcher, loaded_registry) -> None:
    edges_before = edges(dispatcher, "root.md")

    result = ok(
        dispatcher,
        "move_section",
        path="root.md",
        section="Intro > Setup",
        target="Usage",
        position="inside",
    )

    assert result["breadcrumb"] == ["Usage", "Setup"]
    assert (result["start_line"], result["end_line"]) == (4, 7)
    for line in range(result["start_line"], result["end_line"]):
        crumb = ok(dispatcher, "get_breadcrumb", path="root.md", line=line)["breadcrumb"]
        assert crumb == ["Usage", "Setup"]
    assert edges(dispatcher, "root.md") == edges_before


def test_move_section_after_later_sibling(dispatcher: ToolDispatcher) -> None:
    result = ok(dispatcher, "move_section", path="root.md", section="Intro", target="Usage", position="after")

    assert (result["start_line"], result["end_line"]) == (2, 7)
    assert ok(dispatcher, "read_document", path="root.md")["content"].startswith("# Usage\n")
    assert ok(dispatcher, "get_breadcrumb", path="root.md", line=4)["breadcrumb"] == ["Intro", "Setup"]


def test_invalid_move_is_rejected(dispatcher: ToolDispatcher) -> None:
    error = fail(
        dispatcher,
        "move_section",
        path="root.md",
        section="Intro",
        target="Intro > Setup",
        position="inside",
    )

    assert error.kind == "InvalidMove"
    assert ok(dispatcher, "read_document", path="root.md")["content"].startswith("# Intro\n")


def test_links_and_backlinks(dispatcher: ToolDispatcher, loaded_registry) -> None:
    links = ok(dispatcher, "list_links", path="root.md")

    assert [(link["target"], link["resolved"]) for link in links["links"]] == [
        ("beta", "beta.md"),
        ("notes/alpha", "notes/alpha.md"),
        ("missing-note", None),
    ]
    assert links["broken_count"] == 1

    backlinks = ok(dispatcher, "get_backlinks", path="beta.md")["backlinks"]
    assert backlinks == [
        {
            "source": "root.md",
            "title": "Intro",
            "links": [{"section": ["Intro"], "line": 1, "text": "Beta"}],
        }
    ]


def test_neighbors_hubs_and_orphans(dispatcher: ToolDispatcher, loaded_registry) -> None:
    assert ok(dispatcher, "get_neighbors", path="root.md")["neighbors"] == ["beta.md", "notes/alpha.md"]
    assert ok(dispatcher, "get_neighbors", path="Alpha")["neighbors"] == ["root.md"]

    hubs = ok(dispatcher, "get_hub_notes", limit=2)["hubs"]
    assert [(hub["path"], hub["degree"]) for hub in hubs] == [("root.md", 3), ("notes/alpha.md", 2)]
    assert (hubs[0]["in_degree"], hubs[0]["out_degree"]) == (1, 2)

    assert ok(dispatcher, "get_orphans")["orphans"] == ["lonely.md"]


def test_non_ascii_documents_resolve(
    registry: DocumentRegistry, dispatcher: ToolDispatcher, workspace: Path
) -> None:
    (workspace / "日本.md").write_text("# 日本\n", encoding="utf-8")
    (workspace / "笔记.md").write_text("# 笔记\n", encoding="utf-8")
    (workspace / "src.md").write_text("# Src\nSee [[日本]].\n", encoding="utf-8")
    registry.load_all()

    links = ok(dispatcher, "list_links", path="src.md")["links"]
    assert [(link["target"], link["resolved"]) for link in links] == [("日本", "日本.md")]
    backlinks = ok(dispatcher, "get_backlinks", path="日本.md")["backlinks"]
    assert [entry["source"] for entry in backlinks] == ["src.md"]
    neighbors = ok(dispatcher, "get_neighbors", path="笔记")
    assert (neighbors["path"], neighbors["neighbors"]) == ("笔记.md", [])
    assert ok(dispatcher, "find_path", source="src.md", target="日本.md")["length"] == 1
    assert ok(dispatcher, "get_orphans")["orphans"] == ["lonely.md", "笔记.md"]


def test_missing_note_heals_when_opened(dispatcher: ToolDispatcher, workspace: Path) -> None:
    ok(dispatcher, "open_file", path="root.md")

    graph = ok(dispatcher, "get_graph")
    missing = [node for node in graph["nodes"] if node["id"] == "missing-note"]
    assert missing and missing[0]["missing"] is True
    assert fail(dispatcher, "find_path", source="root.md", target="missing-note").kind == "NotFound"

    (workspace / "missing-note.md").write_text("# Missing note\n", encoding="utf-8")
    ok(dispatcher, "open_file", path="missing-note.md")

    result = ok(dispatcher, "find_path", source="root.md", target="missing-note.md", max_depth=5)
    assert result["path"] == ["root.md", "missing-note.md"]
    assert result["length"] == 1
    graph = ok(dispatcher, "get_graph")
    assert "missing-note" not in {node["id"] for node in graph["nodes"]}


def test_find_path_depth_rules(dispatcher: ToolDispatcher, loaded_registry) -> None:
    same = ok(dispatcher, "find_path", source="root.md", target="root.md", max_depth=0)
    assert (same["path"], same["length"]) == (["root.md"], 0)

    assert fail(dispatcher, "find_path", source="root.md", target="beta.md", max_depth=0).kind == "NoPath"
    two_hops = ok(dispatcher, "find_path", source="beta.md", target="notes/alpha.md")
    assert two_hops["path"] == ["beta.md", "root.md", "notes/alpha.md"]
    assert fail(dispatcher, "find_path", source="lonely.md", target="root.md").kind == "NoPath"


def test_save_failure_keeps_memory_state(dispatcher: ToolDispatcher, workspace: Path, monkeypatch) -> None:
    ok(dispatcher, "open_file", path="root.md")

    def fail_replace(src, dst):
        raise OSError("read-only file system")

    monkeypatch.setattr("lazymd_brain.services.buffer.os.replace", fail_replace)

    error = fail(dispatcher, "update_task", path="root.md", task=0)

    assert error.kind == "IOError"
    assert dispatcher.state is DispatcherState.IDLE
    content = ok(dispatcher, "read_document", path="root.md")["content"]
    assert "- [x] install" in content
    assert ok(dispatcher, "open_file", path="root.md")["dirty"] is True
    assert "- [ ] install" in (workspace / "root.md").read_text(encoding="utf-8")


def test_autosave_disabled_leaves_file_untouched(registry: DocumentRegistry, workspace: Path) -> None:
    dispatcher = ToolDispatcher(registry, autosave=False)

    result = ok(dispatcher, "update_task", path="root.md", task=0)

    assert result["saved"] is False
    assert "- [ ] install" in (workspace / "root.md").read_text(encoding="utf-8")


def test_execute_returns_json(dispatcher: ToolDispatcher) -> None:
    payload = json.loads(dispatcher.execute("get_orphans"))

    assert payload == {"tool": "get_orphans", "ok": True, "result": {"orphans": [], "count": 0}}
