from pathlib import Path

from lazymd_brain.services.buffer import Document
from lazymd_brain.services.links import extract_links, normalize_target, parse_wikilink


def test_normalize_target_matches_paths_and_names() -> None:
    assert normalize_target("Folder/My Note.md") == "folder/my-note"
    assert normalize_target("folder/my-note") == "folder/my-note"
    assert normalize_target("  Beta  ") == "beta"
    assert normalize_target("") == ""


def test_parse_wikilink_splits_anchor_and_alias() -> None:
    assert parse_wikilink("Note#Usage|shown") == ("Note", "Usage", "shown")
    assert parse_wikilink("Note") == ("Note", None, None)


def test_links_are_attributed_to_their_section(tmp_path: Path) -> None:
    text = "intro [[Top]]\n# A\nsee [[Note#Usage|shown]]\n## B\n![[image]] and [[Note]]\n"
    doc = Document("src.md", tmp_path / "src.md", text)

    links = extract_links(doc)

    assert [(link.target, link.section_path, link.line) for link in links] == [
        ("top", (), 0),
        ("note", ("A",), 2),
        ("image", ("A", "B"), 4),
        ("note", ("A", "B"), 4),
    ]
    aliased = links[1]
    assert (aliased.anchor, aliased.alias, aliased.raw) == ("Usage", "shown", "Note#Usage|shown")
    assert links[2].embed is True


def test_links_in_code_are_ignored(tmp_path: Path) -> None:
    text = "`[[inline]]` [[real]]\n```\n[[fenced]]\n```\n"
    doc = Document("src.md", tmp_path / "src.md", text)

    assert [link.target for link in extract_links(doc)] == ["real"]


def test_repeated_link_on_one_line_is_kept_once(tmp_path: Path) -> None:
    doc = Document("src.md", tmp_path / "src.md", "[[a]] [[a]]\n[[a]]\n")

    assert [(link.target, link.line) for link in extract_links(doc)] == [("a", 0), ("a", 1)]


def test_normalize_target_keeps_non_ascii_letters() -> None:
    assert normalize_target("日本.md") == "日本"
    assert normalize_target("Café Notes") == "café-notes"
    assert normalize_target("Café") != normalize_target("Caf")
    assert normalize_target("!!!") == ""


def test_links_to_non_ascii_documents(tmp_path: Path) -> None:
    doc = Document("src.md", tmp_path / "src.md", "See [[日本]] and [[Über Uns]].\n")

    assert [link.target for link in extract_links(doc)] == ["日本", "über-uns"]
