"""Tests for content tree discovery."""
import pytest

from uicopilot.rag.scanner import scan_corpus


def _tree(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "a" / "x.md").write_text("# X", encoding="utf-8")
    (tmp_path / "a.vue").write_text("<template/>", encoding="utf-8")
    (tmp_path / "b.md").write_text("# B", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
    (tmp_path / ".hidden.md").write_text("ignored", encoding="utf-8")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "HEAD.md").write_text("ignored", encoding="utf-8")
    return tmp_path


def test_discovers_recognised_files_depth_first(tmp_path):
    root = _tree(tmp_path)

    found = [(f.path.relative_to(root).as_posix(), f.kind) for f in scan_corpus(root)]

    assert found == [("a/x.md", "markdown"), ("a.vue", "example"), ("b.md", "markdown")]


def test_scan_is_deterministic(tmp_path):
    root = _tree(tmp_path)

    first = [f.path for f in scan_corpus(root)]
    second = [f.path for f in scan_corpus(root)]

    assert first == second


def test_reads_content(tmp_path):
    root = _tree(tmp_path)

    contents = {f.path.name: f.content for f in scan_corpus(root)}

    assert contents["b.md"] == "# B"


def test_extension_match_is_case_insensitive(tmp_path):
    (tmp_path / "README.MD").write_text("# Readme", encoding="utf-8")

    assert [f.kind for f in scan_corpus(tmp_path)] == ["markdown"]


def test_missing_root_fails_immediately(tmp_path):
    with pytest.raises(FileNotFoundError):
        scan_corpus(tmp_path / "missing")


def test_file_root_rejected(tmp_path):
    path = tmp_path / "file.md"
    path.write_text("# F", encoding="utf-8")

    with pytest.raises(NotADirectoryError):
        scan_corpus(path)


def test_unreadable_file_is_skipped(tmp_path):
    (tmp_path / "bad.md").write_bytes(b"\xff\xfe\x00broken")
    (tmp_path / "good.md").write_text("# Good", encoding="utf-8")

    found = [f.path.name for f in scan_corpus(tmp_path)]

    assert found == ["good.md"]
