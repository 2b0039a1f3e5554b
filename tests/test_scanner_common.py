"""Unit tests for shared scanner helpers: safe reads, JSONL, timestamps, projects."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from codemolt.scanners import common
from codemolt.scanners.common import (
    decode_flattened_path,
    decode_folder_uri,
    existing_dirs,
    extract_project_description,
    iter_jsonl,
    list_dirs,
    list_files,
    parse_timestamp,
    read_jsonl,
    resolve_project,
    safe_read_json,
    safe_read_text,
    vscode_user_dir,
)


def test_safe_reads_return_none_for_missing_or_bad_files(tmp_path):
    """Missing files and undecodable JSON are None, not exceptions."""
    assert safe_read_text(tmp_path / "missing.txt") is None
    bad = tmp_path / "bad.json"
    bad.write_text("{nope", encoding="utf-8")
    assert safe_read_json(bad) is None
    good = tmp_path / "good.json"
    good.write_text('{"a": 1}', encoding="utf-8")
    assert safe_read_json(good) == {"a": 1}


def test_list_files_filters_extensions_and_sorts(tmp_path):
    """Only matching suffixes are listed, by name; recursion is opt-in."""
    (tmp_path / "b.jsonl").write_text("x")
    (tmp_path / "a.jsonl").write_text("x")
    (tmp_path / "notes.txt").write_text("x")
    nested = tmp_path / "2026" / "02"
    nested.mkdir(parents=True)
    (nested / "c.jsonl").write_text("x")

    flat = list_files(tmp_path, (".jsonl",))
    assert [p.name for p in flat] == ["a.jsonl", "b.jsonl"]
    deep = list_files(tmp_path, (".jsonl",), recursive=True)
    assert [p.name for p in deep] == ["c.jsonl", "a.jsonl", "b.jsonl"]


def test_missing_directories_are_empty(tmp_path):
    """Unreadable or absent locations count as zero entries."""
    missing = tmp_path / "nowhere"
    assert list_files(missing) == []
    assert list_dirs(missing) == []
    assert existing_dirs([missing, tmp_path, tmp_path]) == [tmp_path]


def test_iter_jsonl_marks_malformed_rows(tmp_path):
    """Broken rows and non-object rows come back with payload None."""
    path = tmp_path / "log.jsonl"
    path.write_text('{"a": 1}\n\n{broken\n[1, 2]\n{"b": 2}\n', encoding="utf-8")

    outcomes = list(iter_jsonl(path))
    assert [(o.line_no, o.payload) for o in outcomes] == [
        (1, {"a": 1}),
        (3, None),
        (4, None),
        (5, {"b": 2}),
    ]
    result = read_jsonl(path)
    assert result.records == [{"a": 1}, {"b": 2}]
    assert result.skipped == [3, 4]


def test_iter_jsonl_on_missing_file_yields_nothing(tmp_path):
    assert list(iter_jsonl(tmp_path / "missing.jsonl")) == []


def test_parse_timestamp_shapes():
    """ISO strings, epoch seconds and epoch millis normalize to aware UTC."""
    expected = datetime(2026, 2, 20, 10, 0, tzinfo=timezone.utc)
    assert parse_timestamp("2026-02-20T10:00:00Z") == expected
    assert parse_timestamp(expected.timestamp()) == expected
    assert parse_timestamp(expected.timestamp() * 1000) == expected
    assert parse_timestamp("2026-02-20T10:00:00") == expected
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


def test_decode_folder_uri():
    assert decode_folder_uri("file:///Users/me/my%20app") == "/Users/me/my app"
    assert decode_folder_uri("file:///c%3A/work/app") == "c:/work/app"
    assert decode_folder_uri("vscode-remote://ssh/host/app") is None


def test_decode_flattened_path():
    """Hyphen-flattened absolute paths decode back to slashes."""
    assert decode_flattened_path("-Users-me-app") == "/Users/me/app"
    assert decode_flattened_path("home-dev-svc") == "/home/dev/svc"
    assert decode_flattened_path("a1b2c3") is None


def test_resolve_project_prefers_workspace_json(tmp_path):
    """workspace.json folder beats the directory name."""
    workspace = tmp_path / "abc123"
    workspace.mkdir()
    (workspace / "workspace.json").write_text(
        json.dumps({"folder": "file:///Users/me/shop"}), encoding="utf-8"
    )
    assert resolve_project(workspace) == ("shop", "/Users/me/shop")


def test_resolve_project_falls_back_to_directory_name(tmp_path):
    flattened = tmp_path / "-Users-me-blog"
    flattened.mkdir()
    assert resolve_project(flattened) == ("blog", "/Users/me/blog")
    opaque = tmp_path / "9f8e7d"
    opaque.mkdir()
    assert resolve_project(opaque) == ("9f8e7d", None)


def test_extract_project_description_sources(tmp_path):
    """package.json wins, then README paragraph, then manifest description."""
    js = tmp_path / "js"
    js.mkdir()
    (js / "package.json").write_text(json.dumps({"description": "A web shop"}))
    (js / "README.md").write_text("# Shop\n\nSomething else entirely here.\n")
    assert extract_project_description(js) == "A web shop"

    readme = tmp_path / "readme"
    readme.mkdir()
    (readme / "README.md").write_text(
        "# Title\n\n![badge](x.svg)\n\nA tool that turns logs\ninto posts.\n\n## Usage\n"
    )
    assert extract_project_description(readme) == "A tool that turns logs into posts."

    rust = tmp_path / "rust"
    rust.mkdir()
    (rust / "Cargo.toml").write_text('[package]\nname = "x"\ndescription = "Fast parser"\n')
    assert extract_project_description(rust) == "Fast parser"

    assert extract_project_description(tmp_path / "missing") is None
    assert extract_project_description(None) is None


def test_vscode_user_dir_per_platform(monkeypatch, tmp_path):
    """User dir follows the OS convention."""
    monkeypatch.setattr(common, "home_dir", lambda: tmp_path)
    monkeypatch.setattr(common, "platform_family", lambda: "linux")
    assert vscode_user_dir("Cursor") == tmp_path / ".config" / "Cursor" / "User"
    monkeypatch.setattr(common, "platform_family", lambda: "macos")
    assert vscode_user_dir("Code") == (
        tmp_path / "Library" / "Application Support" / "Code" / "User"
    )
    monkeypatch.setattr(common, "platform_family", lambda: "windows")
    monkeypatch.setenv("APPDATA", str(tmp_path / "Roaming"))
    assert vscode_user_dir("Code") == Path(tmp_path / "Roaming" / "Code" / "User")


def test_oversized_json_integers_are_malformed_not_fatal(tmp_path):
    """Integers past the int-conversion digit limit count as bad rows."""
    huge = "9" * 5000
    path = tmp_path / "s.jsonl"
    path.write_text(f'{{"a": 1}}\n{{"n": {huge}}}\n{{"b": 2}}\n', encoding="utf-8")
    result = read_jsonl(path)
    assert result.records == [{"a": 1}, {"b": 2}]
    assert result.skipped == [2]
    document = tmp_path / "doc.json"
    document.write_text(f'{{"n": {huge}}}', encoding="utf-8")
    assert safe_read_json(document) is None


def test_safe_read_text_replaces_invalid_bytes(tmp_path):
    path = tmp_path / "t.txt"
    path.write_bytes(b"before \xff after")
    assert safe_read_text(path) == "before � after"
