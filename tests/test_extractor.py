"""Tests for utils.extractor."""

import pytest

from utils.extractor import clean_content, extract_files, is_safe_relative_path
from conftest import file_block


def test_extracts_blocks_in_order():
    text = (
        "Here you go:\n"
        "---FILE_START:pom.xml---\n<project/>\n---FILE_END---\n"
        "some chatter\n"
        "---FILE_START: src/main/resources/plugin.yml ---\nname: Foo\n---FILE_END---"
    )
    files = extract_files(text)
    assert list(files) == ["pom.xml", "src/main/resources/plugin.yml"]
    assert files["pom.xml"] == "<project/>"
    assert files["src/main/resources/plugin.yml"] == "name: Foo"


def test_strips_code_fences():
    text = "---FILE_START:A.java---\n```java\nclass A {}\n```\n---FILE_END---"
    assert extract_files(text) == {"A.java": "class A {}"}


def test_unterminated_block_is_skipped_but_next_survives():
    text = (
        "---FILE_START:Broken.java---\nclass Broken {\n"
        "---FILE_START:Good.java---\nclass Good {}\n---FILE_END---"
    )
    assert extract_files(text) == {"Good.java": "class Good {}"}


def test_duplicate_path_keeps_last():
    text = (
        "---FILE_START:A.java---\nfirst\n---FILE_END---\n"
        "---FILE_START:A.java---\nsecond\n---FILE_END---"
    )
    assert extract_files(text) == {"A.java": "second"}


def test_no_markers_returns_empty():
    assert extract_files("I cannot help with that.") == {}
    assert extract_files("") == {}
    assert extract_files(None) == {}


def test_empty_path_is_ignored():
    assert extract_files("---FILE_START:   ---\ncontent\n---FILE_END---") == {}


def test_leading_slash_removed_from_path():
    files = extract_files("---FILE_START:/pom.xml---\n<project/>\n---FILE_END---")
    assert list(files) == ["pom.xml"]


def test_clean_content_bare_fence():
    assert clean_content("```\nname: Foo\n```") == "name: Foo\n"


@pytest.mark.parametrize("path", [
    "../../Evil.java",
    "src/../../Evil.java",
    "..\\Evil.java",
    "C:/Windows/Evil.java",
    "\\\\server\\share\\Evil.java",
])
def test_escaping_paths_are_dropped(path):
    text = file_block(path, "class Evil {}") + "\n" + file_block("pom.xml", "<project/>")
    assert extract_files(text) == {"pom.xml": "<project/>"}


@pytest.mark.parametrize("path,safe", [
    ("src/main/java/Foo.java", True),
    ("pom.xml", True),
    ("src/main/..hidden/Foo.java", True),
    ("../Foo.java", False),
    ("a/../../Foo.java", False),
    ("/etc/passwd", False),
    ("D:Foo.java", False),
    ("", False),
])
def test_is_safe_relative_path(path, safe):
    assert is_safe_relative_path(path) is safe
