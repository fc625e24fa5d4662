import pytest

from document_gateway.errors import InvalidPathError
from document_gateway.s3.keys import (
    directory_prefix,
    document_key,
    object_key,
    split_path,
    strip_root,
    virtual_path,
)


@pytest.mark.parametrize(
    "path, name, expected",
    [
        ("", "a.pdf", "Files/a.pdf"),
        ("/", "a.pdf", "Files/a.pdf"),
        ("/Reports/", "a.pdf", "Files/Reports/a.pdf"),
        ("Reports/2024", "a.pdf", "Files/Reports/2024/a.pdf"),
        ("//Reports//2024/", "a.pdf", "Files/Reports/2024/a.pdf"),
    ],
)
def test_object_key_is_always_under_root(path, name, expected):
    assert object_key("Files", path, name) == expected


def test_directory_prefix_ends_with_delimiter():
    assert directory_prefix("Files", "/") == "Files/"
    assert directory_prefix("Files", "/Reports/", "2024") == "Files/Reports/2024/"


@pytest.mark.parametrize("path", ["../secrets", "/Reports/../../x", "./", "a/./b"])
def test_traversal_segments_are_rejected(path):
    with pytest.raises(InvalidPathError):
        object_key("Files", path, "a.pdf")


@pytest.mark.parametrize("name", ["", "   ", "a/b.pdf", "..", ".", "a\\b"])
def test_invalid_names_are_rejected(name):
    with pytest.raises(InvalidPathError):
        object_key("Files", "/", name)


def test_document_key_keeps_nested_folders():
    assert document_key("Files", "summary.pdf") == "Files/summary.pdf"
    assert document_key("Files", "Reports/summary.pdf") == "Files/Reports/summary.pdf"


def test_document_key_rejects_empty_and_traversal():
    with pytest.raises(InvalidPathError):
        document_key("Files", "")
    with pytest.raises(InvalidPathError):
        document_key("Files", "../other-root/x.pdf")


def test_virtual_path_and_strip_root():
    assert split_path(None) == []
    assert virtual_path("") == "/"
    assert virtual_path("Reports/2024") == "/Reports/2024/"
    assert strip_root("Files", "Files/a.pdf") == "/"
    assert strip_root("Files", "Files/Reports/a.pdf") == "/Reports/"
    assert strip_root("Files", "Files/Reports/2024/") == "/Reports/"
