"""
Map virtual file-manager paths to object keys under the root prefix.

Virtual paths look like ``/``, ``/Reports/`` or ``Reports/2024``; object keys
look like ``Files/Reports/2024/summary.pdf``. Folders are addressed by a key
prefix ending with ``/``. Every key the gateway sends to the backend is built
here, so the root prefix cannot be bypassed.
"""

from typing import List

from document_gateway.errors import InvalidPathError

DELIMITER = "/"
_FORBIDDEN_SEGMENTS = {".", ".."}


def split_path(path: str | None) -> List[str]:
    """Split a virtual path into its segments, rejecting traversal."""
    if not path:
        return []
    segments = [segment for segment in path.replace("\\", DELIMITER).split(DELIMITER) if segment]
    for segment in segments:
        if segment in _FORBIDDEN_SEGMENTS:
            raise InvalidPathError(f"Invalid path segment {segment!r} in {path!r}")
    return segments


def validate_name(name: str) -> str:
    """A single item name: non-empty, no delimiter, no traversal."""
    if not name or not name.strip():
        raise InvalidPathError("Item name must not be empty")
    if DELIMITER in name or "\\" in name:
        raise InvalidPathError(f"Item name {name!r} must not contain a path delimiter")
    if name in _FORBIDDEN_SEGMENTS:
        raise InvalidPathError(f"Item name {name!r} is not allowed")
    return name


def object_key(root_prefix: str, path: str | None, name: str | None = None) -> str:
    """Key of the object ``name`` inside the virtual folder ``path``."""
    segments = [root_prefix.strip(DELIMITER)] + split_path(path)
    if name is not None:
        segments.append(validate_name(name))
    return DELIMITER.join(segments)


def directory_prefix(root_prefix: str, path: str | None, name: str | None = None) -> str:
    """Key prefix of a folder; always ends with the delimiter."""
    return object_key(root_prefix, path, name) + DELIMITER


def document_key(root_prefix: str, document_name: str) -> str:
    """
    Key of a whole document addressed by name.

    Document names may carry folders (``Reports/summary.pdf``); the last
    segment is the file name.
    """
    segments = split_path(document_name)
    if not segments:
        raise InvalidPathError("Document name must not be empty")
    return object_key(root_prefix, DELIMITER.join(segments[:-1]), segments[-1])


def virtual_path(path: str | None) -> str:
    """Canonical virtual folder path: ``/`` for root, ``/a/b/`` otherwise."""
    segments = split_path(path)
    if not segments:
        return DELIMITER
    return DELIMITER + DELIMITER.join(segments) + DELIMITER


def join_virtual(path: str | None, name: str) -> str:
    """Virtual path of the folder ``name`` inside ``path``."""
    return virtual_path(path) + validate_name(name) + DELIMITER


def relative_name(prefix: str, key: str) -> str:
    """Name of ``key`` relative to ``prefix``, without a trailing delimiter."""
    return key[len(prefix):].rstrip(DELIMITER)


def strip_root(root_prefix: str, key: str) -> str:
    """Virtual parent path of ``key``, used as a file-manager ``filterPath``."""
    root = root_prefix.strip(DELIMITER) + DELIMITER
    rest = key[len(root):] if key.startswith(root) else key
    parent = rest.rstrip(DELIMITER).rpartition(DELIMITER)[0]
    return virtual_path(parent)
