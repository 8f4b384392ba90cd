"""Helpers for slash-delimited folder and repository paths."""

from urllib.parse import quote

from sourcemanager.exceptions import ValidationError


def sanitize_path(path: str) -> str:
    """
    Normalize a hierarchical path.

    Strips surrounding whitespace and slashes and collapses empty segments.

    Raises:
        ValidationError: If the path is empty or contains "." or ".." segments
    """
    if path is None:
        raise ValidationError("INVALID_PATH", "Path must be specified")
    segments = [segment for segment in path.strip().split("/") if segment]
    if not segments:
        raise ValidationError("INVALID_PATH", "Path must not be empty")
    for segment in segments:
        if segment in (".", ".."):
            raise ValidationError("INVALID_PATH", f"Invalid path segment in {path!r}")
    return "/".join(segments)


def split_path(path: str) -> tuple[str, str]:
    """Split a sanitized path into (parent, name); parent is "" at the root."""
    parent, _, name = path.rpartition("/")
    return parent, name


def parent_paths(path: str) -> list[str]:
    """
    Return the path and each of its ancestors, deepest first.

    Example:
        parent_paths("a/b/c") == ["a/b/c", "a/b", "a"]
    """
    segments = path.split("/")
    return ["/".join(segments[:i]) for i in range(len(segments), 0, -1)]


def is_within(path: str, root: str) -> bool:
    """True when ``path`` is ``root`` itself or lies below it."""
    return path == root or path.startswith(root + "/")


def encode_path(path: str | int) -> str:
    """URL-encode a path or numeric id for use as a single API path parameter."""
    return quote(str(path), safe="")
