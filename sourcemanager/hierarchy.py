"""
Remote folder hierarchy resolution.

Resolves a slash-delimited folder path to a provider group, creating the
missing part of the path as nested groups. No local lock is taken:
concurrent callers creating the same segment are reconciled by treating
the provider's "already taken" answer as success and re-reading the group.
"""

from sourcemanager.clients.groups import GroupsClient
from sourcemanager.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from sourcemanager.logging import get_logger
from sourcemanager.paths import parent_paths, sanitize_path
from sourcemanager.types.provider import Group

logger = get_logger("hierarchy")


class HierarchyResolver:
    """Resolves and idempotently creates nested provider groups."""

    def __init__(self, groups: GroupsClient) -> None:
        self.groups = groups

    def find_existing(self, path: str) -> Group | None:
        """
        Return the deepest existing group on ``path``.

        Probes the full path first and walks up one segment at a time.
        Returns None when no ancestor exists.
        """
        for candidate in parent_paths(sanitize_path(path)):
            try:
                return self.groups.get(candidate)
            except NotFoundError:
                continue
        return None

    def resolve(self, path: str) -> Group:
        """
        Return the group at ``path``, creating every missing segment.

        Raises:
            PermissionDeniedError: If the provider forbids creating a segment
        """
        path = sanitize_path(path)
        current = self.find_existing(path)

        if current is not None and current.full_path == path:
            return current

        existing_depth = len(current.full_path.split("/")) if current else 0
        segments = path.split("/")

        parent = current
        for depth in range(existing_depth + 1, len(segments) + 1):
            created = self._create_segment("/".join(segments[:depth]), parent)
            if depth == len(segments):
                return created
            parent = created

        raise ValidationError("INVALID_PATH", f"Unable to resolve folder {path}")

    def _create_segment(self, full_path: str, parent: Group | None) -> Group:
        try:
            group = self.groups.create(full_path, parent)
            logger.info("Created group %s", full_path)
            return group
        except ConflictError:
            logger.info("Group %s already exists, reusing it", full_path)
            return self.groups.get(full_path)
        except PermissionDeniedError as e:
            raise PermissionDeniedError(
                "FORBIDDEN",
                f"Forbidden to create folder {full_path}, please verify you have the "
                "correct permissions in your source repository provider",
                e.status_code,
            ) from e
