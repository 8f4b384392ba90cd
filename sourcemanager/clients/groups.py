"""Groups resource client."""

from typing import TYPE_CHECKING, Any

from sourcemanager.clients._parse import parse_group, parse_member, parse_project
from sourcemanager.paths import encode_path, split_path
from sourcemanager.types.provider import Group, Project, ProviderMember

if TYPE_CHECKING:
    from sourcemanager.transport import HTTPTransport


class GroupsClient:
    """Client for provider group (namespace) operations."""

    def __init__(self, transport: "HTTPTransport") -> None:
        """
        Initialize the groups client.

        Args:
            transport: HTTP transport for making requests
        """
        self.transport = transport

    def get(self, full_path: str | int) -> Group:
        """
        Get a group by full path or numeric id.

        Raises:
            NotFoundError: If the group does not exist or is not visible
        """
        data = self.transport.request("GET", f"/groups/{encode_path(full_path)}")
        return parse_group(data)

    def create(self, full_path: str, parent: Group | None = None) -> Group:
        """
        Create a group named after the last segment of ``full_path``.

        Args:
            full_path: Expected full path of the new group
            parent: Parent group, or None for a top-level group

        Raises:
            ConflictError: If a group with this path already exists
            PermissionDeniedError: If the caller may not create the group
        """
        _, name = split_path(full_path)
        body: dict[str, Any] = {"name": name, "path": name}
        if parent is not None:
            body["parent_id"] = parent.id
        data = self.transport.request("POST", "/groups", body=body)
        return parse_group(data)

    def projects(self, group: Group | int) -> list[Project]:
        """List the projects directly inside a group."""
        group_id = group.id if isinstance(group, Group) else group
        items = self.transport.get_all(f"/groups/{group_id}/projects")
        return [parse_project(item) for item in items]

    def members(self, group: Group) -> list[ProviderMember]:
        """List direct members of a group."""
        items = self.transport.get_all(f"/groups/{group.id}/members")
        return [parse_member(item) for item in items]

    def add_member(self, group: Group, user_id: int, access_level: int) -> ProviderMember:
        """
        Grant a user access to a group.

        Raises:
            ConflictError: If the user is already a member
        """
        data = self.transport.request(
            "POST",
            f"/groups/{group.id}/members",
            body={"user_id": user_id, "access_level": int(access_level)},
        )
        return parse_member(data)

    def remove_member(self, group: Group, user_id: int) -> None:
        """Revoke a user's direct access to a group."""
        self.transport.request("DELETE", f"/groups/{group.id}/members/{user_id}")

    def list(self) -> list[Group]:
        """List every group visible to the token owner."""
        return [parse_group(item) for item in self.transport.get_all("/groups")]
