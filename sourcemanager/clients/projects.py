"""Projects resource client."""

from typing import TYPE_CHECKING, Any

from sourcemanager.clients._parse import (
    parse_branch,
    parse_commit,
    parse_member,
    parse_project,
    parse_tag,
)
from sourcemanager.paths import encode_path
from sourcemanager.types.provider import Branch, Group, Project, ProviderMember, Tag
from sourcemanager.types.repos import Commit

if TYPE_CHECKING:
    from sourcemanager.transport import HTTPTransport


class ProjectsClient:
    """Client for provider project, branch, tag, commit and member operations."""

    def __init__(self, transport: "HTTPTransport") -> None:
        """
        Initialize the projects client.

        Args:
            transport: HTTP transport for making requests
        """
        self.transport = transport

    def get(self, path_or_id: str | int) -> Project:
        """
        Get a project by "namespace/name" path or numeric id.

        Raises:
            NotFoundError: If the project does not exist or is not visible
        """
        data = self.transport.request("GET", f"/projects/{encode_path(path_or_id)}")
        return parse_project(data)

    def create(
        self,
        name: str,
        group: Group,
        initialize_with_readme: bool = True,
    ) -> Project:
        """
        Create a project inside a group.

        Args:
            name: Project name (also used as its path)
            group: Namespace of the new project
            initialize_with_readme: Create the primary branch with an initial commit

        Raises:
            ConflictError: If the name is already taken in the group
        """
        body: dict[str, Any] = {
            "name": name,
            "path": name,
            "namespace_id": group.id,
            "initialize_with_readme": initialize_with_readme,
        }
        data = self.transport.request("POST", "/projects", body=body)
        return parse_project(data)

    def delete(self, project: Project) -> None:
        """Delete a project."""
        self.transport.request("DELETE", f"/projects/{project.id}")

    def branches(self, project: Project) -> list[Branch]:
        items = self.transport.get_all(f"/projects/{project.id}/repository/branches")
        return [parse_branch(item) for item in items]

    def get_branch(self, project: Project, name: str) -> Branch:
        """
        Get a single branch.

        Raises:
            NotFoundError: If the branch does not exist
        """
        data = self.transport.request(
            "GET", f"/projects/{project.id}/repository/branches/{encode_path(name)}"
        )
        return parse_branch(data)

    def create_branch(self, project: Project, name: str, ref: str) -> Branch:
        """Create branch ``name`` from ``ref``."""
        data = self.transport.request(
            "POST",
            f"/projects/{project.id}/repository/branches",
            params={"branch": name, "ref": ref},
        )
        return parse_branch(data)

    def tags(self, project: Project) -> list[Tag]:
        items = self.transport.get_all(f"/projects/{project.id}/repository/tags")
        return [parse_tag(item) for item in items]

    def commits(self, project: Project, ref_name: str | None = None) -> list[Commit]:
        """List the commits reachable from ``ref_name`` (default branch if None)."""
        params = {"ref_name": ref_name} if ref_name else None
        items = self.transport.get_all(f"/projects/{project.id}/repository/commits", params)
        return [parse_commit(item) for item in items]

    def members(self, project: Project) -> list[ProviderMember]:
        """List direct members of a project."""
        items = self.transport.get_all(f"/projects/{project.id}/members")
        return [parse_member(item) for item in items]

    def add_member(self, project: Project, user_id: int, access_level: int) -> ProviderMember:
        """
        Grant a user access to a project.

        Raises:
            ConflictError: If the user is already a member
        """
        data = self.transport.request(
            "POST",
            f"/projects/{project.id}/members",
            body={"user_id": user_id, "access_level": int(access_level)},
        )
        return parse_member(data)

    def remove_member(self, project: Project, user_id: int) -> None:
        """Revoke a user's direct access to a project."""
        self.transport.request("DELETE", f"/projects/{project.id}/members/{user_id}")
