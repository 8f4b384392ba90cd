"""Deploy keys resource client."""

from typing import TYPE_CHECKING

from sourcemanager.clients._parse import parse_deploy_key
from sourcemanager.types.provider import DeployKey, Project

if TYPE_CHECKING:
    from sourcemanager.transport import HTTPTransport


class DeployKeysClient:
    """Client for deploy key operations (admin token required for listing)."""

    def __init__(self, transport: "HTTPTransport") -> None:
        """
        Initialize the deploy keys client.

        Args:
            transport: HTTP transport for making requests
        """
        self.transport = transport

    def list(self) -> list[DeployKey]:
        """List every deploy key of the provider installation."""
        return [parse_deploy_key(item) for item in self.transport.get_all("/deploy_keys")]

    def enable(self, project: Project, key_id: int) -> DeployKey:
        """Enable an existing deploy key on a project."""
        data = self.transport.request(
            "POST", f"/projects/{project.id}/deploy_keys/{key_id}/enable"
        )
        return parse_deploy_key(data)

    def create(self, project: Project, title: str, key: str) -> DeployKey:
        """Register a new deploy key on a project."""
        data = self.transport.request(
            "POST",
            f"/projects/{project.id}/deploy_keys",
            body={"title": title, "key": key},
        )
        return parse_deploy_key(data)
