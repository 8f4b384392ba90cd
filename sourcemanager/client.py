"""
Provider API client.

Aggregates the resource clients around a single authenticated transport.
The same class serves the admin token and per-user impersonation tokens.
"""

from typing import Any

import httpx

from sourcemanager.clients import (
    DeployKeysClient,
    GroupsClient,
    ProjectsClient,
    UsersClient,
)
from sourcemanager.config import SourceManagerConfig
from sourcemanager.transport import HTTPTransport, RetryConfig


class GitLabClient:
    """
    Client for the provider REST API.

    Example:
        ```python
        from sourcemanager import GitLabClient, SourceManagerConfig

        config = SourceManagerConfig.from_env()
        with GitLabClient.admin(config) as admin:
            group = admin.groups.get("kathra-projects")
        ```
    """

    def __init__(
        self,
        api_url: str,
        token: str,
        timeout: float = 30.0,
        retry_config: RetryConfig | None = None,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_url: Base URL of the REST API (".../api/v4")
            token: Token sent as PRIVATE-TOKEN
            timeout: Request timeout in seconds
            retry_config: Configuration for retry behavior (optional)
            http_transport: Optional httpx transport, used by the test fake
        """
        self.api_url = api_url

        self._transport = HTTPTransport(
            base_url=api_url,
            token=token,
            timeout=timeout,
            retry_config=retry_config,
            http_transport=http_transport,
        )

        self.groups = GroupsClient(self._transport)
        self.projects = ProjectsClient(self._transport)
        self.users = UsersClient(self._transport)
        self.deploy_keys = DeployKeysClient(self._transport)

    @classmethod
    def admin(
        cls,
        config: SourceManagerConfig,
        retry_config: RetryConfig | None = None,
        http_transport: httpx.BaseTransport | None = None,
    ) -> "GitLabClient":
        """Create a client authenticated with the configured admin token."""
        return cls(
            api_url=config.api_url,
            token=config.api_token,
            timeout=config.timeout,
            retry_config=retry_config,
            http_transport=http_transport,
        )

    @property
    def transport(self) -> HTTPTransport:
        """Get the underlying HTTP transport (for advanced use cases)."""
        return self._transport

    def close(self) -> None:
        """Close the client and release resources."""
        self._transport.close()

    def __enter__(self) -> "GitLabClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
