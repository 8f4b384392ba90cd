"""Users resource client."""

from typing import TYPE_CHECKING

from sourcemanager.clients._parse import parse_impersonation_token, parse_user
from sourcemanager.exceptions import NotFoundError
from sourcemanager.types.provider import ImpersonationToken, ProviderUser

if TYPE_CHECKING:
    from sourcemanager.transport import HTTPTransport


class UsersClient:
    """Client for provider user and impersonation token operations.

    Impersonation token endpoints require an admin token.
    """

    def __init__(self, transport: "HTTPTransport") -> None:
        """
        Initialize the users client.

        Args:
            transport: HTTP transport for making requests
        """
        self.transport = transport

    def get_by_username(self, username: str) -> ProviderUser:
        """
        Look up a provider account by username.

        Raises:
            NotFoundError: If no account has this username
        """
        items = self.transport.request("GET", "/users", params={"username": username})
        for item in items or []:
            if item.get("username") == username:
                return parse_user(item)
        raise NotFoundError("USER_NOT_FOUND", f"Unable to find user {username}")

    def impersonation_tokens(self, user: ProviderUser) -> list[ImpersonationToken]:
        items = self.transport.get_all(f"/users/{user.id}/impersonation_tokens")
        return [parse_impersonation_token(item) for item in items]

    def create_impersonation_token(
        self,
        user: ProviderUser,
        name: str,
        scopes: list[str],
    ) -> ImpersonationToken:
        """Create a new impersonation token for ``user``."""
        data = self.transport.request(
            "POST",
            f"/users/{user.id}/impersonation_tokens",
            body={"name": name, "scopes": scopes},
        )
        return parse_impersonation_token(data)
