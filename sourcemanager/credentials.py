"""
Credential delegation.

Obtains a provider impersonation token for the acting user, so that
provider calls and git transport run with that user's permissions.
"""

from dataclasses import dataclass
from typing import Protocol

import httpx

from sourcemanager.client import GitLabClient
from sourcemanager.config import SourceManagerConfig
from sourcemanager.exceptions import CredentialError, SourceManagerError
from sourcemanager.logging import get_logger

logger = get_logger("credentials")

TOKEN_SCOPES = ["api", "read_user"]


class Session(Protocol):
    """Identity of the platform user on whose behalf an operation runs."""

    @property
    def caller_name(self) -> str: ...


@dataclass(frozen=True)
class StaticSession:
    """Session for a fixed, already authenticated platform user."""

    caller_name: str


@dataclass(frozen=True)
class GitCredentials:
    """Username and delegated token used for git transport."""

    username: str
    token: str

    def __repr__(self) -> str:
        return f"GitCredentials(username={self.username!r}, token='[REDACTED]')"


class CredentialDelegate:
    """
    Holds the impersonation token of one acting user.

    The token is looked up lazily through the admin client and reused for
    the lifetime of the delegate. When the user has no usable token under
    the reserved name, a new one is created: a read operation may therefore
    create a long-lived provider token, and later calls reuse it by name.
    """

    def __init__(
        self,
        admin: GitLabClient,
        session: Session,
        config: SourceManagerConfig,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Args:
            admin: Client authenticated with the admin token
            session: Acting user
            config: Provides the token name, API URL and timeout
            http_transport: Optional httpx transport for the user client
        """
        self.admin = admin
        self.session = session
        self.config = config
        self._http_transport = http_transport
        self._token: str | None = None
        self._user_client: GitLabClient | None = None

    @property
    def username(self) -> str:
        return self.session.caller_name

    def impersonation_token(self) -> str:
        """
        Return the acting user's impersonation token, creating it if needed.

        Raises:
            NotFoundError: If the user has no provider account
            CredentialError: If no token can be obtained
        """
        if self._token is None:
            self._token = self._retrieve_token()
        return self._token

    def user_client(self) -> GitLabClient:
        """Client acting as the session user."""
        if self._user_client is None:
            self._user_client = GitLabClient(
                api_url=self.config.api_url,
                token=self.impersonation_token(),
                timeout=self.config.timeout,
                http_transport=self._http_transport,
            )
        return self._user_client

    def git_credentials(self) -> GitCredentials:
        return GitCredentials(username=self.username, token=self.impersonation_token())

    def close(self) -> None:
        if self._user_client is not None:
            self._user_client.close()
            self._user_client = None

    def _retrieve_token(self) -> str:
        user = self.admin.users.get_by_username(self.username)
        token_name = self.config.token_name

        try:
            tokens = self.admin.users.impersonation_tokens(user)
        except SourceManagerError as e:
            raise CredentialError(
                f"Unable to list impersonation tokens of {self.username}: {e.message}"
            ) from e

        for token in tokens:
            if token.name == token_name and not token.revoked and token.token:
                logger.debug("Reusing impersonation token %s for %s", token.id, self.username)
                return token.token

        try:
            created = self.admin.users.create_impersonation_token(
                user, token_name, list(TOKEN_SCOPES)
            )
        except SourceManagerError as e:
            raise CredentialError(
                f"Unable to create impersonation token for {self.username}: {e.message}"
            ) from e

        if not created.token:
            raise CredentialError(f"Unable to retrieve user token for {self.username}")

        logger.info("Created impersonation token %s for %s", created.id, self.username)
        return created.token
