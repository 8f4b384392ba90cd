"""
Provider token issuance for technical users.

``TokenRefreshService`` periodically makes sure every technical user of
the platform has a provider token stored. It is constructed explicitly
and started/stopped by its owner; users are processed in parallel and a
failure for one user never aborts the others.
"""

import subprocess
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from sourcemanager.client import GitLabClient
from sourcemanager.config import SourceManagerConfig
from sourcemanager.credentials import CredentialDelegate, StaticSession
from sourcemanager.exceptions import CredentialError, SourceManagerError
from sourcemanager.logging import get_logger

logger = get_logger("token_refresh")


@dataclass
class TechnicalUser:
    """A platform technical user and its provider token, if any."""

    id: str
    name: str
    password: str | None = None
    token: str | None = None


class TechnicalUserDirectory(Protocol):
    """Source of technical users and sink for their tokens."""

    def technical_users(self) -> list[TechnicalUser]: ...

    def store_token(self, user: TechnicalUser, token: str) -> None: ...


class TokenIssuer(Protocol):
    """Exchanges a user's identity-provider credentials for a provider token."""

    def issue(self, username: str, password: str) -> str: ...


class ScriptTokenIssuer:
    """
    Issues tokens by running an external script.

    The script is called as ``bash <script> <gitlab_host> <identity_host>
    <username> <password> <token_file>`` and must write the token to
    ``token_file`` and exit with status 0.
    """

    def __init__(
        self,
        script: str | Path,
        gitlab_host: str,
        identity_host: str,
        shell: str = "/bin/bash",
        timeout: float = 300.0,
    ) -> None:
        self.script = Path(script)
        self.gitlab_host = _strip_scheme(gitlab_host)
        self.identity_host = _strip_scheme(identity_host)
        self.shell = shell
        self.timeout = timeout

    def issue(self, username: str, password: str) -> str:
        with tempfile.TemporaryDirectory(prefix="sourcemanager-token-") as tmp:
            token_file = Path(tmp) / "token.txt"
            cmd = [
                self.shell,
                str(self.script),
                self.gitlab_host,
                self.identity_host,
                username,
                password,
                str(token_file),
            ]
            logger.info("Generating token for %s with %s", username, self.script.name)
            try:
                result = subprocess.run(
                    cmd, capture_output=True, text=True, timeout=self.timeout
                )
            except (OSError, subprocess.TimeoutExpired) as e:
                raise CredentialError(f"Token script failed for {username}: {e}") from e

            for line in result.stdout.splitlines():
                logger.debug(line)
            logger.info("Token script for %s exited with %d", username, result.returncode)

            if result.returncode != 0 or not token_file.is_file():
                raise CredentialError(f"No token generated for {username}")
            token = token_file.read_text(encoding="utf-8").strip()
            if not token:
                raise CredentialError(f"No token generated for {username}")
            return token


class ImpersonationTokenIssuer:
    """Issues tokens through the provider API with the admin token.

    The password is not needed: the admin client impersonates the user.
    """

    def __init__(self, admin: GitLabClient, config: SourceManagerConfig) -> None:
        self.admin = admin
        self.config = config

    def issue(self, username: str, password: str) -> str:
        delegate = CredentialDelegate(self.admin, StaticSession(username), self.config)
        return delegate.impersonation_token()


class TokenRefreshService:
    """Keeps a provider token stored for every technical user."""

    def __init__(
        self,
        directory: TechnicalUserDirectory,
        issuer: TokenIssuer,
        interval: float = 30.0,
        max_workers: int = 4,
    ) -> None:
        self.directory = directory
        self.issuer = issuer
        self.interval = interval
        self.max_workers = max_workers

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def refresh_all(self) -> dict[str, bool]:
        """
        Run one refresh pass over all technical users.

        Returns:
            Mapping of user id to whether the user ends the pass with a token
        """
        users = self.directory.technical_users()
        if not users:
            return {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            outcomes = list(pool.map(self.refresh_user, users))
        return {user.id: ok for user, ok in zip(users, outcomes)}

    def refresh_user(self, user: TechnicalUser) -> bool:
        """Issue and store a token for ``user`` when it has none. Never raises."""
        logger.info("Refreshing token for user %s", user.id)
        try:
            if user.token:
                return True
            if not user.password:
                raise CredentialError(f"No password defined for user {user.name}")
            logger.info("Provider token undefined for user %s", user.name)
            token = self.issuer.issue(user.name, user.password)
            self.directory.store_token(user, token)
            logger.info("Provider token updated for user %s", user.name)
            return True
        except SourceManagerError as e:
            logger.error("Unable to refresh token for user %s: %s", user.name, e)
            return False
        except Exception:
            logger.exception("Unexpected failure while refreshing token for user %s", user.name)
            return False

    def start(self) -> None:
        """Start refreshing in a background thread every ``interval`` seconds."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="sourcemanager-token-refresh", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the background thread and wait for the current pass to end."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def __enter__(self) -> "TokenRefreshService":
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.refresh_all()
            except Exception:
                logger.exception("Token refresh pass failed")
            self._stop_event.wait(self.interval)


def _strip_scheme(host: str) -> str:
    for prefix in ("https://", "http://"):
        if host.startswith(prefix):
            host = host[len(prefix):]
    return host.rstrip("/")
