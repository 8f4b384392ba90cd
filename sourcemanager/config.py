"""
Source manager configuration.

Configuration is an explicit value object; components receive it through
their constructors instead of reading the environment themselves.
"""

import os
import tempfile
from dataclasses import dataclass, field

from sourcemanager.exceptions import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean for {name}: {value!r}")


def _parse_number(name: str, value: str, kind: type) -> int | float:
    try:
        return kind(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from e


@dataclass
class SourceManagerConfig:
    """Settings shared by every component of the source manager."""

    gitlab_url: str
    api_token: str
    root_group: str = "kathra-projects"
    delete_folder_after_git: bool = True
    workdir_attempts: int = 3
    workdir_base: str = field(default_factory=tempfile.gettempdir)
    email_domain: str = "kathra.org"
    token_name: str = "KathraGitlabSourceManager"
    timeout: float = 30.0

    DEFAULT_GITLAB_URL = "https://gitlab.com"

    def __post_init__(self) -> None:
        self.gitlab_url = self.gitlab_url.rstrip("/")
        self.root_group = self.root_group.strip("/")
        if not self.gitlab_url:
            raise ConfigurationError("gitlab_url must not be empty")
        if not self.root_group:
            raise ConfigurationError("root_group must not be empty")
        if self.workdir_attempts < 1:
            raise ConfigurationError("workdir_attempts must be at least 1")

    @property
    def api_url(self) -> str:
        """Base URL of the provider REST API."""
        return f"{self.gitlab_url}/api/v4"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "SourceManagerConfig":
        """
        Create a configuration from environment variables.

        Environment variables:
            SOURCEMANAGER_GITLAB_URL: Provider base URL (default: https://gitlab.com)
            SOURCEMANAGER_GITLAB_API_TOKEN: Provider admin API token (required)
            SOURCEMANAGER_ROOT_GROUP: Managed root namespace (default: kathra-projects)
            SOURCEMANAGER_DELETE_FOLDER_AFTER_GIT: Delete working directories (default: true)
            SOURCEMANAGER_WORKDIR_ATTEMPTS: Working directory name attempts (default: 3)
            SOURCEMANAGER_WORKDIR_BASE: Parent of working directories (default: temp dir)
            SOURCEMANAGER_EMAIL_DOMAIN: Domain of synthesized commit emails (default: kathra.org)
            SOURCEMANAGER_TOKEN_NAME: Reserved impersonation token name
            SOURCEMANAGER_TIMEOUT: Provider request timeout in seconds (default: 30)

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            Configured SourceManagerConfig instance

        Raises:
            ConfigurationError: If required variables are missing or invalid
        """
        env = os.environ if environ is None else environ

        api_token = env.get("SOURCEMANAGER_GITLAB_API_TOKEN")
        if not api_token:
            raise ConfigurationError(
                "SOURCEMANAGER_GITLAB_API_TOKEN environment variable not set"
            )

        kwargs: dict[str, object] = {
            "gitlab_url": env.get("SOURCEMANAGER_GITLAB_URL", cls.DEFAULT_GITLAB_URL),
            "api_token": api_token,
        }

        if "SOURCEMANAGER_ROOT_GROUP" in env:
            kwargs["root_group"] = env["SOURCEMANAGER_ROOT_GROUP"]
        if "SOURCEMANAGER_DELETE_FOLDER_AFTER_GIT" in env:
            kwargs["delete_folder_after_git"] = _parse_bool(
                "SOURCEMANAGER_DELETE_FOLDER_AFTER_GIT",
                env["SOURCEMANAGER_DELETE_FOLDER_AFTER_GIT"],
            )
        if "SOURCEMANAGER_WORKDIR_ATTEMPTS" in env:
            kwargs["workdir_attempts"] = _parse_number(
                "SOURCEMANAGER_WORKDIR_ATTEMPTS", env["SOURCEMANAGER_WORKDIR_ATTEMPTS"], int
            )
        if "SOURCEMANAGER_WORKDIR_BASE" in env:
            kwargs["workdir_base"] = env["SOURCEMANAGER_WORKDIR_BASE"]
        if "SOURCEMANAGER_EMAIL_DOMAIN" in env:
            kwargs["email_domain"] = env["SOURCEMANAGER_EMAIL_DOMAIN"]
        if "SOURCEMANAGER_TOKEN_NAME" in env:
            kwargs["token_name"] = env["SOURCEMANAGER_TOKEN_NAME"]
        if "SOURCEMANAGER_TIMEOUT" in env:
            kwargs["timeout"] = _parse_number(
                "SOURCEMANAGER_TIMEOUT", env["SOURCEMANAGER_TIMEOUT"], float
            )

        return cls(**kwargs)  # type: ignore[arg-type]
