"""Provider (GitLab) data models, as returned by the REST API."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Group:
    """Provider group (namespace)."""

    id: int
    name: str
    path: str
    full_path: str
    parent_id: int | None
    web_url: str = ""


@dataclass
class Project:
    """Provider project."""

    id: int
    name: str
    path: str
    path_with_namespace: str
    namespace_id: int | None
    http_url: str
    ssh_url: str
    web_url: str
    default_branch: str | None = None


@dataclass
class Branch:
    """Provider branch with the id of its head commit."""

    name: str
    commit_id: str | None


@dataclass
class Tag:
    """Provider tag."""

    name: str
    commit_id: str | None


@dataclass
class ProviderUser:
    """Provider user account."""

    id: int
    username: str
    name: str | None = None


@dataclass
class ProviderMember:
    """A user with direct access to a project or group."""

    id: int
    username: str
    access_level: int


@dataclass
class ImpersonationToken:
    """Impersonation token of a provider user.

    ``token`` is only present when the provider still exposes it.
    """

    id: int
    name: str
    revoked: bool
    active: bool = True
    token: str | None = None
    scopes: list[str] = field(default_factory=list)
    created_at: datetime | None = None


@dataclass
class DeployKey:
    """Provider deploy key; titles are unique per installation."""

    id: int
    title: str
    key: str | None = None
