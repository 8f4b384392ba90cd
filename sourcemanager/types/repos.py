"""Source repository data models."""

from dataclasses import dataclass
from datetime import datetime

PROVIDER_NAME = "gitlab"


@dataclass
class SourceRepository:
    """Platform view of a repository hosted by the provider."""

    path: str
    name: str
    provider: str
    provider_id: str
    http_url: str
    ssh_url: str
    web_url: str


@dataclass(frozen=True)
class Commit:
    """A commit produced locally or read from remote history."""

    id: str
    short_id: str
    author_name: str
    author_email: str
    committer_name: str | None
    committer_email: str | None
    message: str
    title: str  # first line of message
    created_at: datetime | None
