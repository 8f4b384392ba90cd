"""Parsing of provider JSON payloads into data models."""

from datetime import datetime
from typing import Any

from sourcemanager.types.provider import (
    Branch,
    DeployKey,
    Group,
    ImpersonationToken,
    Project,
    ProviderMember,
    ProviderUser,
    Tag,
)
from sourcemanager.types.repos import Commit


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; a trailing "Z" means UTC."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def parse_group(data: dict[str, Any]) -> Group:
    return Group(
        id=data["id"],
        name=data["name"],
        path=data["path"],
        full_path=data.get("full_path", data["path"]),
        parent_id=data.get("parent_id"),
        web_url=data.get("web_url", ""),
    )


def parse_project(data: dict[str, Any]) -> Project:
    namespace = data.get("namespace") or {}
    return Project(
        id=data["id"],
        name=data["name"],
        path=data["path"],
        path_with_namespace=data["path_with_namespace"],
        namespace_id=namespace.get("id"),
        http_url=data.get("http_url_to_repo", ""),
        ssh_url=data.get("ssh_url_to_repo", ""),
        web_url=data.get("web_url", ""),
        default_branch=data.get("default_branch"),
    )


def parse_branch(data: dict[str, Any]) -> Branch:
    commit = data.get("commit") or {}
    return Branch(name=data["name"], commit_id=commit.get("id"))


def parse_tag(data: dict[str, Any]) -> Tag:
    commit = data.get("commit") or {}
    return Tag(name=data["name"], commit_id=commit.get("id"))


def parse_commit(data: dict[str, Any]) -> Commit:
    message = data.get("message") or ""
    title = data.get("title") or message.split("\n", 1)[0]
    return Commit(
        id=data["id"],
        short_id=data.get("short_id") or data["id"][:8],
        author_name=data.get("author_name", ""),
        author_email=data.get("author_email", ""),
        committer_name=data.get("committer_name"),
        committer_email=data.get("committer_email"),
        message=message,
        title=title,
        created_at=parse_datetime(data.get("created_at")),
    )


def parse_user(data: dict[str, Any]) -> ProviderUser:
    return ProviderUser(id=data["id"], username=data["username"], name=data.get("name"))


def parse_member(data: dict[str, Any]) -> ProviderMember:
    return ProviderMember(
        id=data["id"],
        username=data["username"],
        access_level=data["access_level"],
    )


def parse_impersonation_token(data: dict[str, Any]) -> ImpersonationToken:
    return ImpersonationToken(
        id=data["id"],
        name=data["name"],
        revoked=bool(data.get("revoked", False)),
        active=bool(data.get("active", True)),
        token=data.get("token"),
        scopes=list(data.get("scopes") or []),
        created_at=parse_datetime(data.get("created_at")),
    )


def parse_deploy_key(data: dict[str, Any]) -> DeployKey:
    return DeployKey(id=data["id"], title=data["title"], key=data.get("key"))
