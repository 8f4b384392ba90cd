"""
Pytest fixtures for source manager testing.

Provides an in-memory provider, clients wired to it and local bare git
repositories that stand in for remote repositories.
"""

import os
import shutil
import subprocess
from collections.abc import Generator
from pathlib import Path

import pytest

from sourcemanager.client import GitLabClient
from sourcemanager.config import SourceManagerConfig
from sourcemanager.credentials import StaticSession
from sourcemanager.service import SourceManager
from sourcemanager.testing.fake import FakeGitLab
from sourcemanager.transport import RetryConfig
from sourcemanager.workspace import GitWorkspaceSession

ROOT_GROUP = "kathra-projects"
CALLER = "jdoe"

_GIT_IDENTITY = {
    "GIT_AUTHOR_NAME": "Seeder",
    "GIT_AUTHOR_EMAIL": "seeder@example.com",
    "GIT_COMMITTER_NAME": "Seeder",
    "GIT_COMMITTER_EMAIL": "seeder@example.com",
}

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not found")


# ============================================================================
# Provider Fixtures
# ============================================================================


@pytest.fixture
def fake_gitlab() -> FakeGitLab:
    """
    Provide a fake provider with the caller account and the root group.

    Example:
        ```python
        def test_provisioning(fake_gitlab, source_manager):
            source_manager.create_source_repository("kathra-projects/DT/api")
            assert fake_gitlab.project("kathra-projects/DT/api") is not None
        ```
    """
    fake = FakeGitLab()
    fake.add_user(CALLER)
    fake.seed_group(ROOT_GROUP)
    return fake


@pytest.fixture
def config(fake_gitlab: FakeGitLab, tmp_path: Path) -> SourceManagerConfig:
    """Provide a configuration pointing at the fake provider."""
    return SourceManagerConfig(
        gitlab_url=fake_gitlab.base_url,
        api_token=fake_gitlab.admin_token,
        root_group=ROOT_GROUP,
        workdir_base=str(tmp_path / "work"),
    )


@pytest.fixture
def admin_client(
    fake_gitlab: FakeGitLab, config: SourceManagerConfig
) -> Generator[GitLabClient, None, None]:
    """Provide an admin client talking to the fake provider without retries."""
    client = GitLabClient.admin(
        config,
        retry_config=RetryConfig(max_retries=0),
        http_transport=fake_gitlab.transport(),
    )
    yield client
    client.close()


@pytest.fixture
def session() -> StaticSession:
    """Provide the acting user."""
    return StaticSession(CALLER)


@pytest.fixture
def source_manager(
    fake_gitlab: FakeGitLab,
    config: SourceManagerConfig,
    admin_client: GitLabClient,
    session: StaticSession,
) -> Generator[SourceManager, None, None]:
    """Provide a source manager acting as the caller against the fake provider."""
    manager = SourceManager(
        config,
        session,
        admin=admin_client,
        http_transport=fake_gitlab.transport(),
        workspace_factory=lambda: GitWorkspaceSession.from_config(config, transport_delay=0),
    )
    yield manager
    manager.close()


# ============================================================================
# Git Fixtures
# ============================================================================


@pytest.fixture
def bare_repo(tmp_path: Path) -> Path:
    """
    Provide a bare repository with one commit on "master".

    Example:
        ```python
        @requires_git
        def test_clone(bare_repo, tmp_path):
            session = GitWorkspaceSession(base_dir=tmp_path)
            session.clone("repo", "master", None, str(bare_repo))
        ```
    """
    if shutil.which("git") is None:
        pytest.skip("git executable not found")
    return create_bare_repo(tmp_path / "remotes" / "repo.git")


# ============================================================================
# Helper Functions
# ============================================================================


def run_git(*args: str, cwd: Path | None = None) -> str:
    """Run git with a fixed identity and return its stdout."""
    env = os.environ.copy()
    env.update(_GIT_IDENTITY)
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=env,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout


def create_bare_repo(
    path: Path,
    branches: tuple[str, ...] = ("master",),
    tags: tuple[str, ...] = (),
    files: dict[str, str] | None = None,
) -> Path:
    """
    Create a bare repository at ``path``.

    Args:
        path: Location of the bare repository
        branches: Branches to create, all on the seed commit; empty for no commit
        tags: Lightweight tags on the seed commit
        files: Content of the seed commit (default: a README)

    Returns:
        Path of the bare repository
    """
    path.mkdir(parents=True)
    run_git("init", "--quiet", "--bare", str(path))
    run_git("symbolic-ref", "HEAD", "refs/heads/master", cwd=path)
    if not branches:
        return path

    seed = path.parent / f"{path.name}-seed"
    seed.mkdir()
    run_git("init", "--quiet", cwd=seed)
    for name, content in (files or {"README.md": "# seed\n"}).items():
        target = seed / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    run_git("add", "--all", ".", cwd=seed)
    run_git("-c", "commit.gpgsign=false", "commit", "--quiet", "-m", "Initial commit", cwd=seed)
    for tag in tags:
        run_git("tag", tag, cwd=seed)

    refspecs = [f"HEAD:refs/heads/{branch}" for branch in branches]
    refspecs.extend(f"refs/tags/{tag}:refs/tags/{tag}" for tag in tags)
    run_git("push", "--quiet", str(path), *refspecs, cwd=seed)
    shutil.rmtree(seed)
    return path


__all__ = [
    "fake_gitlab",
    "config",
    "admin_client",
    "session",
    "source_manager",
    "bare_repo",
    # Helpers
    "requires_git",
    "run_git",
    "create_bare_repo",
    "ROOT_GROUP",
    "CALLER",
]
