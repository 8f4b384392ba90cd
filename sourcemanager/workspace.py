"""
Git workspace sessions.

A session owns one disposable working directory: it clones a repository
into it, applies changes, commits, tags and pushes, then deletes the
directory. Git is driven through the ``git`` executable; network-facing
commands (ls-remote, clone, push) are retried a bounded number of times.
"""

import os
import shutil
import subprocess
import tempfile
import time
import uuid
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import quote, urlsplit, urlunsplit

from sourcemanager.config import SourceManagerConfig
from sourcemanager.credentials import GitCredentials
from sourcemanager.exceptions import (
    NoChangesError,
    NotFoundError,
    TransportError,
    ValidationError,
    WorkspaceError,
)
from sourcemanager.logging import get_logger, log_git_command, mask_sensitive_data
from sourcemanager.types.repos import Commit

logger = get_logger("git")

_FIELD_SEPARATOR = "\x1f"
_LOG_FORMAT = _FIELD_SEPARATOR.join(["%H", "%an", "%ae", "%cn", "%ce", "%cI", "%B"])


@dataclass(frozen=True)
class RemoteRef:
    """A ref advertised by the remote."""

    name: str
    oid: str


class GitWorkspaceSession:
    """
    Single-use scope over one ephemeral working directory.

    Example:
        ```python
        with GitWorkspaceSession.from_config(config) as session:
            session.create_working_folder()
            session.clone("my-repo", "dev", credentials, project.http_url)
            session.copy_file("/tmp/swagger.yml")
            commit = session.commit("jdoe", "Update autogenerated components")
            session.push()
        ```
    """

    REMOTE = "origin"
    GIT_METADATA_DIR = ".git"
    DIRECTORY_PREFIX = "sourcemanager-workdir-"

    def __init__(
        self,
        base_dir: str | Path | None = None,
        delete_after: bool = True,
        workdir_attempts: int = 3,
        transport_attempts: int = 5,
        transport_delay: float = 1.0,
        email_domain: str = "kathra.org",
        git_executable: str = "git",
    ) -> None:
        """
        Args:
            base_dir: Parent of the working directory (default: temp dir)
            delete_after: Delete the working directory on cleanup
            workdir_attempts: Attempts to find an unused directory name
            transport_attempts: Attempts for ls-remote, clone and push
            transport_delay: Fixed wait in seconds between those attempts
            email_domain: Domain of the synthesized author email
            git_executable: Name or path of the git binary
        """
        self.base_dir = Path(base_dir) if base_dir else None
        self.delete_after = delete_after
        self.workdir_attempts = workdir_attempts
        self.transport_attempts = transport_attempts
        self.transport_delay = transport_delay
        self.email_domain = email_domain
        self.git_executable = git_executable

        self.working_folder: Path | None = None
        self.repo_dir: Path | None = None

    @classmethod
    def from_config(cls, config: SourceManagerConfig, **kwargs: Any) -> "GitWorkspaceSession":
        return cls(
            base_dir=config.workdir_base,
            delete_after=config.delete_folder_after_git,
            workdir_attempts=config.workdir_attempts,
            email_domain=config.email_domain,
            **kwargs,
        )

    def __enter__(self) -> "GitWorkspaceSession":
        return self

    def __exit__(self, *args: Any) -> None:
        self.cleanup()

    # ------------------------------------------------------------------
    # Working directory lifecycle
    # ------------------------------------------------------------------

    def create_working_folder(self) -> Path:
        """
        Allocate and create a fresh working directory.

        Raises:
            WorkspaceError: On filesystem failure
        """
        base = self.base_dir or Path(tempfile.gettempdir())
        candidate = base
        try:
            for attempt in range(1, self.workdir_attempts + 1):
                candidate = base / f"{self.DIRECTORY_PREFIX}{uuid.uuid4()}"
                if not candidate.exists():
                    break
                if attempt >= self.workdir_attempts:
                    logger.warning("Working folder %s already exists, clearing it", candidate)
                    shutil.rmtree(candidate)
            candidate.mkdir(parents=True)
        except OSError as e:
            raise WorkspaceError(
                "IO_ERROR", f"Unable to create working folder {candidate}: {e}"
            ) from e

        self.working_folder = candidate
        return candidate

    def cleanup(self) -> None:
        """Delete the working directory unless configured to keep it.

        Failures are logged and never raised.
        """
        if self.working_folder is None or not self.delete_after:
            return
        try:
            shutil.rmtree(self.working_folder)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Unable to delete working folder %s: %s", self.working_folder, e)
        self.working_folder = None
        self.repo_dir = None

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------

    def list_remote_refs(self, url: str, credentials: GitCredentials | None = None) -> list[RemoteRef]:
        """List the heads and tags advertised by the remote."""
        result = self._run_remote(
            ["ls-remote", "--heads", "--tags", _authenticated_url(url, credentials)]
        )
        refs = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            oid, name = line.split("\t", 1)
            if name.endswith("^{}"):
                continue
            refs.append(RemoteRef(name=name, oid=oid))
        return refs

    def clone(
        self,
        project_name: str,
        branch: str,
        credentials: GitCredentials | None,
        url: str,
        include_tags: bool = False,
    ) -> Path:
        """
        Clone ``url`` into ``<working folder>/<project_name>`` positioned on ``branch``.

        - existing remote branch: shallow clone of that branch only
        - existing tag (when ``include_tags``): default clone, tag checked out
        - otherwise: default clone, local branch renamed to ``branch``

        Raises:
            TransportError: If the remote stays unreachable after all attempts
        """
        working_folder = self.working_folder or self.create_working_folder()

        names = {ref.name for ref in self.list_remote_refs(url, credentials)}
        branch_exists = f"refs/heads/{branch}" in names
        tag_exists = include_tags and f"refs/tags/{branch}" in names

        target = working_folder / project_name
        remote_url = _authenticated_url(url, credentials)

        if branch_exists:
            self._clone(
                ["--depth", "1", "--single-branch", "--branch", branch, remote_url], target
            )
        elif tag_exists:
            self._clone([remote_url], target)
            self._run(["-c", "advice.detachedHead=false", "checkout", f"refs/tags/{branch}"], target)
        else:
            self._clone([remote_url], target)
            if self._has_head(target):
                self._run(["branch", "-m", branch], target)
            else:
                self._run(["symbolic-ref", "HEAD", f"refs/heads/{branch}"], target)

        self.repo_dir = target
        return target

    def push(self) -> None:
        """Push every local branch to the remote."""
        self._run_remote(["push", self.REMOTE, "--all"], self._require_repo())

    def push_tags(self, force: bool = False) -> None:
        """Push only tags to the remote."""
        cmd = ["push", self.REMOTE, "--tags"]
        if force:
            cmd.append("--force")
        self._run_remote(cmd, self._require_repo())

    # ------------------------------------------------------------------
    # Local mutations
    # ------------------------------------------------------------------

    def replace_content(self) -> None:
        """Delete everything in the checkout except the git metadata directory."""
        repo = self._require_repo()
        try:
            for entry in repo.iterdir():
                if entry.name == self.GIT_METADATA_DIR:
                    continue
                if entry.is_dir() and not entry.is_symlink():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
        except OSError as e:
            raise WorkspaceError("IO_ERROR", f"Unable to clear {repo}: {e}") from e

    def unpack_archive(self, archive: str | Path) -> None:
        """Extract a zip archive over the checkout."""
        repo = self._require_repo()
        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(repo)
        except zipfile.BadZipFile as e:
            raise ValidationError("INVALID_ARCHIVE", f"{Path(archive).name} is not a zip archive") from e
        except OSError as e:
            raise WorkspaceError("IO_ERROR", f"Unable to unpack {archive}: {e}") from e

    def copy_file(
        self,
        source: str | Path,
        target_dir: str = "",
        file_name: str | None = None,
    ) -> Path:
        """
        Copy ``source`` into ``target_dir`` (relative to the checkout root).

        Returns:
            Path of the copied file
        """
        source = Path(source)
        destination_dir = self._inside_repo(target_dir)
        destination = destination_dir / (file_name or source.name)
        try:
            destination_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, destination)
        except OSError as e:
            raise WorkspaceError("IO_ERROR", f"Unable to copy {source.name}: {e}") from e
        return destination

    def read_file(self, filepath: str) -> bytes:
        """
        Read a file of the checkout.

        Raises:
            NotFoundError: If the file does not exist or is a directory
        """
        path = self._inside_repo(filepath)
        if not path.is_file():
            raise NotFoundError("FILE_NOT_FOUND", f"File {filepath} not found")
        return path.read_bytes()

    # ------------------------------------------------------------------
    # Commits and tags
    # ------------------------------------------------------------------

    def has_changes(self) -> bool:
        """True when the tree has uncommitted or untracked changes."""
        status = self._run(["status", "--porcelain"], self._require_repo())
        return bool(status.stdout.strip())

    def commit(self, username: str, message: str) -> Commit:
        """
        Stage everything (deletions included) and commit as ``username``.

        Raises:
            NoChangesError: If there is nothing to commit
        """
        repo = self._require_repo()
        if not self.has_changes():
            raise NoChangesError()

        email = f"{username}@{self.email_domain}"
        env = {
            "GIT_AUTHOR_NAME": username,
            "GIT_AUTHOR_EMAIL": email,
            "GIT_COMMITTER_NAME": username,
            "GIT_COMMITTER_EMAIL": email,
        }
        self._run(["add", "--all", "."], repo)
        self._run(["-c", "commit.gpgsign=false", "commit", "--quiet", "-m", message], repo, env)
        return self.head_commit()

    def head_commit(self) -> Commit:
        output = self._run(["log", "-1", f"--format={_LOG_FORMAT}"], self._require_repo()).stdout
        sha, author_name, author_email, committer_name, committer_email, date, body = (
            output.split(_FIELD_SEPARATOR, 6)
        )
        message = body.rstrip("\n")
        return Commit(
            id=sha,
            short_id=sha[:8],
            author_name=author_name,
            author_email=author_email,
            committer_name=committer_name,
            committer_email=committer_email,
            message=message,
            title=message.split("\n", 1)[0],
            created_at=_parse_git_date(date),
        )

    def tag(self, name: str, force: bool = False) -> None:
        """Create (or with ``force``, move) a lightweight tag at HEAD."""
        cmd = ["tag"]
        if force:
            cmd.append("--force")
        cmd.append(name)
        self._run(cmd, self._require_repo())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_repo(self) -> Path:
        if self.repo_dir is None:
            raise WorkspaceError("NO_CHECKOUT", "No repository has been cloned in this session")
        return self.repo_dir

    def _inside_repo(self, relative: str) -> Path:
        repo = self._require_repo().resolve()
        path = (repo / relative.lstrip("/")).resolve()
        if path != repo and repo not in path.parents:
            raise ValidationError("INVALID_PATH", f"{relative} is outside the repository")
        return path

    def _has_head(self, repo: Path) -> bool:
        try:
            self._run(["rev-parse", "--verify", "--quiet", "HEAD"], repo)
        except WorkspaceError:
            return False
        return True

    def _clone(self, args: list[str], target: Path) -> None:
        def before_attempt() -> None:
            shutil.rmtree(target, ignore_errors=True)

        self._run_remote(["clone", "--quiet", *args, str(target)], before_attempt=before_attempt)

    def _run(
        self,
        args: list[str],
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a local git command.

        Raises:
            WorkspaceError: If git is missing or the command fails
        """
        try:
            return self._execute(args, cwd, env)
        except subprocess.CalledProcessError as e:
            raise WorkspaceError(
                "GIT_COMMAND_FAILED",
                f"git {args[0]} failed: {mask_sensitive_data((e.stderr or '').strip())}",
            ) from e

    def _run_remote(
        self,
        args: list[str],
        cwd: Path | None = None,
        before_attempt: Any = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a network-facing git command with bounded retries.

        Raises:
            TransportError: With the last error once every attempt failed
        """
        attempt = 0
        while True:
            attempt += 1
            if before_attempt is not None:
                before_attempt()
            try:
                return self._execute(args, cwd)
            except subprocess.CalledProcessError as e:
                logger.warning(
                    "Git command %s failed (%d/%d)", args[0], attempt, self.transport_attempts
                )
                if attempt >= self.transport_attempts:
                    raise TransportError(
                        "GIT_TRANSPORT_FAILED",
                        f"git {args[0]} failed: {mask_sensitive_data((e.stderr or '').strip())}",
                    ) from e
            time.sleep(self.transport_delay)

    def _execute(
        self,
        args: list[str],
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        cmd = [self.git_executable, *args]
        log_git_command(cmd, str(cwd) if cwd else None)

        full_env = os.environ.copy()
        full_env["GIT_TERMINAL_PROMPT"] = "0"
        if env:
            full_env.update(env)

        try:
            return subprocess.run(
                cmd,
                cwd=cwd,
                check=True,
                capture_output=True,
                text=True,
                env=full_env,
            )
        except FileNotFoundError as e:
            raise WorkspaceError("GIT_NOT_FOUND", f"{self.git_executable} executable not found") from e


def _authenticated_url(url: str, credentials: GitCredentials | None) -> str:
    """Embed username and token into an http(s) remote URL."""
    if credentials is None:
        return url
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        return url
    host = parts.netloc.rsplit("@", 1)[-1]
    netloc = f"{quote(credentials.username, safe='')}:{quote(credentials.token, safe='')}@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def _parse_git_date(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return None
