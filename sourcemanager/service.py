"""
Source manager facade.

Exposes the platform operations on folders, source repositories, commits,
memberships and deploy keys for one acting user. Provider calls that
create or change repositories run with the user's delegated token; deploy
keys, memberships and namespace lookups use the admin token.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx

from sourcemanager.client import GitLabClient
from sourcemanager.config import SourceManagerConfig
from sourcemanager.credentials import CredentialDelegate, Session
from sourcemanager.deploy_keys import DeployKeyEnabler
from sourcemanager.exceptions import NotFoundError, UnauthorizedError, ValidationError
from sourcemanager.hierarchy import HierarchyResolver
from sourcemanager.logging import get_logger
from sourcemanager.memberships import BatchPolicy, BatchResult, MembershipSynchronizer
from sourcemanager.paths import is_within, sanitize_path
from sourcemanager.provisioning import RepositoryProvisioner, to_source_repository
from sourcemanager.types.access import MemberType, Membership
from sourcemanager.types.folders import Folder
from sourcemanager.types.provider import DeployKey, Project
from sourcemanager.types.repos import Commit, SourceRepository
from sourcemanager.workspace import GitWorkspaceSession

logger = get_logger("service")

COMMIT_MESSAGE = "Update autogenerated components"


class SourceManager:
    """
    Repository provisioning and synchronization for one acting user.

    Example:
        ```python
        from sourcemanager import SourceManager, SourceManagerConfig, StaticSession

        config = SourceManagerConfig.from_env()
        with SourceManager(config, StaticSession("jdoe")) as manager:
            repo = manager.create_source_repository("kathra-projects/DT/api")
            manager.create_commit(repo.path, "dev", "swagger.yml", tag="1.0.0")
        ```
    """

    def __init__(
        self,
        config: SourceManagerConfig,
        session: Session,
        admin: GitLabClient | None = None,
        http_transport: httpx.BaseTransport | None = None,
        workspace_factory: Callable[[], GitWorkspaceSession] | None = None,
        membership_policy: BatchPolicy = BatchPolicy.FAIL_FAST,
    ) -> None:
        """
        Args:
            config: Shared settings
            session: Acting user
            admin: Admin client (default: built from ``config``)
            http_transport: Optional httpx transport for every provider client
            workspace_factory: Builds git workspace sessions
            membership_policy: Default policy of membership batches
        """
        self.config = config
        self.session = session
        self._owns_admin = admin is None
        self.admin = admin or GitLabClient.admin(config, http_transport=http_transport)
        self.credentials = CredentialDelegate(
            self.admin, session, config, http_transport=http_transport
        )
        self._workspace_factory = workspace_factory or (
            lambda: GitWorkspaceSession.from_config(config)
        )

        self.deploy_keys = DeployKeyEnabler(self.admin.deploy_keys)
        self.memberships = MembershipSynchronizer(self.admin, membership_policy)
        self._provisioner: RepositoryProvisioner | None = None

    @property
    def user(self) -> GitLabClient:
        """Client acting as the session user."""
        return self.credentials.user_client()

    @property
    def provisioner(self) -> RepositoryProvisioner:
        if self._provisioner is None:
            self._provisioner = RepositoryProvisioner(
                self.user.projects,
                HierarchyResolver(self.user.groups),
                self.deploy_keys,
            )
        return self._provisioner

    def close(self) -> None:
        self.credentials.close()
        if self._owns_admin:
            self.admin.close()

    def __enter__(self) -> "SourceManager":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def create_folder(self, path: str) -> Folder:
        """Create the folder at ``path`` and any missing ancestor."""
        group = HierarchyResolver(self.user.groups).resolve(path)
        return Folder(path=group.full_path)

    def get_folders(self) -> list[Folder]:
        """List the folders visible to the acting user."""
        return [Folder(path=group.full_path) for group in self.user.groups.list()]

    def get_source_repositories_in_folder(self, folder_path: str) -> list[SourceRepository]:
        """
        List the repositories directly inside a folder.

        Raises:
            NotFoundError: If the folder does not exist
        """
        folder_path = sanitize_path(folder_path)
        try:
            group = self.admin.groups.get(folder_path)
        except NotFoundError as e:
            raise NotFoundError("NOT_FOUND", f"Folder {folder_path} doesn't exist") from e
        return [to_source_repository(project) for project in self.user.groups.projects(group.id)]

    # ------------------------------------------------------------------
    # Source repositories
    # ------------------------------------------------------------------

    def create_source_repository(
        self, path: str, deploy_keys: list[str] | None = None
    ) -> SourceRepository:
        """Provision the repository at ``path`` with its default branches."""
        path = self._guard(path)
        return self.provisioner.provision(path, deploy_keys)

    def delete_source_repository(self, path: str) -> None:
        """
        Delete the repository at ``path``.

        Raises:
            NotFoundError: If no such repository exists
        """
        project = self._managed_project(path)
        self.user.projects.delete(project)
        logger.info("Deleted repository %s", project.path_with_namespace)

    def create_branch(self, path: str, branch: str, ref: str | None = None) -> str:
        """Create ``branch`` from ``ref`` (default "master") and return its name."""
        project = self._managed_project(path)
        self.user.projects.create_branch(project, branch, ref or RepositoryProvisioner.PRIMARY_BRANCH)
        return self.user.projects.get_branch(project, branch).name

    def get_branches(self, path: str) -> list[str]:
        """Branch names followed by tag names."""
        project = self._managed_project(path)
        names = [branch.name for branch in self.user.projects.branches(project)]
        names.extend(tag.name for tag in self.user.projects.tags(project))
        return names

    def get_commits(self, path: str, branch: str) -> list[Commit]:
        project = self._managed_project(path)
        return self.user.projects.commits(project, branch)

    def create_commit(
        self,
        path: str,
        branch: str,
        file: str | Path,
        filepath: str | None = None,
        uncompress: bool = False,
        tag: str | None = None,
        replace_content: bool = False,
    ) -> Commit:
        """
        Commit ``file`` to ``branch`` as the acting user and push it.

        Args:
            path: Repository path
            branch: Target branch, created from the default branch if missing
            file: Local file to commit
            filepath: Location in the repository; a trailing "/" names a folder
            uncompress: Treat ``file`` as a zip archive and extract it
            tag: Tag to (re)point at the new commit and force-push
            replace_content: Clear the checkout before adding the file

        Raises:
            NoChangesError: If the resulting tree is unchanged (nothing is pushed)
        """
        target_dir, file_name = _split_filepath(filepath)
        project = self._managed_project(path)
        credentials = self.credentials.git_credentials()

        with self._workspace_factory() as workspace:
            workspace.create_working_folder()
            workspace.clone(project.name, branch, credentials, project.http_url)

            if replace_content:
                workspace.replace_content()
            if uncompress:
                workspace.unpack_archive(file)
            else:
                workspace.copy_file(file, target_dir, file_name)

            commit = workspace.commit(self.credentials.username, COMMIT_MESSAGE)
            workspace.push()
            if tag:
                workspace.tag(tag, force=True)
                workspace.push_tags(force=True)

        logger.info(
            "Pushed commit %s to %s on %s", commit.short_id, project.path_with_namespace, branch
        )
        return commit

    def get_file(self, path: str, branch: str, filepath: str) -> bytes:
        """
        Read ``filepath`` from ``branch`` (or a tag of that name).

        Raises:
            ValidationError: If an argument is empty
            NotFoundError: If the file does not exist or is a directory
        """
        if not path or not branch or not filepath:
            raise ValidationError(
                "INVALID_ARGUMENT", "Repository path, branch and filepath must be specified"
            )
        project = self._managed_project(path)
        credentials = self.credentials.git_credentials()

        with self._workspace_factory() as workspace:
            workspace.create_working_folder()
            workspace.clone(project.name, branch, credentials, project.http_url, include_tags=True)
            return workspace.read_file(filepath)

    # ------------------------------------------------------------------
    # Memberships and deploy keys
    # ------------------------------------------------------------------

    def add_memberships(
        self, memberships: list[Membership], policy: BatchPolicy | None = None
    ) -> BatchResult:
        return self.memberships.add(memberships, policy)

    def delete_memberships(
        self, memberships: list[Membership], policy: BatchPolicy | None = None
    ) -> BatchResult:
        return self.memberships.remove(memberships, policy)

    def get_memberships(
        self, path: str, member_type: MemberType | str | None = None
    ) -> list[Membership]:
        return self.memberships.list(path, member_type)

    def create_deploy_key(self, key_name: str, ssh_public_key: str, path: str) -> DeployKey:
        """Register a new deploy key on the repository at ``path``."""
        project = self._managed_project(path, client=self.admin)
        return self.deploy_keys.create(project, key_name, ssh_public_key)

    # ------------------------------------------------------------------
    # Namespace guard
    # ------------------------------------------------------------------

    def _guard(self, path: str) -> str:
        path = sanitize_path(path)
        if not is_within(path, self.config.root_group):
            raise UnauthorizedError(
                f"Repository {path} is outside the managed namespace {self.config.root_group}"
            )
        return path

    def _managed_project(self, path: str, client: GitLabClient | None = None) -> Project:
        """Look up a repository below the root group.

        Raises:
            UnauthorizedError: Before any remote call for paths outside the root group
            NotFoundError: If no such repository exists
        """
        path = self._guard(path)
        project = (client or self.user).projects.get(path)
        self._guard(project.path_with_namespace)
        return project


def _split_filepath(filepath: str | None) -> tuple[str, str | None]:
    """Split a commit target into (folder, file name); a None name keeps the source name."""
    if not filepath or filepath == ".":
        return "", None
    folder, _, name = filepath.rpartition("/")
    return folder, name or None
