"""
Repository provisioning.

Creates a project under its (possibly new) parent folder, enables the
requested deploy keys and makes sure the default secondary branch exists.
Every step tolerates a concurrent caller doing the same thing.
"""

import time

from sourcemanager.clients.projects import ProjectsClient
from sourcemanager.deploy_keys import DeployKeyEnabler
from sourcemanager.exceptions import (
    ConflictError,
    NotFoundError,
    ProvisioningError,
    SourceManagerError,
)
from sourcemanager.hierarchy import HierarchyResolver
from sourcemanager.logging import get_logger
from sourcemanager.paths import sanitize_path, split_path
from sourcemanager.types.provider import Group, Project
from sourcemanager.types.repos import PROVIDER_NAME, SourceRepository

logger = get_logger("provisioning")


def to_source_repository(project: Project, path: str | None = None) -> SourceRepository:
    """Map a provider project onto the platform repository model."""
    return SourceRepository(
        path=path or project.path_with_namespace,
        name=project.name,
        provider=PROVIDER_NAME,
        provider_id=str(project.id),
        http_url=project.http_url,
        ssh_url=project.ssh_url,
        web_url=project.web_url,
    )


class RepositoryProvisioner:
    """Creates repositories with their default branches."""

    PRIMARY_BRANCH = "master"
    SECONDARY_BRANCH = "dev"

    def __init__(
        self,
        projects: ProjectsClient,
        resolver: HierarchyResolver,
        deploy_keys: DeployKeyEnabler,
        max_attempts: int = 5,
        attempt_wait: float = 0.25,
    ) -> None:
        """
        Args:
            projects: Projects client acting as the caller
            resolver: Resolver for the parent folder
            deploy_keys: Enabler backed by the admin client
            max_attempts: Attempts to create the secondary branch
            attempt_wait: Base wait in seconds, doubled after each attempt
        """
        self.projects = projects
        self.resolver = resolver
        self.deploy_keys = deploy_keys
        self.max_attempts = max_attempts
        self.attempt_wait = attempt_wait

    def provision(self, path: str, deploy_keys: list[str] | None = None) -> SourceRepository:
        """
        Create the repository at ``path``.

        Steps run strictly in order: parent resolution, deploy key
        validation, project lookup or creation (with key enablement),
        default branch. An existing project is reused without a creation
        call.

        Raises:
            NotFoundError: If a requested deploy key does not exist
            ConflictError: If the name is taken but the project cannot be found
            ProvisioningError: On any other unrecoverable failure
        """
        path = sanitize_path(path)
        parent_path, name = split_path(path)
        if not parent_path:
            raise ProvisioningError(f"Repository path {path} has no parent folder")

        group = self.resolver.resolve(parent_path)
        if group is None:
            raise ProvisioningError(
                f"Unable to create gitlab project for provided path: {parent_path}"
            )

        # Validated before creation so that a typo never leaves an orphaned project
        key_ids = self.deploy_keys.resolve(deploy_keys)

        project = self._find_existing(path)
        if project is not None:
            logger.info("Project %s already exists, reusing it", path)
        else:
            project = self._create(group, name, key_ids)

        self.ensure_default_branch(project)
        return to_source_repository(project, path)

    def ensure_default_branch(self, project: Project) -> None:
        """
        Create the secondary branch from the primary one.

        A failed creation is re-checked before it counts: when the branch
        exists with a head commit, the provider applied the change despite
        the error and the loop stops. The last error is raised only when
        every attempt failed without the branch ever appearing.
        """
        for attempt in range(self.max_attempts):
            try:
                self.projects.create_branch(project, self.SECONDARY_BRANCH, self.PRIMARY_BRANCH)
                return
            except SourceManagerError as e:
                if self._branch_exists(project):
                    logger.info(
                        "Provider raised an error, however the branch has been created (%s)",
                        e.message,
                    )
                    return

                if attempt + 1 >= self.max_attempts:
                    raise

                wait = self.attempt_wait * (2 ** attempt)
                logger.warning(
                    "Unable to create branches for repository %s, wait %.0f ms and retry (%d/%d)",
                    project.path_with_namespace,
                    wait * 1000,
                    attempt + 1,
                    self.max_attempts,
                )
                time.sleep(wait)

    def _find_existing(self, path: str) -> Project | None:
        try:
            return self.projects.get(path)
        except NotFoundError:
            return None

    def _create(self, group: Group, name: str, key_ids: dict[str, int]) -> Project:
        try:
            project = self.projects.create(name, group)
        except ConflictError:
            logger.info("Project %s/%s was created concurrently, reusing it", group.full_path, name)
            return self._find_sibling(group, name)
        except SourceManagerError as e:
            raise ProvisioningError(
                f"Cannot create the project {name} in the group {group.full_path} "
                f"caused by {e.message}"
            ) from e

        for title, key_id in key_ids.items():
            try:
                self.deploy_keys.enable(project, key_id)
            except SourceManagerError as e:
                raise ProvisioningError(
                    f"Cannot enable deploy key {title} on {project.path_with_namespace} "
                    f"caused by {e.message}"
                ) from e
        return project

    def _branch_exists(self, project: Project) -> bool:
        try:
            branch = self.projects.get_branch(project, self.SECONDARY_BRANCH)
        except SourceManagerError as e:
            logger.warning("Branch %s has not been created: %s", self.SECONDARY_BRANCH, e.message)
            return False
        return bool(branch.commit_id)

    def _find_sibling(self, group: Group, name: str) -> Project:
        for project in self.resolver.groups.projects(group):
            if project.name == name or project.path == name:
                return project
        raise ConflictError(
            "CONFLICT",
            "A source repository with the same name already exists at the requested path",
        )
