"""Deploy key resolution and enablement."""

from sourcemanager.clients.deploy_keys import DeployKeysClient
from sourcemanager.exceptions import NotFoundError
from sourcemanager.logging import get_logger
from sourcemanager.types.provider import DeployKey, Project

logger = get_logger("deploy_keys")


class DeployKeyEnabler:
    """Resolves deploy key titles to provider ids and enables them on projects."""

    def __init__(self, deploy_keys: DeployKeysClient) -> None:
        self.deploy_keys = deploy_keys

    def resolve(self, titles: list[str] | None) -> dict[str, int]:
        """
        Map each title to its provider key id.

        All keys are fetched in one batch; titles keep their input order.

        Raises:
            NotFoundError: Naming the first unknown title
        """
        if not titles:
            return {}

        known = {key.title: key.id for key in self.deploy_keys.list()}
        resolved: dict[str, int] = {}
        for title in titles:
            if title not in known:
                raise NotFoundError("DEPLOY_KEY_NOT_FOUND", f"Unable to find deploy key {title}")
            resolved[title] = known[title]
        return resolved

    def enable(self, project: Project, key_id: int) -> DeployKey:
        key = self.deploy_keys.enable(project, key_id)
        logger.info("Enabled deploy key %s on %s", key_id, project.path_with_namespace)
        return key

    def create(self, project: Project, title: str, ssh_public_key: str) -> DeployKey:
        """Register a new deploy key directly on ``project``."""
        return self.deploy_keys.create(project, title, ssh_public_key)
