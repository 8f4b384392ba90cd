"""Provider resource clients."""

from sourcemanager.clients.deploy_keys import DeployKeysClient
from sourcemanager.clients.groups import GroupsClient
from sourcemanager.clients.projects import ProjectsClient
from sourcemanager.clients.users import UsersClient

__all__ = [
    "GroupsClient",
    "ProjectsClient",
    "UsersClient",
    "DeployKeysClient",
]
