"""Source manager - repository provisioning and synchronization over GitLab."""

from sourcemanager.client import GitLabClient
from sourcemanager.config import SourceManagerConfig
from sourcemanager.credentials import CredentialDelegate, GitCredentials, Session, StaticSession
from sourcemanager.deploy_keys import DeployKeyEnabler
from sourcemanager.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConflictError,
    CredentialError,
    NoChangesError,
    NotFoundError,
    PermissionDeniedError,
    ProvisioningError,
    ServerError,
    SourceManagerError,
    TransportError,
    UnauthorizedError,
    ValidationError,
    WorkspaceError,
)
from sourcemanager.hierarchy import HierarchyResolver
from sourcemanager.logging import configure_logging, get_logger
from sourcemanager.memberships import BatchPolicy, BatchResult, MembershipSynchronizer
from sourcemanager.provisioning import RepositoryProvisioner
from sourcemanager.service import SourceManager
from sourcemanager.token_refresh import (
    ImpersonationTokenIssuer,
    ScriptTokenIssuer,
    TechnicalUser,
    TechnicalUserDirectory,
    TokenIssuer,
    TokenRefreshService,
)
from sourcemanager.transport import HTTPTransport, RetryConfig
from sourcemanager.types import (
    Commit,
    Folder,
    Membership,
    MembershipRole,
    MemberType,
    SourceRepository,
)
from sourcemanager.workspace import GitWorkspaceSession, RemoteRef

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Facade
    "SourceManager",
    "SourceManagerConfig",
    # Provider client
    "GitLabClient",
    "HTTPTransport",
    "RetryConfig",
    # Components
    "CredentialDelegate",
    "GitCredentials",
    "Session",
    "StaticSession",
    "HierarchyResolver",
    "RepositoryProvisioner",
    "DeployKeyEnabler",
    "MembershipSynchronizer",
    "BatchPolicy",
    "BatchResult",
    "GitWorkspaceSession",
    "RemoteRef",
    # Token refresh
    "TokenRefreshService",
    "TokenIssuer",
    "ScriptTokenIssuer",
    "ImpersonationTokenIssuer",
    "TechnicalUser",
    "TechnicalUserDirectory",
    # Types
    "Folder",
    "SourceRepository",
    "Commit",
    "Membership",
    "MembershipRole",
    "MemberType",
    # Exceptions
    "SourceManagerError",
    "ConfigurationError",
    "AuthenticationError",
    "PermissionDeniedError",
    "UnauthorizedError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "ServerError",
    "TransportError",
    "NoChangesError",
    "ProvisioningError",
    "CredentialError",
    "WorkspaceError",
    # Logging
    "configure_logging",
    "get_logger",
]
