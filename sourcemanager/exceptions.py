"""Source manager exception classes."""


class SourceManagerError(Exception):
    """Base exception for all source manager errors."""

    def __init__(
        self, code: str, message: str, status_code: int | None = None
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(f"[{code}] {message}")


class ConfigurationError(SourceManagerError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str) -> None:
        super().__init__("CONFIGURATION_ERROR", message)


class AuthenticationError(SourceManagerError):
    """Raised when the provider rejects the token."""

    pass


class PermissionDeniedError(SourceManagerError):
    """Raised when the provider denies the operation."""

    pass


class UnauthorizedError(SourceManagerError):
    """Raised for repository paths outside the managed namespace."""

    def __init__(self, message: str) -> None:
        super().__init__("UNAUTHORIZED", message)


class NotFoundError(SourceManagerError, LookupError):
    """Raised when a path, key, user or member cannot be resolved."""

    pass


class ConflictError(SourceManagerError):
    """Raised when a name is already taken and no race-recovery applies."""

    pass


class ValidationError(SourceManagerError):
    """Raised on invalid arguments or rejected requests."""

    pass


class ServerError(SourceManagerError):
    """Raised on provider server errors (5xx)."""

    pass


class TransportError(SourceManagerError):
    """Raised when a network-facing call still fails after its retries."""

    pass


class NoChangesError(SourceManagerError):
    """Raised when a commit is attempted on a clean working tree."""

    def __init__(self, message: str = "No changes detected, aborting request.") -> None:
        super().__init__("NOT_MODIFIED", message)


class ProvisioningError(SourceManagerError):
    """Raised when a multi-step creation cannot complete."""

    def __init__(self, message: str) -> None:
        super().__init__("SERVICE_UNAVAILABLE", message)


class CredentialError(SourceManagerError):
    """Raised when no impersonation token can be obtained."""

    def __init__(self, message: str) -> None:
        super().__init__("CREDENTIAL_ERROR", message)


class WorkspaceError(SourceManagerError):
    """Raised on local working directory or local git failures."""

    pass
