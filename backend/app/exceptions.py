"""
Custom exception classes for the application.

These exceptions are caught by global exception handlers in exception_handlers.py,
providing consistent error responses across all API endpoints.

Usage:
    from app.exceptions import NotFoundError, DuplicateError, ValidationError

    # In route handlers - just raise, no try-except needed
    raise NotFoundError("Sync config")       # 404: "Sync config not found"
    raise DuplicateError("config name")      # 409: "Duplicate config name"
    raise ValidationError("Invalid repo")    # 400: "Invalid repo"
"""


class AppException(Exception):
    """
    Base exception class for application-level errors.

    All custom exceptions should inherit from this class.
    The global exception handler will catch these and return
    appropriate HTTP responses.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status code to return
        error_code: Machine-readable error code for client handling
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or f"ERR_{status_code}"
        super().__init__(message)


class NotFoundError(AppException):
    """
    Resource not found (404).

    Usage:
        raise NotFoundError("Sync config")  # "Sync config not found"
    """

    def __init__(self, resource: str = "Resource"):
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
        )


class DuplicateError(AppException):
    """
    Duplicate resource conflict (409).

    Usage:
        raise DuplicateError("config name")  # "Duplicate config name"
    """

    def __init__(self, resource: str = "Resource"):
        super().__init__(
            message=f"Duplicate {resource}",
            status_code=409,
            error_code="DUPLICATE",
        )


class ValidationError(AppException):
    """
    Validation error (400).

    Usage:
        raise ValidationError("Repository must be 'owner/name'")
    """

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
        )


class ConfigurationError(AppException):
    """
    Configuration missing or invalid (400).

    Usage:
        raise ConfigurationError("GitHub", "token")  # "Please configure GitHub token first"
    """

    def __init__(self, config_name: str, config_type: str = "configuration"):
        super().__init__(
            message=f"Please configure {config_name} {config_type} first",
            status_code=400,
            error_code="CONFIGURATION_MISSING",
        )


class AuthenticationError(AppException):
    """
    Credential rejected by an upstream service (401).

    Usage:
        raise AuthenticationError("GitHub token")  # "Invalid GitHub token"
    """

    def __init__(self, credential: str = "credentials"):
        super().__init__(
            message=f"Invalid {credential}",
            status_code=401,
            error_code="AUTHENTICATION_FAILED",
        )


class RateLimitError(AppException):
    """
    Upstream rate limit exhausted (429).

    Usage:
        raise RateLimitError("GitHub API")  # "GitHub API rate limit exceeded"
    """

    def __init__(self, service: str):
        super().__init__(
            message=f"{service} rate limit exceeded",
            status_code=429,
            error_code="RATE_LIMITED",
        )


class ExternalServiceError(AppException):
    """
    External service error (502).

    Usage:
        raise ExternalServiceError("GitHub API", "timeout")
    """

    def __init__(self, service: str, reason: str | None = None):
        message = f"{service} error"
        if reason:
            message = f"{service} error: {reason}"
        super().__init__(
            message=message,
            status_code=502,
            error_code="EXTERNAL_SERVICE_ERROR",
        )


class GitHubAPIError(ExternalServiceError):
    """
    Non-success response from the GitHub REST API.

    `upstream_status` is GitHub's HTTP status; `status_code` stays 502
    because it is what our own API answers with.
    """

    def __init__(self, upstream_status: int, reason: str | None = None):
        self.upstream_status = upstream_status
        detail = f"status {upstream_status}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__("GitHub API", detail)


class GitHubNotFoundError(GitHubAPIError):
    """GitHub answered 404 (missing repository, branch, blob...)."""

    def __init__(self, reason: str | None = None):
        super().__init__(404, reason or "Not Found")


class EmptyRepositoryError(AppException):
    """
    Repository has no commits on main/master (400).

    Usage:
        raise EmptyRepositoryError("octo/source")
    """

    def __init__(self, repository: str):
        super().__init__(
            message=f"Repository {repository} has no commits",
            status_code=400,
            error_code="EMPTY_REPOSITORY",
        )


class SyncInProgressError(AppException):
    """
    Another run already holds the lease on the target branch (409).

    Usage:
        raise SyncInProgressError("octo/target:main")
    """

    def __init__(self, target: str):
        super().__init__(
            message=f"A sync to {target} is already running",
            status_code=409,
            error_code="SYNC_IN_PROGRESS",
        )
