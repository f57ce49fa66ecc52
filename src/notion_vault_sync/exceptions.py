"""Exception hierarchy for notion_vault_sync.

All errors raised on purpose by this package inherit from
:class:`NotionSyncError`, so hosts can catch every library failure with a
single ``except`` clause while still telling failure modes apart:

- ``ConfigurationError``: a sync configuration is unusable (fatal to a run,
  raised before any I/O).
- ``SyncRunError``: a run for one configuration was aborted, typically
  because the remote snapshot could not be fetched.
- ``RemoteAPIError`` and its subclasses: categorized remote failures.
"""

from __future__ import annotations


class NotionSyncError(Exception):
    """Base exception for all notion_vault_sync errors."""


class ConfigurationError(NotionSyncError, ValueError):
    """Raised when a sync configuration is missing a field or is invalid.

    Attributes:
        field: Name of the offending configuration field, if known.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class SyncRunError(NotionSyncError):
    """Raised when a run for one sync configuration cannot proceed.

    Attributes:
        config_name: Name of the configuration whose run was aborted.
    """

    def __init__(self, config_name: str, message: str) -> None:
        self.config_name = config_name
        super().__init__(f"Sync '{config_name}' aborted: {message}")


# ---------------------------------------------------------------------------
# Remote errors
# ---------------------------------------------------------------------------


class RemoteAPIError(NotionSyncError):
    """Raised when a Notion API call fails.

    Attributes:
        category: Short machine-readable failure category.
        status_code: HTTP status code, when the server answered.
    """

    category = "server_error"

    def __init__(
        self, message: str, status_code: int | None = None
    ) -> None:
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(RemoteAPIError):
    """The integration token was rejected (HTTP 401)."""

    category = "invalid_token"


class PermissionDeniedError(RemoteAPIError):
    """The integration lacks access to the resource (HTTP 403)."""

    category = "permission_denied"


class NotFoundError(RemoteAPIError):
    """The requested page, block or database does not exist (HTTP 404)."""

    category = "not_found"


class RateLimitError(RemoteAPIError):
    """Notion kept answering HTTP 429 after all retries.

    Attributes:
        retry_after: Seconds the server asked us to wait, if given.
    """

    category = "rate_limited"

    def __init__(
        self,
        message: str,
        status_code: int | None = 429,
        retry_after: float | None = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, status_code)


class NetworkError(RemoteAPIError):
    """The Notion API could not be reached (DNS, connection, timeout)."""

    category = "network"


class MalformedResponseError(RemoteAPIError):
    """The Notion API answered with a body that is not the expected JSON."""

    category = "malformed_response"
