"""Exception hierarchy for tokenkeep.

All exceptions inherit from :class:`TokenkeepError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`tokenkeep.exit_codes`.
The top-level error handler in :func:`tokenkeep.app.main` catches
``TokenkeepError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    TokenkeepError (exit 1)
    +-- ConfigLoadError          (exit 7)
    |   +-- ConfigLockError      (exit 7)
    +-- ConfigSaveError          (exit 7)
    +-- SiteConfigError          (exit 7)
    +-- NoRefreshTokenError      (exit 3)
    +-- AuthorizationInputError  (exit 3)
    +-- TokenEndpointError       (exit 3)
    +-- EmptyTokenError          (exit 5)
    +-- InvalidResponseError     (exit 5)
    +-- TransportError           (exit 6)
    +-- SiteFailedError          (exit code of the wrapped cause)
"""

from __future__ import annotations

from typing import Optional

from tokenkeep.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONFIG_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_SERVER_ERROR,
)


class TokenkeepError(Exception):
    """Base exception for all tokenkeep errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`tokenkeep.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigLoadError(TokenkeepError):
    """Raised when the site file is missing, unreadable, not TOML, or fails validation."""

    exit_code = EXIT_CONFIG_ERROR


class ConfigLockError(ConfigLoadError):
    """Raised when another run already holds the lock on the site file."""


class ConfigSaveError(TokenkeepError):
    """Raised when the updated site file cannot be written back."""

    exit_code = EXIT_CONFIG_ERROR


class SiteConfigError(TokenkeepError):
    """Raised when a site lacks a field needed for the action selected for it."""

    exit_code = EXIT_CONFIG_ERROR


class NoRefreshTokenError(TokenkeepError):
    """Raised when a site is due for refresh but has never been authorized."""

    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, message: str = "no refresh token; run 'tokenkeep new' first"):
        super().__init__(message)


class AuthorizationInputError(TokenkeepError):
    """Raised when no authorization code could be collected from the operator."""

    exit_code = EXIT_AUTH_FAILURE


class TokenEndpointError(TokenkeepError):
    """Raised when the token endpoint explicitly rejects a grant.

    Args:
        code: The OAuth2 ``error`` value (e.g. ``"invalid_grant"``).
        description: The optional ``error_description`` value.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, code: str, description: str = ""):
        message = f"token endpoint error: {code}"
        if description:
            message += f", {description}"
        super().__init__(message)
        self.code = code
        self.description = description


class EmptyTokenError(TokenkeepError):
    """Raised when a token response reports no error but carries no access token."""

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, message: str = "token endpoint returned an empty access token"):
        super().__init__(message)


class InvalidResponseError(TokenkeepError):
    """Raised when the token endpoint body is not a JSON object.

    Args:
        message: Human-readable description.
        status_code: HTTP status of the offending response, when known.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(TokenkeepError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class SiteFailedError(TokenkeepError):
    """Raised by the lifecycle controller when one site aborts the batch.

    Wraps the underlying :class:`TokenkeepError` with the name of the site
    that failed and inherits its exit code, so the CLI can report
    ``<site>: <cause>`` and still exit with the cause's category.

    Args:
        site: Name of the site being processed.
        cause: The error raised while processing it.
    """

    def __init__(self, site: str, cause: TokenkeepError):
        super().__init__(f"{site}: {cause}", exit_code=cause.exit_code)
        self.site = site
        self.cause = cause
