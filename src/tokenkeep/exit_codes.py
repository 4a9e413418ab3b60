"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~tokenkeep.exceptions.TokenkeepError` subclass.
Schedulers and shell wrappers can inspect the exit code to decide whether a
failed run needs a human (``EXIT_AUTH_FAILURE``) or is likely transient
(``EXIT_CONNECTION_ERROR``).

Example::

    $ tokenkeep refresh
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the token endpoint rejected a refresh token
"""

EXIT_SUCCESS = 0
"""The run completed successfully (including runs where nothing was due)."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""A site could not be authorized or refreshed (rejected grant, missing code)."""

EXIT_SERVER_ERROR = 5
"""The token endpoint answered with something that is not a usable token response."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_CONFIG_ERROR = 7
"""The site file could not be read, validated, locked, or written."""

EXIT_CANCELLED = 130
"""The run was interrupted with Ctrl-C."""
