"""tokenkeep -- keep a fleet of OAuth2 credentials from expiring.

tokenkeep reads a TOML file describing a set of *sites* (OAuth2 clients with
their endpoints and current tokens), refreshes every access token that is
about to expire, and writes the new tokens back. It is meant to be run from
a scheduler such as cron or a systemd timer.

Typical workflow::

    tokenkeep new        # authorize sites that have no refresh token yet
    tokenkeep            # refresh tokens that expire within 10 minutes

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models for sites, the site file, and token responses.
    config: Path resolution, locking, and the TOML credential store.
    lifecycle: The per-site decision policy and batch-atomic run.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
