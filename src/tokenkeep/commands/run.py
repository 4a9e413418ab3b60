"""Run commands -- ``refresh`` (the default) and ``new``.

Both commands build a :class:`~tokenkeep.lifecycle.LifecycleController`
from the global options stored in ``ctx.obj`` and run it once over the
whole site file.

Typical use from a scheduler::

    */5 * * * * tokenkeep --quiet --no-input --file ~/tokens.toml

and once by hand for every newly added site::

    tokenkeep new
"""

from __future__ import annotations

from typing import Any

import typer

from tokenkeep.auth import (
    TokenExchangeClient,
    disabled_code_prompt,
    terminal_code_prompt,
)
from tokenkeep.config import CredentialStore, resolve_site_file
from tokenkeep.exceptions import NoRefreshTokenError, SiteFailedError, TokenkeepError
from tokenkeep.lifecycle import Action, LifecycleController
from tokenkeep.models import RunMode
from tokenkeep.output import error, info, success, suggest


def build_controller(options: dict[str, Any]) -> LifecycleController:
    """Create a controller from the options set by the root callback."""
    store = CredentialStore(resolve_site_file(options.get("file")))
    client = TokenExchangeClient(timeout=options.get("timeout", 30.0))
    prompt = disabled_code_prompt if options.get("no_input") else terminal_code_prompt
    return LifecycleController(store, client, prompt)


def run_mode(ctx: typer.Context, mode: RunMode) -> None:
    """Run *mode* over all sites, turning errors into exit codes.

    Args:
        ctx: Typer context whose ``obj`` holds the root options.
        mode: Policy to apply.

    Raises:
        typer.Exit: With the error's exit code if the run failed.
    """
    options = ctx.obj or {}
    controller = build_controller(options)
    try:
        if options.get("dry_run"):
            _print_plan(controller, mode)
            return
        report = controller.run(mode)
    except TokenkeepError as exc:
        error(str(exc))
        if isinstance(exc, SiteFailedError) and isinstance(exc.cause, NoRefreshTokenError):
            suggest("Authorize it first: tokenkeep new")
        raise typer.Exit(code=exc.exit_code) from None

    if report.saved:
        success(f"Updated {len(report.updated)} site(s) in {controller.store.path}")
    else:
        info("Nothing to do.")


def _print_plan(controller: LifecycleController, mode: RunMode) -> None:
    config = controller.store.load()
    pending = 0
    for site, action in controller.plan(config, mode):
        if action == Action.NOOP:
            info(f"{site.name}: nothing to do")
        else:
            pending += 1
            info(f"{site.name}: would {action.value}")
    info(f"Dry run: {pending} site(s) would be updated, nothing written.")


def refresh_command(ctx: typer.Context) -> None:
    """Refresh access tokens that expire within the next 10 minutes.

    Sites whose token is still valid beyond that window are left alone. A
    site that is due but has never been authorized fails the run. If any
    site fails, no changes are written.
    """
    run_mode(ctx, RunMode.REFRESH)


def new_command(ctx: typer.Context) -> None:
    """Authorize every site that has no refresh token yet.

    For each such site, prints an authorization URL and waits for the code
    shown by the provider after approval. Sites that are already authorized
    are skipped. If any site fails, no changes are written.
    """
    run_mode(ctx, RunMode.NEW)
