"""Status command -- show every site and what the next refresh run would do.

Read-only: the site file is neither locked nor written, and no token
endpoint is contacted. Output goes to stdout in the active format
(``--json``, ``--plain``, or a Rich table on a terminal), so it can feed a
monitoring check::

    tokenkeep --json status | jq '.[] | select(.Next == "refresh")'
"""

from __future__ import annotations

from datetime import timedelta

import typer

from tokenkeep.commands.run import build_controller
from tokenkeep.exceptions import TokenkeepError
from tokenkeep.lifecycle import utcnow
from tokenkeep.models import RunMode
from tokenkeep.output import error, print_table


def status_command(ctx: typer.Context) -> None:
    """Show authorization state, expiry, and the pending action for each site."""
    controller = build_controller(ctx.obj or {})
    try:
        config = controller.store.load()
    except TokenkeepError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    now = utcnow()
    rows: list[list[str]] = []
    for site, action in controller.plan(config, RunMode.REFRESH):
        if site.expires_at is None:
            expires_at = expires_in = "-"
        else:
            expires_at = site.expires_at.isoformat(timespec="seconds")
            expires_in = _format_remaining(site.expires_at - now)
        rows.append(
            [
                site.name,
                "yes" if site.is_authorized else "no",
                expires_at,
                expires_in,
                action.value,
            ]
        )

    print_table(
        ["Site", "Authorized", "Expires", "Remaining", "Next"],
        rows,
        title=str(controller.store.path),
    )


def _format_remaining(delta: timedelta) -> str:
    """Render a timedelta as ``1h05m``, or ``expired`` when negative."""
    seconds = int(delta.total_seconds())
    if seconds <= 0:
        return "expired"
    hours, rest = divmod(seconds, 3600)
    minutes = rest // 60
    if hours:
        return f"{hours}h{minutes:02d}m"
    return f"{minutes}m"
