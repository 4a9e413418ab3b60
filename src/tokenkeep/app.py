"""Typer application and CLI entry point for tokenkeep.

This module wires together the root Typer application and its commands
(``refresh``, ``new``, ``status``). Running ``tokenkeep`` with no command
is the same as ``tokenkeep refresh``, which is what a scheduler calls.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`tokenkeep.commands.run`: The refresh/new run commands.
    :mod:`tokenkeep.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from tokenkeep import __version__
from tokenkeep.auth.exchange import DEFAULT_TIMEOUT
from tokenkeep.commands import new_command, refresh_command, status_command
from tokenkeep.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE
from tokenkeep.models import RunMode

app = typer.Typer(
    name="tokenkeep",
    help="Keep OAuth2 access tokens for a set of sites from expiring.",
    invoke_without_command=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("refresh")(refresh_command)
app.command("new")(new_command)
app.command("status")(status_command)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"tokenkeep {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    file: Optional[str] = typer.Option(
        None,
        "--file",
        "-f",
        help="Site file path (default: $TOKENKEEP_FILE, ./conf.toml, or the config dir).",
    ),
    timeout: float = typer.Option(
        DEFAULT_TIMEOUT, "--timeout", min=1.0, help="Token request timeout in seconds."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Show what would be done without doing it."
    ),
    no_input: bool = typer.Option(
        False, "--no-input", help="Fail instead of prompting for authorization codes."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every command.

    Initialises the global :class:`~tokenkeep.output.OutputManager` from
    CLI flags and stores shared options in ``ctx.obj``. When no command is
    given, runs the refresh policy.

    Args:
        ctx: Typer invocation context.
        version: If ``True``, print the version string and exit.
        file: Site file path override (highest precedence).
        timeout: Seconds to wait for a token endpoint.
        dry_run: Print the planned actions without contacting any endpoint.
        no_input: Disable the interactive authorization-code prompt.
        json_output: Force JSON output format.
        plain_output: Force plain-text output format.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level diagnostic output.
    """
    from tokenkeep.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    )
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="[debug] %(name)s: %(message)s",
            stream=sys.stderr,
        )

    ctx.ensure_object(dict)
    ctx.obj["file"] = file
    ctx.obj["timeout"] = timeout
    ctx.obj["dry_run"] = dry_run
    ctx.obj["no_input"] = no_input

    if ctx.invoked_subcommand is None:
        from tokenkeep.commands.run import run_mode

        run_mode(ctx, RunMode.REFRESH)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path.

    Args:
        exc: The unhandled exception to log.

    Returns:
        Absolute path to the written crash log file.
    """
    from tokenkeep.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``tokenkeep`` console script.

    Unhandled :class:`~tokenkeep.exceptions.TokenkeepError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from tokenkeep.exceptions import TokenkeepError
        from tokenkeep.output import error

        if isinstance(exc, TokenkeepError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
