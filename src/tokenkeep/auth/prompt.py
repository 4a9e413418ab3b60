"""Authorization-code collection for the out-of-band flow.

tokenkeep never runs a callback server. The operator opens the URL built by
:func:`build_authorization_url`, approves access, and pastes the code shown
by the provider back into the terminal.

The lifecycle controller depends only on the :data:`CodePrompt` signature,
so tests (and other front ends) can supply codes without a terminal.
"""

from __future__ import annotations

import sys
from typing import Callable
from urllib.parse import urlencode

import typer

from tokenkeep.exceptions import AuthorizationInputError
from tokenkeep.models import OOB_REDIRECT_URI, Site
from tokenkeep.output import prompt_text

CodePrompt = Callable[[str], str]
"""Given an authorization URL, return the code the operator obtained from it."""


def build_authorization_url(site: Site) -> str:
    """Build the URL the operator opens to authorize *site*.

    Existing query parameters on ``auth_url`` are kept.

    Args:
        site: A site with ``auth_url`` and ``client_id`` set.

    Returns:
        The authorization URL with ``response_type``, ``client_id``,
        ``redirect_uri`` and ``scope`` appended.
    """
    params = {
        "response_type": "code",
        "client_id": site.client_id,
        "redirect_uri": OOB_REDIRECT_URI,
        "scope": site.scope_string,
    }
    separator = "&" if "?" in site.auth_url else "?"
    return f"{site.auth_url}{separator}{urlencode(params)}"


def terminal_code_prompt(authorization_url: str) -> str:
    """Show *authorization_url* and read one authorization code from the terminal.

    Args:
        authorization_url: The URL from :func:`build_authorization_url`.

    Returns:
        The code with surrounding whitespace removed.

    Raises:
        AuthorizationInputError: If stdin is not a TTY, the prompt is
            aborted (EOF, Ctrl-D), or the operator enters nothing.
    """
    if not sys.stdin.isatty():
        raise AuthorizationInputError(
            "Authorization requires an interactive terminal (stdin must be a TTY)"
        )

    prompt_text(f"Open url:\n{authorization_url}\n")
    try:
        code = typer.prompt(
            "Enter authorization code", default="", show_default=False, err=True
        )
    except typer.Abort as exc:
        raise AuthorizationInputError("No authorization code entered") from exc

    code = code.strip()
    if not code:
        raise AuthorizationInputError("Cannot read authorization code: empty input")
    return code


def disabled_code_prompt(authorization_url: str) -> str:
    """A :data:`CodePrompt` for ``--no-input`` runs: always fails."""
    raise AuthorizationInputError(
        "Authorization needs an operator but interactive input is disabled (--no-input)"
    )
