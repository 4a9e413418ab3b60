"""Shared test fixtures for tokenkeep.

Provides site factories, a controllable clock, an isolated site file, and
helpers for building token endpoint responses. These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest
import tomli_w

from tokenkeep.models import Site
from tokenkeep.output import reset_output


NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)
TOKEN_URL = "https://auth.example.com/token"
AUTH_URL = "https://auth.example.com/authorize"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Sites
# ---------------------------------------------------------------------------


def make_site(**kwargs: Any) -> Site:
    """Build a Site with sensible defaults overridden by kwargs."""
    defaults: dict[str, Any] = {
        "name": "calendar",
        "client_id": "client-1",
        "client_secret": "secret-1",
        "auth_url": AUTH_URL,
        "token_url": TOKEN_URL,
        "scopes": ["read", "write"],
    }
    defaults.update(kwargs)
    return Site(**defaults)


def site_dict(**kwargs: Any) -> dict[str, Any]:
    """Plain-dict form of :func:`make_site`, as it appears in a site file."""
    return make_site(**kwargs).model_dump(mode="python", exclude_none=True)


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """A clock frozen at :data:`NOW`."""
    return lambda: NOW


@pytest.fixture
def site_file(tmp_path: Path) -> Callable[..., Path]:
    """Return a writer that dumps site dicts to ``tmp_path/conf.toml``."""

    def _write(*sites: dict[str, Any], extra: Optional[dict[str, Any]] = None) -> Path:
        path = tmp_path / "conf.toml"
        data: dict[str, Any] = dict(extra or {})
        data["sites"] = list(sites)
        path.write_text(tomli_w.dumps(data), encoding="utf-8")
        return path

    return _write


# ---------------------------------------------------------------------------
# Token endpoint responses
# ---------------------------------------------------------------------------


def token_response(
    payload: Any = None,
    status_code: int = 200,
    content: Optional[bytes] = None,
) -> httpx.Response:
    """Build a real httpx.Response as a token endpoint would return it."""
    request = httpx.Request("POST", TOKEN_URL)
    if content is not None:
        return httpx.Response(status_code, content=content, request=request)
    if payload is None:
        payload = {"access_token": "T1", "refresh_token": "R1", "expires_in": 3600}
    return httpx.Response(status_code, json=payload, request=request)


def expires_in(minutes: float) -> datetime:
    """An expiry *minutes* after :data:`NOW`."""
    return NOW + timedelta(minutes=minutes)
