"""Pydantic models shared across all tokenkeep modules.

The models fall into two groups:

**Site file models** -- deserialised from the TOML site file by
:class:`~tokenkeep.config.CredentialStore`:
    :class:`Site` (one OAuth2 client and its current tokens) and
    :class:`SiteConfig` (the ordered list of sites).

**Exchange models** -- produced by the token exchange client and applied to
a :class:`Site` by the lifecycle controller:
    :class:`TokenResult` and the :class:`RunMode` selector.

Both site file models use ``extra="allow"`` so that keys written by hand
that tokenkeep does not know about survive a load/save round trip.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

OOB_REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"
"""Out-of-band redirect URI: the provider shows the code for manual entry."""

MAX_EXPIRES_IN = 10 * 365 * 24 * 3600
"""Longest access-token lifetime accepted from a token endpoint, in seconds."""


class RunMode(str, enum.Enum):
    """Which policy the lifecycle controller applies to every site."""

    REFRESH = "refresh"
    NEW = "new"


def _is_http_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class Site(BaseModel):
    """OAuth2 state for a single site.

    A site is authored by hand (name, client credentials, endpoints, scopes)
    and then maintained by tokenkeep (tokens and expiry). ``expires_at`` is
    ``None`` until the first successful exchange and is only ever set by
    :meth:`apply_token`.

    Example::

        site = Site(
            name="calendar",
            client_id="abc",
            client_secret="s3cret",
            auth_url="https://accounts.example.com/o/oauth2/auth",
            token_url="https://accounts.example.com/o/oauth2/token",
            scopes=["calendar.readonly"],
        )
        assert not site.is_authorized
    """

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    name: str = Field(description="Display name used in logs and error messages")
    client_id: str = Field(default="", description="OAuth2 client identifier")
    client_secret: str = Field(default="", description="OAuth2 client secret")
    auth_url: str = Field(default="", description="Authorization endpoint")
    token_url: str = Field(default="", description="Token endpoint")
    scopes: list[str] = Field(default_factory=list)
    access_token: str = ""
    refresh_token: str = ""
    expires_at: Optional[datetime] = Field(
        default=None,
        description="When access_token expires (UTC); unset before the first exchange",
    )

    @field_validator("scopes")
    @classmethod
    def _dedupe_scopes(cls, value: list[str]) -> list[str]:
        seen: dict[str, None] = {}
        for scope in value:
            if scope:
                seen.setdefault(scope, None)
        return list(seen)

    @field_validator("expires_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # TOML local date-times carry no offset
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def is_authorized(self) -> bool:
        """Whether the site has completed the authorization-code flow."""
        return bool(self.refresh_token)

    @property
    def scope_string(self) -> str:
        """Scopes joined with single spaces, as sent on the wire."""
        return " ".join(self.scopes)

    def expires_within(self, now: datetime, window: timedelta) -> bool:
        """Return ``True`` if the access token expires at or before ``now + window``.

        A site that has never been through an exchange counts as expired.
        """
        if self.expires_at is None:
            return True
        return self.expires_at <= now + window

    def validate_for(self, mode: RunMode) -> list[str]:
        """Check that the fields needed by *mode* are present and well-formed.

        Args:
            mode: The action about to be taken on this site.

        Returns:
            A list of human-readable problems. Empty if the site is usable.
        """
        problems: list[str] = []
        if not self.client_id:
            problems.append("'client_id' is required")
        if not self.token_url:
            problems.append("'token_url' is required")
        elif not _is_http_url(self.token_url):
            problems.append(f"'token_url' is not an http(s) URL: {self.token_url}")
        if mode == RunMode.NEW:
            if not self.auth_url:
                problems.append("'auth_url' is required to authorize")
            elif not _is_http_url(self.auth_url):
                problems.append(f"'auth_url' is not an http(s) URL: {self.auth_url}")
        return problems

    def apply_token(self, result: TokenResult, now: datetime) -> None:
        """Store the outcome of a successful exchange.

        ``access_token``, ``refresh_token`` and ``expires_at`` are computed
        first and assigned back to back, so a site is either fully updated
        or not touched at all. A response that does not re-issue a refresh
        token keeps the current one.

        Args:
            result: Parsed token response.
            now: The time the exchange completed.
        """
        access_token = result.access_token
        refresh_token = result.refresh_token or self.refresh_token
        expires_at = now + timedelta(seconds=result.expires_in)

        self.access_token = access_token
        self.refresh_token = refresh_token
        self.expires_at = expires_at


class SiteConfig(BaseModel):
    """The full contents of a site file: an ordered list of sites.

    Order in the file is processing order and is preserved on save.
    """

    model_config = ConfigDict(extra="allow")

    sites: list[Site] = Field(default_factory=list)

    def names(self) -> list[str]:
        """Site names in file order."""
        return [site.name for site in self.sites]


class TokenResult(BaseModel):
    """Normalised token endpoint response.

    Only the fields tokenkeep stores are kept; anything else the provider
    returns (``scope``, ``id_token``...) is ignored.

    Attributes:
        access_token: The new bearer token. Never empty once constructed by
            :class:`~tokenkeep.auth.exchange.TokenExchangeClient`.
        refresh_token: A newly issued refresh token, or ``None`` if the
            provider did not rotate it.
        expires_in: Lifetime of ``access_token`` in seconds. ``0`` when the
            provider omits it, which makes the site due on the next run.
            Capped at :data:`MAX_EXPIRES_IN`.
        token_type: Usually ``"Bearer"``.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = ""
    refresh_token: Optional[str] = None
    expires_in: int = Field(default=0, ge=0, le=MAX_EXPIRES_IN)
    token_type: Optional[str] = None

    @field_validator("expires_in", mode="before")
    @classmethod
    def _null_expiry(cls, value: object) -> object:
        return 0 if value is None else value
