"""Per-site decision policy and the batch-atomic run.

:class:`LifecycleController` walks the sites of a
:class:`~tokenkeep.models.SiteConfig` in file order and, for each one,
decides between three actions:

* :attr:`Action.AUTHORIZE` -- ``new`` mode, site has no refresh token:
  collect an authorization code from the operator and exchange it.
* :attr:`Action.REFRESH` -- ``refresh`` mode, access token expires within
  :data:`LOOKAHEAD_WINDOW` (or has never been issued): exchange the refresh
  token.
* :attr:`Action.NOOP` -- anything else.

A run is all or nothing. The first site that fails stops the batch, and the
site file is not written, so every update made earlier in the same run is
dropped with the in-memory config. The next scheduled run starts again from
the last complete state.

See Also:
    :class:`~tokenkeep.auth.exchange.TokenExchangeClient` for the HTTP side.
    :class:`~tokenkeep.config.CredentialStore` for load/save and locking.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from tokenkeep.auth.exchange import TokenExchangeClient
from tokenkeep.auth.prompt import CodePrompt, build_authorization_url
from tokenkeep.config import CredentialStore
from tokenkeep.exceptions import (
    NoRefreshTokenError,
    SiteConfigError,
    SiteFailedError,
    TokenkeepError,
)
from tokenkeep.models import RunMode, Site, SiteConfig
from tokenkeep.output import debug, success

LOOKAHEAD_WINDOW = timedelta(minutes=10)
"""Refresh an access token once it expires within this long from now."""

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Action(str, enum.Enum):
    """What the controller does with one site in one run."""

    NOOP = "noop"
    AUTHORIZE = "authorize"
    REFRESH = "refresh"


@dataclass
class RunReport:
    """Outcome of a completed batch.

    Attributes:
        mode: The policy that was applied.
        updated: Names of sites that received new tokens, in file order.
        unchanged: Names of sites that needed no work.
        saved: Whether the site file was written.
    """

    mode: RunMode
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    saved: bool = False


class LifecycleController:
    """Apply the authorize/refresh policy to every site and persist the result.

    Args:
        store: Where the site file is loaded from and saved to.
        client: Performs the token requests.
        prompt_code: Supplies an authorization code for a given
            authorization URL (see :mod:`tokenkeep.auth.prompt`).
        clock: Returns the current time as an aware UTC datetime.
        window: How far ahead of expiry a refresh is triggered.
    """

    def __init__(
        self,
        store: CredentialStore,
        client: TokenExchangeClient,
        prompt_code: CodePrompt,
        clock: Clock = utcnow,
        window: timedelta = LOOKAHEAD_WINDOW,
    ) -> None:
        self._store = store
        self._client = client
        self._prompt_code = prompt_code
        self._clock = clock
        self._window = window

    @property
    def store(self) -> CredentialStore:
        return self._store

    def evaluate(self, site: Site, mode: RunMode, now: datetime) -> Action:
        """Decide what *mode* requires for *site* at time *now*.

        This is a pure decision: an unauthorized site that is due in
        ``refresh`` mode still yields :attr:`Action.REFRESH`, and performing
        it raises :class:`~tokenkeep.exceptions.NoRefreshTokenError`.
        """
        if mode == RunMode.NEW:
            return Action.NOOP if site.is_authorized else Action.AUTHORIZE
        if site.expires_within(now, self._window):
            return Action.REFRESH
        return Action.NOOP

    def plan(self, config: SiteConfig, mode: RunMode) -> list[tuple[Site, Action]]:
        """Return the action every site would get, without performing any."""
        now = self._clock()
        return [(site, self.evaluate(site, mode, now)) for site in config.sites]

    def process(self, config: SiteConfig, mode: RunMode) -> RunReport:
        """Run the policy over *config* in place, stopping at the first failure.

        Args:
            config: The loaded sites. Updated sites are modified in place.
            mode: Which policy to apply.

        Returns:
            A :class:`RunReport` listing updated and unchanged sites.

        Raises:
            SiteFailedError: Wrapping the first error, with the failing
                site's name. Sites after it are not looked at.
        """
        report = RunReport(mode=mode)
        for site in config.sites:
            action = self.evaluate(site, mode, self._clock())
            if action == Action.NOOP:
                debug(f"{site.name}: nothing to do")
                report.unchanged.append(site.name)
                continue

            debug(f"{site.name}: {action.value}")
            try:
                self._perform(site, action)
            except TokenkeepError as exc:
                raise SiteFailedError(site.name, exc) from exc

            report.updated.append(site.name)
            success(
                f"{site.name}: {_past_tense(action)}, "
                f"expires {site.expires_at:%Y-%m-%d %H:%M:%S %Z}"
            )
        return report

    def run(self, mode: RunMode) -> RunReport:
        """Load, process, and save the site file as one locked unit.

        The file is written only when every site succeeded and at least one
        was updated.

        Raises:
            ConfigLoadError: The file cannot be locked, read, or validated.
            SiteFailedError: A site failed; nothing was written.
            ConfigSaveError: The updated file cannot be written.
        """
        with self._store.locked():
            config = self._store.load()
            debug(f"Loaded {len(config.sites)} site(s) from {self._store.path}")
            report = self.process(config, mode)
            if report.updated:
                self._store.save(config)
                report.saved = True
                debug(f"Saved {self._store.path}")
        return report

    def _perform(self, site: Site, action: Action) -> None:
        if action == Action.REFRESH and not site.is_authorized:
            raise NoRefreshTokenError()

        required = RunMode.NEW if action == Action.AUTHORIZE else RunMode.REFRESH
        problems = site.validate_for(required)
        if problems:
            raise SiteConfigError("; ".join(problems))

        if action == Action.AUTHORIZE:
            code = self._prompt_code(build_authorization_url(site))
            result = self._client.exchange_code(site, code)
        else:
            result = self._client.refresh(site)

        site.apply_token(result, self._clock())


def _past_tense(action: Action) -> str:
    return "authorized" if action == Action.AUTHORIZE else "refreshed"
