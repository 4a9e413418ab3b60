"""Token endpoint client for the two grants tokenkeep performs.

:class:`TokenExchangeClient` posts form-encoded requests to a site's
``token_url`` and turns the JSON answer into a
:class:`~tokenkeep.models.TokenResult`:

* :meth:`~TokenExchangeClient.exchange_code` -- ``authorization_code`` grant
  with the out-of-band redirect URI.
* :meth:`~TokenExchangeClient.refresh` -- ``refresh_token`` grant.

The client never modifies the :class:`~tokenkeep.models.Site` it is given;
storing the result is the lifecycle controller's job. Nothing is retried.

Failure classification:

* network problems and timeouts -> :class:`~tokenkeep.exceptions.TransportError`
* a body that is not a JSON object -> :class:`~tokenkeep.exceptions.InvalidResponseError`
* an ``error`` field, or a non-2xx status -> :class:`~tokenkeep.exceptions.TokenEndpointError`
* no ``access_token`` -> :class:`~tokenkeep.exceptions.EmptyTokenError`
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from tokenkeep.exceptions import (
    EmptyTokenError,
    InvalidResponseError,
    NoRefreshTokenError,
    TokenEndpointError,
    TransportError,
)
from tokenkeep.models import OOB_REDIRECT_URI, Site, TokenResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class TokenExchangeClient:
    """Perform OAuth2 token requests against a site's token endpoint.

    Args:
        timeout: Seconds to wait for the token endpoint before giving up.

    Example::

        client = TokenExchangeClient(timeout=10.0)
        result = client.refresh(site)
        site.apply_token(result, datetime.now(timezone.utc))
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._timeout = timeout

    def exchange_code(self, site: Site, code: str) -> TokenResult:
        """Exchange an authorization code for tokens.

        Args:
            site: The site whose client credentials and ``token_url`` are used.
            code: The code the operator copied from the provider's page.

        Returns:
            The parsed token response.
        """
        data = {
            "client_id": site.client_id,
            "client_secret": site.client_secret,
            "code": code,
            "redirect_uri": OOB_REDIRECT_URI,
            "grant_type": "authorization_code",
        }
        return self._request(site, data)

    def refresh(self, site: Site) -> TokenResult:
        """Mint a new access token from the site's refresh token.

        Args:
            site: An authorized site.

        Returns:
            The parsed token response.

        Raises:
            NoRefreshTokenError: If the site has no refresh token. No request
                is sent in that case.
        """
        if not site.refresh_token:
            raise NoRefreshTokenError()

        data = {
            "client_id": site.client_id,
            "client_secret": site.client_secret,
            "refresh_token": site.refresh_token,
            "grant_type": "refresh_token",
        }
        return self._request(site, data)

    def _request(self, site: Site, data: dict[str, str]) -> TokenResult:
        """POST *data* to ``site.token_url`` and parse the answer."""
        logger.debug(
            "POST %s grant_type=%s (site %s)", site.token_url, data["grant_type"], site.name
        )
        try:
            response = httpx.post(
                site.token_url,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"Token request to {site.token_url} failed: {exc}") from exc

        logger.debug("Token endpoint answered %s", response.status_code)
        return parse_token_response(response)


def parse_token_response(response: httpx.Response) -> TokenResult:
    """Classify a token endpoint response.

    Providers report grant errors as JSON with a 400 status, so the body is
    inspected before the status code.

    Args:
        response: The raw HTTP response.

    Returns:
        A :class:`~tokenkeep.models.TokenResult` with a non-empty
        ``access_token``.

    Raises:
        InvalidResponseError: The body is not a JSON object.
        TokenEndpointError: The body carries an ``error`` field, or the
            status is not 2xx.
        EmptyTokenError: No ``access_token`` in an otherwise successful answer.
    """
    try:
        payload: Any = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidResponseError(
            f"Token endpoint returned a non-JSON body (HTTP {response.status_code})",
            status_code=response.status_code,
        ) from exc

    if not isinstance(payload, dict):
        raise InvalidResponseError(
            f"Token endpoint returned JSON {type(payload).__name__}, expected an object "
            f"(HTTP {response.status_code})",
            status_code=response.status_code,
        )

    error_code = payload.get("error")
    if error_code:
        raise TokenEndpointError(str(error_code), str(payload.get("error_description") or ""))

    if not response.is_success:
        raise TokenEndpointError(f"http_{response.status_code}", response.reason_phrase)

    try:
        result = TokenResult.model_validate(payload)
    except ValidationError as exc:
        raise InvalidResponseError(
            f"Malformed token response: {exc}", status_code=response.status_code
        ) from exc

    if not result.access_token:
        raise EmptyTokenError()

    return result
