"""OAuth2 grant exchanges and authorization-code collection.

The main entry points are:

- :class:`TokenExchangeClient` -- posts the ``authorization_code`` and
  ``refresh_token`` grants to a site's token endpoint and classifies the
  answer.
- :func:`build_authorization_url` -- the out-of-band authorization URL an
  operator opens for a site.
- :data:`CodePrompt` -- the callable signature the lifecycle controller uses
  to obtain an authorization code; :func:`terminal_code_prompt` is the
  interactive implementation.
"""

from tokenkeep.auth.exchange import TokenExchangeClient, parse_token_response
from tokenkeep.auth.prompt import (
    CodePrompt,
    build_authorization_url,
    disabled_code_prompt,
    terminal_code_prompt,
)

__all__ = [
    "CodePrompt",
    "TokenExchangeClient",
    "build_authorization_url",
    "disabled_code_prompt",
    "parse_token_response",
    "terminal_code_prompt",
]
