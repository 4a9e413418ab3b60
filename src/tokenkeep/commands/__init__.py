"""Built-in CLI commands for tokenkeep.

Each sub-module defines the command callbacks that
:mod:`tokenkeep.app` registers on the root Typer application:

- :mod:`~tokenkeep.commands.run` -- ``refresh`` (also the default when no
  command is given) and ``new``.
- :mod:`~tokenkeep.commands.status` -- ``status`` table of all sites.
"""

from tokenkeep.commands.run import new_command, refresh_command
from tokenkeep.commands.status import status_command

__all__ = ["new_command", "refresh_command", "status_command"]
