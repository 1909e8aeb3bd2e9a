import logging
from typing import List, Optional, Tuple

from httpctl.local.config import effective_settings as config
from httpctl.supervisor import ServiceSupervisor
from httpctl.supervisor.services import create_supervisor
from httpctl.console.handler import (
    display_status, handle_config_command, print_help, print_outcome, toggle_verbose_logging
)

log = logging.getLogger(__name__)
_supervisor: Optional[ServiceSupervisor] = None


def get_supervisor() -> ServiceSupervisor:
    """Returns the console's supervisor, building it from the settings on first use."""
    global _supervisor
    if _supervisor is None:
        _supervisor = create_supervisor(config)
    return _supervisor


def split_scope(command: str) -> Tuple[Optional[str], str]:
    """
    Splits 'http:start' into ('http', 'start'). Unscoped commands get None.
    """
    scope, sep, function = command.partition(":")
    if not sep:
        return None, command
    return scope, function


def execute_command(command: str, args: List[str], supervisor: Optional[ServiceSupervisor] = None) -> bool:
    """
    Executes a single command from the user.

    :param command: The command string, optionally scoped (e.g., 'http:start', 'config').
    :param args: A list of arguments for the command.
    :param supervisor: The supervisor to act on. Defaults to the console's own.
    :return bool: True if the console should exit, False otherwise.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    scope, function = split_scope(command.lower())

    if scope is not None and scope != config.COMMAND_SCOPE:
        log.info(f"Unknown command scope: '{scope}'. Type 'help' for a list of commands.")
        return False

    if function in config.COMMAND_FUNCTIONS:
        supervisor = supervisor or get_supervisor()
        outcome = getattr(supervisor, function)()
        print_outcome(outcome)
        return False

    if scope is not None:
        log.info(f"Unknown command: '{command}'. Type 'help' for a list of commands.")
        return False

    command_map = {
        "status": lambda: display_status(supervisor or get_supervisor()),
        "config": lambda: handle_config_command(args),
        "verbose": toggle_verbose_logging,
        "help": print_help,
        "exit": lambda: True,
    }

    if function not in command_map:
        log.info(f"Unknown command: '{command}'. Type 'help' for a list of commands.")
        return False

    return command_map[function]() is True
