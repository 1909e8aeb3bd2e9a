import os
import psutil
import logging
from typing import List

from httpctl.log import get_console_handler
from httpctl.local.config import effective_settings as config
from httpctl.supervisor import OperationOutcome, ServiceSupervisor

log = logging.getLogger(__name__)


def print_outcome(outcome: OperationOutcome) -> None:
    """Shows the operator what an operation did."""
    if outcome.skipped and outcome.note:
        print(outcome.note)
        return
    for error in outcome.errors:
        print(f"ERROR: {error}")
    if outcome.ok:
        if outcome.note:
            print(outcome.note)
        print(f"'{outcome.action.value}' completed.")


def display_status(supervisor: ServiceSupervisor) -> None:
    """Shows the managed service's state and, when it is a running process, its resource usage."""
    state = supervisor.status()
    print(f"\n--- {supervisor.label} Status ---")
    if state is None:
        print(f"  No service registered as '{supervisor.service_id}'.\n")
        return

    print(f"  Service : {supervisor.service_id}")
    print(f"  State   : {state.value.upper()}")

    pid = getattr(supervisor.locate(), "pid", None)
    if pid is not None:
        try:
            proc = psutil.Process(pid)
            cpu = proc.cpu_percent(interval=0.1)
            mem = proc.memory_info().rss
            print(f"  Process : {proc.name()} | PID {pid} | CPU: {cpu:.1f}% | MEM: {mem/1024/1024:.1f} MB")
        except psutil.NoSuchProcess:
            print(f"  Process : PID {pid} | STOPPED (Stale PID)")
        except psutil.AccessDenied:
            print(f"  Process : PID {pid} | RUNNING (Access Denied)")
    print(f"  Console : PID {os.getpid()}")
    print("-" * 26 + "\n")


def _config_show() -> None:
    print("\n--- Current Configuration ---")
    for key in sorted(config.MODIFIABLE_SETTINGS):
        print(f"  {key} = {config.get(key, 'N/A')}")
    print(f"  MANAGED_SERVICE_ID = {config.MANAGED_SERVICE_ID} (read-only)")
    print("---")
    print("Use 'config set <KEY> <VALUE>' to change a setting.")
    print("Restart the server ('http:restart') for changes to apply.")
    print("-----------------------------\n")


def _config_set(args: List[str]) -> None:
    if len(args) < 2:
        print("Usage: config set <SETTING_NAME> <VALUE>")
        return

    key, value_str = args[0].upper(), " ".join(args[1:])
    success, message = config.update_setting(key, value_str)
    print(message if success else f"Error: {message}")


def _config_help() -> None:
    print("\nConfig Command Help:")
    print("  config show                - Display all modifiable settings.")
    print("  config set KEY VALUE       - Change a setting. Applies on the next restart.")
    print("  config help                - Show this help message.")


def handle_config_command(args: List[str]) -> None:
    """
    Handles all sub-commands of the 'config' command.

    :param args: A list of string arguments following the 'config' command.
    """
    sub_command = args[0].lower() if args else "show"

    if sub_command == "show":
        _config_show()
    elif sub_command == "set":
        _config_set(args[1:])
    elif sub_command == "help":
        _config_help()
    else:
        print(f"Unknown config sub-command: '{sub_command}'. Type 'config help' for available commands.")


def toggle_verbose_logging() -> None:
    """Toggles verbose (DEBUG level) logging for the console handler."""
    config.VERBOSE_LOGGING = not config.VERBOSE_LOGGING
    new_level = logging.DEBUG if config.VERBOSE_LOGGING else logging.INFO

    handler = get_console_handler()
    status = "ON" if config.VERBOSE_LOGGING else "OFF"
    if handler is None:
        print("Could not find console handler to modify level.")
        return
    handler.setLevel(new_level)
    print(f"Verbose console logging is now {status}.")
    log.debug("Debug logging test: This message should only appear when verbose is ON.")


def print_help() -> None:
    """Prints the main help text for the console."""
    scope = config.COMMAND_SCOPE
    print("\nAvailable commands:")
    print(f"  {scope}:start             - Start the {config.MANAGED_SERVICE_LABEL} unless it is already running.")
    print(f"  {scope}:stop              - Stop the {config.MANAGED_SERVICE_LABEL} unless it is already stopped.")
    print(f"  {scope}:restart           - Stop and then start the {config.MANAGED_SERVICE_LABEL}.")
    print("  status                 - Show the state of the managed service.")
    print("  config <cmd>           - Manage configuration. Use 'config help' for more details.")
    print("  verbose                - Toggle detailed DEBUG log output in the console.")
    print("  exit                   - Exit the management console.")
    print(f"The '{scope}:' prefix is optional.")
    print()
