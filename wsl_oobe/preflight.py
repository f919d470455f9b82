"""Environment checks that must pass before anything is changed."""
import grp
import sys
from typing import Iterable, List

from wsl_oobe.config import OobeConfig
from wsl_oobe.errors import MissingCommandError, MissingGroupError, NonInteractiveError
from wsl_oobe.utils import command_exists


def missing_commands(names: Iterable[str]) -> List[str]:
    """Return the commands from names that are not on PATH."""
    return [name for name in names if not command_exists(name)]


def group_exists(name: str) -> bool:
    try:
        grp.getgrnam(name)
    except KeyError:
        return False
    return True


def missing_groups(names: Iterable[str]) -> List[str]:
    """Return the groups from names that are not in the group database."""
    return [name for name in names if not group_exists(name)]


def is_interactive() -> bool:
    """Check if stdin is attached to a terminal."""
    return sys.stdin is not None and sys.stdin.isatty()


def check_environment(config: OobeConfig) -> None:
    """Fail fast when the environment cannot support the OOBE.

    Raises MissingCommandError, NonInteractiveError or MissingGroupError.
    """
    missing = missing_commands(config.required_commands)
    if missing:
        raise MissingCommandError(f"Required command '{missing[0]}' not found.")

    if not is_interactive():
        raise NonInteractiveError("This setup must be run from an interactive terminal.")

    missing = missing_groups(config.groups)
    if missing:
        raise MissingGroupError(f"Required group '{missing[0]}' does not exist.")
