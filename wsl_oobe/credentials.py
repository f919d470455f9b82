"""Interactive collection of the new account's username and password."""
import re
import time
from pathlib import Path
from typing import Optional

import typer

from wsl_oobe.config import OobeConfig
from wsl_oobe.errors import UserAbort
from wsl_oobe.utils import command_exists, run_command

# POSIX username: start with [a-z_], then [a-z0-9_-]{0,30}, optionally ending with $
USERNAME_PATTERN = re.compile(r'^[a-z_][a-z0-9_-]{0,30}\$?$')


class Secret:
    """Plaintext held in a mutable buffer that is zeroed on release.

    Use as a context manager so the buffer is wiped on every exit path.
    """

    def __init__(self, value: str):
        self._buffer = bytearray(value.encode("utf-8"))

    def reveal(self) -> str:
        return self._buffer.decode("utf-8")

    def matches(self, other: "Secret") -> bool:
        return self._buffer == other._buffer

    def wipe(self) -> None:
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._buffer = bytearray()

    def __bool__(self) -> bool:
        return len(self._buffer) > 0

    def __enter__(self) -> "Secret":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return "Secret(****)"


def validate_username(username: str, store) -> Optional[str]:
    """Return why username cannot be used, or None when it is acceptable."""
    if not USERNAME_PATTERN.match(username):
        return ("Username must start with a letter or underscore and contain only "
                "lowercase letters, digits, underscores, or dashes.")
    if not username:
        return "Username cannot be empty."
    if any(c.isspace() for c in username):
        return "Username cannot contain spaces."
    if username == "root":
        return "Cannot use 'root' as username."
    if store.name_exists(username):
        return f"User '{username}' already exists."
    return None


def prompt_username(store) -> str:
    """Prompt until a usable username is entered."""
    while True:
        username = typer.prompt("Enter new UNIX username", default="", show_default=False)
        error = validate_username(username, store)
        if error is None:
            return username
        typer.echo(error)


def confirm_creation(username: str) -> None:
    """Ask before creating the account; anything but 'y' aborts."""
    answer = typer.prompt(f"Create user '{username}'? [y/N]", default="", show_default=False)
    if answer.lower() != "y":
        raise UserAbort("Aborted.")


def complexity_checker_available(config: OobeConfig) -> bool:
    """Check for pwqcheck and a PAM stack that uses passwdqc."""
    if not command_exists(config.complexity_checker):
        return False
    for pam_file in config.pam_configs:
        path = Path(pam_file)
        try:
            content = path.read_text(errors="replace")
        except OSError:
            continue
        if "pam_passwdqc" in content:
            return True
    return False


def check_complexity(password: Secret, config: OobeConfig) -> Optional[str]:
    """Run the complexity checker. Returns its complaint, or None if accepted."""
    result = run_command(config.complexity_checker, "-1", stdin=password.reveal() + "\n")
    message = result.output.replace("\r", "").replace("\n", "")
    if result.ok and message == "OK":
        return None
    return message or f"{config.complexity_checker} exited with status {result.returncode}"


def prompt_password(username: str, config: OobeConfig) -> Secret:
    """Prompt for a password twice with input hidden.

    The caller owns the returned Secret and must wipe it. Any exception
    raised while prompting (Ctrl-C, EOF) wipes the pending entry first.
    """
    checker = complexity_checker_available(config)
    while True:
        password = Secret(typer.prompt(f"Enter password for {username}", hide_input=True,
                                       default="", show_default=False))
        try:
            if not password:
                typer.echo("Password cannot be empty.")
                continue

            if checker:
                complaint = check_complexity(password, config)
                if complaint is not None:
                    password.wipe()
                    typer.echo(f"Password complexity check failed: {complaint}")
                    typer.echo("Please try again.")
                    time.sleep(config.complexity_backoff)
                    continue
            else:
                typer.echo(f"Warning: Password complexity check ({config.complexity_checker}) "
                           "not available. Proceeding without it.")

            with Secret(typer.prompt("Confirm password", hide_input=True,
                                     default="", show_default=False)) as confirmation:
                if not password.matches(confirmation):
                    password.wipe()
                    typer.echo("Passwords do not match.")
                    continue
        except BaseException:
            password.wipe()
            raise

        return password
