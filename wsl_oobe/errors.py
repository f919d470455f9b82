"""Errors that end the OOBE run, each carrying its exit code."""
from typing import Optional, Sequence

BUG_REPORT_URL = "https://bugs.gentoo.org/"

EXIT_MISSING_COMMAND = 97
EXIT_MISSING_GROUP = 98
EXIT_NOT_INTERACTIVE = 99
EXIT_FAILURE = 1


class OobeError(Exception):
    """Base class for fatal OOBE failures."""
    exit_code = EXIT_FAILURE
    is_bug = False

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code

    @property
    def hint(self) -> str:
        if self.is_bug:
            return f"This is probably a bug. Please report this issue on {BUG_REPORT_URL}"
        return "No changes were kept. Run the setup again once the problem is resolved."


class MissingCommandError(OobeError):
    exit_code = EXIT_MISSING_COMMAND
    is_bug = True


class MissingGroupError(OobeError):
    exit_code = EXIT_MISSING_GROUP
    is_bug = True


class NonInteractiveError(OobeError):
    exit_code = EXIT_NOT_INTERACTIVE

    @property
    def hint(self) -> str:
        return "Run the setup from an interactive terminal."


class UserAbort(OobeError):
    """The user declined to create the account."""

    @property
    def hint(self) -> str:
        return "No account was created. Run the setup again to create one."


class ProvisioningError(OobeError):
    """Account creation could not be completed.

    details lists what is left on the system after the rollback, such as a
    changed root password or an account that could not be removed.
    """

    def __init__(self, message: str, is_bug: bool = False, details: Sequence[str] = ()):
        super().__init__(message)
        self.is_bug = is_bug
        self.details = list(details)

    @property
    def hint(self) -> str:
        if not self.details:
            return super().hint
        if self.is_bug:
            closing = f"This is probably a bug. Please report this issue on {BUG_REPORT_URL}"
        else:
            closing = "Run the setup again once the problem is resolved."
        return "\n".join(self.details + [closing])
