"""Account creation, password hashing and rollback."""
import enum
import pwd
import re
import secrets
from typing import List, Optional

import typer

from wsl_oobe.config import OobeConfig
from wsl_oobe.credentials import Secret
from wsl_oobe.errors import ProvisioningError
from wsl_oobe.utils import CommandResult, log_action, log_error, log_warn, run_command

SALT_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789./"
SALT_LENGTH = 16
SHA512_CRYPT_PATTERN = re.compile(r'^\$6\$[A-Za-z0-9./]+\$[A-Za-z0-9./]{43,}$')


def generate_salt(length: int = SALT_LENGTH) -> str:
    """Generate a crypt salt from the system's CSPRNG."""
    return "".join(secrets.choice(SALT_ALPHABET) for _ in range(length))


def hash_password(password: Secret) -> str:
    """Hash password as SHA-512 crypt with a fresh salt.

    Returns whatever openssl printed, so a broken call can be reported verbatim.
    """
    result = run_command("openssl", "passwd", "-6", "-salt", generate_salt(), "-stdin",
                         stdin=password.reveal() + "\n")
    return result.output


def is_hash_like(value: str) -> bool:
    """Check that value looks like a SHA-512 modular crypt hash."""
    return SHA512_CRYPT_PATTERN.fullmatch(value) is not None


class AccountStore:
    """The system account database, driven through the shadow utilities."""

    def __init__(self, config: OobeConfig):
        self.config = config

    def uid_exists(self, uid: int) -> bool:
        try:
            pwd.getpwuid(uid)
        except KeyError:
            return False
        return True

    def name_exists(self, name: str) -> bool:
        try:
            pwd.getpwnam(name)
        except KeyError:
            return False
        return True

    def create(self, username: str) -> CommandResult:
        """Create username with home directory, login shell, fixed UID and groups."""
        cfg = self.config
        return run_command(cfg.useradd, "-m", "-u", str(cfg.default_uid),
                           "-s", cfg.shell, "-c", "",
                           "-G", ",".join(cfg.groups),
                           username, dry_run=cfg.dry_run)

    def delete(self, username: str) -> CommandResult:
        """Delete username and its home directory."""
        return run_command(self.config.userdel, "-r", username, dry_run=self.config.dry_run)

    def set_hash(self, name: str, password_hash: str) -> CommandResult:
        """Apply an already hashed password; chpasswd -e does not re-hash."""
        return run_command("chpasswd", "-e", stdin=f"{name}:{password_hash}\n",
                           dry_run=self.config.dry_run)


class PasswordOutcome(enum.Enum):
    BOTH_SET = "both"
    USER_FAILED = "user"
    ROOT_FAILED = "root"
    BOTH_FAILED = "neither"

    @classmethod
    def classify(cls, user_ok: bool, root_ok: bool) -> "PasswordOutcome":
        if user_ok and root_ok:
            return cls.BOTH_SET
        if not user_ok and not root_ok:
            return cls.BOTH_FAILED
        return cls.USER_FAILED if not user_ok else cls.ROOT_FAILED

    def describe(self, username: str) -> str:
        if self is PasswordOutcome.BOTH_FAILED:
            return f"Failed to set passwords for both user '{username}' and root."
        if self is PasswordOutcome.USER_FAILED:
            return f"Failed to set password for user '{username}', but root password was set."
        if self is PasswordOutcome.ROOT_FAILED:
            return f"Failed to set password for root, but user '{username}' password was set."
        return f"Passwords set for user '{username}' and root."


def rollback(username: str, store: AccountStore) -> bool:
    """Undo account creation. Returns False if the account is still there."""
    log_action(f"Cleaning up user '{username}'.")
    result = store.delete(username)
    if not result.ok:
        log_warn(f"Could not remove user '{username}': {result.output}")
        return False
    return True


def leftover_details(username: str, removed: bool, outcome: Optional[PasswordOutcome] = None) -> List[str]:
    """Describe what a failed provisioning left behind on the system."""
    details = []
    if outcome is PasswordOutcome.USER_FAILED:
        details.append("The root password was changed to the password you entered.")
    if not removed:
        details.append(f"User '{username}' still exists. Remove it with 'userdel -r {username}' "
                       "before running the setup again.")
    return details


def provision_account(username: str, password: Secret, config: OobeConfig, store: AccountStore) -> bool:
    """Create the account and set the same password for it and for root.

    Returns False if the account could not be created, so the caller can ask
    for another username. Raises ProvisioningError after rolling back when
    the passwords cannot be applied.
    """
    created = store.create(username)
    if not created.ok:
        if created.output:
            log_error(created.output)
        typer.echo("Failed to create user. See error above.")
        return False

    user_hash = hash_password(password)
    root_hash = hash_password(password)

    for label, value in (("user", user_hash), ("root", root_hash)):
        if not is_hash_like(value):
            removed = rollback(username, store)
            raise ProvisioningError(
                f"ERROR: Generated {label} password hash does not look valid: {value}",
                is_bug=True,
                details=leftover_details(username, removed),
            )

    # root gets the same password as the new user
    user_result = store.set_hash(username, user_hash)
    root_result = store.set_hash("root", root_hash)

    if config.dry_run:
        log_error(f"Debug: user chpasswd exit status: {user_result.returncode}")
        log_error(f"Debug: root chpasswd exit status: {root_result.returncode}")

    outcome = PasswordOutcome.classify(user_result.ok, root_result.ok)
    if outcome is not PasswordOutcome.BOTH_SET:
        removed = rollback(username, store)
        raise ProvisioningError(
            f"ERROR: {outcome.describe(username)}",
            details=leftover_details(username, removed, outcome),
        )
    return True
