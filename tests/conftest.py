"""Shared fixtures for the OOBE tests."""
from dataclasses import replace

import pytest

from wsl_oobe.config import OobeConfig
from wsl_oobe.utils import CommandResult

VALID_HASH = "$6$abcdefghijklmnop$" + "A" * 86


class FakeAccountStore:
    """In-memory stand-in for AccountStore that records every call."""

    def __init__(self, names=(), uids=(), create_ok=True, user_hash_ok=True,
                 root_hash_ok=True, delete_ok=True):
        self.names = set(names)
        self.uids = set(uids)
        self.create_ok = create_ok
        self.user_hash_ok = user_hash_ok
        self.root_hash_ok = root_hash_ok
        self.delete_ok = delete_ok
        self.calls = []

    def uid_exists(self, uid):
        return uid in self.uids

    def name_exists(self, name):
        return name in self.names

    def create(self, username):
        self.calls.append(("create", username))
        if self.create_ok:
            self.names.add(username)
            return CommandResult(("useradd", username), 0)
        return CommandResult(("useradd", username), 1, stderr="useradd: cannot create user")

    def delete(self, username):
        self.calls.append(("delete", username))
        if self.delete_ok:
            self.names.discard(username)
            return CommandResult(("userdel", "-r", username), 0)
        return CommandResult(("userdel", "-r", username), 1, stderr="userdel: user is busy")

    def set_hash(self, name, password_hash):
        self.calls.append(("set_hash", name, password_hash))
        ok = self.root_hash_ok if name == "root" else self.user_hash_ok
        return CommandResult(("chpasswd", "-e"), 0 if ok else 1)

    def actions(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def config(tmp_path):
    """A config whose file paths all live under tmp_path."""
    return OobeConfig(
        dry_run=False,
        issue_logo=str(tmp_path / "issue.logo"),
        locale_gen=str(tmp_path / "locale.gen"),
        supported_locales=str(tmp_path / "SUPPORTED"),
        repos_conf=str(tmp_path / "repos.conf" / "gentoo.conf"),
        systemd_marker=str(tmp_path / "run-systemd"),
        machine_id=str(tmp_path / "machine-id"),
        pam_configs=(str(tmp_path / "system-auth"),),
        complexity_backoff=0,
    )


@pytest.fixture
def dry_config(config):
    return replace(config, dry_run=True)


@pytest.fixture
def store():
    return FakeAccountStore()
