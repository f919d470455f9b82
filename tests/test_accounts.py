"""Tests for account provisioning and rollback."""
import re

import pytest
from unittest.mock import patch

from conftest import VALID_HASH, FakeAccountStore
from wsl_oobe.accounts import (
    SALT_ALPHABET,
    AccountStore,
    PasswordOutcome,
    generate_salt,
    hash_password,
    is_hash_like,
    provision_account,
)
from wsl_oobe.credentials import Secret
from wsl_oobe.errors import ProvisioningError
from wsl_oobe.utils import CommandResult

HASH_RE = re.compile(r'^\$6\$[A-Za-z0-9./]+\$[A-Za-z0-9./]{43,}$')


def fake_openssl(*argv, stdin=None, dry_run=False):
    """Mimic `openssl passwd -6 -salt SALT -stdin` with a salt-dependent digest."""
    salt = argv[argv.index("-salt") + 1]
    digest = (salt * 6)[:86]
    return CommandResult(argv, 0, f"$6${salt}${digest}\n")


class TestSalt:
    """Tests for salt generation."""

    def test_length_and_alphabet(self):
        salt = generate_salt()
        assert len(salt) == 16
        assert set(salt) <= set(SALT_ALPHABET)

    def test_salts_differ(self):
        assert generate_salt() != generate_salt()


class TestIsHashLike:
    """Tests for SHA-512 crypt validation."""

    def test_valid(self):
        assert is_hash_like(VALID_HASH) is True

    @pytest.mark.parametrize("value", [
        "",
        "openssl: command failed",
        "$1$abcdefgh$" + "A" * 22,
        "$6$abcdefghijklmnop$" + "A" * 42,
        "$6$abcdefghijklmnop$" + "A" * 85 + "!",
        VALID_HASH + "\n",
    ])
    def test_invalid(self, value):
        assert is_hash_like(value) is False


class TestHashPassword:
    """Tests for password hashing through openssl."""

    @patch('wsl_oobe.accounts.run_command', side_effect=fake_openssl)
    def test_plaintext_only_on_stdin(self, mock_run):
        hash_password(Secret("hunter2"))

        argv = mock_run.call_args[0]
        assert argv[:3] == ("openssl", "passwd", "-6")
        assert "-stdin" in argv
        assert "hunter2" not in argv
        assert mock_run.call_args.kwargs["stdin"] == "hunter2\n"

    @patch('wsl_oobe.accounts.run_command', side_effect=fake_openssl)
    def test_independent_salts(self, mock_run):
        password = Secret("same password")

        user_hash = hash_password(password)
        root_hash = hash_password(password)

        assert HASH_RE.match(user_hash)
        assert HASH_RE.match(root_hash)
        assert user_hash != root_hash

    @patch('wsl_oobe.accounts.run_command')
    def test_returns_raw_failure_output(self, mock_run):
        mock_run.return_value = CommandResult(("openssl",), 1, stderr="passwd: unknown option\n")

        assert hash_password(Secret("x")) == "passwd: unknown option"


class TestAccountStore:
    """Tests for the shadow-utils backed account store."""

    @patch('wsl_oobe.accounts.run_command')
    def test_create(self, mock_run, config):
        mock_run.return_value = CommandResult(("useradd",), 0)

        AccountStore(config).create("alice")

        mock_run.assert_called_once_with(
            "/usr/sbin/useradd", "-m", "-u", "1000", "-s", "/bin/bash", "-c", "",
            "-G", "users,wheel", "alice", dry_run=False,
        )

    @patch('wsl_oobe.accounts.run_command')
    def test_delete(self, mock_run, dry_config):
        AccountStore(dry_config).delete("alice")

        mock_run.assert_called_once_with("/usr/sbin/userdel", "-r", "alice", dry_run=True)

    @patch('wsl_oobe.accounts.run_command')
    def test_set_hash_sends_prehashed_entry(self, mock_run, config):
        AccountStore(config).set_hash("root", VALID_HASH)

        mock_run.assert_called_once_with("chpasswd", "-e", stdin=f"root:{VALID_HASH}\n", dry_run=False)

    @patch('wsl_oobe.accounts.pwd.getpwuid')
    def test_uid_exists(self, mock_getpwuid, config):
        assert AccountStore(config).uid_exists(1000) is True
        mock_getpwuid.assert_called_once_with(1000)

    @patch('wsl_oobe.accounts.pwd.getpwuid', side_effect=KeyError(1000))
    def test_uid_missing(self, mock_getpwuid, config):
        assert AccountStore(config).uid_exists(1000) is False

    @patch('wsl_oobe.accounts.pwd.getpwnam', side_effect=KeyError("alice"))
    def test_name_missing(self, mock_getpwnam, config):
        assert AccountStore(config).name_exists("alice") is False


class TestPasswordOutcome:
    """Tests for the two-password decision table."""

    @pytest.mark.parametrize("user_ok, root_ok, expected", [
        (True, True, PasswordOutcome.BOTH_SET),
        (False, True, PasswordOutcome.USER_FAILED),
        (True, False, PasswordOutcome.ROOT_FAILED),
        (False, False, PasswordOutcome.BOTH_FAILED),
    ])
    def test_classify(self, user_ok, root_ok, expected):
        assert PasswordOutcome.classify(user_ok, root_ok) is expected


@patch('wsl_oobe.accounts.hash_password', return_value=VALID_HASH)
class TestProvisionAccount:
    """Tests for account creation, password application and rollback."""

    def test_success(self, mock_hash, config):
        store = FakeAccountStore()

        assert provision_account("alice", Secret("pw"), config, store) is True

        assert store.actions() == ["create", "set_hash", "set_hash"]
        assert store.calls[1][1] == "alice"
        assert store.calls[2][1] == "root"
        assert mock_hash.call_count == 2

    def test_create_failure_returns_to_prompt(self, mock_hash, config, capsys):
        store = FakeAccountStore(create_ok=False)

        assert provision_account("alice", Secret("pw"), config, store) is False

        mock_hash.assert_not_called()
        assert store.actions() == ["create"]
        captured = capsys.readouterr()
        assert "Failed to create user. See error above." in captured.out
        assert "useradd: cannot create user" in captured.err

    @pytest.mark.parametrize("user_ok, root_ok, message", [
        (False, True, "Failed to set password for user 'alice', but root password was set."),
        (True, False, "Failed to set password for root, but user 'alice' password was set."),
        (False, False, "Failed to set passwords for both user 'alice' and root."),
    ])
    def test_password_failure_rolls_back(self, mock_hash, user_ok, root_ok, message, config):
        store = FakeAccountStore(user_hash_ok=user_ok, root_hash_ok=root_ok)

        with pytest.raises(ProvisioningError) as exc:
            provision_account("alice", Secret("pw"), config, store)

        assert message in str(exc.value)
        assert exc.value.exit_code == 1
        assert store.actions() == ["create", "set_hash", "set_hash", "delete"]
        assert not store.name_exists("alice")

    def test_invalid_user_hash_rolls_back(self, mock_hash, config):
        mock_hash.side_effect = ["garbage", VALID_HASH]
        store = FakeAccountStore()

        with pytest.raises(ProvisioningError) as exc:
            provision_account("alice", Secret("pw"), config, store)

        assert "user password hash does not look valid: garbage" in str(exc.value)
        assert exc.value.is_bug is True
        assert store.actions() == ["create", "delete"]

    def test_invalid_root_hash_rolls_back(self, mock_hash, config):
        mock_hash.side_effect = [VALID_HASH, "$6$short$abc"]
        store = FakeAccountStore()

        with pytest.raises(ProvisioningError, match=r"root password hash does not look valid: \$6\$short\$abc"):
            provision_account("alice", Secret("pw"), config, store)

        assert store.actions() == ["create", "delete"]

    def test_failed_rollback_reports_leftover_account(self, mock_hash, config, capsys):
        store = FakeAccountStore(root_hash_ok=False, delete_ok=False)

        with pytest.raises(ProvisioningError) as exc:
            provision_account("alice", Secret("pw"), config, store)

        assert "Could not remove user 'alice'" in capsys.readouterr().out
        assert "User 'alice' still exists" in exc.value.hint
        assert "userdel -r alice" in exc.value.hint
        assert "No changes were kept" not in exc.value.hint

    def test_failed_rollback_after_invalid_hash_reports_leftover_account(self, mock_hash, config):
        mock_hash.side_effect = ["garbage", VALID_HASH]
        store = FakeAccountStore(delete_ok=False)

        with pytest.raises(ProvisioningError) as exc:
            provision_account("alice", Secret("pw"), config, store)

        assert "userdel -r alice" in exc.value.hint
        assert "bugs.gentoo.org" in exc.value.hint

    def test_user_password_failure_reports_changed_root_password(self, mock_hash, config):
        store = FakeAccountStore(user_hash_ok=False)

        with pytest.raises(ProvisioningError) as exc:
            provision_account("alice", Secret("pw"), config, store)

        assert "root password was changed" in exc.value.hint
        assert "No changes were kept" not in exc.value.hint
        assert "still exists" not in exc.value.hint

    @pytest.mark.parametrize("user_ok, root_ok", [(True, False), (False, False)])
    def test_clean_rollback_keeps_default_hint(self, mock_hash, user_ok, root_ok, config):
        store = FakeAccountStore(user_hash_ok=user_ok, root_hash_ok=root_ok)

        with pytest.raises(ProvisioningError) as exc:
            provision_account("alice", Secret("pw"), config, store)

        assert exc.value.details == []
        assert "No changes were kept" in exc.value.hint

    def test_dry_run_logs_statuses(self, mock_hash, dry_config, capsys):
        store = FakeAccountStore()

        assert provision_account("alice", Secret("pw"), dry_config, store) is True

        err = capsys.readouterr().err
        assert "Debug: user chpasswd exit status: 0" in err
        assert "Debug: root chpasswd exit status: 0" in err


class TestDryRunExecutesNothing:
    """Simulation mode must not run any mutating command."""

    @patch('wsl_oobe.utils.sh.Command')
    def test_only_openssl_runs(self, mock_command, dry_config, capsys):
        executed = []

        def command(name):
            def call(*args, **kwargs):
                executed.append(name)
                salt = args[args.index("-salt") + 1]
                return f"$6${salt}${'b' * 86}\n"
            return call

        mock_command.side_effect = command

        assert provision_account("alice", Secret("pw"), dry_config, AccountStore(dry_config)) is True

        assert executed == ["openssl", "openssl"]
        out = capsys.readouterr().out
        assert "[DRY RUN] Would run: /usr/sbin/useradd" in out
        assert "[DRY RUN] Would run: chpasswd -e" in out
