"""Run configuration shared by every OOBE stage."""
import os
from dataclasses import dataclass
from typing import Tuple

DEBUG_ENV_VAR = "DEBUG_OOBE"

MASKED_UNITS = (
    "NetworkManager.service",
    "systemd-networkd.service",
    "systemd-networkd.socket",
    "systemd-resolved.service",
    "systemd-tmpfiles-clean.service",
    "systemd-tmpfiles-clean.timer",
    "systemd-tmpfiles-setup-dev-early.service",
    "systemd-tmpfiles-setup-dev.service",
    "systemd-tmpfiles-setup.service",
    "tmp.mount",
)


@dataclass(frozen=True)
class OobeConfig:
    dry_run: bool = False

    # Account
    default_uid: int = 1000
    groups: Tuple[str, ...] = ("users", "wheel")
    shell: str = "/bin/bash"
    useradd: str = "/usr/sbin/useradd"
    userdel: str = "/usr/sbin/userdel"
    required_commands: Tuple[str, ...] = ("openssl", "chpasswd")

    # Password complexity (passwdqc)
    complexity_checker: str = "pwqcheck"
    pam_configs: Tuple[str, ...] = ("/etc/pam.d/system-auth", "/etc/pam.d/passwd")
    complexity_backoff: float = 1.0

    # Banner
    issue_logo: str = "/etc/issue.logo"

    # Locale
    locale_gen: str = "/etc/locale.gen"
    supported_locales: str = "/usr/share/i18n/SUPPORTED"

    # Network
    probe_hosts: Tuple[Tuple[str, int], ...] = (
        ("distfiles.gentoo.org", 443),
        ("github.com", 443),
        ("gentoo.org", 443),
    )
    probe_timeout: float = 3.0

    # Portage
    repo_name: str = "gentoo"
    repos_conf: str = "/etc/portage/repos.conf/gentoo.conf"
    repo_sync_uri: str = "https://github.com/gentoo-mirror/gentoo.git"
    repo_location: str = "/var/db/repos/gentoo"
    repo_signing_key: str = "/usr/share/openpgp-keys/gentoo-release.asc"

    # systemd
    systemd_marker: str = "/run/systemd/system"
    masked_units: Tuple[str, ...] = MASKED_UNITS
    machine_id: str = "/etc/machine-id"

    @classmethod
    def from_env(cls, dry_run: bool = False, **overrides) -> "OobeConfig":
        """Build the config, enabling simulation via the flag or DEBUG_OOBE."""
        env_debug = bool(os.environ.get(DEBUG_ENV_VAR, ""))
        return cls(dry_run=dry_run or env_debug, **overrides)
