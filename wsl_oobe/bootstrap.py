"""Best-effort environment setup after the account exists.

Nothing in here may abort the OOBE: failures are reported as warnings with
instructions for finishing the step by hand.
"""
import socket
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import typer

from wsl_oobe.config import OobeConfig
from wsl_oobe.utils import (
    append_unique_line,
    log_action,
    log_info,
    log_warn,
    remove_file,
    run_command,
    write_file,
)

LIST_COMMAND = "list"


def read_supported_locales(path: str) -> List[Tuple[str, str]]:
    """Parse a glibc SUPPORTED file into (name, charset) pairs."""
    entries = []
    for line in Path(path).read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.rstrip("\\").split()
        if len(parts) >= 2:
            entries.append((parts[0], parts[1]))
    return entries


def resolve_locale(value: str, supported: Sequence[Tuple[str, str]]) -> Optional[str]:
    """Resolve user input to a locale.gen line such as 'en_US.UTF-8 UTF-8'.

    Accepts a full 'name charset' pair, a locale name, or a territory code
    like 'en_US', which prefers the first UTF-8 match.
    """
    value = " ".join(value.split())
    if not value:
        return None

    for name, charset in supported:
        if value == f"{name} {charset}" or ("." in value and value == name):
            return f"{name} {charset}"

    matches = [(name, charset) for name, charset in supported
               if name == value or name.startswith(f"{value}.")]
    utf8 = [m for m in matches if m[1] == "UTF-8"]
    for name, charset in utf8 + matches:
        return f"{name} {charset}"
    return None


def configure_locale(config: OobeConfig) -> None:
    """Optionally add a locale to locale.gen and run locale-gen."""
    answer = typer.prompt("Configure a system locale now? [y/N]", default="", show_default=False)
    if answer.lower() != "y":
        log_info("Skipping locale configuration.")
        return

    try:
        supported = read_supported_locales(config.supported_locales)
    except OSError as e:
        log_warn(f"Could not read supported locales from {config.supported_locales}: {e}")
        log_warn(f"Edit {config.locale_gen} and run 'locale-gen' as root to configure locales.")
        return

    while True:
        value = typer.prompt(f"Locale (e.g. en_US.UTF-8 or en_US, '{LIST_COMMAND}' to show all)",
                             default="", show_default=False)
        if value.strip() == LIST_COMMAND:
            for name, charset in supported:
                typer.echo(f"{name} {charset}")
            continue
        entry = resolve_locale(value, supported)
        if entry is None:
            typer.echo(f"'{value}' is not a supported locale. Type '{LIST_COMMAND}' to see all of them.")
            continue
        break

    try:
        if append_unique_line(config.locale_gen, entry, dry_run=config.dry_run):
            log_action(f"Added '{entry}' to {config.locale_gen}")
        else:
            log_info(f"'{entry}' is already in {config.locale_gen}")
    except OSError as e:
        log_warn(f"Could not update {config.locale_gen}: {e}")
        log_warn(f"Add '{entry}' to {config.locale_gen} and run 'locale-gen' as root.")
        return

    result = run_command("locale-gen", dry_run=config.dry_run)
    if not result.ok:
        log_warn(f"locale-gen failed: {result.output}")
        log_warn("Run 'locale-gen' as root to retry.")


def probe_network(hosts: Iterable[Tuple[str, int]], timeout: float) -> bool:
    """Return True as soon as one host accepts a TCP connection.

    timeout bounds each connection attempt. Name resolution happens before
    it and is subject to the resolver's own delays; a lookup failure counts
    as an unreachable host.
    """
    for host, port in hosts:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                log_info(f"Network connectivity confirmed via {host}.")
                return True
        except OSError:
            continue
    return False


def setup_package_trust(config: OobeConfig) -> bool:
    """Set up the keyring used to verify binary packages."""
    log_action("Setting up binary package verification (getuto)...")
    result = run_command("getuto", dry_run=config.dry_run)
    if not result.ok:
        log_warn(f"getuto failed: {result.output}")
        log_warn("Run 'getuto' as root before installing binary packages.")
    return result.ok


def repos_conf_content(config: OobeConfig) -> str:
    return (
        f"[{config.repo_name}]\n"
        f"location = {config.repo_location}\n"
        "sync-type = git\n"
        f"sync-uri = {config.repo_sync_uri}\n"
        "auto-sync = yes\n"
        "sync-git-verify-commit-signature = yes\n"
        f"sync-openpgp-key-path = {config.repo_signing_key}\n"
    )


def register_repository(config: OobeConfig) -> bool:
    """Replace the repository registration with a signature-verified git source."""
    try:
        if remove_file(config.repos_conf, dry_run=config.dry_run):
            log_action(f"Removed previous repository registration {config.repos_conf}")
        write_file(config.repos_conf, repos_conf_content(config), dry_run=config.dry_run)
    except OSError as e:
        log_warn(f"Could not register the {config.repo_name} repository: {e}")
        log_warn(f"Check {config.repos_conf} by hand before running 'emerge --sync'.")
        return False
    log_action(f"Registered {config.repo_name} repository from {config.repo_sync_uri}")
    return True


def sync_repository(config: OobeConfig) -> bool:
    """Sync the repository and clear the news backlog."""
    log_action("Syncing the package repository. This may take a while...")
    result = run_command("emerge", "--sync", dry_run=config.dry_run)
    if not result.ok:
        log_warn(f"emerge --sync failed: {result.output}")
        log_warn("Run 'emerge --sync' as root to retry.")
        return False

    for args in (("news", "read", "--quiet", "all"), ("news", "purge")):
        news = run_command("eselect", *args, dry_run=config.dry_run)
        if not news.ok:
            log_warn(f"'eselect {' '.join(args)}' failed: {news.output}")
    return True


def service_manager_present(config: OobeConfig) -> bool:
    """Check if systemd is running as the service manager."""
    return Path(config.systemd_marker).is_dir()


def mask_services(config: OobeConfig) -> List[str]:
    """Mask units that conflict with WSL. Returns the units that failed."""
    failed = []
    for unit in config.masked_units:
        result = run_command("systemctl", "mask", unit, dry_run=config.dry_run)
        if result.ok:
            log_action(f"Masked {unit}")
        else:
            log_warn(f"Could not mask {unit}: {result.output}")
            failed.append(unit)
    if failed:
        log_warn(f"Mask the remaining units by hand: systemctl mask {' '.join(failed)}")
    return failed


def regenerate_machine_id(config: OobeConfig) -> bool:
    """Give this instance its own machine ID instead of the image's."""
    try:
        remove_file(config.machine_id, dry_run=config.dry_run)
    except OSError as e:
        log_warn(f"Could not remove {config.machine_id}: {e}")
    result = run_command("systemd-machine-id-setup", dry_run=config.dry_run)
    if not result.ok:
        log_warn(f"systemd-machine-id-setup failed: {result.output}")
        log_warn("Run 'systemd-machine-id-setup' as root to retry.")
        return False
    log_warn("The machine ID changed. Restart WSL (wsl --shutdown) for it to take effect.")
    return True


def bootstrap_environment(config: OobeConfig) -> None:
    """Run every optional setup step; never raises for a failed step."""
    configure_locale(config)

    if probe_network(config.probe_hosts, config.probe_timeout):
        setup_package_trust(config)
        if register_repository(config):
            sync_repository(config)
    else:
        log_warn("No network connection. Skipping binary package verification and repository sync.")
        log_warn("Once online, run 'getuto' and 'emerge --sync' as root.")

    if service_manager_present(config):
        mask_services(config)
        regenerate_machine_id(config)
