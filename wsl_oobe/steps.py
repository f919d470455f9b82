"""OOBE workflow steps."""
from typing import Optional

import typer

from wsl_oobe.accounts import AccountStore, provision_account
from wsl_oobe.bootstrap import bootstrap_environment
from wsl_oobe.config import DEBUG_ENV_VAR, OobeConfig
from wsl_oobe.credentials import confirm_creation, prompt_password, prompt_username
from wsl_oobe.preflight import check_environment
from wsl_oobe.report import report_success, show_banner
from wsl_oobe.utils import log_info


def create_account(config: OobeConfig, store: AccountStore) -> str:
    """Collect credentials and provision until an account exists."""
    while True:
        username = prompt_username(store)
        confirm_creation(username)
        with prompt_password(username, config) as password:
            if provision_account(username, password, config, store):
                return username


def run_oobe(config: OobeConfig, store: Optional[AccountStore] = None) -> bool:
    """Main OOBE workflow.

    Returns False when the default account already exists and nothing was
    done, True after a complete run.
    """
    store = store or AccountStore(config)

    # Phase 1: Preflight
    check_environment(config)

    show_banner(config)

    if config.dry_run:
        log_info(f"{DEBUG_ENV_VAR} is set: Skipping the existing account check and system modifications.")
    elif store.uid_exists(config.default_uid):
        typer.echo("User account already exists, skipping creation")
        return False

    # Phase 2-3: Credentials and account
    username = create_account(config, store)

    # Phase 4: Environment
    bootstrap_environment(config)

    # Phase 5: Report
    report_success(username, config)
    return True
