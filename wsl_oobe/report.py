"""Banner and closing messages."""
import platform
from itertools import islice
from pathlib import Path

import typer

from wsl_oobe.config import OobeConfig

INSTALL_TIPS = """
OOBE complete!{mode}

Installation Tips:
    - Use 'emerge --sync' to sync the portage tree (as root).
    - Use 'emerge -uDN @world' to update the system (as root).
    - Read the Gentoo Handbook for more information:
        https://wiki.gentoo.org/wiki/Handbook:Main_Page
    - Consider using the binary package host (binhost) and only compiling
      packages where you want to change the USE flags.
      This can save time and resources. See:
        https://wiki.gentoo.org/wiki/Gentoo_Binary_Host_Quickstart
    - For privilege escalation helpers:
        su -c 'emerge app-admin/sudo'
        su -c 'emerge app-admin/doas'

Resources:
    Gentoo Forums:        https://forums.gentoo.org/
    Gentoo IRC:           https://web.libera.chat/#gentoo
    Gentoo Wiki:          https://wiki.gentoo.org/
    Gentoo in WSL:        https://wiki.gentoo.org/wiki/Gentoo_in_WSL
"""

DEBUG_MODE = " (DEBUG MODE)"


def show_banner(config: OobeConfig) -> None:
    """Print the distribution logo and the account creation guidance."""
    logo = Path(config.issue_logo)
    if logo.is_file():
        with open(logo, errors="replace") as f:
            for line in islice(f, 10):
                typer.echo(line.rstrip("\n"))

    typer.echo(f"Welcome to Gentoo Linux ({platform.machine()}) on Windows Subsystem for Linux (WSL)!")
    typer.echo()
    typer.echo("Please create a default UNIX user account. "
               "The username does not need to match your Windows username.")
    typer.echo("For more information visit: https://aka.ms/wslusers")


def show_install_tips(mode: str = "") -> None:
    typer.echo(INSTALL_TIPS.format(mode=mode))


def report_success(username: str, config: OobeConfig) -> None:
    """Print the final summary for a completed run."""
    if config.dry_run:
        typer.echo()
        typer.echo("[DEBUG] OOBE complete! No changes made.")
        show_install_tips(DEBUG_MODE)
    else:
        typer.echo(f"User '{username}' created successfully.")
        typer.echo("Setting root password to match the new user password.")
        typer.echo("Root password set. You can now use 'su' to become root.")
        typer.echo()
        show_install_tips()
