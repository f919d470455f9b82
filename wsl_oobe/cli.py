"""CLI interface for the OOBE tool."""
import typer
from . import utils
from . import steps
from .config import OobeConfig
from .errors import OobeError


def setup(
    dry_run: bool = typer.Option(False, "--dry-run", help="Describe system changes without applying them (same as DEBUG_OOBE=1)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """Create the default user account on first launch."""
    utils.setup_logging(verbose)
    config = OobeConfig.from_env(dry_run=dry_run)

    if not config.dry_run and not utils.is_root():
        typer.echo("❗ Account creation requires root. Run as root or use --dry-run")
        raise typer.Exit(1)

    try:
        steps.run_oobe(config)
    except OobeError as e:
        utils.log_error(str(e))
        typer.echo(e.hint, err=True)
        raise typer.Exit(e.exit_code)


app = typer.Typer(
    name="wsl-oobe",
    help="First-launch setup for Gentoo Linux on WSL.",
    add_completion=False,
    invoke_without_command=True,
    callback=setup,
)


if __name__ == "__main__":
    app()
