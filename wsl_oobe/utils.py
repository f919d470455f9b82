"""Utility functions for the OOBE tool."""
import logging
import os
import shlex
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import sh


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single external command."""
    argv: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, stripped."""
        return (self.stdout + self.stderr).strip()


def _decode(data: Union[bytes, str, None]) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def format_argv(argv) -> str:
    return " ".join(shlex.quote(str(a)) for a in argv)


def run_command(*argv: str, dry_run: bool = False, stdin: Optional[str] = None) -> CommandResult:
    """Run an external command through sh and return a structured result.

    With dry_run the command is only described. stdin is never echoed.
    """
    argv = tuple(str(a) for a in argv)
    if dry_run:
        log_action(f"[DRY RUN] Would run: {format_argv(argv)}")
        return CommandResult(argv, 0)

    kwargs = {}
    if stdin is not None:
        kwargs["_in"] = stdin
    try:
        output = sh.Command(argv[0])(*argv[1:], **kwargs)
    except sh.CommandNotFound:
        return CommandResult(argv, 127, stderr=f"{argv[0]}: command not found")
    except sh.ErrorReturnCode as e:
        return CommandResult(argv, e.exit_code, _decode(e.stdout), _decode(e.stderr))
    return CommandResult(argv, 0, str(output))


def append_unique_line(path: Union[str, Path], line: str, dry_run: bool = False) -> bool:
    """Append line to path unless an identical line is already there.

    Returns True when the line was (or would have been) appended.
    """
    path = Path(path)
    if path.exists():
        existing = [l.strip() for l in path.read_text().splitlines()]
        if line.strip() in existing:
            return False
    if dry_run:
        log_action(f"[DRY RUN] Would append '{line}' to {path}")
        return True
    with open(path, 'a') as f:
        f.write(f"{line}\n")
    return True


def write_file(path: Union[str, Path], content: str, dry_run: bool = False) -> None:
    """Write content to path, creating parent directories."""
    path = Path(path)
    if dry_run:
        log_action(f"[DRY RUN] Would write {path}")
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


def remove_file(path: Union[str, Path], dry_run: bool = False) -> bool:
    """Remove path if it exists. Returns True when something was (or would be) removed."""
    path = Path(path)
    if not path.exists():
        return False
    if dry_run:
        log_action(f"[DRY RUN] Would remove {path}")
        return True
    path.unlink()
    return True


def command_exists(command: str) -> bool:
    """Check if a command exists in the system PATH."""
    return shutil.which(command) is not None


def is_root() -> bool:
    """Check if the script is running as root."""
    return os.geteuid() == 0


def log_info(message: str) -> None:
    """Log an informational message."""
    print(f"[INFO] {message}")


def log_action(message: str) -> None:
    """Log an action being performed."""
    print(f"  -> {message}")


def log_warn(message: str) -> None:
    """Log a non-fatal problem."""
    print(f"[WARN] {message}")


def log_error(message: str) -> None:
    """Log an error to stderr."""
    print(f"[OOBE] {message}", file=sys.stderr)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration.

    Verbose mode surfaces sh's per-command tracing.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("sh").setLevel(logging.INFO if verbose else logging.WARNING)
