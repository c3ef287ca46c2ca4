"""
Command-line interface used as the git filter driver.

Git invokes one process per file:
- clean      (stdin plaintext  -> stdout ciphertext)
- smudge     (stdin ciphertext -> stdout plaintext)
- textconv   (file ciphertext  -> stdout plaintext)

plus ``check`` to validate the policy recipients and configured identities.

Configure with::

    git config filter.git-agecrypt.required true
    git config filter.git-agecrypt.clean "git-agecrypt clean -f %f"
    git config filter.git-agecrypt.smudge "git-agecrypt smudge -f %f"
    git config diff.git-agecrypt.textconv "git-agecrypt textconv"
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path, PurePosixPath
from typing import List, Optional

from .config import TOOL_VERSION, configure_logging
from .crypto import validate_recipients
from .exceptions import AgecryptError
from .filters import FilterPipeline
from .git import Repository

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Color output helpers
# ---------------------------------------------------------------------------


class Colors:
    """ANSI color codes for terminal output."""
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RESET = "\033[0m"


def colored(text: str, color: str, stream=None) -> str:
    """Return colored text when writing to a terminal."""
    stream = stream or sys.stdout
    if not stream.isatty():
        return text
    return f"{color}{text}{Colors.RESET}"


def print_error(msg: str) -> None:
    """Print error message to stderr."""
    print(colored(f"✗ Error: {msg}", Colors.RED, sys.stderr), file=sys.stderr)


# ---------------------------------------------------------------------------
# CLI context
# ---------------------------------------------------------------------------


class CLIContext:
    """Shared context for CLI commands."""

    def __init__(self, getter_key: Optional[str], verbose: bool):
        self.getter_key = getter_key
        self.verbose = verbose

        # Lazy-loaded
        self._repo: Optional[Repository] = None
        self._pipeline: Optional[FilterPipeline] = None

    @property
    def repo(self) -> Repository:
        if self._repo is None:
            self._repo = Repository.discover(Path.cwd())
        return self._repo

    @property
    def pipeline(self) -> FilterPipeline:
        if self._pipeline is None:
            self._pipeline = FilterPipeline.from_repository(self.repo, getter_key=self.getter_key)
        return self._pipeline


def _repo_path(raw: str) -> str:
    return PurePosixPath(raw.replace("\\", "/")).as_posix()


def _write(data: bytes) -> None:
    sys.stdout.buffer.write(data)
    sys.stdout.buffer.flush()


# ---------------------------------------------------------------------------
# Command implementations
# ---------------------------------------------------------------------------


def cmd_clean(ctx: CLIContext, args: argparse.Namespace) -> int:
    _write(ctx.pipeline.clean(_repo_path(args.file), sys.stdin.buffer.read()))
    return 0


def cmd_smudge(ctx: CLIContext, args: argparse.Namespace) -> int:
    _write(ctx.pipeline.smudge(_repo_path(args.file), sys.stdin.buffer.read()))
    return 0


def cmd_textconv(ctx: CLIContext, args: argparse.Namespace) -> int:
    _write(ctx.pipeline.textconv(Path(args.path).read_bytes()))
    return 0


def cmd_check(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Validate every recipient in the policy and every configured identity.
    """
    pipeline = ctx.pipeline
    failed = 0

    recipients = pipeline.rules.all_recipients()
    problems = dict(validate_recipients(recipients))
    for recipient in recipients:
        if recipient in problems:
            failed += 1
            print(f"recipient {recipient}: {colored('invalid', Colors.RED)} ({problems[recipient]})")
        else:
            print(f"recipient {recipient}: {colored('ok', Colors.GREEN)}")

    for path, result in pipeline.identities.validate_all():
        color = Colors.GREEN if result.ok else Colors.RED
        line = f"identity {path}: {colored(result.state.value, color)}"
        if result.reason:
            line += f" ({result.reason})"
        print(line)
        if not result.ok:
            failed += 1

    return 1 if failed else 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="git-agecrypt",
        description="Transparent age encryption of files in a git repository",
    )

    parser.add_argument(
        "-g", "--passphrase-getter",
        metavar="KEY",
        help="Passphrase getter to run from the local [passphrase] table",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging on stderr",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {TOOL_VERSION}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    clean_parser = subparsers.add_parser("clean", help="Encrypt stdin (git clean filter)")
    clean_parser.add_argument("-f", "--file", required=True, help="Repository-relative path")

    smudge_parser = subparsers.add_parser("smudge", help="Decrypt stdin (git smudge filter)")
    smudge_parser.add_argument("-f", "--file", required=True, help="Repository-relative path")

    textconv_parser = subparsers.add_parser("textconv", help="Decrypt a file for git diff")
    textconv_parser.add_argument("path", help="File containing ciphertext")

    subparsers.add_parser("check", help="Validate recipients and identities")

    return parser


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose)

    ctx = CLIContext(getter_key=args.passphrase_getter, verbose=args.verbose)

    commands = {
        "clean": cmd_clean,
        "smudge": cmd_smudge,
        "textconv": cmd_textconv,
        "check": cmd_check,
    }

    try:
        return commands[args.command](ctx, args)
    except AgecryptError as e:
        print_error(str(e))
        if args.verbose:
            log.debug("Failure details", exc_info=True)
        return 1
    except OSError as e:
        print_error(str(e))
        return 1
    except KeyboardInterrupt:
        print_error("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
