"""Command-line interface for fabric-ops."""

from __future__ import annotations

import argparse
import logging
import re
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import Sequence, TextIO

from fabric_ops.cli.commands import run_enroll, run_invoke, run_register, run_setup
from fabric_ops.cli.config import CLIConfig, ConfigError, load_cli_config
from fabric_ops.errors import (
    ConfigurationError,
    CredentialStoreError,
    FabricOpsError,
)
from fabric_ops.fabric import FabricSDK
from fabric_ops.session import Session, build_session

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

COMMAND_USAGE = (
    ("setup", "", "create/join a channel, and install/instantiate a chaincode"),
    ("register", "name", "register a new user"),
    ("enroll", "name secret", "enroll a user"),
    ("reenroll", "name secret", "reenroll a user"),
    ("execute", "func args...", "invoke a chaincode transaction"),
    ("query", "func args...", "execute a chaincode query"),
)

# Minimum number of positional arguments after the command name.
_REQUIRED_ARGS = {
    "setup": 0,
    "register": 1,
    "enroll": 2,
    "reenroll": 2,
    "execute": 1,
    "query": 1,
}

# Commands that submit to an orderer and therefore need one resolved. The CA
# commands (register, enroll, reenroll) never reach an orderer, so a profile
# without an orderers section still serves them (DESIGN.md, decision 4).
_ORDERER_COMMANDS = frozenset({"setup", "execute", "query"})

_SENSITIVE_FIELDS = ("secret", "password")

logger = logging.getLogger(__name__)


class UsageError(Exception):
    """Raised instead of exiting when the command line cannot be parsed."""


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def _package_version() -> str:
    try:
        return pkg_version("fabric-ops")
    except PackageNotFoundError:
        return "0.0.0+local"


def _commands_help() -> str:
    lines = ["Commands:"]
    for name, arguments, summary in COMMAND_USAGE:
        lines.append(f"    {f'{name} {arguments}'.strip():<22} {summary}")
    return "\n".join(lines)


def _build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="fabric-ops",
        usage="%(prog)s [options] <command> [arguments]",
        description=_commands_help(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"fabric-ops {_package_version()}",
    )
    parser.add_argument("-profile", "--profile", default=None, help="Connection profile")
    parser.add_argument("-peer", "--peer", default="", help="Peer name")
    parser.add_argument("-orderer", "--orderer", default="", help="Orderer name")
    parser.add_argument("-channel", "--channel", default="", help="Channel name")
    parser.add_argument("-org", "--org", default="", help="Organization name")
    parser.add_argument("-username", "--username", default=None, help="Username")
    parser.add_argument(
        "-config",
        "--config",
        default=None,
        help="Path to CLI config TOML (default: ./fabric-ops.toml when present)",
    )
    parser.add_argument(
        "-verbose",
        "--verbose",
        action="store_true",
        help="Log SDK calls to standard error",
    )
    parser.add_argument("command", nargs="?", help=argparse.SUPPRESS)
    parser.add_argument("arguments", nargs=argparse.REMAINDER, help=argparse.SUPPRESS)
    return parser


def _print_usage(parser: argparse.ArgumentParser, stderr: TextIO) -> int:
    parser.print_help(file=stderr)
    return EXIT_FAILURE


def _sanitize_error_text(value: str) -> str:
    redacted = value
    for field in _SENSITIVE_FIELDS:
        redacted = re.sub(
            rf"(?i)({field}\s*[=:]\s*)([^,\s]+)",
            r"\1[REDACTED]",
            redacted,
        )
    return redacted


def _print_error(stderr: TextIO, prefix: str, message: str, *, code: int) -> int:
    print(f"{prefix}: {_sanitize_error_text(message)}", file=stderr)
    return code


def _error_prefix(exc: FabricOpsError) -> str:
    if isinstance(exc, ConfigurationError):
        return "config error"
    if isinstance(exc, CredentialStoreError):
        return "credential error"
    return "sdk error"


def _configure_logging(verbose: bool, stderr: TextIO) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=stderr,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )


def _dispatch(session: Session, command: str, arguments: list[str], *, config: CLIConfig, stdout: TextIO) -> None:
    if command == "setup":
        run_setup(session, config=config, stdout=stdout)
    elif command == "register":
        run_register(session, arguments[0], config=config, stdout=stdout)
    elif command in ("enroll", "reenroll"):
        run_enroll(
            session,
            arguments[0],
            arguments[1],
            reenroll=command == "reenroll",
            stdout=stdout,
        )
    elif command in ("execute", "query"):
        run_invoke(
            session,
            arguments[0],
            arguments[1:],
            query=command == "query",
            config=config,
            stdout=stdout,
        )


def main(argv: Sequence[str] | None = None, *, stdout: TextIO = sys.stdout, stderr: TextIO = sys.stderr) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as exc:
        print(f"{parser.prog}: {exc}", file=stderr)
        return _print_usage(parser, stderr)

    command = args.command
    arguments = list(args.arguments)
    if command not in _REQUIRED_ARGS or len(arguments) < _REQUIRED_ARGS[command]:
        return _print_usage(parser, stderr)

    _configure_logging(args.verbose, stderr)

    try:
        config = load_cli_config(args.config)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_FAILURE)

    try:
        session = build_session(
            profile_path=args.profile or config.profile,
            username=args.username or config.username,
            channel=args.channel,
            org=args.org,
            peer=args.peer,
            sdk_factory=FabricSDK,
        )
    except FabricOpsError as exc:
        return _print_error(stderr, _error_prefix(exc), str(exc), code=EXIT_FAILURE)

    try:
        if command in _ORDERER_COMMANDS:
            session.set_orderer(args.orderer)
        logger.debug("running %s as %s@%s", command, session.username, session.org)
        _dispatch(session, command, arguments, config=config, stdout=stdout)
    except FabricOpsError as exc:
        return _print_error(stderr, _error_prefix(exc), str(exc), code=EXIT_FAILURE)
    finally:
        session.close()

    return EXIT_SUCCESS


if __name__ == "__main__":
    raise SystemExit(main())
