"""
Command-line interface for the renewal checker.

Subcommands:
- check: Run the domain expiration check and send notifications
- certificates: Run the TLS certificate expiration check and send notifications
- renewals: Print the parsed renewals table as JSON
- config: Show the effective configuration
"""

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Callable, Optional, Union

from . import __version__
from .certificates import create_certificate_checker
from .checker import ExpirationChecker, create_notification_router
from .config import (
    CertificateCheckConfig,
    SystemConfig,
    load_certificate_config_from_env,
    load_config_from_env,
)
from .exceptions import ConfigurationError, NotificationError, RenewalCheckerError
from .html_api import RenewalsClient
from .models import RenewalRecord, RenewalRow
from .run_logger import RunLogger

AnyConfig = Union[SystemConfig, CertificateCheckConfig]


def _load_config(
    args: argparse.Namespace,
    loader: Callable[[Optional[str]], AnyConfig] = load_config_from_env,
) -> Optional[AnyConfig]:
    try:
        return loader(args.env_file)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return None


def create_logger(config: AnyConfig) -> RunLogger:
    """Create the run logger described by the logging configuration."""
    return RunLogger(
        level=config.logging.level,
        output_format=config.logging.output_format,
    )


def row_to_dict(row: RenewalRow) -> dict:
    """Serialize a table row for JSON output."""
    if isinstance(row, RenewalRecord):
        return asdict(row)
    return {"error": row.error}


async def fetch_rows(config: SystemConfig) -> list[RenewalRow]:
    """Log in and fetch the renewals table rows."""
    login = config.login
    async with RenewalsClient(
        user_agent=login.user_agent,
        timeout=login.timeout,
        max_hops=login.max_hops,
    ) as client:
        session = await client.login(login.login_url, login.username, login.password)
        return await client.fetch_renewals(login.renewals_url, session)


def cmd_check(args: argparse.Namespace) -> int:
    """Log in, check expiration dates and notify. Exit code 1 on a fatal error."""
    config = _load_config(args)
    if config is None:
        return 1

    logger = create_logger(config)
    router = None
    if not args.dry_run:
        try:
            router = create_notification_router(config, logger)
        except NotificationError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1

    checker = ExpirationChecker(config, router=router, logger=logger)
    report = asyncio.run(checker.run())
    return 0 if report.success else 1


def cmd_certificates(args: argparse.Namespace) -> int:
    """Check TLS certificate expiry dates of HOSTS and notify. Exit code 1 on a fatal error."""
    config = _load_config(args, load_certificate_config_from_env)
    if config is None:
        return 1

    logger = create_logger(config)
    try:
        checker = create_certificate_checker(config, logger, notify=not args.dry_run)
    except NotificationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    report = asyncio.run(checker.run())
    return 0 if report.success else 1


def cmd_renewals(args: argparse.Namespace) -> int:
    """Dump the renewals table as JSON to stdout or --output."""
    config = _load_config(args)
    if config is None:
        return 1

    try:
        rows = asyncio.run(fetch_rows(config))
    except RenewalCheckerError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    output = json.dumps([row_to_dict(row) for row in rows], indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(output + "\n", encoding="utf-8")
        print(f"Wrote {len(rows)} row(s) to: {args.output}")
    else:
        print(output)
    return 0


def masked_config(config: SystemConfig) -> dict:
    """Return the configuration as a dict with secrets masked."""
    return RunLogger().mask_sensitive_data(asdict(config))


def cmd_config(args: argparse.Namespace) -> int:
    """Print the loaded configuration with secrets masked."""
    if args.action == "show":
        config = _load_config(args)
        if config is None:
            return 1
        print(json.dumps(masked_config(config), indent=2, ensure_ascii=False))
        return 0

    return 1


def _add_env_file_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--env-file", "-e",
        help="Path to a .env file (default: .env in the working directory)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Build the renewal-checker argument parser."""
    parser = argparse.ArgumentParser(
        prog="renewal-checker",
        description="Domain expiration checker for HTML-only registrar accounts",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'check' command
    check_parser = subparsers.add_parser(
        "check",
        help="Check domain expiration and notify about expiring domains",
    )
    _add_env_file_argument(check_parser)
    check_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the results without sending notifications",
    )
    check_parser.set_defaults(func=cmd_check)

    # 'certificates' command
    certificates_parser = subparsers.add_parser(
        "certificates",
        help="Check TLS certificate expiration of the HOSTS list",
    )
    _add_env_file_argument(certificates_parser)
    certificates_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the results without sending notifications",
    )
    certificates_parser.set_defaults(func=cmd_certificates)

    # 'renewals' command
    renewals_parser = subparsers.add_parser(
        "renewals",
        help="Print the renewals table as JSON",
    )
    _add_env_file_argument(renewals_parser)
    renewals_parser.add_argument(
        "--output", "-o",
        help="Path to write the rows as JSON",
    )
    renewals_parser.set_defaults(func=cmd_renewals)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Inspect the loaded configuration",
    )
    config_parser.add_argument(
        "action",
        choices=["show"],
        help="What to do with it",
    )
    _add_env_file_argument(config_parser)
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Run the renewal-checker command line.

    Args:
        argv: Arguments to parse, sys.argv[1:] when omitted

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
