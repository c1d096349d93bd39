"""Command-line interface for dirauth."""

import argparse
import getpass
import json
import logging
import sys
from typing import Optional

from .config import (
    build_config,
    generate_config_file,
    load_config,
    load_env_config,
    merge_config_with_args,
)
from .constants import AMBIGUOUS_MATCH, REJECTED_CODES, Colors
from .ldap.errors import ConfigurationError, DirectoryError, NotFound
from .service import DirectoryAuthService

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_UNAVAILABLE = 2


def positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {number}")
    return number


def add_connection_args(parser: argparse.ArgumentParser) -> None:
    """Add common connection arguments to a parser."""
    parser.add_argument("-c", "--config", help="Configuration file (INI format)")
    parser.add_argument("--url", help="Directory URL (ldap://host:389 or ldaps://host:636)")
    parser.add_argument("--base-dn", dest="base_dn", help="Base DN for user searches")
    parser.add_argument("--bind-dn", dest="bind_dn", help="Service account DN (omit for anonymous search)")
    parser.add_argument("--bind-password", dest="bind_password", help="Service account password")
    parser.add_argument("--timeout", type=int, help="Connect timeout in milliseconds")
    parser.add_argument("--operation-timeout", dest="operation_timeout", type=int,
                        help="Bind/search timeout in milliseconds (default: --timeout)")


def build_service(args) -> Optional[DirectoryAuthService]:
    """Build the service from environment, config file and CLI args (in rising precedence)."""
    try:
        values = load_env_config()
        if getattr(args, "config", None):
            values.update(load_config(args.config))
        values = merge_config_with_args(values, args)
        return DirectoryAuthService(build_config(values))
    except ConfigurationError as e:
        print(f"{Colors.RED}[!] Configuration error: {e.detail or e}{Colors.NC}", file=sys.stderr)
        return None


def print_user(user, as_json: bool = False) -> None:
    """Print a directory profile to stdout."""
    if as_json:
        print(json.dumps(user.to_dict(), indent=2))
        return
    print(f"  {Colors.LBLUE}DN:{Colors.NC}            {user.dn}")
    print(f"  {Colors.LBLUE}Username:{Colors.NC}      {user.username}")
    print(f"  {Colors.LBLUE}Display name:{Colors.NC}  {user.display_name or '-'}")
    print(f"  {Colors.LBLUE}Email:{Colors.NC}         {user.email or '-'}")
    if user.groups:
        print(f"  {Colors.LBLUE}Groups:{Colors.NC}")
        for group in user.groups:
            print(f"    - {group}")


def print_health(report) -> None:
    """Print each health stage with its status."""
    for stage in report.stages:
        if stage.ok:
            mark = f"{Colors.GREEN}[+]{Colors.NC}"
        elif stage.detail == "skipped":
            mark = f"{Colors.ORANGE}[-]{Colors.NC}"
        else:
            mark = f"{Colors.RED}[!]{Colors.NC}"
        print(f"  {mark} {stage.name:<8} {stage.detail}")


def cmd_authenticate(args) -> int:
    """Authenticate a user and print the resulting profile."""
    service = build_service(args)
    if service is None:
        return EXIT_UNAVAILABLE

    password = args.password
    if password is None:
        try:
            password = getpass.getpass(f"Password for {args.username}: ")
        except (EOFError, KeyboardInterrupt):
            return EXIT_REJECTED

    outcome = service.authenticate(args.username, password)
    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2))
    elif outcome.success:
        print(f"{Colors.GREEN}[+] Authenticated {args.username}{Colors.NC}", file=sys.stderr)
        print_user(outcome.user)

    if outcome.success:
        return EXIT_OK
    if not args.json:
        suffix = f" ({outcome.ad_status})" if getattr(outcome, "ad_status", None) else ""
        print(f"{Colors.RED}[!] {outcome.reason}: {outcome.message}{suffix}{Colors.NC}", file=sys.stderr)
    return EXIT_REJECTED if outcome.reason in REJECTED_CODES else EXIT_UNAVAILABLE


def cmd_lookup(args) -> int:
    """Look up a user without a password."""
    service = build_service(args)
    if service is None:
        return EXIT_UNAVAILABLE

    try:
        user = service.lookup(args.username)
    except NotFound:
        print(f"{Colors.ORANGE}[!] User not found: {args.username}{Colors.NC}", file=sys.stderr)
        return EXIT_REJECTED
    except DirectoryError as e:
        print(f"{Colors.RED}[!] {e.code}: {e}{Colors.NC}", file=sys.stderr)
        return EXIT_REJECTED if e.code == AMBIGUOUS_MATCH else EXIT_UNAVAILABLE

    print_user(user, as_json=args.json)
    return EXIT_OK


def cmd_search(args) -> int:
    """Search users by partial login, name or mail."""
    service = build_service(args)
    if service is None:
        return EXIT_UNAVAILABLE

    try:
        users = service.search_users(args.query, limit=args.limit)
    except DirectoryError as e:
        print(f"{Colors.RED}[!] {e.code}: {e}{Colors.NC}", file=sys.stderr)
        return EXIT_UNAVAILABLE

    if args.json:
        print(json.dumps([u.to_dict() for u in users], indent=2))
        return EXIT_OK
    if not users:
        print(f"{Colors.ORANGE}[!] No users found{Colors.NC}", file=sys.stderr)
        return EXIT_REJECTED

    print(f"{Colors.GREEN}[+] Found {len(users)} users{Colors.NC}", file=sys.stderr)
    for user in users:
        name = f" ({user.display_name})" if user.display_name else ""
        print(f"{user.username}{name}  {user.dn}")
    return EXIT_OK


def cmd_health(args) -> int:
    """Run the health probe."""
    service = build_service(args)
    if service is None:
        return EXIT_UNAVAILABLE

    report = service.health_check()
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_health(report)
    return EXIT_OK if report.healthy else EXIT_REJECTED


def cmd_diagnose(args) -> int:
    """Print the effective configuration followed by the health probe stages."""
    service = build_service(args)
    if service is None:
        return EXIT_UNAVAILABLE

    print(f"\n{Colors.BLUE}{'═' * 50}{Colors.NC}")
    print(f"{Colors.ORANGE} Directory Diagnostic{Colors.NC}")
    print(f"{Colors.BLUE}{'═' * 50}{Colors.NC}\n")

    print(f"{Colors.BLUE}Configuration:{Colors.NC}")
    for key, value in service.config.masked().items():
        print(f"  {Colors.LBLUE}{key + ':':<22}{Colors.NC}{value}")

    print(f"\n{Colors.BLUE}Stages:{Colors.NC}")
    report = service.health_check()
    print_health(report)

    if args.username:
        print(f"\n{Colors.BLUE}User lookup ({args.username}):{Colors.NC}")
        try:
            print_user(service.lookup(args.username))
        except DirectoryError as e:
            print(f"  {Colors.RED}[!] {e.code}: {e.detail or e}{Colors.NC}")

    print(f"\n{Colors.BLUE}{'═' * 50}{Colors.NC}\n")
    return EXIT_OK if report.healthy else EXIT_REJECTED


def cmd_generate_config(args) -> int:
    """Write or print a configuration template."""
    print(generate_config_file(args.output))
    return EXIT_OK


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Authenticate users against an LDAP / Active Directory server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase log verbosity (-v info, -vv debug)")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    auth_parser = subparsers.add_parser(
        "authenticate",
        help="Verify a username and password",
        epilog="""
Examples:
  %(prog)s -u jdoe --url ldap://10.0.0.1 --base-dn dc=corp,dc=local
  %(prog)s -u jdoe -c dirauth.ini --json
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    auth_parser.add_argument("-u", "--username", required=True, help="Login name")
    auth_parser.add_argument("-p", "--password", help="Password (prompted if omitted)")
    auth_parser.add_argument("--json", action="store_true", help="Print the outcome as JSON")
    add_connection_args(auth_parser)
    auth_parser.set_defaults(func=cmd_authenticate)

    lookup_parser = subparsers.add_parser("lookup", help="Show a user's directory profile")
    lookup_parser.add_argument("username", help="Login name")
    lookup_parser.add_argument("--json", action="store_true", help="Print the profile as JSON")
    add_connection_args(lookup_parser)
    lookup_parser.set_defaults(func=cmd_lookup)

    search_parser = subparsers.add_parser("search", help="Search users by partial name")
    search_parser.add_argument("query", help="Text contained in login, name or mail")
    search_parser.add_argument("--limit", type=positive_int, help="Maximum results (default: configured size limit)")
    search_parser.add_argument("--json", action="store_true", help="Print results as JSON")
    add_connection_args(search_parser)
    search_parser.set_defaults(func=cmd_search)

    health_parser = subparsers.add_parser("health", help="Check directory reachability")
    health_parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    add_connection_args(health_parser)
    health_parser.set_defaults(func=cmd_health)

    diagnose_parser = subparsers.add_parser("diagnose", help="Show configuration and probe the directory")
    diagnose_parser.add_argument("-u", "--username", help="Also look up this user")
    add_connection_args(diagnose_parser)
    diagnose_parser.set_defaults(func=cmd_diagnose)

    gen_parser = subparsers.add_parser("generate-config", help="Generate a configuration template")
    gen_parser.add_argument("-o", "--output", help="Write the template to this file")
    gen_parser.set_defaults(func=cmd_generate_config)

    args = parser.parse_args(argv)

    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # Disable colors if not a TTY
    if not sys.stderr.isatty():
        Colors.disable()

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
