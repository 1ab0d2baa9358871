#!/usr/bin/env python3
"""
PrefTrack -- admin command line for the account store.

Teacher accounts cannot be self-registered over HTTP; they are provisioned
here. The same command unlocks accounts that tripped the login lockout.

Usage:
  python main.py create-user alice
  python main.py create-user mrsmith --role teacher
  python main.py create-user bob --password 'Str0ng!Pass'
  python main.py unlock alice
  python main.py list-users

Environment variables:
  DATABASE_URL    SQLAlchemy URL of the account database (default: ./preftrack.db)
  BCRYPT_ROUNDS   bcrypt cost factor for new password hashes (default: 12)
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from auth.errors import DuplicateUsername
from auth.models import Role
from auth.policy import check_password_policy
from auth.service import MAX_PASSWORD_BYTES
from auth.store import CredentialStore
from auth.tokens import hash_password
from core.config import get_settings

logger = logging.getLogger("preftrack.cli")


def _prompt_password() -> Optional[str]:
    """Read a password twice without echo. Returns None if the entries differ."""
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Confirm password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def cmd_create_user(
    store: CredentialStore, args: argparse.Namespace, bcrypt_rounds: int, max_username_length: int
) -> int:
    username = args.username.strip()
    if not username or len(username) > max_username_length:
        print(f"  [!] Username must be 1 to {max_username_length} characters.")
        return 1

    password = args.password if args.password is not None else _prompt_password()
    if not password:
        return 1

    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Password cannot exceed {MAX_PASSWORD_BYTES} bytes.")
        return 1

    problem = check_password_policy(password)
    if problem is not None:
        print(f"  [!] {problem}")
        return 1

    try:
        account = store.create(username, hash_password(password, rounds=bcrypt_rounds), Role(args.role))
    except DuplicateUsername:
        print(f"  [!] Username '{username}' already exists.")
        return 1

    logger.info("SECURITY: User created from CLI: %s (ID: %s, role: %s)", username, account.id, args.role)
    print(f"  Created {args.role} '{username}' (id {account.id}).")
    return 0


def cmd_unlock(store: CredentialStore, args: argparse.Namespace) -> int:
    account = store.find_by_username(args.username)
    if account is None:
        print(f"  [!] No user named '{args.username}'.")
        return 1
    store.reset_failure_state(account.id)
    logger.info("SECURITY: Failure state reset from CLI for user %s (ID: %s)", account.username, account.id)
    print(f"  Unlocked '{account.username}'.")
    return 0


def cmd_list_users(store: CredentialStore) -> int:
    accounts = store.list_accounts()
    if not accounts:
        print("  No users.")
        return 0
    print(f"  {'ID':>4}  {'USERNAME':<30} {'ROLE':<8} {'FAILED':>6}  LOCKED UNTIL")
    for a in accounts:
        locked = a.lockout_until.isoformat() if a.lockout_until else "-"
        print(f"  {a.id:>4}  {a.username:<30} {a.role.value:<8} {a.failed_login_attempts:>6}  {locked}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="preftrack",
        description="Account administration for PrefTrack.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user mrsmith --role teacher
  python main.py unlock alice
  DATABASE_URL=sqlite:////srv/preftrack.db python main.py list-users
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-user", help="Create an account (prompts for the password)")
    create.add_argument("username", metavar="USERNAME")
    create.add_argument(
        "--role",
        choices=[r.value for r in Role],
        default=Role.student.value,
        help="Account role (default: student)",
    )
    create.add_argument(
        "--password",
        default=None,
        help="Password to set. Omit to be prompted; a value here ends up in shell history.",
    )

    unlock = sub.add_parser("unlock", help="Clear failed-login count and lockout for an account")
    unlock.add_argument("username", metavar="USERNAME")

    sub.add_parser("list-users", help="List all accounts with their lockout state")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"  [!] Configuration error: {e}")
        return 1

    store = CredentialStore(settings.database_url)
    try:
        if args.command == "create-user":
            return cmd_create_user(store, args, settings.bcrypt_rounds, settings.max_username_length)
        if args.command == "unlock":
            return cmd_unlock(store, args)
        return cmd_list_users(store)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
