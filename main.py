#!/usr/bin/env python3
"""
TaskGuard -- user provisioning CLI.

Operates directly on the credential store named by DATABASE_URL, so it is
only useful with a persistent database (the default in-memory store lives
and dies with the API process).

Usage:
  python main.py create-user alice --email alice@example.com
  python main.py create-user root --role admin --password-stdin < pw.txt
  python main.py list-users
  python main.py set-password alice
  python main.py delete-user alice

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the user database.
  BCRYPT_ROUNDS  Cost factor for new password hashes (default 12).
  SECRET_KEY     Required unless DEBUG=true (settings validation runs here too).
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import ROLES, User
from auth.passwords import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, hash_password
from auth.store import UserStore
from core.config import Settings, get_settings
from tasks.store import TaskStore


def _read_password(from_stdin: bool) -> Optional[str]:
    """Prompt twice (or read one line from stdin) and enforce the length policy.

    Returns None and prints the reason when the password is unacceptable.
    """
    if from_stdin:
        password = sys.stdin.readline().rstrip("\r\n")
    else:
        password = getpass.getpass("Password: ")
        if getpass.getpass("Repeat password: ") != password:
            print("  [!] Passwords do not match.")
            return None
    if not PASSWORD_MIN_LEN <= len(password) <= PASSWORD_MAX_LEN:
        print(f"  [!] Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.")
        return None
    return password


def cmd_create_user(store: UserStore, args: argparse.Namespace, settings: Settings) -> int:
    password = _read_password(args.password_stdin)
    if password is None:
        return 1
    user = User(
        username=args.username,
        hashed_password=hash_password(password, rounds=settings.bcrypt_rounds),
        email=args.email,
        role=args.role,
    )
    try:
        user_id = store.create_user(user)
    except IntegrityError:
        print(f"  [!] User '{args.username}' already exists.")
        return 1
    print(f"  Created {args.role} '{args.username}' (id={user_id}).")
    return 0


def cmd_list_users(store: UserStore, args: argparse.Namespace, settings: Settings) -> int:
    users = store.list_users()
    if not users:
        print("  No users.")
        return 0
    print(f"  {'ID':>4}  {'USERNAME':<24} {'ROLE':<6} EMAIL")
    for u in users:
        print(f"  {u.id:>4}  {u.username:<24} {u.role:<6} {u.email or ''}")
    return 0


def cmd_set_password(store: UserStore, args: argparse.Namespace, settings: Settings) -> int:
    user = store.get_by_username(args.username)
    if user is None:
        print(f"  [!] No such user '{args.username}'.")
        return 1
    password = _read_password(args.password_stdin)
    if password is None:
        return 1
    store.update_password(user.id, hash_password(password, rounds=settings.bcrypt_rounds))
    print(f"  Password updated for '{args.username}'.")
    return 0


def cmd_delete_user(store: UserStore, args: argparse.Namespace, settings: Settings) -> int:
    user = store.get_by_username(args.username)
    if user is None:
        print(f"  [!] No such user '{args.username}'.")
        return 1
    task_store = TaskStore(settings.database_url)
    try:
        removed = task_store.delete_tasks_for_user(user.id)
    finally:
        task_store.close()
    if not store.delete_user(user.id):
        print(f"  [!] No such user '{args.username}'.")
        return 1
    print(f"  Deleted '{args.username}' and {removed} task(s).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskguard",
        description="Provision TaskGuard user accounts.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create a user account")
    create.add_argument("username")
    create.add_argument("--email", default=None)
    create.add_argument("--role", choices=ROLES, default="user")
    create.add_argument("--password-stdin", action="store_true", help="Read the password from stdin")
    create.set_defaults(func=cmd_create_user)

    listing = sub.add_parser("list-users", help="List user accounts (no credentials shown)")
    listing.set_defaults(func=cmd_list_users)

    setpw = sub.add_parser("set-password", help="Replace a user's password")
    setpw.add_argument("username")
    setpw.add_argument("--password-stdin", action="store_true", help="Read the password from stdin")
    setpw.set_defaults(func=cmd_set_password)

    delete = sub.add_parser("delete-user", help="Delete a user account")
    delete.add_argument("username")
    delete.set_defaults(func=cmd_delete_user)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    store = UserStore(settings.database_url)
    try:
        return args.func(store, args, settings)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
