#!/usr/bin/env python3
"""Create or update an operator account for the Soylenti admin API."""

from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from soylenti.db.models import ADMIN_ROLES
from soylenti.db.session import get_session
from soylenti.web.auth import create_or_update_admin_user


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or update an operator account")
    parser.add_argument("--username", required=True, help="Operator username")
    parser.add_argument(
        "--password",
        default=None,
        help="Password (omit to be prompted securely)",
    )
    parser.add_argument(
        "--role",
        choices=ADMIN_ROLES,
        default="admin",
        help="admin can merge and sync; editor can curate aliases and rumour links",
    )
    parser.add_argument(
        "--inactive",
        action="store_true",
        help="Create/update the account as inactive",
    )
    args = parser.parse_args()

    password = args.password
    if password is None:
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match.", file=sys.stderr)
            return 1

    with get_session() as session:
        account = create_or_update_admin_user(
            db=session,
            username=args.username,
            password=password,
            role=args.role,
            is_active=not args.inactive,
        )
        print(
            f"Operator ready: id={account.id}, username={account.username}, "
            f"role={account.role}, active={account.is_active}"
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
