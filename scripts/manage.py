"""Operator commands for the procurement database.

Usage:
    python -m scripts.manage init-db
    python -m scripts.manage bootstrap-admin --email admin@contoso.com --first Ada --last Admin
    python -m scripts.manage list-users
"""
from __future__ import annotations
import argparse
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from procurement.config import load_settings
from procurement.core.constants import RoleId, UserStatusId
from procurement.db.engine import (
    create_tables,
    get_session_factory,
    init_engine,
    seed_reference_data,
    session_scope,
)
from procurement.db.models import User


def init_db(factory: sessionmaker[Session], include_products: bool = True) -> None:
    """Create the schema and seed reference data (idempotent)."""
    create_tables(factory.kw["bind"])
    with session_scope(factory) as session:
        seed_reference_data(session, include_products=include_products)


def bootstrap_admin(factory: sessionmaker[Session], email: str, first: str, last: str) -> str:
    """Create an Approved Admin, or promote an existing account.

    Returns:
        "created" or "promoted"
    """
    with session_scope(factory) as session:
        user = session.scalar(select(User).where(User.email == email))
        if user is None:
            session.add(
                User(
                    email=email,
                    first_name=first,
                    last_name=last,
                    role_id=RoleId.ADMIN,
                    user_status_id=UserStatusId.APPROVED,
                )
            )
            return "created"
        user.role_id = RoleId.ADMIN
        user.user_status_id = UserStatusId.APPROVED
        return "promoted"


def list_users(factory: sessionmaker[Session]) -> list[tuple[str, str, str]]:
    with session_scope(factory) as session:
        rows = session.execute(select(User.email, User.role_id, User.user_status_id).order_by(User.email))
        return [tuple(row) for row in rows]


def main(argv: list[str] | None = None) -> None:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Procurement database helper")
    sub = parser.add_subparsers(dest="cmd")

    si = sub.add_parser("init-db")
    si.add_argument("--no-products", action="store_true", help="Skip the demo product catalog")

    sb = sub.add_parser("bootstrap-admin")
    sb.add_argument("--email", required=True)
    sb.add_argument("--first", required=True)
    sb.add_argument("--last", required=True)

    sub.add_parser("list-users")

    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return

    cfg = load_settings()
    init_engine(cfg.database_url, cfg.database_echo)
    factory = get_session_factory()

    if args.cmd == "init-db":
        init_db(factory, include_products=not args.no_products)
        print("[init-db] Schema ready")
    elif args.cmd == "bootstrap-admin":
        outcome = bootstrap_admin(factory, args.email, args.first, args.last)
        print(f"[bootstrap-admin] {args.email} {outcome}")
    elif args.cmd == "list-users":
        for email, role, status in list_users(factory):
            print(f"{email}\t{role}\t{status}")


if __name__ == "__main__":
    main()
