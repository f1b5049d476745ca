# src/marginalia/scripts/maintenance.py
"""Operator commands for the comment service.

Run as ``python -m marginalia.scripts.maintenance <command>``:

* ``create-tables``: create any missing tables straight from the models.
* ``upgrade``: apply Alembic migrations up to head. The migration tree ships
  beside ``src/`` rather than inside the wheel, so outside a source checkout
  point ``--migrations-dir`` or ``MARGINALIA_MIGRATIONS_DIR`` at it.
* ``sweep-grants``: delete expired deletion grants; safe to run from cron.
* ``mint-admin-token``: print a bearer token for the moderation endpoints.
"""
from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy.exc import SQLAlchemyError

from marginalia.core.logging import configure_logging
from marginalia.core.security import create_admin_token
from marginalia.core.settings import settings
from marginalia.db import SessionLocal, create_tables
from marginalia.services.deletion_rights import DeletionRightsStore

MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"
MIGRATIONS_DIR_ENV = "MARGINALIA_MIGRATIONS_DIR"


def run_create_tables(args: argparse.Namespace) -> int:
    create_tables()
    print("[maintenance] tables created")
    return 0


def run_upgrade(args: argparse.Namespace) -> int:
    migrations_dir = Path(args.migrations_dir)
    ini_path = migrations_dir / "alembic.ini"
    if not ini_path.is_file():
        print(
            f"[maintenance] ERROR: no alembic.ini in {migrations_dir}; "
            f"pass --migrations-dir or set {MIGRATIONS_DIR_ENV}",
            file=sys.stderr,
        )
        return 1
    cfg = Config(str(ini_path))
    cfg.set_main_option("script_location", str(migrations_dir))
    cfg.set_main_option("sqlalchemy.url", settings.database_url_sync)
    command.upgrade(cfg, args.revision)
    return 0


def run_sweep_grants(args: argparse.Namespace) -> int:
    db = SessionLocal()
    try:
        removed = DeletionRightsStore(db).sweep_expired()
    finally:
        db.close()
    print(f"[maintenance] removed {removed} expired deletion grants")
    return 0


def run_mint_admin_token(args: argparse.Namespace) -> int:
    token = create_admin_token(
        args.subject,
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        expires_minutes=args.minutes,
    )
    print(token)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Comment service maintenance tasks")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create-tables", help="Create missing tables from the models")
    create.set_defaults(handler=run_create_tables)

    upgrade = subparsers.add_parser("upgrade", help="Apply Alembic migrations")
    upgrade.add_argument("revision", nargs="?", default="head")
    upgrade.add_argument(
        "--migrations-dir",
        default=os.environ.get(MIGRATIONS_DIR_ENV, str(MIGRATIONS_DIR)),
        help=f"Directory holding alembic.ini (default: ${MIGRATIONS_DIR_ENV} or the source checkout)",
    )
    upgrade.set_defaults(handler=run_upgrade)

    sweep = subparsers.add_parser("sweep-grants", help="Delete expired deletion grants")
    sweep.set_defaults(handler=run_sweep_grants)

    mint = subparsers.add_parser("mint-admin-token", help="Print an admin bearer token")
    mint.add_argument("--subject", default="admin", help="Token subject (default: admin)")
    mint.add_argument(
        "--minutes",
        type=int,
        default=settings.admin_token_expire_minutes,
        help="Lifetime in minutes",
    )
    mint.set_defaults(handler=run_mint_admin_token)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.log_level)
    try:
        return args.handler(args)
    except SQLAlchemyError as exc:
        print(f"[maintenance] ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
