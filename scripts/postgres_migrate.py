import argparse
import os
import sys
from importlib.util import find_spec
from pathlib import Path

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from src.infrastructure.postgres_migrations import (  # noqa: E402
    apply_postgres_migrations,
    load_migrations,
)

WEALTH_NAMESPACE = "wealth"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Apply forward-only PostgreSQL migrations for the wealth planning store."
    )
    parser.add_argument(
        "--dsn",
        default=os.getenv("WEALTH_POSTGRES_DSN", "").strip(),
        help="PostgreSQL DSN; defaults to WEALTH_POSTGRES_DSN.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Print bundled migration versions and exit without connecting.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.list:
        for migration in load_migrations(namespace=WEALTH_NAMESPACE):
            print(f"{migration.version} {migration.sql_path.name} {migration.checksum[:12]}")
        return 0

    if not args.dsn:
        raise RuntimeError(f"POSTGRES_MIGRATION_DSN_REQUIRED:{WEALTH_NAMESPACE}")
    if find_spec("psycopg") is None:
        raise RuntimeError("POSTGRES_MIGRATION_DRIVER_MISSING")
    import psycopg
    from psycopg.rows import dict_row

    with psycopg.connect(args.dsn, row_factory=dict_row) as connection:
        applied = apply_postgres_migrations(connection=connection, namespace=WEALTH_NAMESPACE)
    print(
        f"Applied migrations for namespace={WEALTH_NAMESPACE}: "
        f"{', '.join(applied) if applied else 'none pending'}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
