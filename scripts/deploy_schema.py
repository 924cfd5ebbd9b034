#!/usr/bin/env python
# ============================================================================
# SCHEMA DEPLOYMENT SCRIPT
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# PURPOSE: Deploy the traceability schema to PostgreSQL using PydanticToSQL
# USAGE:
#   python scripts/deploy_schema.py --dry-run    # Preview SQL
#   python scripts/deploy_schema.py              # Execute deployment
#   python scripts/deploy_schema.py --status     # Check current status
# ============================================================================

import sys
import os
import argparse
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import psycopg

from core.schema import PydanticToSQL
from repositories.database import OWNED_TABLES, SCHEMA, get_connection_string


def print_status(conn) -> None:
    print("\n[STATUS CHECK]\n")

    row = conn.execute(
        "SELECT 1 FROM information_schema.schemata WHERE schema_name = %s", (SCHEMA,)
    ).fetchone()
    print(f"Schema exists: {row is not None}")

    rows = conn.execute(
        """
        SELECT t.table_name, COUNT(c.column_name)
        FROM information_schema.tables t
        JOIN information_schema.columns c
          ON c.table_schema = t.table_schema AND c.table_name = t.table_name
        WHERE t.table_schema = %s
        GROUP BY t.table_name
        ORDER BY t.table_name
        """,
        (SCHEMA,),
    ).fetchall()

    found = {name for name, _ in rows}
    print(f"\nTables ({len(rows)}):")
    for name, columns in rows:
        print(f"  - {SCHEMA}.{name} ({columns} columns)")

    missing = [t for t in OWNED_TABLES if t not in found]
    if missing:
        print(f"\nMissing: {', '.join(missing)}")
        sys.exit(1)


def main():
    parser = argparse.ArgumentParser(
        description="Deploy the traceability schema to PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/deploy_schema.py --dry-run             # Preview DDL without executing
  python scripts/deploy_schema.py                       # Deploy schema
  python scripts/deploy_schema.py --include-external    # Also create practice/certification tables
  python scripts/deploy_schema.py --status              # Check current installation

Environment Variables:
  DATABASE_URL          Full PostgreSQL connection string
  POSTGRES_HOST         Database host (default: localhost)
  POSTGRES_DB           Database name (default: postgres)
  POSTGRES_USER         Database user (default: postgres)
  POSTGRES_PASSWORD     Database password
  POSTGRES_PORT         Database port (default: 5432)
  DB_SCHEMA             Schema name (default: traceability)
        """
    )
    parser.add_argument("--dry-run", action="store_true", help="Print DDL without executing")
    parser.add_argument("--status", action="store_true", help="Check current installation status")
    parser.add_argument(
        "--include-external",
        action="store_true",
        help="Also create platform-owned read tables (local development)",
    )
    parser.add_argument(
        "--destructive",
        action="store_true",
        help="Drop and recreate enum types (development only)",
    )
    parser.add_argument(
        "--connection",
        type=str,
        help="PostgreSQL connection string (overrides environment)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    print("=" * 70)
    print("TRACEABILITY CORE - Schema Deployment")
    print("=" * 70)
    print(f"Schema: {SCHEMA}")

    generator = PydanticToSQL(schema_name=SCHEMA, destructive=args.destructive)
    statements = generator.generate_all(include_external=args.include_external)

    if args.dry_run:
        print(f"\nMode: DRY RUN ({len(statements)} statements)\n")
        for stmt in statements:
            print(stmt.as_string() + ";\n")
        return

    conninfo = args.connection or get_connection_string()
    with psycopg.connect(conninfo) as conn:
        if args.status:
            print_status(conn)
            print("\n" + "=" * 70)
            return

        print(f"\nMode: EXECUTE ({len(statements)} statements)\n")
        try:
            with conn.transaction():
                for stmt in statements:
                    conn.execute(stmt)
        except psycopg.Error as e:
            print(f"Deployment failed: {e}")
            sys.exit(1)

    print("=" * 70)
    print("Deployment completed successfully")
    print("=" * 70)


if __name__ == "__main__":
    main()
