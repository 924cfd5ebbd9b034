#!/usr/bin/env python3
# ============================================================================
# EMISSION FACTOR SEED TOOL
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Tool - Administrative factor loading
# PURPOSE: Insert emission factors from a JSON file
# CREATED: 07 OCT 2026
# ============================================================================
"""
Load emission factors from a JSON list into the factor table.

Each entry uses the camelCase field names of EmissionFactor. Entries with an
"id" already present are skipped, so re-running with the same file is safe.

Usage:
    python tools/seed_emission_factors.py data/emission_factors.json
    python tools/seed_emission_factors.py factors.json --dry-run

Requires:
    DATABASE_URL (or POSTGRES_* variables)
"""

import argparse
import asyncio
import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pydantic import ValidationError as PydanticValidationError

from core.logging import configure_logging, get_logger
from core.models import EmissionFactor
from repositories import FactorRepository, close_pool, init_pool

logger = get_logger("seed_emission_factors")


def load_factors(path: str):
    with open(path) as f:
        entries = json.load(f)
    if not isinstance(entries, list):
        raise ValueError(f"{path}: expected a JSON list of factors")
    return [EmissionFactor.model_validate(entry) for entry in entries]


async def seed(factors, connection_string=None) -> int:
    pool = await init_pool(min_size=1, max_size=2, connection_string=connection_string)
    try:
        repo = FactorRepository(pool)
        for factor in factors:
            stored = await repo.create(factor)
            logger.info(
                f"Factor {stored.factor_id}: {stored.region}/{stored.activity_type}/"
                f"{stored.input_type}/{stored.factor_type} {stored.year} = {stored.value} {stored.unit}"
            )
        return len(factors)
    finally:
        await close_pool()


def main():
    parser = argparse.ArgumentParser(description="Seed emission factors from a JSON file")
    parser.add_argument("path", help="JSON file containing a list of factors")
    parser.add_argument("--dry-run", action="store_true", help="Validate the file without writing")
    parser.add_argument("--connection", type=str, help="PostgreSQL connection string (overrides environment)")
    args = parser.parse_args()

    configure_logging(level=os.environ.get("LOG_LEVEL", "INFO"))

    try:
        factors = load_factors(args.path)
    except (OSError, ValueError, PydanticValidationError) as e:
        print(f"Invalid factor file: {e}")
        sys.exit(1)

    if args.dry_run:
        print(f"{len(factors)} factors valid (dry run, nothing written)")
        return

    count = asyncio.run(seed(factors, args.connection))
    print(f"Seeded {count} factors")


if __name__ == "__main__":
    main()
