"""
Recompute every member's total_spent from the payment ledger.

Usage:
    recompute-member-total-spent --yes
    recompute-member-total-spent --yes --i-understand      # production-like target
    recompute-member-total-spent --yes --dry-run

The database URL comes from --database-url, then $DATABASE_URL, then Vault.
Safe to interrupt and re-run: already corrected members are left alone.
"""

import argparse
import logging
import os
import sys
from typing import Callable, Sequence

from dotenv import load_dotenv

from clients.postgres_client import PostgresClient
from clients.vault_client import VaultError, get_database_url
from core.config import BillingConfig
from core.exceptions import ProductionGuardError
from core.production_guard import ensure_safe_to_run, require_confirmation
from core.repositories.postgres_repository import PostgresStudioRepository
from core.repository import StudioRepository
from core.services.spend_aggregator import SpendAggregator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recompute-member-total-spent",
        description="Recompute members' total_spent from payments on non-void bills.",
    )
    parser.add_argument(
        "--yes", "--force",
        dest="yes",
        action="store_true",
        help="Confirm the run",
    )
    parser.add_argument(
        "--i-understand",
        dest="i_understand",
        action="store_true",
        help="Acknowledge that the target is a production-like database",
    )
    parser.add_argument(
        "--production-like",
        dest="production_like",
        action="store_true",
        help="Treat the target as production-like regardless of its URL",
    )
    parser.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Report differences without writing",
    )
    parser.add_argument(
        "--database-url",
        dest="database_url",
        default=None,
        help="Connection URL (default: $DATABASE_URL, then Vault)",
    )
    return parser


def resolve_database_url(explicit: str | None, config: BillingConfig) -> str | None:
    """First configured URL: argument, environment, Vault."""
    if explicit:
        return explicit

    from_env = os.getenv(config.database_url_env)
    if from_env:
        return from_env

    try:
        return get_database_url()
    except VaultError as e:
        logger.error(f"Could not read database URL from Vault: {e}")
        return None


def _postgres_repository(database_url: str) -> StudioRepository:
    return PostgresStudioRepository(PostgresClient(database_url))


def main(
    argv: Sequence[str] | None = None,
    repository_factory: Callable[[str], StudioRepository] | None = None,
) -> int:
    """
    Run the job. Returns the process exit status.

    0 when every member was processed, 1 when the guard refused to start or
    any member failed.
    """
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    args = build_parser().parse_args(argv)
    config = BillingConfig()

    try:
        # Checked before any secret store is contacted
        require_confirmation(args.yes)
        database_url = resolve_database_url(args.database_url, config)
        production_like = ensure_safe_to_run(
            database_url,
            confirmed=args.yes,
            acknowledged_production=args.i_understand,
            force_production_like=args.production_like,
            config=config,
        )
    except ProductionGuardError as e:
        logger.error(f"❌ recompute-member-total-spent refused to start: {e}")
        return 1

    logger.info("🧮 recompute-member-total-spent: start")
    logger.info(f"   - production_like: {production_like}")
    logger.info(f"   - dry_run: {args.dry_run}")

    factory = repository_factory or _postgres_repository
    try:
        report = SpendAggregator(factory(database_url)).run(dry_run=args.dry_run)
    finally:
        if repository_factory is None:
            PostgresClient.close_all_pools()

    logger.info(
        f"✅ recompute-member-total-spent: done "
        f"(processed={report.processed}, updated={report.updated}, failed={report.failed})"
    )
    if report.failed:
        logger.error(f"Failed members: {', '.join(str(m) for m in report.failed_member_ids)}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
