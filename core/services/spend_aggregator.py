"""
Recompute every member's total_spent from the payment ledger.

total_spent = sum of payment amounts on the member's bills that are not VOID.

Each member is aggregated with its own scoped query and written with its own
small conditional update, so an interrupted run leaves already corrected
members corrected. Running again from scratch converges to the same values;
a second run with no new payments writes nothing.
"""

import logging
from uuid import UUID

from pydantic import BaseModel, Field

from core.exceptions import AggregationError
from core.models import Member
from core.repository import StudioRepository

logger = logging.getLogger(__name__)


class AggregationReport(BaseModel):
    """Counts from one aggregator run."""

    processed: int = 0
    updated: int = 0
    failed: int = 0
    failed_member_ids: list[UUID] = Field(default_factory=list)
    dry_run: bool = False


class SpendAggregator:
    """Batch recomputation of members' cached spend."""

    def __init__(self, repository: StudioRepository):
        self.repository = repository

    def compute_total_spent(self, member: Member) -> int:
        """Sum of the member's payments on non-void bills."""
        payments = self.repository.find_payments_for_customer(member.user_id)
        return sum(p.amount for p in payments if p.counts_toward_spend)

    def recompute_member(self, member: Member, dry_run: bool = False) -> bool:
        """
        Recompute one member.

        Returns:
            True if the stored value differed (and was written, unless dry_run)

        Raises:
            AggregationError: If reading payments or writing the member failed
        """
        try:
            total = self.compute_total_spent(member)
            if total == member.total_spent:
                return False

            if dry_run:
                logger.info(f"[dry-run] Member {member.id}: {member.total_spent} -> {total}")
                return True

            changed = self.repository.update_member_total_spent(member.id, total)
            if changed:
                logger.info(f"Member {member.id}: total_spent {member.total_spent} -> {total}")
            return changed
        except Exception as e:
            raise AggregationError(member.id, e) from e

    def run(self, dry_run: bool = False) -> AggregationReport:
        """
        Recompute every member, continuing past individual failures.

        Args:
            dry_run: Compute and count differences without writing

        Returns:
            AggregationReport with processed / updated / failed counts
        """
        report = AggregationReport(dry_run=dry_run)

        for member in self.repository.list_members():
            report.processed += 1
            try:
                if self.recompute_member(member, dry_run=dry_run):
                    report.updated += 1
            except AggregationError as e:
                report.failed += 1
                report.failed_member_ids.append(e.member_id)
                logger.exception(f"Failed to recompute total_spent for member {e.member_id}")

        logger.info(
            f"Spend aggregation done: processed={report.processed} "
            f"updated={report.updated} failed={report.failed} dry_run={dry_run}"
        )
        return report
