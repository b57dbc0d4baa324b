"""Tests for SpendAggregator (member total_spent recomputation)."""

import pytest

from core.repositories import MemoryStudioRepository
from core.services.spend_aggregator import SpendAggregator


@pytest.fixture
def aggregator(repository):
    return SpendAggregator(repository)


@pytest.fixture
def paid_bill(billing_service, payment_ledger, service):
    """Create a bill for a customer with one item and record payments on it."""

    def create(customer_id, *amounts):
        bill = billing_service.create_bill(customer_id)
        billing_service.add_item(bill.id, service.id, {"size": "T-2"})
        for amount in amounts:
            payment_ledger.record_payment(bill.id, amount)
        return bill

    return create


class TestComputeTotalSpent:
    """Which payments count."""

    def test_sums_payments_and_refunds(self, repository, aggregator, paid_bill, customer_id):
        member = repository.add_member(customer_id)
        paid_bill(customer_id, 3000, -500)
        paid_bill(customer_id, 1200)

        assert aggregator.compute_total_spent(member) == 3700

    def test_excludes_void_bills(self, repository, aggregator, billing_service, paid_bill, customer_id):
        member = repository.add_member(customer_id)
        paid_bill(customer_id, 3000)
        voided = paid_bill(customer_id, 1000)
        billing_service.void_bill(voided.id, reason="重複收款")

        assert aggregator.compute_total_spent(member) == 3000

    def test_only_counts_own_bills(self, repository, aggregator, paid_bill, customer_id, customer_b_id):
        member = repository.add_member(customer_id)
        paid_bill(customer_b_id, 5000)

        assert aggregator.compute_total_spent(member) == 0


class TestRun:
    """Tests for SpendAggregator.run."""

    def test_updates_stale_members(self, repository, aggregator, paid_bill, customer_id, customer_b_id):
        member = repository.add_member(customer_id, total_spent=100)
        up_to_date = repository.add_member(customer_b_id, total_spent=2000)
        paid_bill(customer_id, 3000)
        paid_bill(customer_b_id, 2000)

        report = aggregator.run()

        assert (report.processed, report.updated, report.failed) == (2, 1, 0)
        assert repository.get_member(member.id).total_spent == 3000
        assert repository.get_member(up_to_date.id).total_spent == 2000

    def test_second_run_writes_nothing(self, repository, aggregator, paid_bill, customer_id):
        repository.add_member(customer_id)
        paid_bill(customer_id, 3000)

        first = aggregator.run()
        writes = repository.member_writes
        second = aggregator.run()

        assert first.updated == 1
        assert second.updated == 0
        assert repository.member_writes == writes

    def test_resets_member_without_payments(self, repository, aggregator, customer_id):
        member = repository.add_member(customer_id, total_spent=999)

        aggregator.run()

        assert repository.get_member(member.id).total_spent == 0

    def test_dry_run_does_not_write(self, repository, aggregator, paid_bill, customer_id):
        member = repository.add_member(customer_id)
        paid_bill(customer_id, 3000)

        report = aggregator.run(dry_run=True)

        assert report.dry_run is True
        assert report.updated == 1
        assert repository.member_writes == 0
        assert repository.get_member(member.id).total_spent == 0

    def test_continues_past_failures(self, service, variants, customer_id, customer_b_id):
        """One member failing does not stop the others."""

        class FlakyRepository(MemoryStudioRepository):
            def find_payments_for_customer(self, user_id):
                if user_id == customer_id:
                    raise RuntimeError("connection reset")
                return super().find_payments_for_customer(user_id)

        repository = FlakyRepository()
        repository.put_service(service, variants)
        failing = repository.add_member(customer_id, total_spent=10)
        healthy = repository.add_member(customer_b_id, total_spent=10)

        report = SpendAggregator(repository).run()

        assert (report.processed, report.updated, report.failed) == (2, 1, 1)
        assert report.failed_member_ids == [failing.id]
        assert repository.get_member(healthy.id).total_spent == 0
        assert repository.get_member(failing.id).total_spent == 10
