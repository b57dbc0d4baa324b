"""Integration tests for PostgresStudioRepository through the billing services.

Skipped unless STUDIO_TEST_DATABASE_URL is set.
"""

import pytest
from uuid import uuid4

from core.models import BillStatus, PaymentMethod
from core.repositories import PostgresStudioRepository
from core.services.billing_service import BillingService
from core.services.catalog_service import CatalogService
from core.services.payment_ledger import PaymentLedger
from core.services.spend_aggregator import SpendAggregator


@pytest.fixture
def seeded(db, pg_repository, service, variants):
    """Write the test service and its variants."""
    db.execute(
        "INSERT INTO services (id, name, price, is_active) VALUES (%s, %s, %s, %s)",
        (service.id, service.name, service.price, service.is_active)
    )
    for v in variants:
        db.execute(
            """
            INSERT INTO service_variants (
                id, service_id, type, name, code, price_modifier,
                is_active, is_required, sort_order, metadata
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                v.id, v.service_id, v.type.value, v.name, v.code, v.price_modifier,
                v.is_active, v.is_required, v.sort_order, v.metadata
            )
        )
    return pg_repository


@pytest.fixture
def pg_billing(seeded):
    return BillingService(seeded, CatalogService(seeded))


class TestCatalog:
    def test_fetches_service_with_variants(self, seeded, service):
        data = seeded.fetch_service_with_variants(service.id)
        assert data.service.name == service.name
        color = next(v for v in data.variants if v.name == "彩色")
        assert color.metadata["colorPriceDiff"] == 1000

    def test_unknown_service(self, seeded):
        assert seeded.fetch_service_with_variants(uuid4()) is None


class TestBillItems:
    def test_snapshot_survives_variant_deletion(self, db, seeded, pg_billing, service, customer_id):
        bill = pg_billing.create_bill(customer_id)
        item = pg_billing.add_item(bill.id, service.id, {"size": "T-1", "color": "彩色", "custom_addon": 200})

        db.execute("DELETE FROM service_variants WHERE service_id = %s", (service.id,))
        db.execute("UPDATE services SET price = 9999 WHERE id = %s", (service.id,))

        stored = seeded.get_bill_item(item.id)
        assert stored.final_price_snapshot == 3200
        assert stored.variants_snapshot == {"size": "T-1", "color": "彩色", "custom_addon": 200}
        [breakdown] = pg_billing.get_breakdowns(bill.id)
        assert breakdown.service_price == 3000
        assert pg_billing.get_bill(bill.id).bill_total == 3200

    def test_sort_order_follows_insertion(self, pg_billing, service, customer_id):
        bill = pg_billing.create_bill(customer_id)
        pg_billing.add_item(bill.id, service.id, {"size": "Z"})
        pg_billing.add_item(bill.id, service.id, {"size": "T-2"})

        assert [i.sort_order for i in pg_billing.list_items(bill.id)] == [0, 1]

    def test_settled_bill_reopens_on_new_item(self, seeded, pg_billing, service, customer_id):
        bill = pg_billing.create_bill(customer_id)
        pg_billing.add_item(bill.id, service.id, {"size": "T-1"})
        PaymentLedger(seeded).record_payment(bill.id, 2000)

        pg_billing.add_item(bill.id, service.id, {"size": "T-1"})

        reopened = pg_billing.get_bill(bill.id)
        assert reopened.status == BillStatus.OPEN
        assert (reopened.list_total, reopened.bill_total, reopened.discount_total) == (0, 4000, 0)


class TestCheckout:
    def test_writes_bill_and_items_together(self, seeded, pg_billing, cart_service, service, customer_id):
        cart = [
            cart_service.add_item(service.id, {"size": "T-1", "color": "彩色"}),
            cart_service.add_item(service.id, {"size": "Z"}),
        ]

        bill, items = pg_billing.checkout(customer_id, cart)

        assert bill.bill_total == 3500
        assert [i.sort_order for i in items] == [0, 1]
        assert seeded.list_bills(customer_id) == [bill]

    def test_failed_item_rolls_back_bill(self, db, seeded, cart_service, service, customer_id):
        class FailingRepository(PostgresStudioRepository):
            def _insert_bill_item(self, tx, bill, snapshot, sort_order):
                if sort_order == 1:
                    raise RuntimeError("connection lost")
                return super()._insert_bill_item(tx, bill, snapshot, sort_order)

        repository = FailingRepository(db)
        billing = BillingService(repository, CatalogService(repository))
        cart = [
            cart_service.add_item(service.id, {"size": "T-1"}),
            cart_service.add_item(service.id, {"size": "Z"}),
        ]

        with pytest.raises(RuntimeError):
            billing.checkout(customer_id, cart)

        assert repository.list_bills(customer_id) == []
        assert db.execute_scalar("SELECT COUNT(*) FROM appointment_bill_items") == 0


class TestPayments:
    def test_stored_value_debits_member_balance(self, db, seeded, pg_billing, service, customer_id):
        ledger = PaymentLedger(seeded)
        db.execute(
            "INSERT INTO members (id, user_id, total_spent, balance) VALUES (%s, %s, %s, %s)",
            (uuid4(), customer_id, 0, 2500)
        )
        bill = pg_billing.create_bill(customer_id)
        pg_billing.add_item(bill.id, service.id, {"size": "T-1"})

        ledger.record_payment(bill.id, 2000, method=PaymentMethod.STORED_VALUE)
        with pytest.raises(ValueError, match="Insufficient"):
            ledger.record_payment(bill.id, 1000, method=PaymentMethod.STORED_VALUE)

        assert seeded.get_member_by_user_id(customer_id).balance == 500
        assert len(seeded.list_payments_for_bill(bill.id)) == 1
        assert pg_billing.get_bill(bill.id).status == BillStatus.SETTLED

    def test_payment_is_allocated_once(self, seeded, pg_billing, service, customer_id):
        ledger = PaymentLedger(seeded)
        bill = pg_billing.create_bill(customer_id)
        item = pg_billing.add_item(bill.id, service.id, {"size": "T-1"})
        payment = ledger.record_payment(bill.id, 2000)

        ledger.allocate(payment.id, [item.id])
        with pytest.raises(ValueError, match="already allocated"):
            seeded.create_allocations(payment.id, [])


class TestLedgerAndAggregation:
    def test_recomputes_from_non_void_payments(self, db, seeded, pg_billing, service, customer_id):
        ledger = PaymentLedger(seeded)
        member_id = uuid4()
        db.execute(
            "INSERT INTO members (id, user_id, total_spent) VALUES (%s, %s, %s)",
            (member_id, customer_id, 0)
        )

        kept = pg_billing.create_bill(customer_id)
        pg_billing.add_item(kept.id, service.id, {"size": "T-1"})
        ledger.record_payment(kept.id, 2000, method="card")

        voided = pg_billing.create_bill(customer_id)
        pg_billing.add_item(voided.id, service.id, {"size": "Z"})
        ledger.record_payment(voided.id, 500)
        pg_billing.void_bill(voided.id, reason="test")

        assert pg_billing.get_bill(kept.id).status == BillStatus.SETTLED

        aggregator = SpendAggregator(seeded)
        first = aggregator.run()
        second = aggregator.run()

        assert first.updated == 1
        assert second.updated == 0
        assert db.execute_scalar("SELECT total_spent FROM members WHERE id = %s", (member_id,)) == 2000
