"""
StudioRepository backed by PostgreSQL.

Table layout is in schema.sql next to this module. Multi-row writes (a bill
with its items, an item with the bill totals, a payment with the balance
and status it moves, a payment's allocations) each run inside one
PostgresClient.transaction(), with the bill or payment row locked first.
"""

import logging
from pathlib import Path
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient, PostgresSession
from core.models import (
    AllocationCreate,
    AppointmentBill,
    AppointmentBillItem,
    BillCreate,
    BillItemSnapshot,
    BillStatus,
    CartItem,
    CartItemCreate,
    CustomerPayment,
    Member,
    Payment,
    PaymentAllocation,
    PaymentCreate,
    PaymentMethod,
    Service,
    ServiceVariant,
    ServiceWithVariants,
    compute_discount_total,
    settlement_status,
    stored_value_balance_after,
)
from core.repository import StudioRepository
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


class PostgresStudioRepository(StudioRepository):
    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def apply_schema(self) -> None:
        """Create missing tables and indexes."""
        self.postgres.execute(SCHEMA_PATH.read_text(encoding="utf-8"))

    # Catalog

    def fetch_service_with_variants(self, service_id: UUID) -> ServiceWithVariants | None:
        with self.postgres.transaction() as tx:
            service_row = tx.execute_single(
                "SELECT * FROM services WHERE id = %s",
                (service_id,)
            )
            if service_row is None:
                return None

            variant_rows = tx.execute(
                """
                SELECT * FROM service_variants
                WHERE service_id = %s
                ORDER BY type ASC, sort_order ASC, name ASC
                """,
                (service_id,)
            )

        return ServiceWithVariants(
            service=Service.model_validate(service_row),
            variants=[ServiceVariant.model_validate(row) for row in variant_rows],
        )

    # Cart

    def create_cart_item(self, data: CartItemCreate) -> CartItem:
        now = now_utc()
        row = self.postgres.execute_returning(
            """
            INSERT INTO cart_items (
                id, service_id, service_name, selected_variants,
                base_price, final_price, notes, created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s,
                %s, %s, %s, %s, %s
            )
            RETURNING *
            """,
            (
                uuid4(), data.service_id, data.service_name, data.selected_variants,
                data.base_price, data.final_price, data.notes, now, now
            )
        )[0]

        return CartItem.model_validate(row)

    # Bills

    def _insert_bill(self, tx: PostgresSession, data: BillCreate) -> dict:
        now = now_utc()
        return tx.execute_single(
            """
            INSERT INTO appointment_bills (
                id, customer_id, branch_id, status,
                list_total, bill_total, discount_total, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (uuid4(), data.customer_id, data.branch_id, BillStatus.OPEN.value, 0, 0, 0, now, now)
        )

    def _insert_bill_item(
        self,
        tx: PostgresSession,
        bill: dict,
        snapshot: BillItemSnapshot,
        sort_order: int,
    ) -> tuple[dict, dict]:
        """Insert one item and roll its prices into the bill row. Returns (bill row, item row)."""
        item_row = tx.execute_single(
            """
            INSERT INTO appointment_bill_items (
                id, bill_id, service_id, name_snapshot,
                base_price_snapshot, final_price_snapshot, variants_snapshot,
                notes, sort_order, created_at
            ) VALUES (
                %s, %s, %s, %s,
                %s, %s, %s,
                %s, %s, %s
            )
            RETURNING *
            """,
            (
                uuid4(), bill["id"], snapshot.service_id, snapshot.name_snapshot,
                snapshot.base_price_snapshot, snapshot.final_price_snapshot, snapshot.variants_snapshot,
                snapshot.notes, sort_order, now_utc()
            )
        )

        list_total = bill["list_total"] + snapshot.base_price_snapshot
        bill_total = bill["bill_total"] + snapshot.final_price_snapshot
        status = BillStatus(bill["status"])
        if status == BillStatus.SETTLED:
            status = settlement_status(status, self._paid_total(tx, bill["id"]), bill_total)

        bill_row = tx.execute_single(
            """
            UPDATE appointment_bills
            SET list_total = %s, bill_total = %s, discount_total = %s, status = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (
                list_total, bill_total, compute_discount_total(list_total, bill_total),
                status.value, now_utc(), bill["id"]
            )
        )
        return bill_row, item_row

    def _paid_total(self, tx: PostgresSession, bill_id: UUID) -> int:
        return tx.execute_single(
            "SELECT COALESCE(SUM(amount), 0) AS paid FROM payments WHERE bill_id = %s",
            (bill_id,)
        )["paid"]

    def create_bill(self, data: BillCreate) -> AppointmentBill:
        with self.postgres.transaction() as tx:
            row = self._insert_bill(tx, data)

        return AppointmentBill.model_validate(row)

    def create_bill_with_items(
        self,
        data: BillCreate,
        snapshots: list[BillItemSnapshot],
    ) -> tuple[AppointmentBill, list[AppointmentBillItem]]:
        item_rows = []
        with self.postgres.transaction() as tx:
            bill_row = self._insert_bill(tx, data)
            for sort_order, snapshot in enumerate(snapshots):
                bill_row, item_row = self._insert_bill_item(tx, bill_row, snapshot, sort_order)
                item_rows.append(item_row)

        return (
            AppointmentBill.model_validate(bill_row),
            [AppointmentBillItem.model_validate(row) for row in item_rows],
        )

    def get_bill(self, bill_id: UUID) -> AppointmentBill | None:
        row = self.postgres.execute_single(
            "SELECT * FROM appointment_bills WHERE id = %s",
            (bill_id,)
        )
        if row is None:
            return None

        return AppointmentBill.model_validate(row)

    def list_bills(self, customer_id: UUID) -> list[AppointmentBill]:
        rows = self.postgres.execute(
            "SELECT * FROM appointment_bills WHERE customer_id = %s ORDER BY created_at ASC",
            (customer_id,)
        )

        return [AppointmentBill.model_validate(row) for row in rows]

    def update_bill_status(
        self,
        bill_id: UUID,
        status: BillStatus,
        void_reason: str | None = None,
    ) -> AppointmentBill:
        now = now_utc()
        voided_at = now if status == BillStatus.VOID else None
        reason = void_reason if status == BillStatus.VOID else None

        rows = self.postgres.execute_returning(
            """
            UPDATE appointment_bills
            SET status = %s, void_reason = %s, voided_at = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (status.value, reason, voided_at, now, bill_id)
        )
        if not rows:
            raise ValueError(f"Bill {bill_id} not found")

        return AppointmentBill.model_validate(rows[0])

    def create_bill_item(self, bill_id: UUID, snapshot: BillItemSnapshot) -> AppointmentBillItem:
        with self.postgres.transaction() as tx:
            # Row lock serializes concurrent item inserts and payments on the same bill
            bill = tx.execute_single(
                "SELECT * FROM appointment_bills WHERE id = %s FOR UPDATE",
                (bill_id,)
            )
            if bill is None:
                raise ValueError(f"Bill {bill_id} not found")

            sort_order = tx.execute_single(
                "SELECT COUNT(*) AS n FROM appointment_bill_items WHERE bill_id = %s",
                (bill_id,)
            )["n"]

            _, row = self._insert_bill_item(tx, bill, snapshot, sort_order)

        return AppointmentBillItem.model_validate(row)

    def get_bill_item(self, item_id: UUID) -> AppointmentBillItem | None:
        row = self.postgres.execute_single(
            "SELECT * FROM appointment_bill_items WHERE id = %s",
            (item_id,)
        )
        if row is None:
            return None

        return AppointmentBillItem.model_validate(row)

    def list_bill_items(self, bill_id: UUID) -> list[AppointmentBillItem]:
        rows = self.postgres.execute(
            """
            SELECT * FROM appointment_bill_items
            WHERE bill_id = %s
            ORDER BY sort_order ASC
            """,
            (bill_id,)
        )

        return [AppointmentBillItem.model_validate(row) for row in rows]

    # Payments

    def create_payment(self, data: PaymentCreate) -> Payment:
        with self.postgres.transaction() as tx:
            bill = tx.execute_single(
                "SELECT * FROM appointment_bills WHERE id = %s FOR UPDATE",
                (data.bill_id,)
            )
            if bill is None:
                raise ValueError(f"Bill {data.bill_id} not found")
            if bill["status"] == BillStatus.VOID.value:
                raise ValueError(f"Bill {data.bill_id} is voided")

            if data.method == PaymentMethod.STORED_VALUE:
                member_row = tx.execute_single(
                    "SELECT * FROM members WHERE user_id = %s FOR UPDATE",
                    (bill["customer_id"],)
                )
                member = Member.model_validate(member_row) if member_row is not None else None
                balance = stored_value_balance_after(member, data.amount)
                tx.execute_rowcount(
                    "UPDATE members SET balance = %s WHERE id = %s",
                    (balance, member.id)
                )

            row = tx.execute_single(
                """
                INSERT INTO payments (id, bill_id, amount, method, paid_at, notes, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (uuid4(), data.bill_id, data.amount, data.method.value, data.paid_at, data.notes, now_utc())
            )

            current = BillStatus(bill["status"])
            status = settlement_status(current, self._paid_total(tx, data.bill_id), bill["bill_total"])
            if status != current:
                tx.execute_rowcount(
                    "UPDATE appointment_bills SET status = %s, updated_at = %s WHERE id = %s",
                    (status.value, now_utc(), data.bill_id)
                )

        return Payment.model_validate(row)

    def get_payment(self, payment_id: UUID) -> Payment | None:
        row = self.postgres.execute_single(
            "SELECT * FROM payments WHERE id = %s",
            (payment_id,)
        )
        if row is None:
            return None

        return Payment.model_validate(row)

    def list_payments_for_bill(self, bill_id: UUID) -> list[Payment]:
        rows = self.postgres.execute(
            "SELECT * FROM payments WHERE bill_id = %s ORDER BY paid_at ASC",
            (bill_id,)
        )

        return [Payment.model_validate(row) for row in rows]

    def create_allocations(
        self,
        payment_id: UUID,
        allocations: list[AllocationCreate],
    ) -> list[PaymentAllocation]:
        created = []
        now = now_utc()
        with self.postgres.transaction() as tx:
            payment = tx.execute_single(
                "SELECT id FROM payments WHERE id = %s FOR UPDATE",
                (payment_id,)
            )
            if payment is None:
                raise ValueError(f"Payment {payment_id} not found")

            existing = tx.execute_single(
                "SELECT COUNT(*) AS n FROM payment_allocations WHERE payment_id = %s",
                (payment_id,)
            )["n"]
            if existing:
                raise ValueError(f"Payment {payment_id} is already allocated")

            for allocation in allocations:
                row = tx.execute_single(
                    """
                    INSERT INTO payment_allocations (id, payment_id, bill_item_id, amount, created_at)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING *
                    """,
                    (uuid4(), payment_id, allocation.bill_item_id, allocation.amount, now)
                )
                created.append(PaymentAllocation.model_validate(row))

        return created

    def list_allocations(self, payment_id: UUID) -> list[PaymentAllocation]:
        rows = self.postgres.execute(
            "SELECT * FROM payment_allocations WHERE payment_id = %s ORDER BY created_at ASC",
            (payment_id,)
        )

        return [PaymentAllocation.model_validate(row) for row in rows]

    def find_payments_for_customer(self, user_id: UUID) -> list[CustomerPayment]:
        rows = self.postgres.execute(
            """
            SELECT p.id AS payment_id, p.bill_id, p.amount, b.status AS bill_status
            FROM payments p
            JOIN appointment_bills b ON b.id = p.bill_id
            WHERE b.customer_id = %s
            """,
            (user_id,)
        )

        return [CustomerPayment.model_validate(row) for row in rows]

    # Members

    def list_members(self) -> list[Member]:
        rows = self.postgres.execute(
            "SELECT id, user_id, total_spent, balance FROM members ORDER BY id ASC"
        )

        return [Member.model_validate(row) for row in rows]

    def get_member_by_user_id(self, user_id: UUID) -> Member | None:
        row = self.postgres.execute_single(
            "SELECT id, user_id, total_spent, balance FROM members WHERE user_id = %s",
            (user_id,)
        )
        if row is None:
            return None

        return Member.model_validate(row)

    def update_member_total_spent(self, member_id: UUID, amount: int) -> bool:
        with self.postgres.transaction() as tx:
            changed = tx.execute_rowcount(
                """
                UPDATE members
                SET total_spent = %s
                WHERE id = %s AND total_spent IS DISTINCT FROM %s
                """,
                (amount, member_id, amount)
            )

        if changed:
            logger.debug(f"Member {member_id} total_spent set to {amount}")
        return changed > 0
