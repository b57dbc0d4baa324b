"""
In-process StudioRepository.

Backs the test suite and dry runs. A single lock makes every write atomic,
and stored snapshots are deep-copied in and out so callers can never mutate
a persisted bill item.
"""

import copy
import threading
from uuid import UUID, uuid4

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


class MemoryStudioRepository(StudioRepository):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._services: dict[UUID, Service] = {}
        self._variants: dict[UUID, ServiceVariant] = {}
        self._cart_items: dict[UUID, CartItem] = {}
        self._bills: dict[UUID, AppointmentBill] = {}
        self._bill_items: dict[UUID, AppointmentBillItem] = {}
        self._payments: dict[UUID, Payment] = {}
        self._allocations: dict[UUID, PaymentAllocation] = {}
        self._members: dict[UUID, Member] = {}
        self.member_writes = 0

    # Catalog administration (external tooling in production)

    def put_service(self, service: Service, variants: list[ServiceVariant] | None = None) -> None:
        with self._lock:
            self._services[service.id] = service
            for variant in variants or []:
                self._variants[variant.id] = variant

    def put_variant(self, variant: ServiceVariant) -> None:
        with self._lock:
            self._variants[variant.id] = variant

    def delete_variant(self, variant_id: UUID) -> None:
        with self._lock:
            self._variants.pop(variant_id, None)

    def delete_service(self, service_id: UUID) -> None:
        with self._lock:
            self._services.pop(service_id, None)
            for variant_id in [v.id for v in self._variants.values() if v.service_id == service_id]:
                del self._variants[variant_id]

    def add_member(self, user_id: UUID, total_spent: int = 0, balance: int = 0) -> Member:
        with self._lock:
            member = Member(id=uuid4(), user_id=user_id, total_spent=total_spent, balance=balance)
            self._members[member.id] = member
            return member

    def get_member(self, member_id: UUID) -> Member | None:
        with self._lock:
            return self._members.get(member_id)

    # Catalog

    def fetch_service_with_variants(self, service_id: UUID) -> ServiceWithVariants | None:
        with self._lock:
            service = self._services.get(service_id)
            if service is None:
                return None
            variants = [v for v in self._variants.values() if v.service_id == service_id]
            return ServiceWithVariants(service=service, variants=variants)

    # Cart

    def create_cart_item(self, data: CartItemCreate) -> CartItem:
        now = now_utc()
        item = CartItem(
            id=uuid4(),
            service_id=data.service_id,
            service_name=data.service_name,
            selected_variants=copy.deepcopy(data.selected_variants),
            base_price=data.base_price,
            final_price=data.final_price,
            notes=data.notes,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._cart_items[item.id] = item
        return item

    # Bills

    def _new_bill(self, data: BillCreate) -> AppointmentBill:
        now = now_utc()
        return AppointmentBill(
            id=uuid4(),
            customer_id=data.customer_id,
            branch_id=data.branch_id,
            status=BillStatus.OPEN,
            created_at=now,
            updated_at=now,
        )

    def _new_bill_item(self, bill_id: UUID, snapshot: BillItemSnapshot, sort_order: int) -> AppointmentBillItem:
        return AppointmentBillItem(
            id=uuid4(),
            bill_id=bill_id,
            service_id=snapshot.service_id,
            name_snapshot=snapshot.name_snapshot,
            base_price_snapshot=snapshot.base_price_snapshot,
            final_price_snapshot=snapshot.final_price_snapshot,
            variants_snapshot=copy.deepcopy(snapshot.variants_snapshot),
            notes=snapshot.notes,
            sort_order=sort_order,
            created_at=now_utc(),
        )

    def _paid_total(self, bill_id: UUID) -> int:
        return sum(p.amount for p in self._payments.values() if p.bill_id == bill_id)

    def _with_item_totals(self, bill: AppointmentBill, snapshot: BillItemSnapshot) -> AppointmentBill:
        list_total = bill.list_total + snapshot.base_price_snapshot
        bill_total = bill.bill_total + snapshot.final_price_snapshot
        status = bill.status
        if status == BillStatus.SETTLED:
            status = settlement_status(status, self._paid_total(bill.id), bill_total)
        return bill.model_copy(update={
            "list_total": list_total,
            "bill_total": bill_total,
            "discount_total": compute_discount_total(list_total, bill_total),
            "status": status,
            "updated_at": now_utc(),
        })

    def create_bill(self, data: BillCreate) -> AppointmentBill:
        bill = self._new_bill(data)
        with self._lock:
            self._bills[bill.id] = bill
        return bill

    def create_bill_with_items(
        self,
        data: BillCreate,
        snapshots: list[BillItemSnapshot],
    ) -> tuple[AppointmentBill, list[AppointmentBillItem]]:
        with self._lock:
            bill = self._new_bill(data)
            items = []
            for sort_order, snapshot in enumerate(snapshots):
                items.append(self._new_bill_item(bill.id, snapshot, sort_order))
                bill = self._with_item_totals(bill, snapshot)

            # Nothing is stored until every item has been built
            self._bills[bill.id] = bill
            for item in items:
                self._bill_items[item.id] = item
            return bill, [item.model_copy(deep=True) for item in items]

    def get_bill(self, bill_id: UUID) -> AppointmentBill | None:
        with self._lock:
            return self._bills.get(bill_id)

    def list_bills(self, customer_id: UUID) -> list[AppointmentBill]:
        with self._lock:
            bills = [b for b in self._bills.values() if b.customer_id == customer_id]
            return sorted(bills, key=lambda b: b.created_at)

    def update_bill_status(
        self,
        bill_id: UUID,
        status: BillStatus,
        void_reason: str | None = None,
    ) -> AppointmentBill:
        with self._lock:
            current = self._bills.get(bill_id)
            if current is None:
                raise ValueError(f"Bill {bill_id} not found")

            now = now_utc()
            if status == BillStatus.VOID:
                changes = {"status": status, "void_reason": void_reason, "voided_at": now}
            else:
                changes = {"status": status, "void_reason": None, "voided_at": None}

            updated = current.model_copy(update={**changes, "updated_at": now})
            self._bills[bill_id] = updated
            return updated

    def create_bill_item(self, bill_id: UUID, snapshot: BillItemSnapshot) -> AppointmentBillItem:
        with self._lock:
            bill = self._bills.get(bill_id)
            if bill is None:
                raise ValueError(f"Bill {bill_id} not found")

            sort_order = sum(1 for item in self._bill_items.values() if item.bill_id == bill_id)
            item = self._new_bill_item(bill_id, snapshot, sort_order)
            self._bills[bill_id] = self._with_item_totals(bill, snapshot)
            self._bill_items[item.id] = item
            return item.model_copy(deep=True)

    def get_bill_item(self, item_id: UUID) -> AppointmentBillItem | None:
        with self._lock:
            item = self._bill_items.get(item_id)
            return item.model_copy(deep=True) if item is not None else None

    def list_bill_items(self, bill_id: UUID) -> list[AppointmentBillItem]:
        with self._lock:
            items = [i for i in self._bill_items.values() if i.bill_id == bill_id]
            return [i.model_copy(deep=True) for i in sorted(items, key=lambda i: i.sort_order)]

    # Payments

    def create_payment(self, data: PaymentCreate) -> Payment:
        with self._lock:
            bill = self._bills.get(data.bill_id)
            if bill is None:
                raise ValueError(f"Bill {data.bill_id} not found")
            if bill.is_void:
                raise ValueError(f"Bill {data.bill_id} is voided")

            member = None
            if data.method == PaymentMethod.STORED_VALUE:
                member = self._member_by_user_id(bill.customer_id)
                balance = stored_value_balance_after(member, data.amount)
                member = member.model_copy(update={"balance": balance})

            payment = Payment(
                id=uuid4(),
                bill_id=data.bill_id,
                amount=data.amount,
                method=data.method,
                paid_at=data.paid_at,
                notes=data.notes,
                created_at=now_utc(),
            )
            self._payments[payment.id] = payment
            if member is not None:
                self._members[member.id] = member

            status = settlement_status(bill.status, self._paid_total(bill.id), bill.bill_total)
            if status != bill.status:
                self._bills[bill.id] = bill.model_copy(update={"status": status, "updated_at": now_utc()})
            return payment

    def get_payment(self, payment_id: UUID) -> Payment | None:
        with self._lock:
            return self._payments.get(payment_id)

    def list_payments_for_bill(self, bill_id: UUID) -> list[Payment]:
        with self._lock:
            payments = [p for p in self._payments.values() if p.bill_id == bill_id]
            return sorted(payments, key=lambda p: p.paid_at)

    def create_allocations(
        self,
        payment_id: UUID,
        allocations: list[AllocationCreate],
    ) -> list[PaymentAllocation]:
        with self._lock:
            if payment_id not in self._payments:
                raise ValueError(f"Payment {payment_id} not found")
            if any(a.payment_id == payment_id for a in self._allocations.values()):
                raise ValueError(f"Payment {payment_id} is already allocated")

            created = [
                PaymentAllocation(
                    id=uuid4(),
                    payment_id=payment_id,
                    bill_item_id=allocation.bill_item_id,
                    amount=allocation.amount,
                    created_at=now_utc(),
                )
                for allocation in allocations
            ]
            for allocation in created:
                self._allocations[allocation.id] = allocation
            return created

    def list_allocations(self, payment_id: UUID) -> list[PaymentAllocation]:
        with self._lock:
            return [a for a in self._allocations.values() if a.payment_id == payment_id]

    def find_payments_for_customer(self, user_id: UUID) -> list[CustomerPayment]:
        with self._lock:
            return [
                CustomerPayment(
                    payment_id=payment.id,
                    bill_id=payment.bill_id,
                    amount=payment.amount,
                    bill_status=self._bills[payment.bill_id].status,
                )
                for payment in self._payments.values()
                if self._bills[payment.bill_id].customer_id == user_id
            ]

    # Members

    def _member_by_user_id(self, user_id: UUID) -> Member | None:
        return next((m for m in self._members.values() if m.user_id == user_id), None)

    def list_members(self) -> list[Member]:
        with self._lock:
            return list(self._members.values())

    def get_member_by_user_id(self, user_id: UUID) -> Member | None:
        with self._lock:
            return self._member_by_user_id(user_id)

    def update_member_total_spent(self, member_id: UUID, amount: int) -> bool:
        with self._lock:
            member = self._members.get(member_id)
            if member is None or member.total_spent == amount:
                return False

            self._members[member_id] = member.model_copy(update={"total_spent": amount})
            self.member_writes += 1
            return True
