"""Member domain models."""

from uuid import UUID

from pydantic import BaseModel


class Member(BaseModel):
    """
    Membership record of a customer.

    total_spent is a cached aggregate of the customer's payments on non-void
    bills. It is only ever written by the spend aggregator.

    balance is the stored-value account, debited by STORED_VALUE payments
    and credited back by STORED_VALUE refunds.
    """

    id: UUID
    user_id: UUID
    total_spent: int = 0
    balance: int = 0

    model_config = {"from_attributes": True}


def stored_value_balance_after(member: Member | None, amount: int) -> int:
    """
    Member balance after a STORED_VALUE payment of amount (negative refunds).

    Raises:
        ValueError: No member account, or a payment exceeds the balance
    """
    if member is None:
        raise ValueError("Customer has no stored value account")

    next_balance = member.balance - amount
    if amount > 0 and next_balance < 0:
        raise ValueError(
            f"Insufficient stored value balance: {member.balance} available, {amount} requested"
        )
    return next_balance
