"""
Transaction write schema.

One TransactionCreate is one row in the transactions table plus one
balance adjustment on its account.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema
from models.bulk_import import Frequency


class LedgerEntryType(str, Enum):
    """Stored transaction types. A transfer is a sender + receiver pair."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER_SENDER = "transfer-sender"
    TRANSFER_RECEIVER = "transfer-receiver"


class GoalAllocation(str, Enum):
    """How a transaction moves money in or out of a goal."""
    CONTRIBUTE = "contribute"
    DEDUCT = "deduct"


class TransactionCreate(BaseSchema):
    """
    Create a transaction.

    Required: user_id, account_id, type, amount, transaction_date
    """

    user_id: str = Field(..., min_length=1)
    account_id: str = Field(..., min_length=1)
    category_id: Optional[str] = None
    type: LedgerEntryType
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    description: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)
    transaction_date: date
    frequency: Frequency = Frequency.NONE
    goal_id: Optional[str] = None
    goal_amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    goal_allocation_type: Optional[GoalAllocation] = None

    @property
    def balance_change(self) -> Decimal:
        """Signed delta applied to the account balance."""
        if self.type in (LedgerEntryType.INCOME, LedgerEntryType.TRANSFER_RECEIVER):
            return self.amount
        return -self.amount

    def to_insert_dict(self) -> dict:
        """Row for the transactions table (JSON-safe)."""
        return {
            "user_id": self.user_id,
            "account_id": self.account_id,
            "category_id": self.category_id,
            "type": self.type.value,
            "amount": float(self.amount),
            "currency": self.currency,
            "description": self.description,
            "notes": self.notes,
            "transaction_date": self.transaction_date.isoformat(),
            "frequency": self.frequency.value,
            "goal_id": self.goal_id,
            "goal_amount": float(self.goal_amount) if self.goal_amount is not None else None,
            "goal_allocation_type": (
                self.goal_allocation_type.value if self.goal_allocation_type else None
            ),
        }
