"""
Reference data used to match and resolve CSV rows.

Accounts, categories and goals are owned by the database; the import
pipeline reads them once per session into a ReferenceSnapshot and never
re-reads them mid-batch.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema
from utils.text_utils import normalize_name


class TransferFallbackPolicy(str, Enum):
    """How commit treats a transfer row that names only one account."""
    PRIMARY_ACCOUNT = "primary_account"  # Use the first account as the missing leg
    REJECT = "reject"                    # Fail the row


class AccountRef(BaseSchema):
    """Account as seen by the importer."""

    id: str = Field(..., description="Account UUID")
    name: str = Field(..., description="Stored account name")
    currency: str = Field(default="USD", description="ISO currency code")


class CategoryRef(BaseSchema):
    """Category as seen by the importer. Names are unique per type."""

    id: str = Field(..., description="Category UUID")
    name: str = Field(..., description="Stored category name")
    type: str = Field(..., pattern="^(income|expense)$", description="income or expense")


class GoalRef(BaseSchema):
    """Savings goal that rows may contribute to or deduct from."""

    id: str = Field(..., description="Goal UUID")
    name: str = Field(..., description="Stored goal name")
    current_amount: Decimal = Field(default=Decimal("0"), description="Amount saved so far")


class ExistingTransaction(BaseSchema):
    """Minimal view of a stored transaction, used for duplicate warnings."""

    account_id: str
    amount: Decimal
    transaction_date: date


@dataclass(frozen=True)
class ReferenceSnapshot:
    """
    Immutable lookup set for one import session.

    Account order is preserved from the database query; the first account
    is the "primary" account used by the transfer fallback policy.
    """
    accounts: tuple[AccountRef, ...] = ()
    categories: tuple[CategoryRef, ...] = ()
    goals: tuple[GoalRef, ...] = ()
    transactions: tuple[ExistingTransaction, ...] = ()
    _transaction_keys: frozenset = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        keys = frozenset(
            (t.account_id, t.amount, t.transaction_date) for t in self.transactions
        )
        object.__setattr__(self, "_transaction_keys", keys)

    # ===================
    # MATCHING
    # ===================

    def find_account(self, name: Optional[str]) -> Optional[AccountRef]:
        """Account whose normalized name equals the normalized input."""
        target = normalize_name(name)
        if not target:
            return None
        for account in self.accounts:
            if normalize_name(account.name) == target:
                return account
        return None

    def find_category(self, name: Optional[str], transaction_type: Optional[str]) -> Optional[CategoryRef]:
        """Category of the given type whose normalized name equals the input."""
        target = normalize_name(name)
        if not target or not transaction_type:
            return None
        type_filter = transaction_type.strip().lower()
        for category in self.categories:
            if category.type == type_filter and normalize_name(category.name) == target:
                return category
        return None

    def find_goal(self, name: Optional[str]) -> Optional[GoalRef]:
        """Goal whose normalized name equals the normalized input."""
        target = normalize_name(name)
        if not target:
            return None
        for goal in self.goals:
            if normalize_name(goal.name) == target:
                return goal
        return None

    def has_transaction(self, account_id: str, amount: Decimal, transaction_date: date) -> bool:
        """True if a stored transaction has the same account, amount and date."""
        return (account_id, amount, transaction_date) in self._transaction_keys

    # ===================
    # LISTINGS (for error messages)
    # ===================

    def account_names(self) -> list[str]:
        return [a.name for a in self.accounts]

    def category_names(self, transaction_type: str) -> list[str]:
        type_filter = transaction_type.strip().lower()
        return [c.name for c in self.categories if c.type == type_filter]

    def goal_names(self) -> list[str]:
        return [g.name for g in self.goals]

    @property
    def primary_account(self) -> Optional[AccountRef]:
        return self.accounts[0] if self.accounts else None
