"""
Transaction write service.

Creates one ledger entry: the transactions row, the account balance
adjustment (update_account_balance RPC) and, when the entry is linked
to a goal, the goal's current_amount.

Each remote call is retried only when the connection could not be
established. Anything else (timeouts after sending, HTTP errors) is
raised immediately, so a balance change is never sent twice.
"""

import time
from decimal import Decimal
from typing import Callable, Optional, TypeVar

import httpx
import structlog

from config import get_supabase_client, settings
from models.transaction import TransactionCreate, GoalAllocation
from exceptions import AppError, DatabaseError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Failures where the request never reached the server
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)

BALANCE_RPC = "update_account_balance"


def _saved_without(error: str, transaction_id: Optional[str]) -> tuple[str, Optional[dict]]:
    """Message and details for a side effect that failed after the insert."""
    if transaction_id is None:
        return error, None
    return (
        f"{error} (transaction {transaction_id} was saved without this change)",
        {"transaction_id": transaction_id},
    )


class TransactionService:
    """Writes transactions and their side effects to Supabase."""

    def __init__(
        self,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = get_supabase_client()
        self.table = "transactions"
        self.max_retries = settings.commit_max_retries if max_retries is None else max_retries
        self.backoff_seconds = (
            settings.commit_retry_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self._sleep = sleep

    # ===================
    # RETRY
    # ===================

    def _call_with_retry(self, operation: str, call: Callable[[], T]) -> T:
        """Run one remote call, retrying connection failures with backoff."""
        attempt = 0
        while True:
            try:
                return call()
            except RETRYABLE_ERRORS as e:
                if attempt >= self.max_retries:
                    logger.error(
                        "remote_call_retries_exhausted",
                        operation=operation,
                        attempts=attempt + 1,
                        error=str(e),
                    )
                    raise
                delay = self.backoff_seconds * (2 ** attempt)
                logger.warning(
                    "remote_call_retrying",
                    operation=operation,
                    attempt=attempt + 1,
                    delay_seconds=delay,
                    error=str(e),
                )
                self._sleep(delay)
                attempt += 1

    # ===================
    # WRITES
    # ===================

    def create_transaction(self, data: TransactionCreate) -> dict:
        """
        Create a ledger entry and apply its balance change.

        Args:
            data: Validated transaction

        Returns:
            Inserted transactions row

        Raises:
            DatabaseError: If any step fails. Earlier steps are not undone;
                when the row was already inserted its id is in the message
                and in details["transaction_id"].
        """
        try:
            result = self._call_with_retry(
                "insert_transaction",
                lambda: self.db.table(self.table).insert(data.to_insert_dict()).execute(),
            )
            if not result.data:
                raise DatabaseError("insert", "No data returned from insert")
            row = result.data[0]
            transaction_id = row.get("id")

            self.apply_balance_change(
                data.account_id, data.balance_change, transaction_id=transaction_id
            )

            if data.goal_id and data.goal_amount is not None:
                self.update_goal_amount(
                    data.goal_id,
                    data.goal_amount,
                    data.goal_allocation_type or GoalAllocation.CONTRIBUTE,
                    transaction_id=transaction_id,
                )

            logger.debug(
                "transaction_created",
                transaction_id=transaction_id,
                account_id=data.account_id,
                type=data.type.value,
                amount=str(data.amount),
            )
            return row

        except AppError:
            raise
        except Exception as e:
            logger.error(
                "create_transaction_failed",
                account_id=data.account_id,
                type=data.type.value,
                error=str(e),
            )
            raise DatabaseError("insert", str(e))

    def apply_balance_change(
        self,
        account_id: str,
        amount_change: Decimal,
        transaction_id: Optional[str] = None,
    ) -> None:
        """Adjust an account balance through the update_account_balance RPC."""
        try:
            self._call_with_retry(
                "update_account_balance",
                lambda: self.db.rpc(
                    BALANCE_RPC,
                    {"account_id": account_id, "amount_change": float(amount_change)},
                ).execute(),
            )
        except Exception as e:
            logger.error(
                "update_account_balance_failed",
                account_id=account_id,
                amount_change=str(amount_change),
                transaction_id=transaction_id,
                error=str(e),
            )
            raise DatabaseError("rpc", *_saved_without(str(e), transaction_id))

    def update_goal_amount(
        self,
        goal_id: str,
        goal_amount: Decimal,
        allocation: GoalAllocation,
        transaction_id: Optional[str] = None,
    ) -> Decimal:
        """
        Move money into or out of a goal. The result never drops below zero.

        Returns:
            The goal's new current_amount
        """
        try:
            result = self._call_with_retry(
                "select_goal",
                lambda: self.db.table("goals")
                .select("current_amount")
                .eq("id", goal_id)
                .single()
                .execute(),
            )
            current = Decimal(str((result.data or {}).get("current_amount") or 0))

            if allocation == GoalAllocation.CONTRIBUTE:
                new_amount = current + goal_amount
            else:
                new_amount = max(Decimal("0"), current - goal_amount)

            self._call_with_retry(
                "update_goal",
                lambda: self.db.table("goals")
                .update({"current_amount": float(new_amount)})
                .eq("id", goal_id)
                .execute(),
            )

            logger.debug(
                "goal_amount_updated",
                goal_id=goal_id,
                allocation=allocation.value,
                previous=str(current),
                current=str(new_amount),
            )
            return new_amount

        except Exception as e:
            logger.error(
                "update_goal_failed",
                goal_id=goal_id,
                transaction_id=transaction_id,
                error=str(e),
            )
            raise DatabaseError("update", *_saved_without(str(e), transaction_id))


# Singleton instance
_transaction_service: Optional[TransactionService] = None


def get_transaction_service() -> TransactionService:
    """Get or create TransactionService instance."""
    global _transaction_service
    if _transaction_service is None:
        _transaction_service = TransactionService()
    return _transaction_service
