"""
Reference data service.

Loads a user's accounts, categories, goals and existing transactions
once per import session. The snapshot is immutable; edits made in the
app during an import are not seen until a new session starts.
"""

from typing import Optional

import httpx
import structlog

from config import get_supabase_client, DatabaseSession
from models.reference import (
    AccountRef,
    CategoryRef,
    GoalRef,
    ExistingTransaction,
    ReferenceSnapshot,
)
from exceptions import DatabaseError, ExternalServiceError

logger = structlog.get_logger(__name__)

CATEGORY_TYPES = ("income", "expense")

# PostgREST returns at most this many rows per request
TRANSACTIONS_PAGE_SIZE = 1000


class ReferenceService:
    """Reads the lookup tables the importer matches names against."""

    def __init__(self):
        self.db = get_supabase_client()

    def load_snapshot(self, user_id: str) -> ReferenceSnapshot:
        """
        Load all reference data for a user.

        Accounts are ordered newest first; the first one is the
        primary account used for one-legged transfers.

        Args:
            user_id: Owner of the data

        Returns:
            ReferenceSnapshot

        Raises:
            ExternalServiceError: If Supabase cannot be reached
            DatabaseError: If any table cannot be read
        """
        logger.info("loading_reference_snapshot", user_id=user_id)

        try:
            with DatabaseSession("load_reference_snapshot", self.db) as client:
                accounts_result = (
                    client.table("accounts")
                    .select("id, name, currency")
                    .eq("user_id", user_id)
                    .order("created_at", desc=True)
                    .execute()
                )
                categories_result = (
                    client.table("categories")
                    .select("id, name, type")
                    .or_(f"user_id.eq.{user_id},is_default.eq.true")
                    .execute()
                )
                goals_result = (
                    client.table("goals")
                    .select("id, name, current_amount")
                    .eq("user_id", user_id)
                    .execute()
                )
                transactions = self._load_transactions(client, user_id)

            snapshot = ReferenceSnapshot(
                accounts=tuple(
                    AccountRef(**row) for row in (accounts_result.data or [])
                ),
                categories=tuple(
                    CategoryRef(**row)
                    for row in (categories_result.data or [])
                    if row.get("type") in CATEGORY_TYPES
                ),
                goals=tuple(
                    GoalRef(**self._with_defaults(row)) for row in (goals_result.data or [])
                ),
                transactions=tuple(
                    ExistingTransaction(**row) for row in transactions
                ),
            )

            logger.info(
                "reference_snapshot_loaded",
                user_id=user_id,
                accounts=len(snapshot.accounts),
                categories=len(snapshot.categories),
                goals=len(snapshot.goals),
                transactions=len(snapshot.transactions),
            )
            return snapshot

        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            logger.error("supabase_unreachable", user_id=user_id, error=str(e))
            raise ExternalServiceError("supabase", f"Could not reach the database: {e}")
        except Exception as e:
            logger.error("load_reference_snapshot_failed", user_id=user_id, error=str(e))
            raise DatabaseError("select", str(e))

    def _load_transactions(self, client, user_id: str) -> list[dict]:
        """Read every existing transaction, one page at a time."""
        rows: list[dict] = []
        page_size = TRANSACTIONS_PAGE_SIZE
        offset = 0
        while True:
            result = (
                client.table("transactions")
                .select("account_id, amount, transaction_date")
                .eq("user_id", user_id)
                .order("id")
                .range(offset, offset + page_size - 1)
                .execute()
            )
            page = result.data or []
            rows.extend(page)
            if len(page) < page_size:
                return rows
            offset += page_size

    @staticmethod
    def _with_defaults(row: dict) -> dict:
        """Goals created without a balance come back with current_amount null."""
        if row.get("current_amount") is None:
            return {**row, "current_amount": 0}
        return row


# Singleton instance
_reference_service: Optional[ReferenceService] = None


def get_reference_service() -> ReferenceService:
    """Get or create reference service instance."""
    global _reference_service
    if _reference_service is None:
        _reference_service = ReferenceService()
    return _reference_service
