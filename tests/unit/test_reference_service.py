"""
Unit tests for ReferenceService.

Run: pytest tests/unit/test_reference_service.py -v
"""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import httpx
import pytest

from services.reference_service import ReferenceService
from exceptions import DatabaseError, ExternalServiceError
from tests.factories import CategoryFactory, GoalFactory


class TestLoadSnapshot:
    """Tests for ReferenceService.load_snapshot()"""

    def test_loads_all_tables(self, mock_db, seeded_supabase):
        """Should build a snapshot with accounts, categories and goals."""
        # Arrange
        service = ReferenceService()

        # Act
        snapshot = service.load_snapshot("user-1")

        # Assert
        assert snapshot.account_names() == ["My Checking", "Savings Account", "ACC-001", "ACC-002"]
        assert snapshot.primary_account.id == "acc-checking"
        assert snapshot.category_names("expense") == ["groceries", "Transport"]
        assert snapshot.goal_names() == ["Vacation"]

    def test_includes_default_categories(self, mock_db, seeded_supabase):
        """Should load the user's categories plus shared default ones."""
        seeded_supabase.set_table_data("categories", [
            CategoryFactory.create(id="cat-own", name="groceries", type="expense"),
            CategoryFactory.create(id="cat-default", name="Salary", type="income", is_default=True),
            CategoryFactory.create(id="cat-other", name="Rent", type="expense", user_id="user-2"),
        ])

        snapshot = ReferenceService().load_snapshot("user-1")

        assert snapshot.category_names("income") == ["Salary"]
        assert snapshot.category_names("expense") == ["groceries"]

    def test_scopes_queries_to_user(self, mock_db, seeded_supabase):
        """Should filter accounts, goals and transactions by user_id."""
        ReferenceService().load_snapshot("user-42")

        tables = [table for table, _, filters in seeded_supabase.executed
                  if ("user_id", "user-42") in filters]
        assert tables == ["accounts", "goals", "transactions"]
        assert seeded_supabase.executed[1] == (
            "categories", "select", [("or", "user_id.eq.user-42,is_default.eq.true")]
        )

    def test_ignores_non_transaction_categories(self, mock_db, seeded_supabase, categories):
        """Should drop categories that are not income or expense."""
        seeded_supabase.set_table_data(
            "categories",
            categories + [CategoryFactory.create(name="Internal", type="transfer")],
        )

        snapshot = ReferenceService().load_snapshot("user-1")

        assert "Internal" not in snapshot.category_names("expense")
        assert len(snapshot.categories) == 3

    def test_goal_without_amount_defaults_to_zero(self, mock_db, seeded_supabase):
        seeded_supabase.set_table_data(
            "goals", [GoalFactory.create(id="g1", name="Car", current_amount=None)]
        )

        snapshot = ReferenceService().load_snapshot("user-1")

        assert snapshot.find_goal("car").current_amount == Decimal("0")

    def test_existing_transactions_used_for_duplicates(self, mock_db, seeded_supabase):
        seeded_supabase.set_table_data("transactions", [
            {"user_id": "user-1", "account_id": "acc-checking", "amount": 45.5,
             "transaction_date": "2025-02-03"},
            {"user_id": "user-2", "account_id": "acc-savings", "amount": 45.5,
             "transaction_date": "2025-02-03"},
        ])

        snapshot = ReferenceService().load_snapshot("user-1")

        assert snapshot.has_transaction("acc-checking", Decimal("45.50"), date(2025, 2, 3))
        assert not snapshot.has_transaction("acc-savings", Decimal("45.50"), date(2025, 2, 3))

    def test_reads_transactions_past_one_page(self, mock_db, seeded_supabase):
        """Should keep requesting pages until a short page comes back."""
        seeded_supabase.set_table_data("transactions", [
            {"user_id": "user-1", "account_id": "acc-checking", "amount": n,
             "transaction_date": "2025-02-03"}
            for n in range(1, 6)
        ])

        with patch("services.reference_service.TRANSACTIONS_PAGE_SIZE", 2):
            snapshot = ReferenceService().load_snapshot("user-1")

        assert len(snapshot.transactions) == 5
        assert snapshot.has_transaction("acc-checking", Decimal("5.00"), date(2025, 2, 3))
        pages = [t for t, _, _ in seeded_supabase.executed if t == "transactions"]
        assert len(pages) == 3

    def test_database_failure(self, mock_db, seeded_supabase):
        """Should wrap query failures in DatabaseError."""
        seeded_supabase.fail_next("accounts", "select", RuntimeError("connection reset"))

        with pytest.raises(DatabaseError) as exc_info:
            ReferenceService().load_snapshot("user-1")

        assert exc_info.value.code == "DATABASE_ERROR"
        assert "connection reset" in exc_info.value.message

    def test_unreachable_database(self, mock_db, seeded_supabase):
        """Should report a connection failure as a 503."""
        seeded_supabase.fail_next("accounts", "select", httpx.ConnectError("connection refused"))

        with pytest.raises(ExternalServiceError) as exc_info:
            ReferenceService().load_snapshot("user-1")

        assert exc_info.value.status_code == 503
        assert exc_info.value.code == "SUPABASE_ERROR"
