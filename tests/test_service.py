"""Tests for LedgerService expense entry and corrections."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from duo_ledger.exceptions import TransactionNotFoundError, ValidationError
from duo_ledger.models import Party


class TestAddExpense:
    """Test adding shared expenses."""

    def test_snapshots_category_rule(self, service):
        service.update_split_rule("Groceries", 0.7, 0.3)

        tx = service.add_expense(Party.A, "100.00", "groceries", "weekly shop")

        assert tx.id is not None
        assert (tx.percent_a, tx.percent_b) == (0.7, 0.3)
        assert tx.category == "groceries"
        assert tx.spent_on == date.today()

    def test_later_rule_change_does_not_rewrite_history(self, service):
        service.update_split_rule("Groceries", 0.7, 0.3)
        service.add_expense(Party.A, "100.00", "Groceries")

        service.update_split_rule("Groceries", 0.5, 0.5)

        assert service.compute_net_balance().party_b_owes == Decimal("30.00")

    def test_explicit_split(self, service):
        tx = service.add_expense(
            "B", Decimal("40"), "Travel", percent_a=0.25, percent_b=0.75
        )

        assert (tx.percent_a, tx.percent_b) == (0.25, 0.75)
        assert service.compute_net_balance().party_a_owes == Decimal("10.00")

    def test_blank_category_becomes_other(self, service):
        assert service.add_expense(Party.A, "5", "  ").category == "Other"

    def test_custom_date(self, service):
        tx = service.add_expense(Party.A, "5", "Food", spent_on=date(2025, 3, 1))
        assert service.get_transaction(tx.id).spent_on == date(2025, 3, 1)

    @pytest.mark.parametrize("amount", ["0", "-1", "abc"])
    def test_rejects_bad_amount(self, service, amount):
        with pytest.raises(ValidationError):
            service.add_expense(Party.A, amount, "Food")

    def test_rejects_half_a_split(self, service):
        with pytest.raises(ValidationError, match="both"):
            service.add_expense(Party.A, "10", "Food", percent_a=0.5)

    def test_rejects_invalid_split(self, service):
        with pytest.raises(ValidationError, match="Invalid split"):
            service.add_expense(Party.A, "10", "Food", percent_a=0.5, percent_b=0.6)


class TestGetTransaction:
    def test_missing_id_raises(self, service):
        with pytest.raises(TransactionNotFoundError):
            service.get_transaction(42)

    def test_malformed_id_raises(self, service):
        with pytest.raises(ValidationError):
            service.get_transaction("1; DROP TABLE transactions")

    @pytest.mark.parametrize("operation", ["get_transaction", "delete_transaction"])
    def test_oversized_id_raises_validation_error(self, service, operation):
        with pytest.raises(ValidationError):
            getattr(service, operation)("99999999999999999999")


class TestAmendTransaction:
    """Test correcting existing rows."""

    @pytest.fixture
    def expense(self, service):
        return service.add_expense(
            Party.A, "100.00", "Bills", "power", percent_a=0.5, percent_b=0.5
        )

    def test_amend_amount_updates_balance(self, service, expense):
        service.amend_transaction(expense.id, amount="60.00")

        assert service.compute_net_balance().party_b_owes == Decimal("30.00")

    def test_only_passed_fields_change(self, service, expense):
        updated = service.amend_transaction(expense.id, description=" water ")

        assert updated.description == "water"
        assert updated.amount == Decimal("100.00")
        assert updated.category == "Bills"
        assert updated.updated_at >= expense.updated_at

    def test_amend_payer(self, service, expense):
        service.amend_transaction(expense.id, payer="b")

        assert service.compute_net_balance().party_a_owes == Decimal("50.00")

    def test_amend_split_pair(self, service, expense):
        updated = service.amend_transaction(expense.id, percent_a=0.2, percent_b=0.8)

        assert (updated.percent_a, updated.percent_b) == (0.2, 0.8)
        assert service.compute_net_balance().party_b_owes == Decimal("80.00")

    def test_clearing_split_falls_back_to_rule(self, service, expense):
        service.update_split_rule("Bills", 0.9, 0.1)

        updated = service.amend_transaction(expense.id, percent_a=None, percent_b=None)

        assert updated.explicit_split() is None
        assert service.compute_net_balance().party_b_owes == Decimal("10.00")

    def test_split_must_be_amended_together(self, service, expense):
        with pytest.raises(ValidationError, match="together"):
            service.amend_transaction(expense.id, percent_a=0.3)

    def test_rejects_invalid_split(self, service, expense):
        with pytest.raises(ValidationError):
            service.amend_transaction(expense.id, percent_a=0.3, percent_b=0.3)

    def test_rejects_datetime_for_date(self, service, expense):
        with pytest.raises(ValidationError):
            service.amend_transaction(expense.id, spent_on=datetime(2025, 1, 1))

    def test_no_changes_returns_row(self, service, expense):
        assert service.amend_transaction(expense.id).id == expense.id

    def test_missing_row(self, service):
        with pytest.raises(TransactionNotFoundError):
            service.amend_transaction(999, amount="1")


class TestDeleteTransaction:
    def test_delete_removes_from_balance(self, service):
        tx = service.add_expense(Party.A, "100.00", "Food")

        service.delete_transaction(tx.id)

        assert service.compute_net_balance().net_outstanding == 0
        with pytest.raises(TransactionNotFoundError):
            service.get_transaction(tx.id)

    def test_delete_missing_row(self, service):
        with pytest.raises(TransactionNotFoundError):
            service.delete_transaction(5)


class TestListPending:
    def test_newest_first_with_per_row_owed(self, service):
        first = service.add_expense(
            Party.A, "100.00", "Food", percent_a=0.7, percent_b=0.3
        )
        second = service.add_expense(
            Party.B, "50.00", "Food", percent_a=0.5, percent_b=0.5
        )

        pending = service.list_pending()

        assert [p.transaction.id for p in pending] == [second.id, first.id]
        assert pending[0].party_a_owes == Decimal("25.00")
        assert pending[1].party_b_owes == Decimal("30.00")

    def test_excludes_settled_rows(self, service):
        service.add_expense(Party.A, "10.00", "Food")
        service.confirm_settlement(service.preview_settlement().watermark)

        assert service.list_pending() == []
