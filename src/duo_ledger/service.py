"""Service layer that composes the ledger components.

This module provides the caller-facing API used by the bot/UI layer and the
CLI: split rules, balances, settlement, payments, and the expense entry and
correction operations that create and mutate ledger rows.
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from .balance import BalanceCalculator
from .config import Settings
from .db import Database
from .exceptions import TransactionNotFoundError, ValidationError
from .models import (
    SPLIT_EPSILON,
    DetailedBalance,
    NetBalance,
    Party,
    PaymentResult,
    PendingTransaction,
    SettlementPreview,
    SettlementResult,
    SplitRule,
    Transaction,
    Watermark,
    is_valid_split,
    parse_amount,
    parse_positive_int,
)
from .payments import PaymentRecorder
from .settlement import SettlementCoordinator
from .split_rules import RuleCache, SplitRuleStore

logger = logging.getLogger(__name__)

_UNSET = object()


class LedgerService:
    """Caller-facing surface of the shared-expense ledger."""

    def __init__(
        self,
        settings: Settings,
        database: Database,
        rule_cache: RuleCache | None = None,
    ):
        """Initialize the service and wire its components."""
        self.settings = settings
        self.db = database
        self.split_rules = SplitRuleStore(
            database,
            rule_cache or RuleCache(ttl_seconds=settings.split_rule_cache_ttl_seconds),
        )
        self.calculator = BalanceCalculator(database, self.split_rules)
        self.settlement = SettlementCoordinator(database)
        self.payments = PaymentRecorder(database, self.calculator)

    # ========================================================================
    # Split rules
    # ========================================================================

    def get_split_rule(self, category: str) -> SplitRule:
        """Effective split for a category (stored rule or 50/50 default)."""
        return self.split_rules.get_rule(category)

    def update_split_rule(self, category: str, percent_a: float, percent_b: float):
        """Persist a category split rule. Raises ValidationError if invalid."""
        self.split_rules.update_rule(category, percent_a, percent_b)

    def list_split_rules(self) -> dict[str, SplitRule]:
        """All stored (valid) category rules."""
        return self.split_rules.get_all_rules()

    def reset_split_rules(self):
        """Drop all stored rules."""
        self.split_rules.reset_to_defaults()

    # ========================================================================
    # Balances
    # ========================================================================

    def compute_net_balance(self) -> NetBalance:
        """Who owes whom right now."""
        return self.calculator.compute_net_balance()

    def compute_detailed_balance(self) -> DetailedBalance:
        """Paid/share/net breakdown over unsettled rows."""
        return self.calculator.compute_detailed_balance()

    # ========================================================================
    # Settlement and payments
    # ========================================================================

    def preview_settlement(self) -> SettlementPreview:
        """Snapshot unsettled rows and the watermark a confirm would use."""
        return self.settlement.preview()

    def confirm_settlement(self, watermark: Watermark | int | str) -> SettlementResult:
        """Settle unsettled rows up to a previewed watermark."""
        return self.settlement.confirm(watermark)

    def cancel_settlement(self) -> None:
        """Abandon a preview; nothing is persisted."""
        self.settlement.cancel()

    def revert_settlement(self, transaction_ids: list[int]) -> list[int]:
        """Mark settled rows unsettled again."""
        return self.settlement.revert(transaction_ids)

    def record_payment(
        self, payer: Party | str, amount: Decimal, description: str = ""
    ) -> PaymentResult:
        """Record a payment from payer toward what they owe."""
        return self.payments.record_payment(Party.parse(payer), amount, description)

    # ========================================================================
    # Expense entry and corrections
    # ========================================================================

    def add_expense(
        self,
        payer: Party | str,
        amount: Decimal | str | float,
        category: str,
        description: str = "",
        percent_a: float | None = None,
        percent_b: float | None = None,
        spent_on: date | None = None,
    ) -> Transaction:
        """
        Add a shared expense to the ledger.

        When no explicit split is given, the category's current rule is
        copied onto the row so later rule edits do not rewrite history.

        Args:
            payer: Party who paid
            amount: Positive amount
            category: Free-form category (stored as given)
            description: Free text
            percent_a: Explicit split for party A (requires percent_b)
            percent_b: Explicit split for party B (requires percent_a)
            spent_on: Spending date (defaults to today)

        Returns:
            The stored transaction with its id

        Raises:
            ValidationError: On non-positive amount or an invalid split
        """
        payer = Party.parse(payer)
        amount = _positive_amount(amount)
        category = (category or "").strip() or "Other"

        if percent_a is None and percent_b is None:
            rule = self.split_rules.get_rule(category)
            percent_a, percent_b = rule.percent_a, rule.percent_b
        else:
            _validate_split(percent_a, percent_b)

        transaction = self.db.insert_transaction(
            Transaction(
                amount=amount,
                payer=payer,
                category=category,
                percent_a=percent_a,
                percent_b=percent_b,
                description=description.strip(),
                spent_on=spent_on or date.today(),
            )
        )

        logger.info(
            f"Added expense #{transaction.id}: {amount:.2f} paid by {payer.value} "
            f"({category}, {percent_a:.0%}/{percent_b:.0%})"
        )
        return transaction

    def get_transaction(self, transaction_id: int | str) -> Transaction:
        """Get a ledger row, raising TransactionNotFoundError if absent."""
        tx_id = parse_positive_int(transaction_id, "transaction id")
        transaction = self.db.get_transaction(tx_id)
        if transaction is None:
            raise TransactionNotFoundError(tx_id)
        return transaction

    def amend_transaction(
        self,
        transaction_id: int | str,
        *,
        amount=_UNSET,
        category=_UNSET,
        percent_a=_UNSET,
        percent_b=_UNSET,
        payer=_UNSET,
        spent_on=_UNSET,
        description=_UNSET,
    ) -> Transaction:
        """
        Correct fields on an existing ledger row.

        Only the keyword arguments actually passed are changed. A split is
        amended as a pair: pass both percentages, or both as None to fall back
        to the category rule at computation time.

        Returns:
            The updated transaction

        Raises:
            TransactionNotFoundError: If the id does not exist
            ValidationError: If a new value is invalid
        """
        existing = self.get_transaction(transaction_id)
        changes: dict = {}

        if amount is not _UNSET:
            changes["amount"] = _positive_amount(amount)
        if category is not _UNSET:
            changes["category"] = (category or "").strip() or "Other"
        if payer is not _UNSET:
            changes["payer"] = Party.parse(payer)
        if spent_on is not _UNSET:
            if not isinstance(spent_on, date) or isinstance(spent_on, datetime):
                raise ValidationError(f"Invalid date: {spent_on!r}")
            changes["spent_on"] = spent_on
        if description is not _UNSET:
            changes["description"] = (description or "").strip()
        if percent_a is not _UNSET or percent_b is not _UNSET:
            if percent_a is _UNSET or percent_b is _UNSET:
                raise ValidationError("Amend percent_a and percent_b together")
            if percent_a is not None or percent_b is not None:
                _validate_split(percent_a, percent_b)
            changes["percent_a"] = percent_a
            changes["percent_b"] = percent_b

        if not changes:
            return existing

        if not self.db.update_transaction(existing.id, **changes):
            raise TransactionNotFoundError(existing.id)

        logger.info(
            f"Amended transaction #{existing.id}: "
            + ", ".join(f"{field}={value}" for field, value in changes.items())
        )
        return self.get_transaction(existing.id)

    def delete_transaction(self, transaction_id: int | str):
        """Delete a ledger row outright."""
        tx_id = parse_positive_int(transaction_id, "transaction id")
        if not self.db.delete_transaction(tx_id):
            raise TransactionNotFoundError(tx_id)
        logger.info(f"Deleted transaction #{tx_id}")

    def list_pending(self) -> list[PendingTransaction]:
        """Unsettled rows, newest first, with what each row alone makes owed."""
        pending = []
        for transaction in self.db.get_unsettled_transactions(newest_first=True):
            a_owes, b_owes = self.calculator.transaction_owed(transaction)
            pending.append(
                PendingTransaction(
                    transaction=transaction, party_a_owes=a_owes, party_b_owes=b_owes
                )
            )
        return pending


def _positive_amount(raw) -> Decimal:
    amount = parse_amount(raw)
    if amount <= 0:
        raise ValidationError(f"Amount must be positive, got {amount}")
    return amount


def _validate_split(percent_a, percent_b):
    if percent_a is None or percent_b is None:
        raise ValidationError("Provide both percent_a and percent_b, or neither")
    if not is_valid_split(percent_a, percent_b):
        raise ValidationError(
            f"Invalid split percentages: {percent_a} + {percent_b} must each be "
            f"in [0, 1] and sum to 1.0 (within {SPLIT_EPSILON})"
        )
