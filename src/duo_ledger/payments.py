"""Partial and full payments recorded as ledger rows."""

import logging
from datetime import date
from decimal import Decimal

from .balance import BalanceCalculator
from .db import Database
from .exceptions import ConcurrencyError, ValidationError
from .models import Party, PaymentResult, Transaction, parse_amount

logger = logging.getLogger(__name__)

PAYMENT_CATEGORY = "Payment"


def build_payment_transaction(
    payer: Party, amount: Decimal, description: str
) -> Transaction:
    """
    Express a payment in ordinary ledger vocabulary.

    The paying party is the payer and the whole amount is allocated to the
    other party, so the row moves exactly ``amount`` of debt through the same
    paid/share formula as any expense.
    """
    split = {"percent_a": 0.0, "percent_b": 1.0}
    if payer is Party.B:
        split = {"percent_a": 1.0, "percent_b": 0.0}
    return Transaction(
        amount=amount,
        payer=payer,
        category=PAYMENT_CATEGORY,
        description=description,
        spent_on=date.today(),
        **split,
    )


class PaymentRecorder:
    """Records payments toward the outstanding balance, race-safely."""

    def __init__(self, database: Database, calculator: BalanceCalculator):
        """Initialize the recorder."""
        self.db = database
        self.calculator = calculator

    def record_payment(
        self, payer: Party, amount: Decimal, description: str = ""
    ) -> PaymentResult:
        """
        Apply a payment from ``payer`` to the other party.

        The outstanding check, the insert and the post-insert balance all run
        in one unit of work, so a concurrent payment either sees this row or
        waits for it. Paying the displayed (cent-rounded) outstanding amount
        clears the debt exactly: the row is booked at the unrounded debt.

        Args:
            payer: Party making the payment
            amount: Positive payment amount
            description: Free-text memo for the ledger row

        Returns:
            Whether the balance is now fully settled, the new balance, and the
            inserted row

        Raises:
            ValidationError: If amount is not a positive number
            ConcurrencyError: If amount exceeds what payer currently owes
        """
        payer = Party.parse(payer)
        amount = parse_amount(amount, "payment amount")
        if amount <= 0:
            raise ValidationError(f"Payment amount must be positive, got {amount}")

        with self.db.unit_of_work():
            balance = self.calculator.compute_net_balance()
            outstanding = balance.owed_by(payer)
            if amount > outstanding:
                logger.warning(
                    f"Rejected payment of {amount:.2f} by {payer.value}: "
                    f"outstanding is {outstanding:.2f}"
                )
                raise ConcurrencyError(requested=amount, outstanding=outstanding)

            # A payment covering the whole debt is booked at the unrounded
            # debt, so a sub-cent remainder cannot flip onto the other party
            booked = min(amount, self.calculator.compute_exact_debt(payer))

            transaction = self.db.insert_transaction(
                build_payment_transaction(
                    payer, booked, description or "Settlement payment"
                )
            )
            new_balance = self.calculator.compute_net_balance()

        was_settled = new_balance.net_outstanding == 0
        logger.info(
            f"Recorded payment #{transaction.id}: {payer.value} paid "
            f"{payer.other.value} {amount:.2f} "
            f"(remaining {new_balance.net_outstanding:.2f})"
        )
        return PaymentResult(
            was_settled=was_settled, new_balance=new_balance, transaction=transaction
        )
