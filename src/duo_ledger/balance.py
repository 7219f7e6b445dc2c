"""Net balance computation over the unsettled ledger rows."""

import logging
from collections.abc import Callable, Iterable
from decimal import ROUND_HALF_UP, Decimal

from .db import Database
from .models import (
    DetailedBalance,
    NetBalance,
    Party,
    SplitRule,
    Transaction,
)
from .split_rules import SplitRuleStore

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")

SplitResolver = Callable[[Transaction], SplitRule]


def to_cents(amount: Decimal) -> Decimal:
    """
    Round a Decimal amount to cents.
    Uses ROUND_HALF_UP for consistency.
    """
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _percent(value: float) -> Decimal:
    # str() keeps 0.7 as Decimal("0.7") rather than its binary expansion
    return Decimal(str(value))


def aggregate(
    transactions: Iterable[Transaction], resolve_split: SplitResolver
) -> tuple[dict[Party, Decimal], dict[Party, Decimal]]:
    """
    Sum what each party paid and what each party's share was.

    Args:
        transactions: Ledger rows to aggregate
        resolve_split: Returns the effective split for a row

    Returns:
        Tuple of (paid, share) keyed by party, unrounded
    """
    paid = {Party.A: ZERO, Party.B: ZERO}
    share = {Party.A: ZERO, Party.B: ZERO}

    for transaction in transactions:
        split = resolve_split(transaction)
        paid[transaction.payer] += transaction.amount
        for party in Party:
            share[party] += transaction.amount * _percent(split.percent_for(party))

    return paid, share


def compute_owed(net_a: Decimal, net_b: Decimal) -> NetBalance:
    """
    Turn per-party nets (paid - share) into who owes whom.

    Positive net means the party overpaid; a negative net is a debt. When the
    nets have opposite signs the negative one is the debt. When both are
    negative (inconsistent row-level splits) each debt is reported on its
    own. When both are non-negative nothing is outstanding.
    """
    a_owes = to_cents(-net_a) if net_a < 0 else Decimal("0.00")
    b_owes = to_cents(-net_b) if net_b < 0 else Decimal("0.00")

    net_outstanding = max(a_owes, b_owes)
    if net_outstanding == 0:
        who_is_owed = None
    elif a_owes >= b_owes:
        who_is_owed = Party.B
    else:
        who_is_owed = Party.A

    return NetBalance(
        party_a_owes=a_owes,
        party_b_owes=b_owes,
        net_outstanding=net_outstanding,
        who_is_owed=who_is_owed,
    )


def compute_balance(
    transactions: Iterable[Transaction], resolve_split: SplitResolver
) -> NetBalance:
    """Compute the net balance for a set of ledger rows."""
    paid, share = aggregate(transactions, resolve_split)
    return compute_owed(paid[Party.A] - share[Party.A], paid[Party.B] - share[Party.B])


class BalanceCalculator:
    """Computes who owes whom from the current unsettled rows.

    Holds no running totals: every call re-reads the ledger, so amendments,
    deletions and split corrections are reflected immediately.
    """

    def __init__(self, database: Database, split_rules: SplitRuleStore):
        """Initialize the calculator."""
        self.db = database
        self.split_rules = split_rules

    def resolve_split(self, transaction: Transaction) -> SplitRule:
        """Row-level split when both percentages are set, else the category rule."""
        return transaction.explicit_split() or self.split_rules.get_rule(
            transaction.category
        )

    def compute_net_balance(self) -> NetBalance:
        """Compute the outstanding balance over all unsettled rows."""
        transactions = self.db.get_unsettled_transactions()
        balance = compute_balance(transactions, self.resolve_split)

        logger.debug(
            f"Balance over {len(transactions)} unsettled rows: "
            f"A owes {balance.party_a_owes}, B owes {balance.party_b_owes}"
        )
        return balance

    def compute_exact_debt(self, party: Party) -> Decimal:
        """Unrounded amount a party owes, before cent rounding for display."""
        transactions = self.db.get_unsettled_transactions()
        paid, share = aggregate(transactions, self.resolve_split)
        net = paid[party] - share[party]
        return -net if net < 0 else ZERO

    def compute_detailed_balance(self) -> DetailedBalance:
        """Compute paid/share/net per party plus weighted average split."""
        transactions = self.db.get_unsettled_transactions()
        paid, share = aggregate(transactions, self.resolve_split)

        total_amount = sum((t.amount for t in transactions), ZERO)
        if total_amount > 0:
            avg_a = float(share[Party.A] / total_amount * 100)
            avg_b = float(share[Party.B] / total_amount * 100)
        else:
            avg_a = avg_b = 50.0

        return DetailedBalance(
            party_a_paid=to_cents(paid[Party.A]),
            party_b_paid=to_cents(paid[Party.B]),
            party_a_share=to_cents(share[Party.A]),
            party_b_share=to_cents(share[Party.B]),
            total_spending=to_cents(paid[Party.A] + paid[Party.B]),
            avg_percent_a=avg_a,
            avg_percent_b=avg_b,
            party_a_net=to_cents(paid[Party.A] - share[Party.A]),
            party_b_net=to_cents(paid[Party.B] - share[Party.B]),
        )

    def transaction_owed(self, transaction: Transaction) -> tuple[Decimal, Decimal]:
        """
        What a single row alone makes each party owe.

        The non-payer owes their share; the payer owes nothing.

        Returns:
            Tuple of (party_a_owes, party_b_owes)
        """
        split = self.resolve_split(transaction)
        debtor = transaction.payer.other
        owed = to_cents(transaction.amount * _percent(split.percent_for(debtor)))
        zero = Decimal("0.00")
        return (owed, zero) if debtor is Party.A else (zero, owed)
