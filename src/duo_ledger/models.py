"""Pydantic domain models for duo-ledger."""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ValidationError

# Tolerance for split percentages summing to 1.0
SPLIT_EPSILON = 0.001


class Party(str, Enum):
    """One of the two fixed ledger participants."""

    A = "A"
    B = "B"

    @property
    def other(self) -> "Party":
        """The counterparty."""
        return Party.B if self is Party.A else Party.A

    @classmethod
    def parse(cls, value: "str | Party") -> "Party":
        """Parse a party from 'A'/'B' (case-insensitive)."""
        if isinstance(value, Party):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError as e:
            raise ValidationError(f"Unknown party {value!r}; expected A or B") from e


def is_valid_split(percent_a: Any, percent_b: Any) -> bool:
    """
    Check the split invariant: both numeric, each in [0, 1], sum to 1.0.

    Args:
        percent_a: Party A's fraction
        percent_b: Party B's fraction

    Returns:
        True if the pair is a usable split
    """
    for value in (percent_a, percent_b):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not 0 <= value <= 1:
            return False
    return abs(percent_a + percent_b - 1.0) < SPLIT_EPSILON


# ============================================================================
# Ledger Models
# ============================================================================


class SplitRule(BaseModel):
    """Category split allocation between the two parties."""

    model_config = ConfigDict(frozen=True)

    percent_a: float
    percent_b: float

    def percent_for(self, party: Party) -> float:
        """Fraction of an expense allocated to a party."""
        return self.percent_a if party is Party.A else self.percent_b


# Canonical fallback for categories without a stored rule
DEFAULT_SPLIT = SplitRule(percent_a=0.5, percent_b=0.5)


class Transaction(BaseModel):
    """A ledger row: one shared expense or payment.

    Row-level percentages are either both set or both None. When None, the
    split is resolved from the category's rule at computation time.
    """

    id: int | None = None
    amount: Decimal
    payer: Party
    category: str
    percent_a: float | None = None
    percent_b: float | None = None
    is_settled: bool = False
    description: str = ""
    spent_on: date = Field(default_factory=date.today)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def explicit_split(self) -> SplitRule | None:
        """Row-level split, if both percentages are present."""
        if self.percent_a is None or self.percent_b is None:
            return None
        return SplitRule(percent_a=self.percent_a, percent_b=self.percent_b)


class NetBalance(BaseModel):
    """Who owes whom, derived from the current unsettled rows."""

    party_a_owes: Decimal = Decimal("0.00")
    party_b_owes: Decimal = Decimal("0.00")
    net_outstanding: Decimal = Decimal("0.00")
    who_is_owed: Party | None = None

    def owed_by(self, party: Party) -> Decimal:
        """Amount the given party currently owes the other."""
        return self.party_a_owes if party is Party.A else self.party_b_owes


class DetailedBalance(BaseModel):
    """Full breakdown of paid/share/net per party over unsettled rows."""

    party_a_paid: Decimal
    party_b_paid: Decimal
    party_a_share: Decimal
    party_b_share: Decimal
    total_spending: Decimal
    avg_percent_a: float  # amount-weighted, 0-100
    avg_percent_b: float
    party_a_net: Decimal
    party_b_net: Decimal


class PendingTransaction(BaseModel):
    """An unsettled row together with what it alone makes each party owe."""

    transaction: Transaction
    party_a_owes: Decimal
    party_b_owes: Decimal


# ============================================================================
# Settlement / Payment Models
# ============================================================================


_POSITIVE_INT_PATTERN = re.compile(r"[1-9][0-9]*")

# Largest value a SQLite INTEGER column can hold
MAX_ROW_ID = 2**63 - 1


def parse_positive_int(raw: Any, what: str = "id") -> int:
    """Strictly parse a positive int (up to MAX_ROW_ID) from an int or digits."""
    value = None
    if isinstance(raw, int) and not isinstance(raw, bool):
        value = raw
    elif (
        isinstance(raw, str)
        and len(raw) <= len(str(MAX_ROW_ID))
        and _POSITIVE_INT_PATTERN.fullmatch(raw)
    ):
        value = int(raw)
    if value is not None and 0 < value <= MAX_ROW_ID:
        return value
    raise ValidationError(f"Invalid {what}: {raw!r}")


class Watermark(BaseModel):
    """Opaque upper bound on transaction ids covered by a settlement preview.

    Only construct through ``Watermark.parse`` when the value comes from an
    untrusted caller; it never reaches a query unless it is a positive int.
    """

    model_config = ConfigDict(frozen=True)

    value: int = Field(gt=0, le=MAX_ROW_ID)

    @classmethod
    def parse(cls, raw: "Watermark | int | str") -> "Watermark":
        """
        Strictly parse a watermark token.

        Accepts a Watermark, a positive int, or a string of digits with no
        sign, whitespace, or leading zero.

        Raises:
            ValidationError: If the value is not a well-formed positive integer
        """
        if isinstance(raw, Watermark):
            return raw
        return cls(value=parse_positive_int(raw, "watermark"))

    def __str__(self) -> str:
        return str(self.value)


class SettlementPreview(BaseModel):
    """Snapshot of the unsettled rows a later confirm would cover."""

    watermark: Watermark | None
    count: int
    total_amount: Decimal


class SettlementResult(BaseModel):
    """Outcome of confirming a settlement."""

    settled_count: int
    transaction_ids: list[int] = Field(default_factory=list)


class PaymentResult(BaseModel):
    """Outcome of recording a payment."""

    was_settled: bool
    new_balance: NetBalance
    transaction: Transaction


def parse_amount(raw: Any, what: str = "amount") -> Decimal:
    """
    Coerce a caller-supplied amount to a finite Decimal.

    Floats go through str() so 30.1 becomes Decimal("30.1"). Sign is not
    checked here; callers decide whether zero or negatives are allowed.

    Raises:
        ValidationError: If the value is not a finite number
    """
    if isinstance(raw, bool):
        raise ValidationError(f"Invalid {what}: {raw!r}")
    try:
        value = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
    except InvalidOperation as e:
        raise ValidationError(f"Invalid {what}: {raw!r}") from e
    if not value.is_finite():
        raise ValidationError(f"Invalid {what}: {raw!r}")
    return value
