"""Custom exceptions for duo-ledger."""

from decimal import Decimal


class DuoLedgerError(Exception):
    """Base exception for all duo-ledger errors."""

    pass


class ConfigurationError(DuoLedgerError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(DuoLedgerError):
    """Raised when caller input is malformed (amounts, splits, watermarks)."""

    pass


class ConcurrencyError(DuoLedgerError):
    """Raised when a payment exceeds the freshly recomputed outstanding balance.

    Distinct from ValidationError: the input was plausible when the caller saw
    it, but the ledger changed underneath. Callers should refresh and retry.
    """

    def __init__(
        self,
        requested: Decimal,
        outstanding: Decimal,
        message: str | None = None,
    ):
        self.requested = requested
        self.outstanding = outstanding
        super().__init__(
            message
            or f"Payment of {requested:.2f} exceeds outstanding balance of "
            f"{outstanding:.2f}. Balance may have changed."
        )


class StorageError(DuoLedgerError):
    """Raised when the ledger database fails or is unreachable."""

    pass


class TransactionNotFoundError(DuoLedgerError):
    """Raised when a correction targets a transaction id that does not exist."""

    def __init__(self, transaction_id: int, message: str | None = None):
        self.transaction_id = transaction_id
        super().__init__(message or f"Transaction {transaction_id} not found")
