"""duo-ledger - Shared expense ledger for two parties with safe settlement."""

__version__ = "0.1.0"

from .balance import BalanceCalculator, compute_balance, to_cents
from .config import Settings, load_settings
from .db import Database
from .models import (
    NetBalance,
    Party,
    PaymentResult,
    SettlementPreview,
    SettlementResult,
    SplitRule,
    Transaction,
    Watermark,
)
from .service import LedgerService
from .split_rules import SplitRuleStore, normalize_category

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "NetBalance",
    "Party",
    "PaymentResult",
    "SettlementPreview",
    "SettlementResult",
    "SplitRule",
    "Transaction",
    "Watermark",
    "BalanceCalculator",
    "compute_balance",
    "to_cents",
    "SplitRuleStore",
    "normalize_category",
    "LedgerService",
]
