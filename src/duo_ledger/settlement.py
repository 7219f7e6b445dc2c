"""Watermark-bounded bulk settlement.

A settlement is two calls. ``preview()`` captures the highest unsettled
transaction id as a watermark and reports what would be settled.
``confirm(watermark)`` later flips exactly the unsettled rows at or below
that watermark. The preview state lives with the caller, so cancelling is a
no-op here, and confirming the same watermark twice settles nothing the
second time.
"""

import logging
from decimal import Decimal

from .db import Database
from .exceptions import ValidationError
from .models import (
    SettlementPreview,
    SettlementResult,
    Watermark,
    parse_positive_int,
)

logger = logging.getLogger(__name__)


class SettlementCoordinator:
    """Previews and confirms bulk settlement of unsettled ledger rows."""

    def __init__(self, database: Database):
        """Initialize the coordinator."""
        self.db = database

    def preview(self) -> SettlementPreview:
        """
        Snapshot the currently unsettled rows.

        Returns:
            Preview with the watermark (max unsettled id, or None when there
            is nothing to settle), row count and total amount
        """
        transactions = self.db.get_unsettled_transactions(newest_first=True)
        if not transactions:
            return SettlementPreview(
                watermark=None, count=0, total_amount=Decimal("0.00")
            )

        watermark = Watermark(value=max(t.id for t in transactions if t.id))
        total = sum((t.amount for t in transactions), Decimal("0.00"))

        logger.info(
            f"Settlement preview: {len(transactions)} rows, "
            f"total {total:.2f}, watermark {watermark}"
        )
        return SettlementPreview(
            watermark=watermark, count=len(transactions), total_amount=total
        )

    def confirm(self, watermark: Watermark | int | str) -> SettlementResult:
        """
        Settle every unsettled row with id <= watermark.

        Rows created after the preview (id > watermark) are left alone.
        Repeating the call, or racing another confirm with the same
        watermark, is safe: only rows still unsettled at write time change.

        Args:
            watermark: Token from ``preview()`` (raw ints/strings are parsed)

        Returns:
            Number and ids of rows settled by this call (0 is not an error)

        Raises:
            ValidationError: If the watermark is malformed
        """
        token = Watermark.parse(watermark)

        settled_ids = self.db.mark_settled_up_to(token.value)

        if not settled_ids:
            logger.info(f"Settlement at watermark {token}: nothing left to settle")
            return SettlementResult(settled_count=0)

        logger.info(
            f"Settlement executed at watermark {token}: "
            f"{len(settled_ids)} rows settled (ids {settled_ids})"
        )
        return SettlementResult(
            settled_count=len(settled_ids), transaction_ids=settled_ids
        )

    def cancel(self) -> None:
        """Abandon a preview. Nothing is stored server-side, so nothing changes."""
        logger.debug("Settlement preview cancelled")

    def revert(self, transaction_ids: list[int]) -> list[int]:
        """
        Flip previously settled rows back to unsettled.

        Args:
            transaction_ids: Ids to revert

        Returns:
            Ids that were settled and are now unsettled; unknown or already
            unsettled ids are omitted

        Raises:
            ValidationError: If any id is not a positive integer
        """
        ids = [parse_positive_int(raw, "transaction id") for raw in transaction_ids]
        if not ids:
            raise ValidationError("No transaction ids given to revert")

        reverted = self.db.mark_unsettled(sorted(set(ids)))
        logger.info(f"Reverted settlement for {len(reverted)} rows (ids {reverted})")
        return reverted
