# src/sc_settlement/application/service.py
"""Admin operations over settlement and the ledger."""
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.sc_common.errors import LeadingHoldRefundError
from src.sc_listing.domain.repository import ListingRepositoryProtocol
from src.sc_listing.infrastructure.persistence import ListingRepository
from src.sc_settlement.domain.invariants import verify_wallet_conservation
from src.sc_settlement.domain.sweeper import (
    SettlementReport,
    SettlementSweeper,
    find_winning_hold,
)
from src.sc_wallet.application.ledger import Ledger

logger = logging.getLogger(__name__)


def _report_to_dict(report: SettlementReport) -> dict[str, Any]:
    return {
        "settled": report.settled,
        "no_bids": report.no_bids,
        "skipped": report.skipped,
        "failed": report.failed,
        "holds_completed": report.holds_completed,
        "holds_refunded": report.holds_refunded,
        "refunded_cents": report.refunded_cents,
    }


class SettlementAdminService:
    def __init__(
        self,
        sweeper: SettlementSweeper | None = None,
        ledger: Ledger | None = None,
        listings: ListingRepositoryProtocol | None = None,
    ) -> None:
        self._ledger = ledger or Ledger()
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._sweeper = sweeper or SettlementSweeper(
            ledger=self._ledger, listings=self._listings
        )

    async def run_settlement(self) -> dict[str, Any]:
        report = await self._sweeper.run_settlement_pass()
        return _report_to_dict(report)

    async def refund_hold(self, transaction_id: str, db: AsyncSession) -> dict[str, Any]:
        """Refund a pending hold by hand.

        The hold backing an unsettled listing's leading bid is off limits: it is
        what settlement completes, and the listing could never settle without it.
        """
        try:
            hold = await self._ledger.get_transaction(db, transaction_id)
            if hold.listing_id is not None:
                await self._ensure_not_leading(db, hold.id, hold.listing_id)
            refund = await self._ledger.refund_reservation(db, transaction_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Manual refund: tx=%s refund_tx=%s", transaction_id, refund.id)
        return {
            "transaction_id": transaction_id,
            "refund_transaction_id": refund.id,
            "amount_cents": refund.amount,
            "balance_after_cents": refund.balance_after,
        }

    async def check_invariants(self, db: AsyncSession) -> dict[str, Any]:
        violations = await verify_wallet_conservation(db, self._ledger)
        return {"ok": not violations, "violations": violations}

    async def _ensure_not_leading(
        self, db: AsyncSession, transaction_id: str, listing_id: str
    ) -> None:
        # Listing row lock first, same order as bids and settlement.
        listing = await self._listings.get_listing_for_update(db, listing_id)
        if listing is None or listing.is_settled or listing.current_leader_id is None:
            return
        holds = await self._ledger.list_pending_holds(db, listing_id)
        winning = find_winning_hold(listing, holds)
        if winning is not None and winning.id == transaction_id:
            raise LeadingHoldRefundError(transaction_id, listing_id)
