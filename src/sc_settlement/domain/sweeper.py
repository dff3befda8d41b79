# src/sc_settlement/domain/sweeper.py
"""Settlement sweeper: finalize auctions whose end time has passed.

Each listing settles in its own session and transaction. The listing row is
taken with FOR UPDATE SKIP LOCKED, so a listing another worker (or a late bid)
currently holds is skipped and picked up on a later pass. Marking the listing
settled is conditional on settled_at IS NULL, which makes a second pass a no-op.
The bidders' wallets are locked in wallet-id order, the order bids use too.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.sc_common.database import async_session_factory
from src.sc_common.datetime_utils import has_passed, utc_now
from src.sc_common.enums import SettlementOutcome
from src.sc_common.errors import InternalError, WinningHoldMissingError
from src.sc_listing.domain.models import Listing
from src.sc_listing.domain.repository import ListingRepositoryProtocol
from src.sc_listing.infrastructure.persistence import ListingRepository
from src.sc_wallet.application.ledger import Ledger
from src.sc_wallet.domain.models import WalletTransaction

logger = logging.getLogger(__name__)


@dataclass
class SettlementReport:
    settled: list[str] = field(default_factory=list)
    no_bids: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    holds_completed: int = 0
    holds_refunded: int = 0
    refunded_cents: int = 0

    @property
    def processed(self) -> int:
        return len(self.settled) + len(self.no_bids)


@dataclass
class _ListingSettlement:
    """What one listing's transaction did; merged into the report only after commit."""

    listing_id: str
    outcome: str | None               # None when the listing was skipped
    winning_transaction_id: str | None = None
    refunded: list[WalletTransaction] = field(default_factory=list)


class SettlementSweeper:
    def __init__(
        self,
        ledger: Ledger | None = None,
        listings: ListingRepositoryProtocol | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        batch_size: int | None = None,
        max_batches: int | None = None,
    ) -> None:
        self._ledger = ledger or Ledger()
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._session_factory = session_factory or async_session_factory
        self._batch_size = batch_size or settings.SETTLEMENT_BATCH_SIZE
        self._max_batches = max_batches or settings.SETTLEMENT_MAX_BATCHES_PER_PASS
        # Keyset position after the last full batch; the next pass resumes there.
        self._resume_after: tuple[datetime, str] | None = None

    async def run_settlement_pass(self, now: datetime | None = None) -> SettlementReport:
        """Settle expired listings, batch by batch in (auction_end_at, id) order.

        A pass walks at most max_batches batches. Listings that fail stay
        unsettled and are paged past. The walk starts over from the oldest
        listing once it reaches the end.
        """
        now = now or utc_now()
        report = SettlementReport()

        for _ in range(self._max_batches):
            async with self._session_factory() as db:
                batch = await self._listings.list_expired_unsettled(
                    db, now, self._batch_size, self._resume_after
                )
            if batch:
                logger.info("Settlement batch: %d expired listing(s) to settle", len(batch))
            for _, listing_id in batch:
                await self._settle_in_own_session(report, listing_id, now)
            if len(batch) < self._batch_size:
                self._resume_after = None
                break
            self._resume_after = batch[-1]

        if report.processed or report.skipped or report.failed:
            logger.info(
                "Settlement pass done: settled=%d no_bids=%d skipped=%d failed=%d "
                "completed=%d refunded=%d refunded_cents=%d",
                len(report.settled), len(report.no_bids), len(report.skipped),
                len(report.failed), report.holds_completed, report.holds_refunded,
                report.refunded_cents,
            )
        return report

    async def _settle_in_own_session(
        self, report: SettlementReport, listing_id: str, now: datetime
    ) -> None:
        async with self._session_factory() as db:
            try:
                result = await self.settle_listing(db, listing_id, now)
                await db.commit()
            except Exception:
                await db.rollback()
                logger.exception("Settlement failed: listing=%s", listing_id)
                report.failed.append(listing_id)
                return
        _merge(report, result)

    async def settle_listing(
        self, db: AsyncSession, listing_id: str, now: datetime
    ) -> _ListingSettlement:
        """Settle one listing inside the caller's transaction; the caller commits."""
        listing = await self._listings.get_listing_for_update(
            db, listing_id, skip_locked=True
        )
        if listing is None:
            logger.info("Settlement skipped, listing locked or gone: listing=%s", listing_id)
            return _ListingSettlement(listing_id, None)
        if listing.is_settled or not has_passed(listing.auction_end_at, now):
            return _ListingSettlement(listing_id, None)

        if listing.current_leader_id is None:
            await self._mark_settled(db, listing, SettlementOutcome.NO_BIDS, now)
            logger.info("Auction closed without bids: listing=%s", listing_id)
            return _ListingSettlement(listing_id, SettlementOutcome.NO_BIDS.value)

        holds = await self._ledger.list_pending_holds(db, listing_id)
        winning = find_winning_hold(listing, holds)
        if winning is None:
            raise WinningHoldMissingError(
                listing_id, listing.current_leader_id, listing.current_price or 0
            )
        await self._ledger.lock_wallets(db, [hold.user_id for hold in holds])

        await self._ledger.complete_reservation(db, winning.id)
        refunded: list[WalletTransaction] = []
        for hold in holds:
            if hold.id == winning.id:
                continue
            await self._ledger.refund_reservation(db, hold.id)
            refunded.append(hold)

        await self._mark_settled(db, listing, SettlementOutcome.SOLD, now)
        logger.info(
            "Auction settled: listing=%s winner=%s price=%d winning_tx=%s refunds=%d",
            listing_id, listing.current_leader_id, listing.current_price,
            winning.id, len(refunded),
        )
        return _ListingSettlement(
            listing_id,
            SettlementOutcome.SOLD.value,
            winning_transaction_id=winning.id,
            refunded=refunded,
        )

    async def _mark_settled(
        self,
        db: AsyncSession,
        listing: Listing,
        outcome: SettlementOutcome,
        now: datetime,
    ) -> None:
        marked = await self._listings.mark_settled(db, listing.id, outcome.value, now)
        if not marked:
            # Row is locked by us, so settled_at cannot have changed underneath.
            raise InternalError(f"Listing {listing.id} could not be marked settled")


def find_winning_hold(
    listing: Listing, holds: list[WalletTransaction]
) -> WalletTransaction | None:
    # holds come oldest first; the newest matching hold backs the current price
    for hold in reversed(holds):
        if (
            hold.user_id == listing.current_leader_id
            and hold.amount == listing.current_price
        ):
            return hold
    return None


def _merge(report: SettlementReport, result: _ListingSettlement) -> None:
    if result.outcome is None:
        report.skipped.append(result.listing_id)
        return
    if result.outcome == SettlementOutcome.NO_BIDS:
        report.no_bids.append(result.listing_id)
        return
    report.settled.append(result.listing_id)
    report.holds_completed += 1
    report.holds_refunded += len(result.refunded)
    report.refunded_cents += sum(h.amount for h in result.refunded)
