"""BidEngine — per-listing bid placement and auction-state reads."""
import asyncio
import logging
import weakref

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.sc_bidding.domain.models import BidResult, BidView
from src.sc_bidding.domain.outbid_policy import OutbidPolicy, get_outbid_policy
from src.sc_bidding.domain.rules import (
    apply_bid,
    compute_bid_status,
    ensure_auction,
    ensure_bid_amount,
    ensure_biddable,
    is_active,
    is_winner,
)
from src.sc_common.datetime_utils import utc_now
from src.sc_common.errors import (
    BidConflictError,
    BusyError,
    InsufficientFundsError,
    ListingNotFoundError,
)
from src.sc_listing.domain.models import Listing
from src.sc_listing.domain.repository import ListingRepositoryProtocol
from src.sc_listing.infrastructure.persistence import ListingRepository
from src.sc_wallet.application.ledger import Ledger

logger = logging.getLogger(__name__)


class BidEngine:
    def __init__(
        self,
        ledger: Ledger | None = None,
        listings: ListingRepositoryProtocol | None = None,
        outbid_policy: OutbidPolicy | None = None,
        lock_timeout_seconds: float | None = None,
        auction_duration_hours: int | None = None,
    ) -> None:
        self._ledger = ledger or Ledger()
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._outbid_policy = outbid_policy or get_outbid_policy(settings.OUTBID_POLICY)
        self._lock_timeout = (
            lock_timeout_seconds
            if lock_timeout_seconds is not None
            else settings.BID_LOCK_TIMEOUT_SECONDS
        )
        self._duration_hours = (
            auction_duration_hours
            if auction_duration_hours is not None
            else settings.AUCTION_DURATION_HOURS
        )
        # An entry lives only while some bid on that listing holds or awaits the lock.
        self._listing_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _get_or_create_lock(self, listing_id: str) -> asyncio.Lock:
        lock = self._listing_locks.get(listing_id)
        if lock is None:
            lock = asyncio.Lock()
            self._listing_locks[listing_id] = lock
        return lock

    async def place_bid(
        self, user_id: str, listing_id: str, amount: int, db: AsyncSession
    ) -> BidResult:
        """Validate and apply a bid, reserving `amount` from the bidder's wallet.

        Runs in the caller's transaction; the caller commits. The listing update
        and the reservation share one savepoint, so either both land or neither.
        """
        # Optimistic checks against an unlocked snapshot
        listing = await self._listings.get_listing(db, listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        ensure_biddable(listing, utc_now())
        if not await self._ledger.has_sufficient_balance(db, user_id, amount):
            wallet = await self._ledger.get_or_create_wallet(db, user_id)
            raise InsufficientFundsError(amount, wallet.balance)
        ensure_bid_amount(listing, amount)

        lock = self._get_or_create_lock(listing_id)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._lock_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Bid lock timeout: listing=%s user=%s after %.1fs",
                listing_id, user_id, self._lock_timeout,
            )
            raise BusyError(f"listing {listing_id}") from None
        try:
            async with db.begin_nested():
                return await self._place_bid_locked(user_id, listing_id, amount, db)
        finally:
            lock.release()

    async def _place_bid_locked(
        self, user_id: str, listing_id: str, amount: int, db: AsyncSession
    ) -> BidResult:
        locked = await self._listings.get_listing_for_update(db, listing_id)
        if locked is None:
            raise ListingNotFoundError(listing_id)

        # Re-validate against the locked row: an earlier bid may have moved the price
        now = utc_now()
        ensure_biddable(locked, now)
        ensure_bid_amount(locked, amount)

        state = apply_bid(locked, user_id, amount, now, self._duration_hours)
        updated = await self._listings.update_auction_state(
            db, listing_id, locked.current_price, state
        )
        if updated is None:
            raise BidConflictError(listing_id)

        refunds = await self._outbid_policy(self._ledger, db, locked, user_id)
        hold = await self._ledger.reserve(
            db, user_id, amount, listing_id, f"Bid on listing {listing_id}"
        )
        logger.info(
            "Bid accepted: listing=%s user=%s amount=%d previous=%s hold=%s",
            listing_id, user_id, amount, locked.current_price, hold.id,
        )
        return BidResult(
            listing_id=listing_id,
            amount=amount,
            current_price=state.current_price,
            current_leader_id=state.current_leader_id,
            auction_start_at=state.auction_start_at,
            auction_end_at=state.auction_end_at,
            bid_status=compute_bid_status(updated, now),
            transaction_id=hold.id,
            refunded_transaction_ids=[r.related_transaction_id or r.id for r in refunds],
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_bid_details(
        self, listing_id: str, requester_id: str | None, db: AsyncSession
    ) -> BidView:
        listing = await self._listings.get_listing(db, listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        ensure_auction(listing)
        return _to_view(listing, requester_id)

    async def list_bidding_listings(
        self, db: AsyncSession, limit: int, requester_id: str | None = None
    ) -> list[BidView]:
        listings = await self._listings.list_open_auctions(db, limit)
        return [_to_view(listing, requester_id) for listing in listings]


def _to_view(listing: Listing, requester_id: str | None) -> BidView:
    now = utc_now()
    return BidView(
        listing_id=listing.id,
        title=listing.title,
        initial_price=listing.initial_price,
        current_price=listing.current_price,
        current_leader_id=listing.current_leader_id,
        auction_start_at=listing.auction_start_at,
        auction_end_at=listing.auction_end_at,
        is_active=is_active(listing, now),
        is_winner=is_winner(listing, requester_id, now),
        bid_status=compute_bid_status(listing, now),
        settlement_outcome=listing.settlement_outcome,
    )
