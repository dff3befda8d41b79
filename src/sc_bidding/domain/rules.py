"""Bid validation and auction-state rules.

Pure functions over a Listing snapshot and an explicit `now`; the engine runs
them once optimistically and again against the row-locked listing.
"""

from datetime import datetime

from src.sc_common.cents import next_bid_minimum
from src.sc_common.datetime_utils import has_passed, hours_after
from src.sc_common.enums import BidStatus, ListingKind, ListingStatus
from src.sc_common.errors import (
    AuctionClosedError,
    BidTooLowError,
    ListingNotBiddableError,
)
from src.sc_listing.domain.models import AuctionState, Listing


def ensure_auction(listing: Listing) -> None:
    if listing.kind != ListingKind.AUCTION:
        raise ListingNotBiddableError(listing.id, "not an auction listing")


def ensure_biddable(listing: Listing, now: datetime) -> None:
    ensure_auction(listing)
    if listing.status != ListingStatus.APPROVED:
        raise ListingNotBiddableError(listing.id, f"status is {listing.status}")
    if listing.is_settled:
        raise AuctionClosedError(listing.id)
    if has_passed(listing.auction_end_at, now):
        raise AuctionClosedError(listing.id)


def ensure_bid_amount(listing: Listing, amount: int) -> None:
    # Ties lose: an equal amount is below current_price + 1.
    minimum = next_bid_minimum(listing.initial_price, listing.current_price)
    if amount < minimum:
        raise BidTooLowError(amount, minimum)


def apply_bid(
    listing: Listing,
    user_id: str,
    amount: int,
    now: datetime,
    duration_hours: int,
) -> AuctionState:
    """New auction state after accepting `amount`; the first bid opens the window."""
    if listing.auction_start_at is None:
        start = now
        end = hours_after(now, duration_hours)
    else:
        start = listing.auction_start_at
        end = listing.auction_end_at or hours_after(start, duration_hours)
    return AuctionState(
        current_price=amount,
        current_leader_id=user_id,
        auction_start_at=start,
        auction_end_at=end,
    )


def is_active(listing: Listing, now: datetime) -> bool:
    if listing.auction_start_at is None:
        return False
    return listing.auction_end_at is None or listing.auction_end_at > now


def compute_bid_status(listing: Listing, now: datetime) -> str:
    if listing.is_settled:
        return BidStatus.SETTLED.value
    if listing.auction_start_at is None:
        return BidStatus.NOT_STARTED.value
    if is_active(listing, now):
        return BidStatus.ACTIVE.value
    return BidStatus.EXPIRED.value


def is_winner(listing: Listing, requester_id: str | None, now: datetime) -> bool:
    if requester_id is None or listing.current_leader_id != requester_id:
        return False
    return has_passed(listing.auction_end_at, now)
