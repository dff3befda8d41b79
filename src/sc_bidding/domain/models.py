"""Domain models for sc_bidding — pure dataclasses, no business logic."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class BidResult:
    """Outcome of an accepted bid."""

    listing_id: str
    amount: int
    current_price: int
    current_leader_id: str
    auction_start_at: datetime
    auction_end_at: datetime
    bid_status: str
    transaction_id: str          # the PENDING BID_HOLD backing this bid
    refunded_transaction_ids: list[str]


@dataclass
class BidView:
    """Read-only view of a listing's auction state for one requester."""

    listing_id: str
    title: str
    initial_price: int
    current_price: int | None
    current_leader_id: str | None
    auction_start_at: datetime | None
    auction_end_at: datetime | None
    is_active: bool
    is_winner: bool
    bid_status: str
    settlement_outcome: str | None
