"""Domain models for sc_listing — pure dataclasses, no business logic."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Listing:
    id: str
    seller_id: str
    title: str
    initial_price: int                     # cents
    status: str                            # ListingStatus value (moderation)
    kind: str                              # ListingKind value
    current_price: int | None              # None until the first accepted bid
    current_leader_id: str | None
    auction_start_at: datetime | None      # set by the first accepted bid
    auction_end_at: datetime | None        # immutable once set
    settled_at: datetime | None            # non-null means settlement is final
    settlement_outcome: str | None         # SettlementOutcome value
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_settled(self) -> bool:
        return self.settled_at is not None


@dataclass
class AuctionState:
    """The auction fields an accepted bid writes back to the listing."""

    current_price: int
    current_leader_id: str
    auction_start_at: datetime
    auction_end_at: datetime
