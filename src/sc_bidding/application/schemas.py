"""Pydantic schemas for sc_bidding API."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.sc_bidding.domain.models import BidResult, BidView
from src.sc_common.cents import cents_to_display, optional_display


class PlaceBidRequest(BaseModel):
    listing_id: str = Field(..., min_length=1, max_length=64)
    amount_cents: int = Field(..., ge=0, description="Bid amount in cents")


class BidResponse(BaseModel):
    listing_id: str
    name: str
    initial_price_cents: int
    initial_price_display: str
    current_price_cents: int | None
    current_price_display: str | None
    current_bidder_id: str | None
    bid_start_time: datetime | None
    bid_end_time: datetime | None
    is_active: bool
    is_winner: bool
    bid_status: str
    settlement_outcome: str | None

    @classmethod
    def from_view(cls, view: BidView) -> "BidResponse":
        return cls(
            listing_id=view.listing_id,
            name=view.title,
            initial_price_cents=view.initial_price,
            initial_price_display=cents_to_display(view.initial_price),
            current_price_cents=view.current_price,
            current_price_display=optional_display(view.current_price),
            current_bidder_id=view.current_leader_id,
            bid_start_time=view.auction_start_at,
            bid_end_time=view.auction_end_at,
            is_active=view.is_active,
            is_winner=view.is_winner,
            bid_status=view.bid_status,
            settlement_outcome=view.settlement_outcome,
        )


class PlaceBidResponse(BaseModel):
    listing_id: str
    amount_cents: int
    current_price_cents: int
    current_price_display: str
    current_bidder_id: str
    bid_start_time: datetime
    bid_end_time: datetime
    bid_status: str
    transaction_id: str
    refunded_transaction_ids: list[str]

    @classmethod
    def from_result(cls, result: BidResult) -> "PlaceBidResponse":
        return cls(
            listing_id=result.listing_id,
            amount_cents=result.amount,
            current_price_cents=result.current_price,
            current_price_display=cents_to_display(result.current_price),
            current_bidder_id=result.current_leader_id,
            bid_start_time=result.auction_start_at,
            bid_end_time=result.auction_end_at,
            bid_status=result.bid_status,
            transaction_id=result.transaction_id,
            refunded_transaction_ids=result.refunded_transaction_ids,
        )
