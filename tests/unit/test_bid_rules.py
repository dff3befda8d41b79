"""Tests for sc_bidding.domain.rules — pure validation and state functions."""

from datetime import timedelta

import pytest

from src.sc_bidding.domain.rules import (
    apply_bid,
    compute_bid_status,
    ensure_bid_amount,
    ensure_biddable,
    is_active,
    is_winner,
)
from src.sc_common.datetime_utils import utc_now
from src.sc_common.errors import AuctionClosedError, BidTooLowError, ListingNotBiddableError
from src.sc_listing.domain.models import Listing


def _make_listing(**kwargs) -> Listing:
    fields = {
        "id": "lst-1",
        "seller_id": "seller-1",
        "title": "Vintage camera",
        "initial_price": 50,
        "status": "APPROVED",
        "kind": "AUCTION",
        "current_price": None,
        "current_leader_id": None,
        "auction_start_at": None,
        "auction_end_at": None,
        "settled_at": None,
        "settlement_outcome": None,
        "version": 0,
    }
    fields.update(kwargs)
    return Listing(**fields)


class TestEnsureBiddable:
    def test_open_listing_passes(self) -> None:
        ensure_biddable(_make_listing(), utc_now())

    def test_fixed_price_rejected(self) -> None:
        with pytest.raises(ListingNotBiddableError):
            ensure_biddable(_make_listing(kind="FIXED_PRICE"), utc_now())

    @pytest.mark.parametrize("status", ["PENDING", "REJECTED"])
    def test_unapproved_rejected(self, status: str) -> None:
        with pytest.raises(ListingNotBiddableError):
            ensure_biddable(_make_listing(status=status), utc_now())

    def test_passed_end_rejected(self) -> None:
        now = utc_now()
        listing = _make_listing(
            current_price=50, current_leader_id="a",
            auction_start_at=now - timedelta(hours=25),
            auction_end_at=now - timedelta(hours=1),
        )
        with pytest.raises(AuctionClosedError):
            ensure_biddable(listing, now)

    def test_end_exactly_now_still_open(self) -> None:
        now = utc_now()
        listing = _make_listing(auction_start_at=now - timedelta(hours=24), auction_end_at=now)
        ensure_biddable(listing, now)

    def test_settled_rejected(self) -> None:
        listing = _make_listing(settled_at=utc_now(), settlement_outcome="NO_BIDS")
        with pytest.raises(AuctionClosedError):
            ensure_biddable(listing, utc_now())


class TestEnsureBidAmount:
    def test_first_bid_at_initial_price(self) -> None:
        ensure_bid_amount(_make_listing(initial_price=50), 50)

    def test_first_bid_below_initial(self) -> None:
        with pytest.raises(BidTooLowError) as exc_info:
            ensure_bid_amount(_make_listing(initial_price=50), 40)
        assert exc_info.value.minimum == 50

    def test_tie_rejected(self) -> None:
        listing = _make_listing(current_price=50, current_leader_id="a")
        with pytest.raises(BidTooLowError) as exc_info:
            ensure_bid_amount(listing, 50)
        assert exc_info.value.minimum == 51

    def test_one_cent_over_accepted(self) -> None:
        ensure_bid_amount(_make_listing(current_price=50, current_leader_id="a"), 51)


class TestApplyBid:
    def test_first_bid_opens_window(self) -> None:
        now = utc_now()
        state = apply_bid(_make_listing(), "alice", 50, now, 24)
        assert state.auction_start_at == now
        assert state.auction_end_at == now + timedelta(hours=24)
        assert state.current_leader_id == "alice"
        assert state.current_price == 50

    def test_later_bid_keeps_window(self) -> None:
        start = utc_now() - timedelta(hours=2)
        end = start + timedelta(hours=24)
        listing = _make_listing(
            current_price=50, current_leader_id="alice",
            auction_start_at=start, auction_end_at=end,
        )
        state = apply_bid(listing, "bob", 75, utc_now(), 24)
        assert state.auction_start_at == start
        assert state.auction_end_at == end


class TestStatus:
    def test_not_started(self) -> None:
        listing = _make_listing()
        assert compute_bid_status(listing, utc_now()) == "NOT_STARTED"
        assert not is_active(listing, utc_now())

    def test_active(self) -> None:
        now = utc_now()
        listing = _make_listing(auction_start_at=now, auction_end_at=now + timedelta(hours=1))
        assert compute_bid_status(listing, now) == "ACTIVE"
        assert is_active(listing, now)

    def test_expired(self) -> None:
        now = utc_now()
        listing = _make_listing(
            current_price=50, current_leader_id="alice",
            auction_start_at=now - timedelta(hours=25),
            auction_end_at=now - timedelta(hours=1),
        )
        assert compute_bid_status(listing, now) == "EXPIRED"
        assert is_winner(listing, "alice", now)
        assert not is_winner(listing, "bob", now)
        assert not is_winner(listing, None, now)

    def test_leader_is_not_winner_while_active(self) -> None:
        now = utc_now()
        listing = _make_listing(
            current_price=50, current_leader_id="alice",
            auction_start_at=now, auction_end_at=now + timedelta(hours=1),
        )
        assert not is_winner(listing, "alice", now)

    def test_settled(self) -> None:
        listing = _make_listing(settled_at=utc_now(), settlement_outcome="SOLD")
        assert compute_bid_status(listing, utc_now()) == "SETTLED"
