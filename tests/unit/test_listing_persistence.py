# tests/unit/test_listing_persistence.py
"""Unit tests for ListingRepository using MagicMock AsyncSession."""
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import DBAPIError

from src.sc_common.errors import BusyError
from src.sc_listing.domain.models import AuctionState
from src.sc_listing.infrastructure.persistence import ListingRepository


def _listing_row(**kwargs):
    row = MagicMock()
    row.id = kwargs.get("id", "lst-1")
    row.seller_id = "seller-1"
    row.title = "Vintage camera"
    row.initial_price = 5000
    row.status = "APPROVED"
    row.kind = "AUCTION"
    row.current_price = kwargs.get("current_price")
    row.current_leader_id = kwargs.get("current_leader_id")
    row.auction_start_at = None
    row.auction_end_at = None
    row.settled_at = None
    row.settlement_outcome = None
    row.version = 0
    row.created_at = datetime.now(UTC)
    row.updated_at = datetime.now(UTC)
    return row


def _result(one=None, many=None, rowcount=0):
    result = MagicMock()
    result.fetchone.return_value = one
    result.fetchall.return_value = many or []
    result.rowcount = rowcount
    return result


@pytest.fixture
def db():
    return MagicMock()


class _LockNotAvailable(Exception):
    sqlstate = "55P03"


class TestGetListing:
    async def test_found(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(one=_listing_row()))
        listing = await ListingRepository().get_listing(db, "lst-1")
        assert listing is not None
        assert listing.title == "Vintage camera"
        assert listing.current_price is None

    async def test_missing(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(one=None))
        assert await ListingRepository().get_listing(db, "nope") is None


class TestLockForUpdate:
    async def test_sets_lock_timeout_then_locks(self, db) -> None:
        db.execute = AsyncMock(side_effect=[_result(), _result(one=_listing_row())])
        listing = await ListingRepository().get_listing_for_update(db, "lst-1")
        assert listing is not None
        first_sql = str(db.execute.call_args_list[0].args[0])
        second_sql = str(db.execute.call_args_list[1].args[0])
        assert "SET LOCAL lock_timeout" in first_sql
        assert "FOR UPDATE" in second_sql
        assert "SKIP LOCKED" not in second_sql

    async def test_skip_locked_returns_none_when_row_held(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(one=None))
        listing = await ListingRepository().get_listing_for_update(
            db, "lst-1", skip_locked=True
        )
        assert listing is None
        assert "FOR UPDATE SKIP LOCKED" in str(db.execute.call_args.args[0])

    async def test_lock_timeout_becomes_busy(self, db) -> None:
        err = DBAPIError("SELECT", {}, _LockNotAvailable())
        db.execute = AsyncMock(side_effect=[_result(), err])
        with pytest.raises(BusyError):
            await ListingRepository().get_listing_for_update(db, "lst-1")

    async def test_other_db_errors_propagate(self, db) -> None:
        err = DBAPIError("SELECT", {}, Exception("connection reset"))
        db.execute = AsyncMock(side_effect=[_result(), err])
        with pytest.raises(DBAPIError):
            await ListingRepository().get_listing_for_update(db, "lst-1")


class TestUpdateAuctionState:
    async def test_cas_on_observed_price(self, db) -> None:
        db.execute = AsyncMock(
            return_value=_result(one=_listing_row(current_price=7500, current_leader_id="bob"))
        )
        now = datetime.now(UTC)
        state = AuctionState(7500, "bob", now, now + timedelta(hours=24))
        updated = await ListingRepository().update_auction_state(db, "lst-1", 5000, state)
        assert updated is not None
        assert updated.current_price == 7500
        sql = str(db.execute.call_args.args[0])
        params = db.execute.call_args.args[1]
        assert "IS NOT DISTINCT FROM" in sql
        assert "settled_at IS NULL" in sql
        assert params["expected_price"] == 5000

    async def test_lost_race_returns_none(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(one=None))
        now = datetime.now(UTC)
        state = AuctionState(5000, "bob", now, now + timedelta(hours=24))
        assert await ListingRepository().update_auction_state(db, "lst-1", None, state) is None


class TestSettlementQueries:
    async def test_list_expired_unsettled(self, db) -> None:
        now = datetime.now(UTC)
        end = now - timedelta(hours=1)
        db.execute = AsyncMock(return_value=_result(many=[
            MagicMock(auction_end_at=end, id="lst-1"),
            MagicMock(auction_end_at=end, id="lst-2"),
        ]))
        rows = await ListingRepository().list_expired_unsettled(db, now, 10)
        assert rows == [(end, "lst-1"), (end, "lst-2")]
        params = db.execute.call_args.args[1]
        assert params == {
            "kind": "AUCTION", "now": now, "after_end": None, "after_id": None, "limit": 10,
        }

    async def test_list_expired_unsettled_after_cursor(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(many=[]))
        now = datetime.now(UTC)
        end = now - timedelta(hours=1)
        await ListingRepository().list_expired_unsettled(db, now, 10, after=(end, "lst-2"))
        sql, params = db.execute.call_args.args
        assert params["after_end"] == end
        assert params["after_id"] == "lst-2"
        assert "(auction_end_at, id) >" in str(sql)

    @pytest.mark.parametrize("rowcount,expected", [(1, True), (0, False)])
    async def test_mark_settled(self, db, rowcount: int, expected: bool) -> None:
        db.execute = AsyncMock(return_value=_result(rowcount=rowcount))
        marked = await ListingRepository().mark_settled(
            db, "lst-1", "SOLD", datetime.now(UTC)
        )
        assert marked is expected

    async def test_list_open_auctions(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(many=[_listing_row()]))
        listings = await ListingRepository().list_open_auctions(db, 20)
        assert len(listings) == 1
        assert db.execute.call_args.args[1]["status"] == "APPROVED"
