"""ListingRepository — concrete implementation of ListingRepositoryProtocol.

All queries use raw text() SQL (no ORM).
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.sc_common.database import lock_wait_guard, set_lock_timeout
from src.sc_common.enums import ListingKind, ListingStatus
from src.sc_listing.domain.models import AuctionState, Listing

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_LISTING_COLUMNS = """
    id, seller_id, title, initial_price, status, kind,
    current_price, current_leader_id, auction_start_at, auction_end_at,
    settled_at, settlement_outcome, version, created_at, updated_at
"""

_GET_LISTING_SQL = text(f"""
    SELECT {_LISTING_COLUMNS}
    FROM listings
    WHERE id = :listing_id
""")

_LOCK_LISTING_SQL = text(f"""
    SELECT {_LISTING_COLUMNS}
    FROM listings
    WHERE id = :listing_id
    FOR UPDATE
""")

_LOCK_LISTING_SKIP_LOCKED_SQL = text(f"""
    SELECT {_LISTING_COLUMNS}
    FROM listings
    WHERE id = :listing_id
    FOR UPDATE SKIP LOCKED
""")

# Compare-and-set on the price the caller observed; a concurrent bid or a
# settlement that got there first makes this match 0 rows.
_UPDATE_AUCTION_STATE_SQL = text(f"""
    UPDATE listings
    SET current_price = :current_price,
        current_leader_id = :current_leader_id,
        auction_start_at = COALESCE(auction_start_at, :auction_start_at),
        auction_end_at = COALESCE(auction_end_at, :auction_end_at),
        version = version + 1,
        updated_at = NOW()
    WHERE id = :listing_id
      AND settled_at IS NULL
      AND current_price IS NOT DISTINCT FROM CAST(:expected_price AS BIGINT)
    RETURNING {_LISTING_COLUMNS}
""")

_LIST_EXPIRED_UNSETTLED_SQL = text("""
    SELECT auction_end_at, id
    FROM listings
    WHERE kind = :kind
      AND settled_at IS NULL
      AND auction_end_at IS NOT NULL
      AND auction_end_at < :now
      AND (CAST(:after_end AS TIMESTAMPTZ) IS NULL
           OR (auction_end_at, id) > (CAST(:after_end AS TIMESTAMPTZ), CAST(:after_id AS VARCHAR)))
    ORDER BY auction_end_at ASC, id ASC
    LIMIT :limit
""")

_MARK_SETTLED_SQL = text("""
    UPDATE listings
    SET settled_at = :settled_at,
        settlement_outcome = :outcome,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :listing_id AND settled_at IS NULL
""")

_LIST_OPEN_AUCTIONS_SQL = text(f"""
    SELECT {_LISTING_COLUMNS}
    FROM listings
    WHERE kind = :kind AND status = :status
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_listing(row: object) -> Listing:
    return Listing(
        id=row.id,  # type: ignore[attr-defined]
        seller_id=row.seller_id,  # type: ignore[attr-defined]
        title=row.title,  # type: ignore[attr-defined]
        initial_price=row.initial_price,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        kind=row.kind,  # type: ignore[attr-defined]
        current_price=row.current_price,  # type: ignore[attr-defined]
        current_leader_id=row.current_leader_id,  # type: ignore[attr-defined]
        auction_start_at=row.auction_start_at,  # type: ignore[attr-defined]
        auction_end_at=row.auction_end_at,  # type: ignore[attr-defined]
        settled_at=row.settled_at,  # type: ignore[attr-defined]
        settlement_outcome=row.settlement_outcome,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ListingRepository:
    async def get_listing(
        self, db: AsyncSession, listing_id: str
    ) -> Listing | None:
        result = await db.execute(_GET_LISTING_SQL, {"listing_id": listing_id})
        row = result.fetchone()
        return _row_to_listing(row) if row else None

    async def get_listing_for_update(
        self, db: AsyncSession, listing_id: str, skip_locked: bool = False
    ) -> Listing | None:
        """Row-lock the listing until the caller's transaction ends.

        skip_locked=True returns None instead of waiting when another
        transaction holds the row. Otherwise the wait is bounded by
        DB_LOCK_TIMEOUT_MS and a timeout surfaces as BusyError.
        """
        if skip_locked:
            result = await db.execute(
                _LOCK_LISTING_SKIP_LOCKED_SQL, {"listing_id": listing_id}
            )
        else:
            await set_lock_timeout(db, settings.DB_LOCK_TIMEOUT_MS)
            async with lock_wait_guard(f"listing {listing_id}"):
                result = await db.execute(_LOCK_LISTING_SQL, {"listing_id": listing_id})
        row = result.fetchone()
        return _row_to_listing(row) if row else None

    async def update_auction_state(
        self,
        db: AsyncSession,
        listing_id: str,
        expected_price: int | None,
        state: AuctionState,
    ) -> Listing | None:
        result = await db.execute(
            _UPDATE_AUCTION_STATE_SQL,
            {
                "listing_id": listing_id,
                "expected_price": expected_price,
                "current_price": state.current_price,
                "current_leader_id": state.current_leader_id,
                "auction_start_at": state.auction_start_at,
                "auction_end_at": state.auction_end_at,
            },
        )
        row = result.fetchone()
        return _row_to_listing(row) if row else None

    async def list_expired_unsettled(
        self,
        db: AsyncSession,
        now: datetime,
        limit: int,
        after: tuple[datetime, str] | None = None,
    ) -> list[tuple[datetime, str]]:
        """(auction_end_at, id) of expired, unsettled auctions in that order.

        `after` is a keyset cursor: only rows strictly past it are returned.
        """
        after_end, after_id = after if after is not None else (None, None)
        result = await db.execute(
            _LIST_EXPIRED_UNSETTLED_SQL,
            {
                "kind": ListingKind.AUCTION.value,
                "now": now,
                "after_end": after_end,
                "after_id": after_id,
                "limit": limit,
            },
        )
        return [(row.auction_end_at, row.id) for row in result.fetchall()]

    async def mark_settled(
        self,
        db: AsyncSession,
        listing_id: str,
        outcome: str,
        settled_at: datetime,
    ) -> bool:
        result = await db.execute(
            _MARK_SETTLED_SQL,
            {"listing_id": listing_id, "outcome": outcome, "settled_at": settled_at},
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def list_open_auctions(
        self, db: AsyncSession, limit: int
    ) -> list[Listing]:
        result = await db.execute(
            _LIST_OPEN_AUCTIONS_SQL,
            {
                "kind": ListingKind.AUCTION.value,
                "status": ListingStatus.APPROVED.value,
                "limit": limit,
            },
        )
        return [_row_to_listing(row) for row in result.fetchall()]
