"""Repository Protocol — the listing lookup/mutation interface the auction core consumes.

Catalog CRUD and moderation live elsewhere; this surface only reads listings
and writes the auction/settlement columns. Nothing here commits.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.sc_listing.domain.models import AuctionState, Listing


class ListingRepositoryProtocol(Protocol):
    async def get_listing(
        self, db: AsyncSession, listing_id: str
    ) -> Listing | None: ...

    async def get_listing_for_update(
        self, db: AsyncSession, listing_id: str, skip_locked: bool = False
    ) -> Listing | None: ...

    async def update_auction_state(
        self,
        db: AsyncSession,
        listing_id: str,
        expected_price: int | None,
        state: AuctionState,
    ) -> Listing | None: ...

    async def list_expired_unsettled(
        self,
        db: AsyncSession,
        now: datetime,
        limit: int,
        after: tuple[datetime, str] | None = None,
    ) -> list[tuple[datetime, str]]: ...

    async def mark_settled(
        self,
        db: AsyncSession,
        listing_id: str,
        outcome: str,
        settled_at: datetime,
    ) -> bool: ...

    async def list_open_auctions(
        self, db: AsyncSession, limit: int
    ) -> list[Listing]: ...
