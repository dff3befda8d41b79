# src/sc_bidding/application/service.py
from sqlalchemy.ext.asyncio import AsyncSession

from src.sc_bidding.application.schemas import (
    BidResponse,
    PlaceBidRequest,
    PlaceBidResponse,
)
from src.sc_bidding.engine.engine import BidEngine

_engine: BidEngine | None = None


def get_bid_engine() -> BidEngine:
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = BidEngine()
    return _engine


async def place_bid(
    req: PlaceBidRequest, user_id: str, db: AsyncSession
) -> PlaceBidResponse:
    engine = get_bid_engine()
    try:
        result = await engine.place_bid(user_id, req.listing_id, req.amount_cents, db)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return PlaceBidResponse.from_result(result)


async def get_bid_details(
    listing_id: str, user_id: str, db: AsyncSession
) -> BidResponse:
    view = await get_bid_engine().get_bid_details(listing_id, user_id, db)
    return BidResponse.from_view(view)


async def list_bidding_listings(
    user_id: str, limit: int, db: AsyncSession
) -> list[BidResponse]:
    views = await get_bid_engine().list_bidding_listings(db, limit, user_id)
    return [BidResponse.from_view(v) for v in views]
