# src/sc_bidding/api/router.py
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.sc_bidding.application import service as svc
from src.sc_bidding.application.schemas import PlaceBidRequest
from src.sc_common.database import get_db_session
from src.sc_common.response import ApiResponse, wrap
from src.sc_gateway.auth.dependencies import UserRef, get_current_user

router = APIRouter(prefix="/bids", tags=["bids"])


@router.get("")
async def list_bidding_listings(
    current_user: Annotated[UserRef, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=200, description="Max listings returned"),
) -> ApiResponse:
    data = await svc.list_bidding_listings(current_user.id, limit, db)
    return wrap(data, request)


@router.get("/{listing_id}")
async def get_bid_details(
    listing_id: str,
    current_user: Annotated[UserRef, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await svc.get_bid_details(listing_id, current_user.id, db)
    return wrap(data, request)


@router.post("", status_code=201)
async def place_bid(
    req: PlaceBidRequest,
    current_user: Annotated[UserRef, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await svc.place_bid(req, current_user.id, db)
    return wrap(data, request)
