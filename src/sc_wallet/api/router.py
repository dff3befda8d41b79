"""sc_wallet REST API — 3 endpoints, all require JWT authentication."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.sc_common.database import get_db_session
from src.sc_common.response import ApiResponse, wrap
from src.sc_gateway.auth.dependencies import UserRef, get_current_user
from src.sc_wallet.application.schemas import TopUpRequest
from src.sc_wallet.application.service import WalletApplicationService

router = APIRouter(prefix="/wallet", tags=["wallet"])

_service = WalletApplicationService()


@router.get("")
async def get_wallet_info(
    current_user: Annotated[UserRef, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_wallet_info(db, current_user.id)
    return wrap(data, request)


@router.post("/top-up")
async def top_up(
    body: TopUpRequest,
    current_user: Annotated[UserRef, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.top_up(db, current_user.id, body.amount_cents, body.description)
    return wrap(data, request)


@router.get("/transactions")
async def get_transaction_history(
    current_user: Annotated[UserRef, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.get_transaction_history(db, current_user.id, cursor, limit)
    return wrap(data, request)
