# src/sc_settlement/api/router.py
"""Admin REST API."""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.sc_common.database import get_db_session
from src.sc_common.response import ApiResponse, success_response
from src.sc_gateway.auth.dependencies import UserRef, get_current_user
from src.sc_settlement.application.service import SettlementAdminService

router = APIRouter(prefix="/admin", tags=["admin"])
_service = SettlementAdminService()


@router.post("/settlement/run")
async def run_settlement(
    current_user: Annotated[UserRef, Depends(get_current_user)],
) -> ApiResponse:
    result = await _service.run_settlement()
    return success_response(result)


@router.post("/transactions/{transaction_id}/refund")
async def refund_hold(
    transaction_id: str,
    current_user: Annotated[UserRef, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.refund_hold(transaction_id, db)
    return success_response(result)


@router.get("/invariants")
async def check_invariants(
    current_user: Annotated[UserRef, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.check_invariants(db)
    return success_response(result)
