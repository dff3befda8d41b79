"""WalletApplicationService — thin composition layer over the Ledger.

top_up owns its DB transaction (commit on success, rollback on any error).
get_wallet_info and get_transaction_history may create the wallet on first
access, so they commit as well; they never move money.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.sc_common.cents import cents_to_display
from src.sc_wallet.application.ledger import Ledger
from src.sc_wallet.application.schemas import (
    TopUpResponse,
    TransactionHistoryResponse,
    TransactionItem,
    WalletResponse,
    cursor_decode,
    cursor_encode,
)

_DEFAULT_TOP_UP_DESCRIPTION = "Wallet top-up"


class WalletApplicationService:
    def __init__(self, ledger: Ledger | None = None) -> None:
        self._ledger = ledger or Ledger()

    async def get_wallet_info(self, db: AsyncSession, user_id: str) -> WalletResponse:
        try:
            wallet = await self._ledger.get_or_create_wallet(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return WalletResponse.from_wallet(wallet)

    async def top_up(
        self,
        db: AsyncSession,
        user_id: str,
        amount_cents: int,
        description: str | None = None,
    ) -> TopUpResponse:
        try:
            tx = await self._ledger.deposit(
                db, user_id, amount_cents, description or _DEFAULT_TOP_UP_DESCRIPTION
            )
            wallet = await self._ledger.get_wallet(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return TopUpResponse(
            wallet=WalletResponse.from_wallet(wallet),
            transaction_id=tx.id,
            deposited_cents=amount_cents,
            deposited_display=cents_to_display(amount_cents),
        )

    async def get_transaction_history(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
    ) -> TransactionHistoryResponse:
        cursor_id = cursor_decode(cursor)
        try:
            # Fetch limit+1 to detect has_more without a COUNT(*) query
            entries = await self._ledger.list_transactions(db, user_id, cursor_id, limit + 1)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return TransactionHistoryResponse(
            items=[TransactionItem.from_transaction(tx) for tx in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )
