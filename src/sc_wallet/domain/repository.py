"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock or an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.

Every method runs inside the caller's transaction; none of them commit.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.sc_wallet.domain.models import Wallet, WalletTransaction


class WalletRepositoryProtocol(Protocol):
    async def get_wallet_by_user_id(
        self, db: AsyncSession, user_id: str
    ) -> Wallet | None: ...

    async def create_wallet_if_absent(
        self, db: AsyncSession, user_id: str
    ) -> Wallet: ...

    async def lock_wallet(
        self, db: AsyncSession, wallet_id: str
    ) -> Wallet | None: ...

    async def credit(
        self, db: AsyncSession, wallet_id: str, amount: int
    ) -> Wallet | None: ...

    async def debit_if_sufficient(
        self, db: AsyncSession, wallet_id: str, amount: int
    ) -> Wallet | None: ...

    async def insert_transaction(
        self, db: AsyncSession, tx: WalletTransaction
    ) -> WalletTransaction: ...

    async def get_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> WalletTransaction | None: ...

    async def get_transaction_for_update(
        self, db: AsyncSession, transaction_id: str
    ) -> WalletTransaction | None: ...

    async def transition_status(
        self,
        db: AsyncSession,
        transaction_id: str,
        from_status: str,
        to_status: str,
        completed_at: datetime,
    ) -> WalletTransaction | None: ...

    async def list_transactions(
        self,
        db: AsyncSession,
        wallet_id: str,
        cursor_id: str | None,
        limit: int,
    ) -> list[WalletTransaction]: ...

    async def list_pending_holds(
        self, db: AsyncSession, listing_id: str
    ) -> list[WalletTransaction]: ...

    async def replayed_balance(
        self, db: AsyncSession, wallet_id: str
    ) -> int: ...

    async def find_unbalanced_wallets(
        self, db: AsyncSession
    ) -> list[tuple[str, int, int]]: ...
