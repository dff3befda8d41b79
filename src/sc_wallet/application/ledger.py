"""Ledger — single source of truth for money movement.

Every balance change goes through here and is paired with exactly one
wallet_transactions row written in the same DB transaction. Reserving funds
for a bid is an immediate debit plus a PENDING BID_HOLD row; there is no
separate "frozen" balance. The hold later moves to COMPLETED (sale) or
REFUNDED (a new BID_REFUND row credits the money back).

All methods run in the caller's transaction and never commit, so a caller can
combine a reservation with its own writes (e.g. the listing's auction state)
and have both commit or roll back together.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.sc_common.database import set_lock_timeout
from src.sc_common.datetime_utils import utc_now
from src.sc_common.enums import TransactionStatus, TransactionType
from src.sc_common.errors import (
    InsufficientFundsError,
    InternalError,
    InvalidAmountError,
    InvalidTransactionStateError,
    TransactionNotFoundError,
    WalletNotFoundError,
)
from src.sc_common.id_generator import generate_id
from src.sc_wallet.domain.models import (
    Wallet,
    WalletTransaction,
    ensure_transition,
    initial_status,
)
from src.sc_wallet.domain.repository import WalletRepositoryProtocol
from src.sc_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)


class Ledger:
    def __init__(self, repo: WalletRepositoryProtocol | None = None) -> None:
        self._repo: WalletRepositoryProtocol = repo or WalletRepository()

    # ------------------------------------------------------------------
    # Wallet lookup
    # ------------------------------------------------------------------

    async def get_or_create_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        wallet = await self._repo.get_wallet_by_user_id(db, user_id)
        if wallet is not None:
            return wallet
        wallet = await self._repo.create_wallet_if_absent(db, user_id)
        logger.info("Wallet created: user=%s wallet=%s", user_id, wallet.id)
        return wallet

    async def get_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        wallet = await self._repo.get_wallet_by_user_id(db, user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        return wallet

    async def lock_wallets(
        self, db: AsyncSession, user_ids: list[str]
    ) -> list[Wallet]:
        """Row-lock several users' wallets, always in wallet-id order.

        For callers that move money in more than one wallet in one transaction.
        """
        wallets = [await self.get_or_create_wallet(db, u) for u in sorted(set(user_ids))]
        await self._bound_lock_waits(db)
        locked: list[Wallet] = []
        for wallet in sorted(wallets, key=lambda w: w.id):
            row = await self._repo.lock_wallet(db, wallet.id)
            if row is None:
                raise WalletNotFoundError(wallet.id)
            locked.append(row)
        return locked

    async def has_sufficient_balance(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> bool:
        if amount < 0:
            raise InvalidAmountError(amount, "must be >= 0")
        wallet = await self.get_or_create_wallet(db, user_id)
        return wallet.balance >= amount

    # ------------------------------------------------------------------
    # Balance-changing operations
    # ------------------------------------------------------------------

    async def deposit(
        self, db: AsyncSession, user_id: str, amount: int, description: str
    ) -> WalletTransaction:
        if amount <= 0:
            raise InvalidAmountError(amount, "deposit must be > 0")
        wallet = await self.get_or_create_wallet(db, user_id)
        await self._bound_lock_waits(db)
        credited = await self._repo.credit(db, wallet.id, amount)
        if credited is None:
            raise WalletNotFoundError(wallet.id)
        return await self._append(
            db, credited, TransactionType.DEPOSIT, amount, description=description
        )

    async def reserve(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        listing_id: str,
        description: str,
    ) -> WalletTransaction:
        """Debit `amount` now and record it as a PENDING bid hold on `listing_id`."""
        return await self._debit(
            db, user_id, amount, TransactionType.BID_HOLD, listing_id, description
        )

    async def deduct(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        listing_id: str,
        description: str,
    ) -> WalletTransaction:
        """Immediate (non-auction) purchase: debit and record a COMPLETED purchase."""
        return await self._debit(
            db, user_id, amount, TransactionType.PURCHASE, listing_id, description
        )

    async def complete_reservation(
        self, db: AsyncSession, transaction_id: str
    ) -> WalletTransaction:
        """Finalize a hold as a sale. The money already left the wallet at reserve time."""
        hold, _ = await self._lock_for_transition(
            db, transaction_id, TransactionStatus.COMPLETED
        )
        completed = await self._move(db, hold, TransactionStatus.COMPLETED)
        logger.info(
            "Hold completed: tx=%s listing=%s user=%s amount=%d",
            completed.id, completed.listing_id, completed.user_id, completed.amount,
        )
        return completed

    async def refund_reservation(
        self, db: AsyncSession, transaction_id: str
    ) -> WalletTransaction:
        """Mark a hold REFUNDED and credit its amount back through a new BID_REFUND row.

        Returns the BID_REFUND row.
        """
        hold, wallet = await self._lock_for_transition(
            db, transaction_id, TransactionStatus.REFUNDED
        )
        await self._move(db, hold, TransactionStatus.REFUNDED)
        credited = await self._repo.credit(db, wallet.id, hold.amount)
        if credited is None:
            raise WalletNotFoundError(wallet.id)
        refund = await self._append(
            db,
            credited,
            TransactionType.BID_REFUND,
            hold.amount,
            listing_id=hold.listing_id,
            related_transaction_id=hold.id,
            description=f"Refund for bid on listing {hold.listing_id}",
        )
        logger.info(
            "Hold refunded: tx=%s refund_tx=%s listing=%s user=%s amount=%d",
            hold.id, refund.id, hold.listing_id, hold.user_id, hold.amount,
        )
        return refund

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_transactions(
        self, db: AsyncSession, user_id: str, cursor_id: str | None, limit: int
    ) -> list[WalletTransaction]:
        wallet = await self.get_or_create_wallet(db, user_id)
        return await self._repo.list_transactions(db, wallet.id, cursor_id, limit)

    async def get_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> WalletTransaction:
        tx = await self._repo.get_transaction(db, transaction_id)
        if tx is None:
            raise TransactionNotFoundError(transaction_id)
        return tx

    async def list_pending_holds(
        self, db: AsyncSession, listing_id: str
    ) -> list[WalletTransaction]:
        return await self._repo.list_pending_holds(db, listing_id)

    async def replayed_balance(self, db: AsyncSession, wallet_id: str) -> int:
        """Balance recomputed from zero by replaying the wallet's transactions."""
        return await self._repo.replayed_balance(db, wallet_id)

    async def find_unbalanced_wallets(
        self, db: AsyncSession
    ) -> list[tuple[str, int, int]]:
        """(wallet_id, cached balance, replayed balance) for every mismatching wallet."""
        return await self._repo.find_unbalanced_wallets(db)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _bound_lock_waits(self, db: AsyncSession) -> None:
        await set_lock_timeout(db, settings.DB_LOCK_TIMEOUT_MS)

    async def _debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        tx_type: TransactionType,
        listing_id: str,
        description: str,
    ) -> WalletTransaction:
        if amount < 0:
            raise InvalidAmountError(amount, "must be >= 0")
        wallet = await self.get_or_create_wallet(db, user_id)
        await self._bound_lock_waits(db)
        # Balance check and update are one conditional UPDATE.
        debited = await self._repo.debit_if_sufficient(db, wallet.id, amount)
        if debited is None:
            current = await self._repo.get_wallet_by_user_id(db, user_id)
            available = current.balance if current else 0
            raise InsufficientFundsError(amount, available)
        return await self._append(
            db, debited, tx_type, amount, listing_id=listing_id, description=description
        )

    async def _append(
        self,
        db: AsyncSession,
        wallet: Wallet,
        tx_type: TransactionType,
        amount: int,
        *,
        listing_id: str | None = None,
        related_transaction_id: str | None = None,
        description: str | None = None,
    ) -> WalletTransaction:
        status = initial_status(tx_type)
        tx = WalletTransaction(
            id=generate_id(),
            wallet_id=wallet.id,
            user_id=wallet.user_id,
            tx_type=tx_type.value,
            status=status,
            amount=amount,
            balance_after=wallet.balance,
            listing_id=listing_id,
            related_transaction_id=related_transaction_id,
            description=description,
            completed_at=utc_now() if status == TransactionStatus.COMPLETED else None,
        )
        return await self._repo.insert_transaction(db, tx)

    async def _lock_for_transition(
        self, db: AsyncSession, transaction_id: str, target: TransactionStatus
    ) -> tuple[WalletTransaction, Wallet]:
        await self._bound_lock_waits(db)
        tx = await self._repo.get_transaction_for_update(db, transaction_id)
        if tx is None:
            raise TransactionNotFoundError(transaction_id)
        ensure_transition(tx, target.value)
        wallet = await self._repo.lock_wallet(db, tx.wallet_id)
        if wallet is None:
            raise InternalError(
                f"Transaction {transaction_id} references missing wallet {tx.wallet_id}"
            )
        return tx, wallet

    async def _move(
        self, db: AsyncSession, tx: WalletTransaction, target: TransactionStatus
    ) -> WalletTransaction:
        moved = await self._repo.transition_status(
            db, tx.id, tx.status, target.value, utc_now()
        )
        if moved is None:
            # Row lock was held, so only a concurrent writer outside the lock gets here.
            raise InvalidTransactionStateError(tx.id, tx.tx_type, tx.status, target.value)
        return moved
