"""WalletRepository — concrete implementation of WalletRepositoryProtocol.

All balance-mutating operations use atomic PostgreSQL UPDATE ... RETURNING.
The UPDATE takes the wallet row lock and keeps it until the caller commits,
which serializes every balance change for one wallet.
A result of 0 rows from a conditional UPDATE means the condition failed
(insufficient funds, status already moved); the Ledger decides what to raise.
Statements that take row locks run under lock_wait_guard, so a lock timeout
or deadlock surfaces as BusyError.

Transaction ownership: The CALLER (Ledger user: application service, bid engine,
settlement sweeper) is responsible for committing.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.sc_common.database import lock_wait_guard
from src.sc_common.errors import InternalError
from src.sc_wallet.domain.models import Wallet, WalletTransaction

# ---------------------------------------------------------------------------
# SQL: wallets
# ---------------------------------------------------------------------------

_WALLET_COLUMNS = "id, user_id, balance, version, created_at, updated_at"

_GET_WALLET_BY_USER_SQL = text(f"""
    SELECT {_WALLET_COLUMNS}
    FROM wallets
    WHERE user_id = :user_id
""")

_INSERT_WALLET_SQL = text("""
    INSERT INTO wallets (user_id)
    VALUES (:user_id)
    ON CONFLICT (user_id) DO NOTHING
""")

_LOCK_WALLET_SQL = text(f"""
    SELECT {_WALLET_COLUMNS}
    FROM wallets
    WHERE id = CAST(:wallet_id AS UUID)
    FOR UPDATE
""")

_CREDIT_SQL = text(f"""
    UPDATE wallets
    SET balance = balance + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE id = CAST(:wallet_id AS UUID)
    RETURNING {_WALLET_COLUMNS}
""")

_DEBIT_SQL = text(f"""
    UPDATE wallets
    SET balance = balance - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE id = CAST(:wallet_id AS UUID) AND balance >= :amount
    RETURNING {_WALLET_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: wallet_transactions
# ---------------------------------------------------------------------------

_TX_COLUMNS = """
    id, CAST(wallet_id AS TEXT) AS wallet_id, user_id, tx_type, status, amount,
    balance_after, listing_id, related_transaction_id, description,
    created_at, updated_at, completed_at
"""

_INSERT_TX_SQL = text(f"""
    INSERT INTO wallet_transactions
        (id, wallet_id, user_id, tx_type, status, amount, balance_after,
         listing_id, related_transaction_id, description, completed_at)
    VALUES
        (:id, CAST(:wallet_id AS UUID), :user_id, :tx_type, :status, :amount, :balance_after,
         :listing_id, :related_transaction_id, :description, :completed_at)
    RETURNING {_TX_COLUMNS}
""")

_GET_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM wallet_transactions
    WHERE id = :transaction_id
""")

_GET_TX_FOR_UPDATE_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM wallet_transactions
    WHERE id = :transaction_id
    FOR UPDATE
""")

_TRANSITION_SQL = text(f"""
    UPDATE wallet_transactions
    SET status = :to_status,
        completed_at = :completed_at,
        updated_at = NOW()
    WHERE id = :transaction_id AND status = :from_status
    RETURNING {_TX_COLUMNS}
""")

_LIST_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM wallet_transactions
    WHERE wallet_id = CAST(:wallet_id AS UUID)
      AND (CAST(:cursor_id AS TEXT) IS NULL
           OR CAST(id AS NUMERIC) < CAST(:cursor_id AS NUMERIC))
    ORDER BY CAST(id AS NUMERIC) DESC
    LIMIT :limit
""")

_LIST_PENDING_HOLDS_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM wallet_transactions
    WHERE listing_id = :listing_id
      AND tx_type = 'BID_HOLD'
      AND status = 'PENDING'
    ORDER BY CAST(id AS NUMERIC) ASC
""")

# Replay: each row's effect is fixed at insert time, whatever its later status.
_SIGNED_SUM = """
    COALESCE(SUM(CASE
        WHEN t.tx_type IN ('DEPOSIT', 'BID_REFUND') THEN t.amount
        ELSE -t.amount
    END), 0)
"""

_REPLAY_SQL = text(f"""
    SELECT {_SIGNED_SUM} AS replayed
    FROM wallet_transactions t
    WHERE t.wallet_id = CAST(:wallet_id AS UUID)
""")

_UNBALANCED_SQL = text(f"""
    SELECT CAST(w.id AS TEXT) AS wallet_id, w.balance, {_SIGNED_SUM} AS replayed
    FROM wallets w
    LEFT JOIN wallet_transactions t ON t.wallet_id = w.id
    GROUP BY w.id, w.balance
    HAVING w.balance <> {_SIGNED_SUM}
""")


def _row_to_wallet(row: object) -> Wallet:
    return Wallet(
        id=str(row.id),  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_tx(row: object) -> WalletTransaction:
    return WalletTransaction(
        id=row.id,  # type: ignore[attr-defined]
        wallet_id=str(row.wallet_id),  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        tx_type=row.tx_type,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        listing_id=row.listing_id,  # type: ignore[attr-defined]
        related_transaction_id=row.related_transaction_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
        completed_at=row.completed_at,  # type: ignore[attr-defined]
    )


class WalletRepository:
    """Concrete repository; balance changes are single conditional UPDATEs."""

    async def get_wallet_by_user_id(
        self, db: AsyncSession, user_id: str
    ) -> Wallet | None:
        result = await db.execute(_GET_WALLET_BY_USER_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def create_wallet_if_absent(
        self, db: AsyncSession, user_id: str
    ) -> Wallet:
        await db.execute(_INSERT_WALLET_SQL, {"user_id": user_id})
        wallet = await self.get_wallet_by_user_id(db, user_id)
        if wallet is None:
            raise InternalError(f"Wallet upsert for user {user_id} returned no row")
        return wallet

    async def lock_wallet(
        self, db: AsyncSession, wallet_id: str
    ) -> Wallet | None:
        async with lock_wait_guard(f"wallet {wallet_id}"):
            result = await db.execute(_LOCK_WALLET_SQL, {"wallet_id": wallet_id})
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def credit(
        self, db: AsyncSession, wallet_id: str, amount: int
    ) -> Wallet | None:
        async with lock_wait_guard(f"wallet {wallet_id}"):
            result = await db.execute(
                _CREDIT_SQL, {"wallet_id": wallet_id, "amount": amount}
            )
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def debit_if_sufficient(
        self, db: AsyncSession, wallet_id: str, amount: int
    ) -> Wallet | None:
        async with lock_wait_guard(f"wallet {wallet_id}"):
            result = await db.execute(
                _DEBIT_SQL, {"wallet_id": wallet_id, "amount": amount}
            )
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def insert_transaction(
        self, db: AsyncSession, tx: WalletTransaction
    ) -> WalletTransaction:
        result = await db.execute(
            _INSERT_TX_SQL,
            {
                "id": tx.id,
                "wallet_id": tx.wallet_id,
                "user_id": tx.user_id,
                "tx_type": tx.tx_type,
                "status": tx.status,
                "amount": tx.amount,
                "balance_after": tx.balance_after,
                "listing_id": tx.listing_id,
                "related_transaction_id": tx.related_transaction_id,
                "description": tx.description,
                "completed_at": tx.completed_at,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Transaction insert returned no rows")
        return _row_to_tx(row)

    async def get_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> WalletTransaction | None:
        result = await db.execute(_GET_TX_SQL, {"transaction_id": transaction_id})
        row = result.fetchone()
        return _row_to_tx(row) if row else None

    async def get_transaction_for_update(
        self, db: AsyncSession, transaction_id: str
    ) -> WalletTransaction | None:
        async with lock_wait_guard(f"transaction {transaction_id}"):
            result = await db.execute(
                _GET_TX_FOR_UPDATE_SQL, {"transaction_id": transaction_id}
            )
        row = result.fetchone()
        return _row_to_tx(row) if row else None

    async def transition_status(
        self,
        db: AsyncSession,
        transaction_id: str,
        from_status: str,
        to_status: str,
        completed_at: datetime,
    ) -> WalletTransaction | None:
        async with lock_wait_guard(f"transaction {transaction_id}"):
            result = await db.execute(
                _TRANSITION_SQL,
                {
                    "transaction_id": transaction_id,
                    "from_status": from_status,
                    "to_status": to_status,
                    "completed_at": completed_at,
                },
            )
        row = result.fetchone()
        return _row_to_tx(row) if row else None

    async def list_transactions(
        self,
        db: AsyncSession,
        wallet_id: str,
        cursor_id: str | None,
        limit: int,
    ) -> list[WalletTransaction]:
        result = await db.execute(
            _LIST_TX_SQL,
            {"wallet_id": wallet_id, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_tx(row) for row in result.fetchall()]

    async def list_pending_holds(
        self, db: AsyncSession, listing_id: str
    ) -> list[WalletTransaction]:
        result = await db.execute(_LIST_PENDING_HOLDS_SQL, {"listing_id": listing_id})
        return [_row_to_tx(row) for row in result.fetchall()]

    async def replayed_balance(
        self, db: AsyncSession, wallet_id: str
    ) -> int:
        result = await db.execute(_REPLAY_SQL, {"wallet_id": wallet_id})
        return int(result.scalar_one())

    async def find_unbalanced_wallets(
        self, db: AsyncSession
    ) -> list[tuple[str, int, int]]:
        result = await db.execute(_UNBALANCED_SQL)
        return [(row.wallet_id, row.balance, int(row.replayed)) for row in result.fetchall()]
