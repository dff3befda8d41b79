"""Domain models for sc_wallet — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.sc_common.enums import TransactionStatus, TransactionType
from src.sc_common.errors import InvalidTransactionStateError

# Each transaction type has exactly one initial status.
_INITIAL_STATUS: dict[str, TransactionStatus] = {
    TransactionType.DEPOSIT: TransactionStatus.COMPLETED,
    TransactionType.PURCHASE: TransactionStatus.COMPLETED,
    TransactionType.BID_HOLD: TransactionStatus.PENDING,
    TransactionType.BID_REFUND: TransactionStatus.COMPLETED,
}

# (type, current status) -> statuses it may move to. Anything absent is terminal.
_TRANSITIONS: dict[tuple[str, str], frozenset[str]] = {
    (TransactionType.BID_HOLD, TransactionStatus.PENDING): frozenset(
        {TransactionStatus.COMPLETED, TransactionStatus.REFUNDED}
    ),
}

# Signed balance effect per type, applied once at insert time.
_BALANCE_SIGN: dict[str, int] = {
    TransactionType.DEPOSIT: 1,
    TransactionType.PURCHASE: -1,
    TransactionType.BID_HOLD: -1,
    TransactionType.BID_REFUND: 1,
}


@dataclass
class Wallet:
    id: str
    user_id: str
    balance: int    # cents, always >= 0
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class WalletTransaction:
    id: str
    wallet_id: str
    user_id: str
    tx_type: str                     # TransactionType value
    status: str                      # TransactionStatus value
    amount: int                      # cents, always >= 0; direction comes from tx_type
    balance_after: int               # wallet balance snapshot right after insert
    listing_id: str | None = None
    related_transaction_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def signed_amount(self) -> int:
        return balance_effect(self.tx_type, self.amount)

    @property
    def is_pending_hold(self) -> bool:
        return (
            self.tx_type == TransactionType.BID_HOLD
            and self.status == TransactionStatus.PENDING
        )


def initial_status(tx_type: str) -> str:
    return _INITIAL_STATUS[tx_type].value


def balance_effect(tx_type: str, amount: int) -> int:
    return _BALANCE_SIGN[tx_type] * amount


def can_transition(tx_type: str, current: str, target: str) -> bool:
    return target in _TRANSITIONS.get((tx_type, current), frozenset())


def ensure_transition(tx: WalletTransaction, target: str) -> None:
    """Raise InvalidTransactionStateError unless `tx` may move to `target`."""
    if not can_transition(tx.tx_type, tx.status, target):
        raise InvalidTransactionStateError(tx.id, tx.tx_type, tx.status, target)
