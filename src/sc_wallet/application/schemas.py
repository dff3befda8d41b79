"""Pydantic schemas and cursor utilities for sc_wallet API."""

import base64
import json
from datetime import datetime

from pydantic import BaseModel, Field

from src.sc_common.cents import cents_to_display
from src.sc_wallet.domain.models import Wallet, WalletTransaction

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: str) -> str:
    """Encode a transaction id into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> str | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        last_id = str(payload["id"])
    except Exception:
        return None
    return last_id if last_id.isdigit() else None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class TopUpRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Amount to add in cents")
    description: str | None = Field(None, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class WalletResponse(BaseModel):
    wallet_id: str
    user_id: str
    balance_cents: int
    balance_display: str
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_wallet(cls, wallet: Wallet) -> "WalletResponse":
        return cls(
            wallet_id=wallet.id,
            user_id=wallet.user_id,
            balance_cents=wallet.balance,
            balance_display=cents_to_display(wallet.balance),
            created_at=wallet.created_at,
            updated_at=wallet.updated_at,
        )


class TopUpResponse(BaseModel):
    wallet: WalletResponse
    transaction_id: str
    deposited_cents: int
    deposited_display: str


class TransactionItem(BaseModel):
    id: str
    wallet_id: str
    tx_type: str
    status: str
    amount_cents: int
    amount_display: str       # signed: holds/purchases negative, deposits/refunds positive
    balance_after_cents: int
    listing_id: str | None
    related_transaction_id: str | None
    description: str | None
    created_at: datetime | None
    completed_at: datetime | None

    @classmethod
    def from_transaction(cls, tx: WalletTransaction) -> "TransactionItem":
        return cls(
            id=tx.id,
            wallet_id=tx.wallet_id,
            tx_type=tx.tx_type,
            status=tx.status,
            amount_cents=tx.amount,
            amount_display=cents_to_display(tx.signed_amount),
            balance_after_cents=tx.balance_after,
            listing_id=tx.listing_id,
            related_transaction_id=tx.related_transaction_id,
            description=tx.description,
            created_at=tx.created_at,
            completed_at=tx.completed_at,
        )


class TransactionHistoryResponse(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool
