"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class ListingStatus(str, Enum):
    """Moderation status, owned by the catalog layer."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ListingKind(str, Enum):
    FIXED_PRICE = "FIXED_PRICE"
    AUCTION = "AUCTION"


class SettlementOutcome(str, Enum):
    SOLD = "SOLD"
    NO_BIDS = "NO_BIDS"


class BidStatus(str, Enum):
    """Derived auction phase, never stored."""
    NOT_STARTED = "NOT_STARTED"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    SETTLED = "SETTLED"


class TransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    PURCHASE = "PURCHASE"
    BID_HOLD = "BID_HOLD"
    BID_REFUND = "BID_REFUND"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"


class OutbidPolicyName(str, Enum):
    HOLD_UNTIL_SETTLEMENT = "HOLD_UNTIL_SETTLEMENT"
    REFUND_IMMEDIATELY = "REFUND_IMMEDIATELY"
