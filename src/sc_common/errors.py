"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Wallet / ledger
  3xxx: Listing
  4xxx: Bid
  9xxx: System

Every concrete error also derives from one category class (NotFoundError,
InvalidStateError, ...) so callers can branch on the kind of failure without
enumerating codes.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- Categories ---

class NotFoundError(AppError):
    pass


class InvalidStateError(AppError):
    pass


class InvalidBidError(AppError):
    pass


class ConflictError(AppError):
    """Retryable: the caller lost a race or could not get a lock in time."""


# --- 1xxx: Auth/User ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired credentials", 401)


# --- 2xxx: Wallet / ledger ---

class InsufficientFundsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            2001,
            f"Insufficient wallet balance: required {required} cents, "
            f"available {available} cents. Please top up your wallet.",
            422,
        )


class WalletNotFoundError(NotFoundError):
    def __init__(self, ref: str) -> None:
        super().__init__(2002, f"Wallet not found: {ref}", 404)


class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(2003, f"Transaction not found: {transaction_id}", 404)


class InvalidTransactionStateError(InvalidStateError):
    def __init__(self, transaction_id: str, tx_type: str, status: str, target: str) -> None:
        super().__init__(
            2004,
            f"Transaction {transaction_id} ({tx_type}/{status}) cannot move to {target}",
            409,
        )


class InvalidAmountError(AppError):
    def __init__(self, amount: int, rule: str) -> None:
        super().__init__(2005, f"Invalid amount {amount}: {rule}", 422)


class LeadingHoldRefundError(InvalidStateError):
    def __init__(self, transaction_id: str, listing_id: str) -> None:
        super().__init__(
            2006,
            f"Transaction {transaction_id} backs the leading bid on listing {listing_id} "
            "and is released only by settlement",
            409,
        )


# --- 3xxx: Listing ---

class ListingNotFoundError(NotFoundError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3001, f"Listing not found: {listing_id}", 404)


class ListingNotBiddableError(InvalidStateError):
    def __init__(self, listing_id: str, reason: str) -> None:
        super().__init__(3002, f"Listing {listing_id} is not open for bidding: {reason}", 422)


class AuctionClosedError(InvalidStateError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3003, f"Bidding has ended for listing {listing_id}", 422)


class WinningHoldMissingError(InvalidStateError):
    def __init__(self, listing_id: str, leader_id: str, price: int) -> None:
        super().__init__(
            3004,
            f"Listing {listing_id} has no pending hold of {price} cents for leader {leader_id}",
            409,
        )


# --- 4xxx: Bid ---

class BidTooLowError(InvalidBidError):
    def __init__(self, amount: int, minimum: int) -> None:
        self.minimum = minimum
        super().__init__(4001, f"Bid amount {amount} is below the minimum of {minimum} cents", 422)


class BidConflictError(ConflictError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(
            4002, f"Listing {listing_id} changed while the bid was processed; retry", 409
        )


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class BusyError(ConflictError):
    def __init__(self, resource: str) -> None:
        super().__init__(9003, f"Resource busy, retry later: {resource}", 503)
