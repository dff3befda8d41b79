"""Tests for sc_common.errors and sc_common.response."""

from unittest.mock import MagicMock

from pydantic import BaseModel

from src.sc_common.errors import (
    AppError,
    AuctionClosedError,
    BidConflictError,
    BidTooLowError,
    BusyError,
    ConflictError,
    InsufficientFundsError,
    InvalidBidError,
    InvalidStateError,
    InvalidTransactionStateError,
    LeadingHoldRefundError,
    ListingNotBiddableError,
    ListingNotFoundError,
    NotFoundError,
    TransactionNotFoundError,
    WalletNotFoundError,
    WinningHoldMissingError,
)
from src.sc_common.response import ApiResponse, error_response, success_response, wrap


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1, message="x"), Exception)


class TestSpecificErrors:
    def test_insufficient_funds(self) -> None:
        err = InsufficientFundsError(required=5000, available=3000)
        assert err.code == 2001
        assert err.http_status == 422
        assert err.required == 5000
        assert err.available == 3000
        assert "5000" in err.message

    def test_bid_too_low_is_distinct_from_insufficient_funds(self) -> None:
        err = BidTooLowError(amount=50, minimum=51)
        assert err.code == 4001
        assert err.minimum == 51
        assert err.code != InsufficientFundsError(1, 0).code

    def test_busy_is_retryable_503(self) -> None:
        err = BusyError("listing lst-1")
        assert err.code == 9003
        assert err.http_status == 503
        assert "lst-1" in err.message


class TestCategories:
    def test_not_found(self) -> None:
        for err in (
            WalletNotFoundError("u"),
            TransactionNotFoundError("t"),
            ListingNotFoundError("l"),
        ):
            assert isinstance(err, NotFoundError)
            assert err.http_status == 404

    def test_invalid_state(self) -> None:
        for err in (
            InvalidTransactionStateError("t", "BID_HOLD", "REFUNDED", "COMPLETED"),
            ListingNotBiddableError("l", "status is PENDING"),
            AuctionClosedError("l"),
            WinningHoldMissingError("l", "u", 75),
            LeadingHoldRefundError("t", "l"),
        ):
            assert isinstance(err, InvalidStateError)

    def test_invalid_bid(self) -> None:
        assert isinstance(BidTooLowError(1, 2), InvalidBidError)

    def test_conflicts(self) -> None:
        assert isinstance(BidConflictError("l"), ConflictError)
        assert isinstance(BusyError("l"), ConflictError)
        assert BidConflictError("l").http_status == 409


class TestApiResponse:
    def test_success_response(self) -> None:
        resp = success_response({"x": 1})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"x": 1}
        assert resp.request_id.startswith("req_")

    def test_error_response(self) -> None:
        resp = error_response(4001, "too low")
        assert isinstance(resp, ApiResponse)
        assert resp.code == 4001
        assert resp.data is None

    def test_wrap_dumps_models_and_keeps_request_id(self) -> None:
        class Item(BaseModel):
            n: int

        request = MagicMock()
        request.state.request_id = "req_abc"
        resp = wrap([Item(n=1), Item(n=2)], request)
        assert resp.data == [{"n": 1}, {"n": 2}]
        assert resp.request_id == "req_abc"
