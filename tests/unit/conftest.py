"""In-memory fakes of the repository Protocols, for behavioral and concurrency tests.

FakeSession mimics the transaction behavior the core relies on:
  - begin_nested() snapshots the shared store and restores it if the block raises
  - rollback() restores the store to the last commit (or session start)
Each fake repository method yields to the event loop once, so concurrent
coroutines interleave the way they would around real DB round-trips.
"""

import asyncio
import copy
import dataclasses
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from src.sc_bidding.domain.outbid_policy import hold_until_settlement
from src.sc_bidding.engine.engine import BidEngine
from src.sc_common.datetime_utils import utc_now
from src.sc_common.enums import ListingKind, ListingStatus
from src.sc_listing.domain.models import AuctionState, Listing
from src.sc_settlement.domain.sweeper import SettlementSweeper
from src.sc_wallet.application.ledger import Ledger
from src.sc_wallet.domain.models import Wallet, WalletTransaction, balance_effect


class FakeStore:
    def __init__(self) -> None:
        self.wallets: dict[str, Wallet] = {}
        self.transactions: dict[str, WalletTransaction] = {}
        self.listings: dict[str, Listing] = {}

    def snapshot(self) -> tuple:
        return copy.deepcopy((self.wallets, self.transactions, self.listings))

    def restore(self, snap: tuple) -> None:
        self.wallets, self.transactions, self.listings = copy.deepcopy(snap)


class FakeSession:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.commits = 0
        self.rollbacks = 0
        self.execute = AsyncMock()
        self._committed = store.snapshot()

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    @asynccontextmanager
    async def begin_nested(self) -> AsyncIterator[None]:
        snap = self.store.snapshot()
        try:
            yield
        except BaseException:
            self.store.restore(snap)
            raise

    async def commit(self) -> None:
        self.commits += 1
        self._committed = self.store.snapshot()

    async def rollback(self) -> None:
        self.rollbacks += 1
        self.store.restore(self._committed)


class FakeWalletRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.fail_debits = False
        self.locked_wallets: list[str] = []   # lock_wallet calls, in order

    def _by_user(self, user_id: str) -> Wallet | None:
        for wallet in self.store.wallets.values():
            if wallet.user_id == user_id:
                return wallet
        return None

    async def get_wallet_by_user_id(self, db, user_id):
        await asyncio.sleep(0)
        wallet = self._by_user(user_id)
        return dataclasses.replace(wallet) if wallet else None

    async def create_wallet_if_absent(self, db, user_id):
        await asyncio.sleep(0)
        wallet = self._by_user(user_id)
        if wallet is None:
            wallet = Wallet(id=f"w-{user_id}", user_id=user_id, balance=0, version=0)
            self.store.wallets[wallet.id] = wallet
        return dataclasses.replace(wallet)

    async def lock_wallet(self, db, wallet_id):
        await asyncio.sleep(0)
        self.locked_wallets.append(wallet_id)
        wallet = self.store.wallets.get(wallet_id)
        return dataclasses.replace(wallet) if wallet else None

    async def credit(self, db, wallet_id, amount):
        await asyncio.sleep(0)
        wallet = self.store.wallets.get(wallet_id)
        if wallet is None:
            return None
        wallet.balance += amount
        wallet.version += 1
        return dataclasses.replace(wallet)

    async def debit_if_sufficient(self, db, wallet_id, amount):
        await asyncio.sleep(0)
        wallet = self.store.wallets.get(wallet_id)
        if wallet is None or self.fail_debits or wallet.balance < amount:
            return None
        wallet.balance -= amount
        wallet.version += 1
        return dataclasses.replace(wallet)

    async def insert_transaction(self, db, tx):
        await asyncio.sleep(0)
        stored = dataclasses.replace(tx, created_at=tx.created_at or utc_now())
        self.store.transactions[stored.id] = stored
        return dataclasses.replace(stored)

    async def get_transaction(self, db, transaction_id):
        await asyncio.sleep(0)
        tx = self.store.transactions.get(transaction_id)
        return dataclasses.replace(tx) if tx else None

    async def get_transaction_for_update(self, db, transaction_id):
        await asyncio.sleep(0)
        tx = self.store.transactions.get(transaction_id)
        return dataclasses.replace(tx) if tx else None

    async def transition_status(self, db, transaction_id, from_status, to_status, completed_at):
        await asyncio.sleep(0)
        tx = self.store.transactions.get(transaction_id)
        if tx is None or tx.status != from_status:
            return None
        tx.status = to_status
        tx.completed_at = completed_at
        return dataclasses.replace(tx)

    async def list_transactions(self, db, wallet_id, cursor_id, limit):
        await asyncio.sleep(0)
        rows = [t for t in self.store.transactions.values() if t.wallet_id == wallet_id]
        if cursor_id is not None:
            rows = [t for t in rows if int(t.id) < int(cursor_id)]
        rows.sort(key=lambda t: int(t.id), reverse=True)
        return [dataclasses.replace(t) for t in rows[:limit]]

    async def list_pending_holds(self, db, listing_id):
        await asyncio.sleep(0)
        rows = [
            t for t in self.store.transactions.values()
            if t.listing_id == listing_id and t.is_pending_hold
        ]
        rows.sort(key=lambda t: int(t.id))
        return [dataclasses.replace(t) for t in rows]

    def _replay(self, wallet_id: str) -> int:
        return sum(
            balance_effect(t.tx_type, t.amount)
            for t in self.store.transactions.values()
            if t.wallet_id == wallet_id
        )

    async def replayed_balance(self, db, wallet_id):
        await asyncio.sleep(0)
        return self._replay(wallet_id)

    async def find_unbalanced_wallets(self, db):
        await asyncio.sleep(0)
        return [
            (w.id, w.balance, self._replay(w.id))
            for w in self.store.wallets.values()
            if w.balance != self._replay(w.id)
        ]


class FakeListingRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.locked_ids: set[str] = set()   # rows "held" by another transaction

    async def get_listing(self, db, listing_id):
        await asyncio.sleep(0)
        listing = self.store.listings.get(listing_id)
        return dataclasses.replace(listing) if listing else None

    async def get_listing_for_update(self, db, listing_id, skip_locked=False):
        await asyncio.sleep(0)
        if skip_locked and listing_id in self.locked_ids:
            return None
        listing = self.store.listings.get(listing_id)
        return dataclasses.replace(listing) if listing else None

    async def update_auction_state(self, db, listing_id, expected_price, state: AuctionState):
        await asyncio.sleep(0)
        listing = self.store.listings.get(listing_id)
        if (
            listing is None
            or listing.settled_at is not None
            or listing.current_price != expected_price
        ):
            return None
        listing.current_price = state.current_price
        listing.current_leader_id = state.current_leader_id
        listing.auction_start_at = listing.auction_start_at or state.auction_start_at
        listing.auction_end_at = listing.auction_end_at or state.auction_end_at
        listing.version += 1
        return dataclasses.replace(listing)

    async def list_expired_unsettled(self, db, now, limit, after=None):
        await asyncio.sleep(0)
        rows = [
            item for item in self.store.listings.values()
            if item.kind == ListingKind.AUCTION
            and item.settled_at is None
            and item.auction_end_at is not None
            and item.auction_end_at < now
        ]
        keys = sorted((item.auction_end_at, item.id) for item in rows)
        if after is not None:
            keys = [key for key in keys if key > after]
        return keys[:limit]

    async def mark_settled(self, db, listing_id, outcome, settled_at):
        await asyncio.sleep(0)
        listing = self.store.listings.get(listing_id)
        if listing is None or listing.settled_at is not None:
            return False
        listing.settled_at = settled_at
        listing.settlement_outcome = outcome
        listing.version += 1
        return True

    async def list_open_auctions(self, db, limit):
        await asyncio.sleep(0)
        rows = [
            item for item in self.store.listings.values()
            if item.kind == ListingKind.AUCTION and item.status == ListingStatus.APPROVED
        ]
        return [dataclasses.replace(item) for item in rows[:limit]]


def _make_listing(
    listing_id: str = "lst-1",
    initial_price: int = 50,
    *,
    status: str = ListingStatus.APPROVED.value,
    kind: str = ListingKind.AUCTION.value,
    current_price: int | None = None,
    current_leader_id: str | None = None,
    auction_start_at: datetime | None = None,
    auction_end_at: datetime | None = None,
    settled_at: datetime | None = None,
    settlement_outcome: str | None = None,
) -> Listing:
    return Listing(
        id=listing_id,
        seller_id="seller-1",
        title=f"Listing {listing_id}",
        initial_price=initial_price,
        status=status,
        kind=kind,
        current_price=current_price,
        current_leader_id=current_leader_id,
        auction_start_at=auction_start_at,
        auction_end_at=auction_end_at,
        settled_at=settled_at,
        settlement_outcome=settlement_outcome,
        version=0,
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def db(store: FakeStore) -> FakeSession:
    return FakeSession(store)


@pytest.fixture
def wallet_repo(store: FakeStore) -> FakeWalletRepository:
    return FakeWalletRepository(store)


@pytest.fixture
def listing_repo(store: FakeStore) -> FakeListingRepository:
    return FakeListingRepository(store)


@pytest.fixture
def ledger(wallet_repo: FakeWalletRepository) -> Ledger:
    return Ledger(repo=wallet_repo)


@pytest.fixture
def bid_engine(ledger: Ledger, listing_repo: FakeListingRepository) -> BidEngine:
    return BidEngine(
        ledger=ledger,
        listings=listing_repo,
        outbid_policy=hold_until_settlement,
        lock_timeout_seconds=1.0,
        auction_duration_hours=24,
    )


@pytest.fixture
def sweeper(
    store: FakeStore, ledger: Ledger, listing_repo: FakeListingRepository
) -> SettlementSweeper:
    return SettlementSweeper(
        ledger=ledger,
        listings=listing_repo,
        session_factory=lambda: FakeSession(store),
        batch_size=100,
    )


@pytest.fixture
def fund(ledger: Ledger, db: FakeSession):
    """fund(user_id, cents): deposit into a user's wallet."""

    async def _fund(user_id: str, amount: int) -> None:
        await ledger.deposit(db, user_id, amount, "test funding")

    return _fund


@pytest.fixture
def add_listing(store: FakeStore):
    """add_listing(listing_id, initial_price, **fields): store a listing and return it."""

    def _add(listing_id: str = "lst-1", initial_price: int = 50, **fields) -> Listing:
        listing = _make_listing(listing_id, initial_price, **fields)
        store.listings[listing.id] = listing
        return listing

    return _add


@pytest.fixture
def new_session(store: FakeStore):
    """new_session(): a fresh FakeSession over the shared store, one per concurrent caller."""
    return lambda: FakeSession(store)
