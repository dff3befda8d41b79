"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Requires a running PostgreSQL + Redis with migrations applied.
"""

import uuid
from collections.abc import Awaitable, Callable

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.main import app
from src.sc_common.database import async_session_factory
from src.sc_gateway.auth.jwt_handler import create_access_token


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest_asyncio.fixture(loop_scope="session")
async def new_user() -> Callable[[], dict[str, str]]:
    """new_user(): auth headers for a fresh, unique user id."""
    return lambda: auth_headers(f"it_{uuid.uuid4().hex[:10]}")


@pytest_asyncio.fixture(loop_scope="session")
async def seed_listing() -> Callable[..., Awaitable[str]]:
    """seed_listing(initial_price_cents): insert an approved auction listing, return its id.

    Listings are owned by the catalog service, so tests write the row directly.
    """

    async def _seed(initial_price: int = 5000) -> str:
        listing_id = f"lst-it-{uuid.uuid4().hex[:12]}"
        async with async_session_factory() as db:
            await db.execute(
                text("""
                    INSERT INTO listings (id, seller_id, title, initial_price, status, kind)
                    VALUES (:id, 'seller-it', 'Integration listing', :price,
                            'APPROVED', 'AUCTION')
                """),
                {"id": listing_id, "price": initial_price},
            )
            await db.commit()
        return listing_id

    return _seed


@pytest_asyncio.fixture(loop_scope="session")
async def expire_listing() -> Callable[[str], Awaitable[None]]:
    """expire_listing(listing_id): move the auction window into the past."""

    async def _expire(listing_id: str) -> None:
        async with async_session_factory() as db:
            await db.execute(
                text("""
                    UPDATE listings
                    SET auction_start_at = NOW() - INTERVAL '25 hours',
                        auction_end_at   = NOW() - INTERVAL '1 hour'
                    WHERE id = :id
                """),
                {"id": listing_id},
            )
            await db.commit()

    return _expire
