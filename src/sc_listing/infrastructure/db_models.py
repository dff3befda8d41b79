"""SQLAlchemy ORM model for the listings table.

Used for type reference only; persistence.py uses raw text() SQL.
Alembic migration 003_create_listings.py is the authoritative DDL source.
Only the auction and settlement columns are written by this service; the
rest belong to the catalog layer.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.sc_common.database import Base


class ListingORM(Base):
    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    seller_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    initial_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    current_price: Mapped[int | None] = mapped_column(BigInteger)
    current_leader_id: Mapped[str | None] = mapped_column(String(64))
    auction_start_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    auction_end_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    settlement_outcome: Mapped[str | None] = mapped_column(String(20))
    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
