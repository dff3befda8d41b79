"""003: create listings table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE listings (
            id                  VARCHAR(64) PRIMARY KEY,
            seller_id           VARCHAR(64) NOT NULL,
            title               TEXT        NOT NULL,
            initial_price       BIGINT      NOT NULL,
            status              VARCHAR(20) NOT NULL DEFAULT 'PENDING',
            kind                VARCHAR(20) NOT NULL,
            current_price       BIGINT,
            current_leader_id   VARCHAR(64),
            auction_start_at    TIMESTAMPTZ,
            auction_end_at      TIMESTAMPTZ,
            settled_at          TIMESTAMPTZ,
            settlement_outcome  VARCHAR(20),
            version             BIGINT      NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_status CHECK (status IN ('PENDING', 'APPROVED', 'REJECTED')),
            CONSTRAINT ck_listings_kind CHECK (kind IN ('FIXED_PRICE', 'AUCTION')),
            CONSTRAINT ck_listings_outcome CHECK (
                settlement_outcome IS NULL OR settlement_outcome IN ('SOLD', 'NO_BIDS')
            ),
            CONSTRAINT ck_listings_initial_price_gte_0 CHECK (initial_price >= 0),
            CONSTRAINT ck_listings_current_gte_initial CHECK (
                current_price IS NULL OR current_price >= initial_price
            ),
            CONSTRAINT ck_listings_leader_with_price CHECK (
                (current_price IS NULL) = (current_leader_id IS NULL)
            ),
            CONSTRAINT ck_listings_window CHECK (
                auction_end_at IS NULL
                OR (auction_start_at IS NOT NULL AND auction_end_at > auction_start_at)
            ),
            CONSTRAINT ck_listings_settled_outcome CHECK (
                (settled_at IS NULL) = (settlement_outcome IS NULL)
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_listings_updated_at
            BEFORE UPDATE ON listings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    # Sweeper query: expired auctions not yet settled, paged by (auction_end_at, id)
    op.execute("""
        CREATE INDEX idx_listings_unsettled_end
        ON listings (auction_end_at, id)
        WHERE kind = 'AUCTION' AND settled_at IS NULL AND auction_end_at IS NOT NULL;
    """)
    op.execute("""
        CREATE INDEX idx_listings_open_auctions
        ON listings (created_at DESC, id DESC)
        WHERE kind = 'AUCTION' AND status = 'APPROVED';
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS listings CASCADE;")
