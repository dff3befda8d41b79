"""004: create wallet_transactions table

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallet_transactions (
            id                      VARCHAR(64)     PRIMARY KEY,
            wallet_id               UUID            NOT NULL REFERENCES wallets (id),
            user_id                 VARCHAR(64)     NOT NULL,
            tx_type                 VARCHAR(20)     NOT NULL,
            status                  VARCHAR(20)     NOT NULL,
            amount                  BIGINT          NOT NULL,
            balance_after           BIGINT          NOT NULL,
            listing_id              VARCHAR(64)     REFERENCES listings (id),
            related_transaction_id  VARCHAR(64)     REFERENCES wallet_transactions (id),
            description             VARCHAR(500),
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            completed_at            TIMESTAMPTZ,
            CONSTRAINT ck_wtx_type CHECK (
                tx_type IN ('DEPOSIT', 'PURCHASE', 'BID_HOLD', 'BID_REFUND')
            ),
            CONSTRAINT ck_wtx_status CHECK (status IN ('PENDING', 'COMPLETED', 'REFUNDED')),
            CONSTRAINT ck_wtx_only_holds_pending CHECK (
                tx_type = 'BID_HOLD' OR status = 'COMPLETED'
            ),
            CONSTRAINT ck_wtx_amount_gte_0 CHECK (amount >= 0),
            CONSTRAINT ck_wtx_balance_after_gte_0 CHECK (balance_after >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_wallet_transactions_updated_at
            BEFORE UPDATE ON wallet_transactions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TRIGGER trg_wallet_transactions_immutable
            BEFORE UPDATE ON wallet_transactions
            FOR EACH ROW EXECUTE FUNCTION fn_wallet_tx_immutable();
    """)
    # History pages order by the numeric snowflake id
    op.execute(
        "CREATE INDEX idx_wtx_wallet_id_desc "
        "ON wallet_transactions (wallet_id, (CAST(id AS NUMERIC)) DESC);"
    )
    op.execute("""
        CREATE INDEX idx_wtx_pending_holds
        ON wallet_transactions (listing_id)
        WHERE tx_type = 'BID_HOLD' AND status = 'PENDING';
    """)
    op.execute("""
        CREATE INDEX idx_wtx_related
        ON wallet_transactions (related_transaction_id)
        WHERE related_transaction_id IS NOT NULL;
    """)
    op.execute(
        "COMMENT ON TABLE wallet_transactions IS "
        "'Wallet transaction log; amounts in cents, only status may change after insert';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS wallet_transactions CASCADE;")
