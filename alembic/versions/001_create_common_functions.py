"""001: extensions and shared trigger functions

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # gen_random_uuid() for wallet ids
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    # Ledger rows are append-only: after insert only status, completed_at and
    # updated_at may change.
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_wallet_tx_immutable()
        RETURNS TRIGGER AS $$
        BEGIN
            IF NEW.id <> OLD.id
               OR NEW.wallet_id <> OLD.wallet_id
               OR NEW.user_id <> OLD.user_id
               OR NEW.tx_type <> OLD.tx_type
               OR NEW.amount <> OLD.amount
               OR NEW.balance_after <> OLD.balance_after
               OR NEW.listing_id IS DISTINCT FROM OLD.listing_id
               OR NEW.related_transaction_id IS DISTINCT FROM OLD.related_transaction_id
            THEN
                RAISE EXCEPTION 'wallet_transactions row % is immutable except for status', OLD.id
                    USING ERRCODE = 'integrity_constraint_violation';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS fn_wallet_tx_immutable();")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
