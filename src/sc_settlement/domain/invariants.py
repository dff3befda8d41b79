# src/sc_settlement/domain/invariants.py
"""Wallet conservation check: cached balance == balance replayed from the log."""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.sc_wallet.application.ledger import Ledger

logger = logging.getLogger(__name__)


async def verify_wallet_conservation(
    db: AsyncSession, ledger: Ledger | None = None
) -> list[str]:
    """Returns one violation string per wallet whose balance disagrees with its log."""
    ledger = ledger or Ledger()
    violations: list[str] = []
    for wallet_id, cached, replayed in await ledger.find_unbalanced_wallets(db):
        msg = (
            f"Wallet conservation violated: wallet={wallet_id} "
            f"balance={cached} replayed={replayed} drift={cached - replayed}"
        )
        violations.append(msg)
        logger.error(msg)
    return violations
