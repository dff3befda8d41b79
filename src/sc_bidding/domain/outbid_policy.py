"""What happens to the displaced leader's holds when a new bid takes the lead.

Runs inside the bid's savepoint, after the listing update and before the new
reservation. Returns the BID_REFUND rows it created.
"""

import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from src.sc_common.enums import OutbidPolicyName
from src.sc_listing.domain.models import Listing
from src.sc_wallet.application.ledger import Ledger
from src.sc_wallet.domain.models import WalletTransaction

logger = logging.getLogger(__name__)

OutbidPolicy = Callable[
    [Ledger, AsyncSession, Listing, str], Awaitable[list[WalletTransaction]]
]


async def hold_until_settlement(
    ledger: Ledger, db: AsyncSession, previous: Listing, new_leader_id: str
) -> list[WalletTransaction]:
    """Default: outbid holds stay PENDING; the settlement sweeper refunds them."""
    return []


async def refund_immediately(
    ledger: Ledger, db: AsyncSession, previous: Listing, new_leader_id: str
) -> list[WalletTransaction]:
    """Refund every pending hold the displaced leader has on this listing."""
    displaced = previous.current_leader_id
    if displaced is None:
        return []
    # Both wallets change in this transaction; take their locks in id order.
    await ledger.lock_wallets(db, [displaced, new_leader_id])
    refunds: list[WalletTransaction] = []
    for hold in await ledger.list_pending_holds(db, previous.id):
        if hold.user_id != displaced:
            continue
        refunds.append(await ledger.refund_reservation(db, hold.id))
    if refunds:
        logger.info(
            "Outbid refund: listing=%s displaced=%s new_leader=%s holds=%d",
            previous.id, displaced, new_leader_id, len(refunds),
        )
    return refunds


_POLICIES: dict[str, OutbidPolicy] = {
    OutbidPolicyName.HOLD_UNTIL_SETTLEMENT.value: hold_until_settlement,
    OutbidPolicyName.REFUND_IMMEDIATELY.value: refund_immediately,
}


def get_outbid_policy(name: str) -> OutbidPolicy:
    try:
        return _POLICIES[name]
    except KeyError:
        raise ValueError(f"Unknown outbid policy: {name}") from None
