import logging

from promohub.database import get_db_session
from promohub.services.affiliate_service import expire_stale_invites

logger = logging.getLogger(__name__)


async def expire_stale_invites_job() -> int:
    """Scheduled entry point: expire pending invites across all tenants."""
    try:
        async with get_db_session() as session:
            expired = await expire_stale_invites(session)
    except Exception:
        logger.exception("Invite expiry job failed")
        return 0

    if expired:
        logger.info(f"Expired {expired} stale affiliate invite(s)")
    return expired
