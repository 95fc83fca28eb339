"""
Cron Routers - Scheduled job endpoints

Provides endpoints for:
- GET /api/cron/deal-summary - Pipeline snapshot for the scheduled deal digest
"""

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request, status

from speakabout.core.environment import get_cron_secret
from speakabout.deals.deal_services import deal_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


async def verify_cron_secret(request: Request) -> None:
    """
    Require `Authorization: Bearer <CRON_SECRET>` when a secret is configured.
    With no secret set the endpoint is open.
    """
    secret = get_cron_secret()
    if not secret:
        return
    expected = f"Bearer {secret}"
    provided = request.headers.get("authorization", "")
    if not secrets.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Rejected cron call to %s", request.url.path)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.get("/deal-summary", dependencies=[Depends(verify_cron_secret)])
async def deal_summary() -> dict:
    summary = await deal_service.get_pipeline_summary()
    logger.info(
        "Deal summary: %s active deals, %s stale",
        summary["stats"].get("active_deals"),
        summary["stats"].get("stale_count"),
    )
    return {"success": True, **summary}
