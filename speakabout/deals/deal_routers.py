"""
Deal Routers - Lead capture and CRM pipeline endpoints

Provides endpoints for:
- POST /api/submit-deal - Public booking inquiry (rate limited)
- GET/POST /api/deals - List and create deals (admin)
- GET/PUT/DELETE /api/deals/{deal_id} - Single deal (admin)
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from speakabout.auth.auth_services import require_admin
from speakabout.core.rate_limit import limiter
from speakabout.core.request_body import json_body
from speakabout.deals.deal_models import DealCreate, DealSubmission, DealSubmissionResponse, DealUpdate
from speakabout.deals.deal_services import deal_service

router = APIRouter(prefix="/api", tags=["deals"])


def parse_deal_id(deal_id: str) -> int:
    try:
        return int(deal_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid deal ID")


# ================== Public Lead Capture ==================


@router.post("/submit-deal", response_model=DealSubmissionResponse)
@limiter.limit("10/minute")
async def submit_deal(request: Request, body: DealSubmission) -> DealSubmissionResponse:
    """
    Capture a booking inquiry from the public contact form.
    Rate limited (10 requests per minute per client).
    """
    if not body.clientName or not body.clientEmail:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name and email are required",
        )

    deal = await deal_service.create_from_submission(
        body,
        session_id=request.cookies.get("session_id"),
        visitor_id=request.cookies.get("visitor_id"),
    )
    return DealSubmissionResponse(dealId=deal["id"])


# ================== Admin CRM ==================


@router.get("/deals")
async def list_deals(
    _: dict = Depends(require_admin),
    search: Optional[str] = None,
    deal_status: Optional[str] = Query(None, alias="status"),
) -> dict:
    """List deals, newest first. Filter with ?search= or ?status=."""
    deals = await deal_service.list_deals(search=search, status=deal_status)
    return {"success": True, "deals": deals}


@router.post("/deals", status_code=status.HTTP_201_CREATED)
async def create_deal(
    _: dict = Depends(require_admin),
    body: DealCreate = Depends(json_body(DealCreate)),
) -> dict:
    try:
        deal = await deal_service.create_deal(body)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"success": True, "deal": deal}


@router.get("/deals/{deal_id}")
async def get_deal(deal_id: str, _: dict = Depends(require_admin)) -> dict:
    deal = await deal_service.get_deal(parse_deal_id(deal_id))
    if not deal:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Deal not found")
    return {"success": True, "deal": deal}


@router.put("/deals/{deal_id}")
async def update_deal(
    deal_id: str,
    _: dict = Depends(require_admin),
    body: DealUpdate = Depends(json_body(DealUpdate)),
) -> dict:
    """Partially update a deal. Moving to won/lost stamps the closing date once."""
    try:
        deal = await deal_service.update_deal(parse_deal_id(deal_id), body)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not deal:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Deal not found")
    return {"success": True, "deal": deal}


@router.delete("/deals/{deal_id}")
async def delete_deal(deal_id: str, _: dict = Depends(require_admin)) -> dict:
    if not await deal_service.delete_deal(parse_deal_id(deal_id)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Deal not found")
    return {"success": True, "message": "Deal deleted"}
