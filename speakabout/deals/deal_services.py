"""
Deal Services - Business logic for the CRM pipeline
"""

import json
import logging
import re
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from speakabout.core.db_manager import get_db
from speakabout.deals.deal_models import DealCreate, DealSubmission, DealUpdate

logger = logging.getLogger(__name__)

REQUIRED_DEAL_FIELDS = (
    "client_name",
    "client_email",
    "company",
    "event_title",
    "event_date",
    "event_location",
    "event_type",
    "attendee_count",
    "budget_range",
    "deal_value",
    "status",
    "priority",
    "source",
    "notes",
    "last_contact",
)

UPDATABLE_DEAL_FIELDS = frozenset(DealUpdate.model_fields)

# NOT NULL columns in the deals table
NON_NULLABLE_DEAL_FIELDS = ("client_name", "client_email", "event_title", "status", "priority")

DEFAULT_DEAL_VALUE = 15000


# ================== Lead Scoring ==================


def estimate_deal_value(budget_range: Optional[str]) -> int:
    """
    Estimate a deal's value from the free-text budget on the inquiry form.

    Known ranges map to their midpoint; otherwise the first number is used,
    read as thousands when below 100.
    """
    if not budget_range:
        return DEFAULT_DEAL_VALUE

    budget = budget_range.lower()

    if "under" in budget or "< " in budget:
        if "10k" in budget or "10,000" in budget:
            return 7500
        if "25k" in budget or "25,000" in budget:
            return 15000

    if "10k" in budget and "25k" in budget:
        return 17500
    if "25k" in budget and "50k" in budget:
        return 37500
    if "50k" in budget and "100k" in budget:
        return 75000
    if "100k+" in budget or "over 100k" in budget:
        return 150000

    numbers = re.findall(r"\d+", budget)
    if numbers:
        first = int(numbers[0])
        return first * 1000 if first < 100 else first

    return DEFAULT_DEAL_VALUE


def determine_priority(submission: DealSubmission, today: Optional[date] = None) -> str:
    """Score an inquiry on budget, date urgency and how specific it is."""
    today = today or date.today()
    score = 0

    if submission.eventBudget:
        budget = submission.eventBudget.lower()
        if "100k+" in budget or "over 100k" in budget:
            score += 3
        elif "50k" in budget:
            score += 2
        elif "25k" in budget:
            score += 1

    event_date = parse_event_date(submission.primary_event_date())
    if event_date:
        days_until = (event_date - today).days
        if days_until < 30:
            score += 3
        elif days_until < 90:
            score += 2
        elif days_until < 180:
            score += 1

    if len(submission.wishlistSpeakers) > 2:
        score += 1
    if submission.specificSpeaker:
        score += 1
    if submission.organizationName:
        score += 1

    if score >= 6:
        return "urgent"
    if score >= 4:
        return "high"
    if score >= 2:
        return "medium"
    return "low"


def parse_event_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD (optionally with a time part) form date."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def missing_required_field(body: DealCreate) -> Optional[str]:
    """Name of the first required field that is absent or blank (0 is allowed)."""
    data = body.model_dump()
    for field in REQUIRED_DEAL_FIELDS:
        value = data.get(field)
        if value is None or value == "":
            return field
    return None


class DealService:
    """Deal service handling pipeline reads and writes."""

    @property
    def db(self):
        """Get database client from global manager."""
        return get_db()

    # ================== Lead Capture ==================

    def build_submission_row(
        self,
        submission: DealSubmission,
        session_id: Optional[str] = None,
        visitor_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Map a public inquiry onto a deals row."""
        is_workshop = submission.requestType == "workshop"
        event_title = (
            f"AI Workshop: {submission.selectedWorkshop or 'TBD'}"
            if is_workshop
            else "AI Keynote Speaking Engagement"
        )

        additional_info = submission.additionalInfo or ""
        if is_workshop:
            details = []
            if submission.selectedWorkshop:
                details.append(f"Workshop: {submission.selectedWorkshop}")
            if submission.numberOfParticipants:
                details.append(f"Participants: {submission.numberOfParticipants}")
            if submission.participantSkillLevel:
                details.append(f"Skill Level: {submission.participantSkillLevel}")
            if submission.preferredFormat:
                details.append(f"Format: {submission.preferredFormat}")
            if details:
                additional_info = ("[WORKSHOP DETAILS]\n" + "\n".join(details) + "\n\n" + additional_info).strip()

        attendee_count = 100
        if is_workshop:
            participants = re.match(r"\d+", submission.numberOfParticipants or "")
            attendee_count = int(participants.group()) if participants and int(participants.group()) else 25

        requested = submission.selectedWorkshop if is_workshop else submission.specificSpeaker

        return {
            "client_name": submission.clientName,
            "client_email": submission.clientEmail,
            "client_phone": submission.phone,
            "company": submission.organizationName or "Unknown",
            "event_title": event_title,
            "event_date": parse_event_date(submission.primary_event_date()) or date.today(),
            "event_location": submission.eventLocation or "TBD",
            "event_type": "Workshop" if is_workshop else "Keynote",
            "attendee_count": attendee_count,
            "budget_range": submission.eventBudget or "TBD",
            "deal_value": Decimal(estimate_deal_value(submission.eventBudget)),
            "status": "lead",
            "priority": determine_priority(submission),
            "source": "website_form",
            "speaker_requested": requested,
            "additional_info": additional_info or None,
            "wishlist_speakers": json.dumps([s.model_dump() for s in submission.wishlistSpeakers]),
            "session_id": session_id,
            "visitor_id": visitor_id,
            "last_contact": date.today(),
        }

    async def create_from_submission(
        self,
        submission: DealSubmission,
        session_id: Optional[str] = None,
        visitor_id: Optional[str] = None,
    ) -> dict:
        """Insert a lead from the public form and return the new row."""
        row = self.build_submission_row(submission, session_id, visitor_id)
        deal = await self.db.insert_one("deals", row)
        logger.info("Created lead deal %s (priority=%s)", deal.get("id"), row["priority"])
        return deal

    # ================== Admin CRUD ==================

    async def list_deals(self, search: Optional[str] = None, status: Optional[str] = None) -> List[dict]:
        """All deals, newest first, optionally filtered by search term or status."""
        if search:
            escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            pattern = f"%{escaped}%"
            query = """
                SELECT * FROM deals
                WHERE client_name ILIKE $1 ESCAPE '\\'
                   OR client_email ILIKE $1 ESCAPE '\\'
                   OR company ILIKE $1 ESCAPE '\\'
                   OR event_title ILIKE $1 ESCAPE '\\'
                ORDER BY created_at DESC
            """
            return await self.db.read(query, pattern)

        if status:
            query = "SELECT * FROM deals WHERE status = $1 ORDER BY created_at DESC"
            return await self.db.read(query, status)

        return await self.db.read("SELECT * FROM deals ORDER BY created_at DESC")

    async def get_deal(self, deal_id: int) -> Optional[dict]:
        return await self.db.read_one("SELECT * FROM deals WHERE id = $1", deal_id)

    async def create_deal(self, body: DealCreate) -> dict:
        """
        Insert a deal entered through the dashboard.

        Raises ValueError naming the first missing required field.
        """
        missing = missing_required_field(body)
        if missing:
            raise ValueError(f"Missing required field: {missing}")

        data = body.model_dump(exclude_none=True)
        deal = await self.db.insert_one("deals", data)
        logger.info("Created deal %s via dashboard", deal.get("id"))
        return deal

    def build_update(self, deal_id: int, body: DealUpdate) -> Tuple[str, List[Any]]:
        """
        Build the UPDATE statement for the fields present in body.

        Raises ValueError when the body carries nothing to update or sets a
        NOT NULL column to null.
        """
        changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if k in UPDATABLE_DEAL_FIELDS}
        if not changes:
            raise ValueError("No updatable fields provided")
        for field in NON_NULLABLE_DEAL_FIELDS:
            if field in changes and changes[field] is None:
                raise ValueError(f"{field} cannot be null")

        updates = []
        params: List[Any] = []
        for column, value in changes.items():
            params.append(value)
            updates.append(f"{column} = ${len(params)}")

        status = changes.get("status")
        if status == "won":
            updates.append("won_date = COALESCE(won_date, CURRENT_TIMESTAMP)")
        elif status == "lost":
            updates.append("lost_date = COALESCE(lost_date, CURRENT_TIMESTAMP)")
        updates.append("updated_at = CURRENT_TIMESTAMP")

        params.append(deal_id)
        query = f"""
            UPDATE deals
            SET {', '.join(updates)}
            WHERE id = ${len(params)}
            RETURNING *
        """
        return query, params

    async def update_deal(self, deal_id: int, body: DealUpdate) -> Optional[dict]:
        query, params = self.build_update(deal_id, body)
        deal = await self.db.execute_returning(query, *params)
        if deal:
            logger.info("Updated deal %s (%s)", deal_id, ", ".join(sorted(body.model_fields_set)))
        return deal

    async def delete_deal(self, deal_id: int) -> bool:
        deleted = await self.db.execute_returning("DELETE FROM deals WHERE id = $1 RETURNING id", deal_id)
        return deleted is not None

    # ================== Reporting ==================

    async def get_pipeline_summary(self) -> dict:
        """Active deals by stage and headline pipeline numbers."""
        active_query = """
            SELECT * FROM deals
            WHERE status NOT IN ('won', 'lost', 'cancelled')
            ORDER BY
                CASE status
                    WHEN 'negotiation' THEN 1
                    WHEN 'proposal' THEN 2
                    WHEN 'qualified' THEN 3
                    WHEN 'lead' THEN 4
                    ELSE 5
                END,
                deal_value DESC NULLS LAST
        """
        stats_query = """
            SELECT
                COUNT(*) FILTER (WHERE status NOT IN ('won', 'lost', 'cancelled')) AS active_deals,
                COUNT(*) FILTER (WHERE status = 'lead') AS new_deals,
                COUNT(*) FILTER (WHERE status = 'negotiation') AS in_negotiation,
                COALESCE(SUM(deal_value) FILTER (WHERE status NOT IN ('won', 'lost', 'cancelled')), 0)
                    AS pipeline_value,
                COALESCE(SUM(deal_value) FILTER (
                    WHERE status = 'won' AND created_at > NOW() - INTERVAL '30 days'
                ), 0) AS won_this_month,
                COUNT(*) FILTER (
                    WHERE status NOT IN ('won', 'lost', 'cancelled')
                    AND COALESCE(updated_at, created_at) < NOW() - INTERVAL '7 days'
                ) AS stale_count
            FROM deals
        """
        deals = await self.db.read(active_query)
        stats = await self.db.read_one(stats_query) or {}
        return {"deals": deals, "stats": stats}


# Global deal service instance
deal_service = DealService()
