"""
Deal Models - Pydantic schemas for the CRM pipeline and lead capture
"""

from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

DealStatus = Literal["lead", "qualified", "proposal", "negotiation", "won", "lost"]
DealPriority = Literal["low", "medium", "high", "urgent"]


# ================== Public Lead Capture ==================

class WishlistSpeaker(BaseModel):
    id: int
    name: str


class DealSubmission(BaseModel):
    """Booking inquiry posted by the public contact form."""
    clientName: Optional[str] = None
    clientEmail: Optional[str] = None
    phone: Optional[str] = None
    organizationName: Optional[str] = None
    specificSpeaker: Optional[str] = None
    eventDate: Optional[str] = None
    eventDates: List[str] = Field(default_factory=list)
    eventLocation: Optional[str] = None
    eventBudget: Optional[str] = None
    additionalInfo: Optional[str] = None
    wishlistSpeakers: List[WishlistSpeaker] = Field(default_factory=list)
    # Workshop inquiries
    requestType: Optional[Literal["keynote", "workshop"]] = None
    selectedWorkshop: Optional[str] = None
    numberOfParticipants: Optional[str] = None
    participantSkillLevel: Optional[str] = None
    preferredFormat: Optional[str] = None

    def primary_event_date(self) -> Optional[str]:
        """First of the submitted dates, falling back to the single date field."""
        if self.eventDates:
            return self.eventDates[0]
        return self.eventDate


class DealSubmissionResponse(BaseModel):
    success: bool = True
    dealId: int
    message: str = "Thank you! We'll be in touch within 24 hours."


# ================== Admin CRM ==================

class DealFields(BaseModel):
    """Writable deal columns. Every field is optional at the schema level."""
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    company: Optional[str] = None
    event_title: Optional[str] = None
    event_date: Optional[date] = None
    event_location: Optional[str] = None
    event_type: Optional[str] = None
    speaker_requested: Optional[str] = None
    attendee_count: Optional[int] = None
    budget_range: Optional[str] = None
    deal_value: Optional[Decimal] = None
    status: Optional[DealStatus] = None
    priority: Optional[DealPriority] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    last_contact: Optional[date] = None
    next_follow_up: Optional[date] = None


class DealCreate(DealFields):
    """Admin deal creation; required fields are checked by the service."""
    pass


class DealUpdate(DealFields):
    """Partial update; only fields present in the body are written."""
    lost_reason: Optional[str] = None
    lost_details: Optional[str] = None
    lost_competitor: Optional[str] = None
    worth_follow_up: Optional[bool] = None
    follow_up_date: Optional[date] = None
    closed_notes: Optional[str] = None
