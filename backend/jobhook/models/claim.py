"""
Pydantic models for claim attempts and offer dispositions.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel

from jobhook.models.job_offer import JobOffer


class PageOutcome(str, Enum):
    """What the claim-result page says, judged from its visible text."""
    ACCEPTED = "accepted"
    ALREADY_TAKEN = "already_taken"
    UNCLEAR = "unclear"


class ClaimOutcome(str, Enum):
    ACCEPTED = "accepted"
    ALREADY_TAKEN = "already_taken"
    ERROR = "error"


class ClaimResult(BaseModel):
    """Result of one claim attempt. Always backed by exactly one audit entry."""
    outcome: ClaimOutcome
    http_status: Optional[int] = None
    url: Optional[str] = None           # final URL after redirects
    page_title: Optional[str] = None
    body_preview: Optional[str] = None
    error: Optional[str] = None         # transport failure description
    audit_log_id: Optional[str] = None


class DispositionKind(str, Enum):
    NO_LINK = "no_link"
    INELIGIBLE = "ineligible"
    CLAIMED = "claimed"


class OfferDisposition(BaseModel):
    """
    Final decision for one offer email.

    claim is set only when kind == CLAIMED.
    """
    kind: DispositionKind
    offer: JobOffer
    claim: Optional[ClaimResult] = None
