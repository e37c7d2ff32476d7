"""
Pydantic models for job emails sent by the dispatch platform.

Models:
  JobOffer            fields pulled from a job-offer email
  AssignmentDetails   fields pulled from a job-assigned confirmation email
"""

from typing import Optional
from pydantic import BaseModel


class JobOffer(BaseModel):
    """
    Structured view of one job-offer email.

    accept_url is the canonical claim URL built from the token found in the
    Accept (or Decline) link, or the raw Accept href when no token exists.
    """
    model_config = {"frozen": True}

    accept_url: Optional[str] = None
    zip_code: Optional[str] = None      # 5-digit string, e.g. "60532"
    job_address: Optional[str] = None   # e.g. "1611 lacey ave, Lisle, Illinois 60532"
    appliances: tuple[str, ...] = ()    # document order, duplicates kept


class AssignmentDetails(BaseModel):
    """
    Job info from a "job has been assigned to <name>" confirmation email.

    Every field is optional; labels missing from the email stay None.
    """
    assigned_to: Optional[str] = None
    address: Optional[str] = None
    road_distance: Optional[str] = None
    reference_no: Optional[str] = None
    appointment_date: Optional[str] = None
    mode_of_payment: Optional[str] = None
    service: Optional[str] = None
    appliance: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    symptom: Optional[str] = None
    problem_detail: Optional[str] = None
    service_fee: Optional[str] = None
    job_type: Optional[str] = None
    dispatch_team: Optional[str] = None
