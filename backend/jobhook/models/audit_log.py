"""
Pydantic models for the audit_logs table.

One row is written per claim attempt: type "success" when the job was
accepted, type "error" for everything else.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class AuditEntryType(str, Enum):
    ERROR = "error"
    SUCCESS = "success"


class AuditEntry(BaseModel):
    """Full audit_logs record. id is assigned by the database on insert."""
    model_config = {"from_attributes": True}

    id: Optional[str] = None
    timestamp: str                      # ISO-8601, UTC
    type: AuditEntryType = AuditEntryType.ERROR
    url: Optional[str] = None
    page_title: Optional[str] = None
    reason: Optional[str] = None        # error entries only
    body_preview: Optional[str] = None
    raw_html: Optional[str] = None      # error entries only
    job_address: Optional[str] = None

    @property
    def html_length(self) -> int:
        return len(self.raw_html or "")
