"""
Supabase-backed audit log for claim attempts.
Handles insert, recent-entry listing, and lookup by id.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from jobhook.db import supabase_admin
from jobhook.models.audit_log import AuditEntry, AuditEntryType

logger = logging.getLogger(__name__)

AUDIT_LOG_TABLE = os.getenv("AUDIT_LOG_TABLE", "audit_logs")
RECENT_LIMIT = 50


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def insert_audit_entry(entry: AuditEntry) -> str:
    """
    Insert one audit entry and return the id assigned by the database.

    Raises:
        Exception: If the insert fails or returns no row
    """
    row = entry.model_dump(mode="json", exclude={"id"})
    try:
        result = supabase_admin.table(AUDIT_LOG_TABLE).insert(row).execute()
    except Exception as e:
        raise Exception(f"Failed to insert audit entry: {str(e)}")

    if not result.data:
        raise Exception("Failed to insert audit entry: insert returned no data")
    return str(result.data[0]["id"])


def get_recent_audit_entries(limit: int = RECENT_LIMIT) -> list[AuditEntry]:
    """Return up to `limit` entries, newest first."""
    result = (
        supabase_admin.table(AUDIT_LOG_TABLE)
        .select("*")
        .order("timestamp", desc=True)
        .limit(limit)
        .execute()
    )
    return [AuditEntry(**row) for row in result.data or []]


def get_audit_entry(entry_id: str) -> Optional[AuditEntry]:
    """
    Fetch a single entry by id.

    Returns None when the id is not a valid UUID or no row matches.
    """
    try:
        UUID(str(entry_id))
    except ValueError:
        return None

    result = (
        supabase_admin.table(AUDIT_LOG_TABLE)
        .select("*")
        .eq("id", entry_id)
        .limit(1)
        .execute()
    )
    if not result.data:
        return None
    return AuditEntry(**result.data[0])


def log_claim_error(
    *,
    url: Optional[str],
    page_title: str,
    raw_html: str,
    reason: str,
    job_address: Optional[str],
    body_preview: Optional[str] = None,
) -> str:
    """Record a failed claim attempt, keeping the page HTML for inspection."""
    entry = AuditEntry(
        timestamp=_now_iso(),
        type=AuditEntryType.ERROR,
        url=url,
        page_title=page_title,
        reason=reason,
        body_preview=body_preview,
        raw_html=raw_html,
        job_address=job_address,
    )
    return insert_audit_entry(entry)


def log_claim_success(
    *,
    url: Optional[str],
    page_title: str,
    body_preview: str,
    job_address: Optional[str],
) -> str:
    """Record an accepted job. The claim page HTML is never stored for successes."""
    entry = AuditEntry(
        timestamp=_now_iso(),
        type=AuditEntryType.SUCCESS,
        url=url,
        page_title=page_title,
        body_preview=body_preview,
        job_address=job_address,
    )
    return insert_audit_entry(entry)
