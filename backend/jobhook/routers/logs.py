"""
Audit log browser router.

  GET /api/logs                 HTML list of recent entries
  GET /api/logs?id=X            HTML detail page
  GET /api/logs?id=X&raw=1      stored claim page HTML, as-is
  GET /api/logs?json=1          JSON list (html_length instead of raw_html)
  GET /api/logs?id=X&json=1     JSON for one entry
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import HTMLResponse

from jobhook.models.audit_log import AuditEntry
from jobhook.services.audit_log import get_audit_entry, get_recent_audit_entries
from jobhook.services.log_pages import (
    render_detail_page,
    render_list_page,
    render_no_raw_html,
    render_not_found_page,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _summary(entry: AuditEntry) -> dict:
    row = entry.model_dump(mode="json", exclude={"raw_html"})
    row["html_length"] = entry.html_length
    return row


@router.get("")
def browse_logs(
    id: Optional[str] = Query(default=None),
    json: Optional[str] = Query(default=None),
    raw: Optional[str] = Query(default=None),
):
    if json == "1":
        if id:
            entry = get_audit_entry(id)
            if entry is None:
                raise HTTPException(status_code=404, detail=f'Log "{id}" not found')
            return entry.model_dump(mode="json")

        entries = get_recent_audit_entries()
        return {"count": len(entries), "logs": [_summary(e) for e in entries]}

    if id and raw == "1":
        entry = get_audit_entry(id)
        if entry is None:
            return HTMLResponse("<h1>Log entry not found</h1>", status_code=404)
        if not entry.raw_html:
            return HTMLResponse(render_no_raw_html(id))
        return HTMLResponse(entry.raw_html)

    if id:
        entry = get_audit_entry(id)
        if entry is None:
            return HTMLResponse(render_not_found_page(id), status_code=404)
        return HTMLResponse(render_detail_page(entry))

    return HTMLResponse(render_list_page(get_recent_audit_entries()))
