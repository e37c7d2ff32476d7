"""
Job assignment router.

Parses the "a job has been assigned to ..." confirmation email that follows
a successful claim and returns its fields.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Body, HTTPException

from jobhook.models.mail_payload import MailPayload
from jobhook.services.assignment_parser import parse_assignment_email

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def success_info():
    return {"status": "ok", "message": "POST success email here to parse job info"}


@router.post("")
def receive_assignment(payload: Optional[dict] = Body(default=None)):
    mail = MailPayload.from_webhook(payload)

    if not mail.html:
        raise HTTPException(
            status_code=400,
            detail={"status": "error", "message": "No HTML body found in the payload"},
        )

    try:
        details = parse_assignment_email(mail.html)
    except Exception as e:
        logger.exception("Success email parse error")
        raise HTTPException(
            status_code=500,
            detail={"status": "error", "message": "Failed to parse success email", "detail": str(e)},
        )

    logger.info(f"Assignment parsed: assigned_to={details.assigned_to}, reference_no={details.reference_no}")

    return {
        "status": "ok",
        "message": "Success email parsed",
        "subject": mail.subject,
        "received_at": datetime.now(timezone.utc).isoformat(),
        "job": details.model_dump(),
    }
