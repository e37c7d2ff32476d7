"""
Job offer webhook router.

Receives an offer email (from the mail watcher or any email-to-webhook
provider), runs the offer pipeline, and reports what happened.

Endpoints:
  GET  /api/webhook   health check, lists the service-area zip codes
  POST /api/webhook   parse the offer and claim it when eligible
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Body, HTTPException

from jobhook.models.claim import ClaimOutcome, DispositionKind
from jobhook.models.mail_payload import MailPayload
from jobhook.services.eligibility import ALLOWED_ZIP_CODES
from jobhook.services.offer_pipeline import handle_offer

logger = logging.getLogger(__name__)

router = APIRouter()


def _sorted_zip_codes() -> list[str]:
    return sorted(ALLOWED_ZIP_CODES)


@router.get("")
async def webhook_health():
    return {
        "status": "ok",
        "message": "jobhook is running",
        "allowed_zip_codes": _sorted_zip_codes(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("")
def receive_offer(payload: Optional[dict] = Body(default=None)):
    """
    Run the offer pipeline over one email payload.

    Accepts subject/html/text or Subject/HtmlBody/TextBody keys.

    Returns:
        status "skipped" when there is no accept link or the zip code is
        outside the service area; "accepted" when the claim succeeded;
        "completed" for any other claim outcome (the audit log has details).

    Raises:
        HTTPException 400: No HTML body in the payload
        HTTPException 500: The claim could not be recorded
    """
    mail = MailPayload.from_webhook(payload)

    logger.info(f"Webhook received: subject={mail.subject!r}, html_length={len(mail.html)}")

    if not mail.html:
        logger.info("No HTML body, aborting.")
        raise HTTPException(
            status_code=400,
            detail={"status": "error", "message": "No HTML body found in the payload"},
        )

    try:
        disposition = handle_offer(mail.html)
    except Exception as e:
        logger.exception("Webhook processing error")
        raise HTTPException(
            status_code=500,
            detail={"status": "error", "message": "Internal server error", "detail": str(e)},
        )

    offer = disposition.offer

    if disposition.kind == DispositionKind.NO_LINK:
        return {
            "status": "skipped",
            "reason": "No Accept Job link found in the email",
            "subject": mail.subject,
        }

    if disposition.kind == DispositionKind.INELIGIBLE:
        return {
            "status": "skipped",
            "reason": "Zip code not in allowed list",
            "zip_code": offer.zip_code,
            "allowed_zip_codes": _sorted_zip_codes(),
            "subject": mail.subject,
            "appliances": list(offer.appliances),
        }

    claim = disposition.claim
    accepted = claim is not None and claim.outcome == ClaimOutcome.ACCEPTED
    return {
        "status": "accepted" if accepted else "completed",
        "subject": mail.subject,
        "zip_code": offer.zip_code,
        "job_address": offer.job_address,
        "appliances": list(offer.appliances),
        "accept_url": offer.accept_url,
        "accept_result": claim.model_dump(mode="json") if claim else None,
        "received_at": datetime.now(timezone.utc).isoformat(),
    }
