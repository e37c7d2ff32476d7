"""
Claim executor.

Visits a job's accept URL once, reads the confirmation page, and records the
outcome in the audit log. There is no further action on the page: it either
says "Job accepted!" or explains why not.

Every call writes exactly one audit entry (success or error) and returns a
ClaimResult. Transport failures are reported, never raised.
"""

import logging
import os
import re
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from jobhook.models.claim import ClaimOutcome, ClaimResult, PageOutcome
from jobhook.services.audit_log import log_claim_error, log_claim_success
from jobhook.services.outcome_classifier import classify_page

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

MAX_REDIRECTS = 5
CLAIM_TIMEOUT_SECONDS = float(os.getenv("CLAIM_TIMEOUT_SECONDS", "15"))

PREVIEW_CHARS = 500
REASON_PREVIEW_CHARS = 200

ALREADY_TAKEN_REASON = "Job already taken or expired"


def _new_client() -> httpx.Client:
    return httpx.Client(
        headers=BROWSER_HEADERS,
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
        timeout=CLAIM_TIMEOUT_SECONDS,
    )


def read_claim_page(html: str) -> tuple[str, str]:
    """
    Return (page_title, body_text) for a claim-result page.

    body_text is the visible text of <body> with whitespace collapsed.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    page_title = soup.title.get_text().strip() if soup.title else ""

    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    body = soup.body or soup
    body_text = re.sub(r"\s+", " ", body.get_text(" ")).strip()
    return page_title, body_text


def _describe_failure(exc: Exception) -> tuple[Optional[int], str]:
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        return response.status_code, response.reason_phrase or str(exc)
    return None, str(exc) or exc.__class__.__name__


def execute_claim(
    url: str,
    job_address: Optional[str] = None,
    *,
    client: Optional[httpx.Client] = None,
) -> ClaimResult:
    """
    Claim a job by visiting its accept URL.

    Args:
        url: Canonical accept URL for the job
        job_address: Carried into the audit entry unchanged
        client: Optional preconfigured httpx.Client (a new one is created
            and closed per call otherwise)

    Returns:
        ClaimResult with the classified outcome and the audit entry id.

    Raises:
        Exception: Only if the audit log itself cannot be written
    """
    owns_client = client is None
    http = client or _new_client()

    logger.info(f"Visiting accept URL: {url}")
    try:
        response = http.get(url, headers=BROWSER_HEADERS, follow_redirects=True)
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        status, status_text = _describe_failure(exc)
        logger.error(f"Accept URL failed: HTTP {status} - {status_text}")

        audit_log_id = log_claim_error(
            url=url,
            page_title="",
            raw_html="",
            reason=f"Request failed: {status or 'network'} - {status_text}",
            job_address=job_address,
        )
        logger.info(f"Incident logged, id: {audit_log_id}")
        return ClaimResult(
            outcome=ClaimOutcome.ERROR,
            http_status=status,
            url=url,
            error=status_text,
            audit_log_id=audit_log_id,
        )
    finally:
        if owns_client:
            http.close()

    page_url = str(response.url)
    raw_html = response.text
    page_title, body_text = read_claim_page(raw_html)
    body_preview = body_text[:PREVIEW_CHARS]

    logger.info(f"Response: HTTP {response.status_code}, title: {page_title!r}")
    logger.info(f"Final URL: {page_url}")
    logger.info(f"Body preview: {body_preview[:REASON_PREVIEW_CHARS]}...")

    page_outcome = classify_page(body_text)
    logger.info(f"Outcome: {page_outcome.value}")

    if page_outcome is PageOutcome.ACCEPTED:
        audit_log_id = log_claim_success(
            url=page_url,
            page_title=page_title,
            body_preview=body_preview,
            job_address=job_address,
        )
        logger.info(f"Success logged, id: {audit_log_id}")
        outcome = ClaimOutcome.ACCEPTED
    else:
        if page_outcome is PageOutcome.ALREADY_TAKEN:
            outcome = ClaimOutcome.ALREADY_TAKEN
            reason = ALREADY_TAKEN_REASON
        else:
            outcome = ClaimOutcome.ERROR
            reason = f"Unexpected response: {body_preview[:REASON_PREVIEW_CHARS]}"
        audit_log_id = log_claim_error(
            url=page_url,
            page_title=page_title,
            raw_html=raw_html,
            reason=reason,
            job_address=job_address,
            body_preview=body_preview,
        )
        logger.info(f"Incident logged, id: {audit_log_id}, view: GET /api/logs?id={audit_log_id}&raw=1")

    return ClaimResult(
        outcome=outcome,
        http_status=response.status_code,
        url=page_url,
        page_title=page_title,
        body_preview=body_preview,
        audit_log_id=audit_log_id,
    )
