"""
Job-offer email parser.

Turns the HTML body of a dispatch-platform offer email into a JobOffer:

  accept_url   built from the "ey..." token in the Accept (or Decline) link
  zip_code     first standalone 5-digit number on the last "Address:" line
               that has one
  job_address  the last "Address:" line with its label stripped
  appliances   every "Appliance:" line, in document order

Offer emails are marketing-style HTML with no stable structure, so every
field is best-effort: a missing field comes back as None (or an empty
tuple) and malformed markup never raises.
"""

import logging
import os
import re
from typing import Optional

from bs4 import BeautifulSoup

from jobhook.models.job_offer import JobOffer

logger = logging.getLogger(__name__)

ACCEPT_JOB_BASE_URL = os.getenv(
    "ACCEPT_JOB_BASE_URL", "https://login.theappliancerepairmen.com/job/accept"
).rstrip("/")

_ACCEPT_TEXT = re.compile(r"accept", re.IGNORECASE)
_DECLINE_TEXT = re.compile(r"decline", re.IGNORECASE)

# Path segment starting with "ey" (JWT-style), up to the next / ? # or end
_TOKEN_PATTERN = re.compile(r"/(ey[^/?#]+)(?:[/?#]|$)")

_ADDRESS_LABEL = re.compile(r"^Address:\s*", re.IGNORECASE)
_APPLIANCE_LABEL = re.compile(r"^Appliance:\s*", re.IGNORECASE)
_ZIP_PATTERN = re.compile(r"\b(\d{5})\b")


def extract_token_from_href(href: Optional[str]) -> Optional[str]:
    """
    Return the "ey..." token from an accept/decline href, or None.

    The token is the path segment that starts with "ey".
    """
    if not href:
        return None
    match = _TOKEN_PATTERN.search(href.strip())
    return match.group(1) if match else None


def build_accept_url(token: Optional[str]) -> Optional[str]:
    """Build the canonical claim URL for a token."""
    if not token or not token.startswith("ey"):
        return None
    return f"{ACCEPT_JOB_BASE_URL}/{token}"


def _find_action_hrefs(soup: BeautifulSoup) -> tuple[Optional[str], Optional[str]]:
    """
    Return (accept_href, decline_href) from the first matching links.

    The two tests are independent: a link reading "Accept or Decline" is a
    candidate for both.
    """
    accept_href: Optional[str] = None
    decline_href: Optional[str] = None

    for link in soup.find_all("a"):
        text = link.get_text().strip()
        href = link.get("href") or ""
        if accept_href is None and _ACCEPT_TEXT.search(text):
            accept_href = href
            logger.debug(f"Parse: found accept link: {text!r} -> {href}")
        if decline_href is None and _DECLINE_TEXT.search(text):
            decline_href = href
            logger.debug(f"Parse: found decline link: {text!r} -> {href}")
        if accept_href is not None and decline_href is not None:
            break

    return accept_href, decline_href


def extract_offer(html: str) -> JobOffer:
    """
    Parse an offer email's HTML into a JobOffer.

    Args:
        html: Raw HTML body of the email.

    Returns:
        JobOffer with every field that could be found; absent fields are None.
    """
    soup = BeautifulSoup(html or "", "html.parser")

    # --- Accept URL -----------------------------------------------------------
    accept_href, decline_href = _find_action_hrefs(soup)

    # Prefer the token from the accept link, then the decline link
    accept_url: Optional[str] = None
    token = extract_token_from_href(accept_href) or extract_token_from_href(decline_href)
    if token:
        accept_url = build_accept_url(token)
        logger.debug(f"Parse: token extracted: {token[:20]!r}..., accept_url={accept_url}")
    elif accept_href:
        accept_url = accept_href
        logger.debug("Parse: no token in accept/decline hrefs, using raw accept href")

    # --- List items -------------------------------------------------------------
    zip_code: Optional[str] = None
    job_address: Optional[str] = None
    appliances: list[str] = []

    for item in soup.find_all("li"):
        text = item.get_text().strip()

        if _ADDRESS_LABEL.match(text):
            # A later Address line overrides an earlier one
            job_address = _ADDRESS_LABEL.sub("", text).strip() or None
            zip_match = _ZIP_PATTERN.search(text)
            if zip_match:
                zip_code = zip_match.group(1)
            logger.debug(f"Parse: address line: {text!r}")

        if _APPLIANCE_LABEL.match(text):
            value = _APPLIANCE_LABEL.sub("", text).strip()
            if value:
                appliances.append(value)

    logger.info(
        f"Parse: zip={zip_code}, job_address={job_address or '(none)'}, "
        f"appliances={appliances}, has_accept_url={accept_url is not None}"
    )

    return JobOffer(
        accept_url=accept_url,
        zip_code=zip_code,
        job_address=job_address,
        appliances=tuple(appliances),
    )
