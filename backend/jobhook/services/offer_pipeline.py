"""
Offer pipeline: parse -> eligibility -> claim.

No-link and out-of-area offers stop early with no HTTP call and no audit
entry. Claimed offers always leave exactly one audit entry behind.
"""

import logging
from typing import AbstractSet, Callable, Optional

from jobhook.models.claim import ClaimResult, DispositionKind, OfferDisposition
from jobhook.services.claim_executor import execute_claim
from jobhook.services.eligibility import ALLOWED_ZIP_CODES, is_eligible
from jobhook.services.offer_parser import extract_offer

logger = logging.getLogger(__name__)

ClaimFn = Callable[[str, Optional[str]], ClaimResult]


def handle_offer(
    html: str,
    *,
    allowed_zip_codes: AbstractSet[str] = ALLOWED_ZIP_CODES,
    claim: Optional[ClaimFn] = None,
) -> OfferDisposition:
    """
    Decide what to do with one offer email and, if eligible, claim the job.

    Args:
        html: HTML body of the offer email
        allowed_zip_codes: Service-area allow-list
        claim: Claim function, defaults to execute_claim

    Returns:
        OfferDisposition of kind NO_LINK, INELIGIBLE, or CLAIMED.
    """
    offer = extract_offer(html)

    if not offer.accept_url:
        logger.info("No Accept Job link found, skipping.")
        return OfferDisposition(kind=DispositionKind.NO_LINK, offer=offer)

    if not is_eligible(offer.zip_code, allowed_zip_codes):
        logger.info(f"Zip code {offer.zip_code} is NOT in the allowed list, skipping.")
        return OfferDisposition(kind=DispositionKind.INELIGIBLE, offer=offer)

    logger.info(
        f"Zip {offer.zip_code} is allowed, accepting job "
        f"(appliances: {', '.join(offer.appliances) or 'none'})"
    )
    claim_fn = claim or execute_claim
    result = claim_fn(offer.accept_url, offer.job_address)
    logger.info(f"Final outcome: {result.outcome.value}")

    return OfferDisposition(kind=DispositionKind.CLAIMED, offer=offer, claim=result)
