"""
Claim-result page classifier.

The dispatch platform's confirmation page is free text, not an API. A page
can read "This job has already been accepted!", so any already/taken/expired
wording vetoes the "Job accepted" match.
"""

import re

from jobhook.models.claim import PageOutcome

_JOB_ACCEPTED = re.compile(r"job\s+accepted\s*!?", re.IGNORECASE)
_TAKEN_TERMS = ("already", "taken", "expired")


def classify_page(body_text: str) -> PageOutcome:
    """Classify the visible text of a claim-result page."""
    text = body_text or ""
    lower = text.lower()

    if any(term in lower for term in _TAKEN_TERMS):
        return PageOutcome.ALREADY_TAKEN
    if _JOB_ACCEPTED.search(text):
        return PageOutcome.ACCEPTED
    return PageOutcome.UNCLEAR
