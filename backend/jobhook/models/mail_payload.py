"""
Mail payload model shared by the webhook endpoints and the mail watcher.

Two naming conventions reach the webhook: lowercase (subject/text/html)
and PascalCase (Subject/TextBody/HtmlBody). MailPayload accepts either and
to_forward_dict() emits both so any receiver understands it.
"""

from typing import Optional
from pydantic import BaseModel


class MailPayload(BaseModel):
    """Normalized mail payload, convention-agnostic."""

    subject: str = ""
    text: str = ""
    html: str = ""

    @classmethod
    def from_webhook(cls, payload: Optional[dict]) -> "MailPayload":
        """Read either key convention; lowercase keys win when both are set."""
        payload = payload or {}
        return cls(
            subject=payload.get("subject") or payload.get("Subject") or "",
            text=payload.get("text") or payload.get("TextBody") or "",
            html=payload.get("html") or payload.get("HtmlBody") or "",
        )

    def to_forward_dict(self) -> dict:
        return {
            "subject": self.subject,
            "Subject": self.subject,
            "text": self.text,
            "TextBody": self.text,
            "html": self.html,
            "HtmlBody": self.html,
        }
