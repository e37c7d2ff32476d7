"""
IMAP listen service configuration from environment variables.

Required:
  IMAP_HOST, IMAP_USER, IMAP_PASS

Optional:
  IMAP_PORT                 default 993 (implicit TLS only on 993)
  IMAP_MAILBOX              default "INBOX"
  IMAP_SUBJECT_KEYWORDS     comma-separated; empty = every subject
  IMAP_ALLOWED_SENDERS      comma-separated addresses or domains; empty = anyone
  WEBHOOK_URL / IMAP_WEBHOOK_URL
                            POST matched mail here instead of running the
                            offer pipeline in-process
  IMAP_DEDUPE_MAX           default 10000
  IMAP_RETRY_MAX            default 5
  IMAP_RETRY_DELAY_MS       default 5000
  IMAP_POLL_SECONDS         default 30
  WEBHOOK_TIMEOUT_SECONDS   default 30
  IMAP_DEBUG                "1" turns on imaplib protocol tracing
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class ImapListenConfig(BaseModel):
    host: str
    port: int = 993
    secure: bool = True
    user: str
    password: str = Field(repr=False)
    mailbox: str = "INBOX"
    subject_keywords: list[str] = []
    allowed_senders: list[str] = []
    webhook_url: Optional[str] = None
    dedupe_max: int = 10_000
    retry_max: int = 5
    retry_delay_seconds: float = 5.0
    poll_seconds: float = 30.0
    webhook_timeout_seconds: float = 30.0
    debug: bool = False


def _split_list(raw: Optional[str]) -> list[str]:
    """Comma-separated -> trimmed, lowercased list without empties."""
    return [s.strip().lower() for s in (raw or "").split(",") if s.strip()]


def _int_env(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, ""))
    except ValueError:
        return default
    return value or default


def mask_password(password: Optional[str]) -> str:
    """First character followed by at most 8 asterisks."""
    if not password:
        return "(empty)"
    if len(password) <= 2:
        return "**"
    return password[0] + "*" * min(len(password) - 1, 8)


def get_imap_listen_config() -> ImapListenConfig:
    """
    Build the listener config from the environment.

    Raises ValueError when IMAP_HOST, IMAP_USER or IMAP_PASS is missing.
    """
    host = os.getenv("IMAP_HOST")
    user = os.getenv("IMAP_USER")
    password = os.getenv("IMAP_PASS")

    if not host or not user or not password:
        raise ValueError(
            "Missing IMAP env: set IMAP_HOST, IMAP_USER, IMAP_PASS "
            "(and optionally IMAP_SUBJECT_KEYWORDS, IMAP_ALLOWED_SENDERS)"
        )

    port = _int_env("IMAP_PORT", 993)

    webhook_url = (os.getenv("WEBHOOK_URL") or os.getenv("IMAP_WEBHOOK_URL") or "").strip()
    if not webhook_url.startswith("http"):
        webhook_url = ""

    return ImapListenConfig(
        host=host,
        port=port,
        secure=port == 993,
        user=user,
        password=password,
        mailbox=os.getenv("IMAP_MAILBOX") or "INBOX",
        subject_keywords=_split_list(os.getenv("IMAP_SUBJECT_KEYWORDS")),
        allowed_senders=_split_list(os.getenv("IMAP_ALLOWED_SENDERS")),
        webhook_url=webhook_url or None,
        dedupe_max=_int_env("IMAP_DEDUPE_MAX", 10_000),
        retry_max=_int_env("IMAP_RETRY_MAX", 5),
        retry_delay_seconds=_int_env("IMAP_RETRY_DELAY_MS", 5000) / 1000,
        poll_seconds=float(_int_env("IMAP_POLL_SECONDS", 30)),
        webhook_timeout_seconds=float(_int_env("WEBHOOK_TIMEOUT_SECONDS", 30)),
        debug=os.getenv("IMAP_DEBUG") == "1",
    )
