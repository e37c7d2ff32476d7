"""
IMAP mail watcher.

Keeps a mailbox selected, polls for new mail, and hands every matching
message (subject keyword + allowed sender) to a handler: either a
WebhookForwarder that POSTs it to a running /api/webhook, or the offer
pipeline in-process.

Each message id is recorded in the SeenSet before any work is done, so a
message is handled at most once per process even if handling fails.
"""

import email
import logging
import threading
import time
from dataclasses import dataclass, field
from email import policy
from email.message import EmailMessage
from email.utils import getaddresses
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence, TypeVar

import httpx
from bs4 import BeautifulSoup

from jobhook.models.mail_payload import MailPayload
from jobhook.services.imap_config import ImapListenConfig, mask_password
from jobhook.services.mail_transport import MAIL_ERRORS, FetchedMessage
from jobhook.services.seen_set import SeenSet

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 200

T = TypeVar("T")
MessageHandler = Callable[[MailPayload], None]


class MailTransport(Protocol):
    uid_validity: str

    def connect(self) -> None: ...
    def open_mailbox(self, mailbox: str) -> int: ...
    def poll(self) -> int: ...
    def fetch(self, start: int, end: int) -> list[FetchedMessage]: ...
    def release_mailbox(self) -> None: ...
    def logout(self) -> None: ...


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass
class MailEnvelope:
    message_id: Optional[str]
    subject: str
    from_addresses: list[str] = field(default_factory=list)
    to_addresses: list[str] = field(default_factory=list)
    date: Optional[str] = None


# ---------------------------------------------------------------------------
# Matching helpers
# ---------------------------------------------------------------------------

def message_key(message_id: Optional[str], uid: Optional[int], uid_validity: str) -> str:
    """Stable dedupe key: the Message-ID header, else uid + UIDVALIDITY."""
    if message_id and message_id.strip():
        return message_id.strip().lower()
    return f"uid:{uid}:{uid_validity}"


def subject_matches(subject: Optional[str], keywords: Sequence[str]) -> bool:
    """Case-insensitive substring match; no keywords matches everything."""
    if not keywords:
        return True
    s = (subject or "").lower()
    return any(kw.lower() in s for kw in keywords)


def sender_matches(addresses: Sequence[str], allowed: Sequence[str]) -> bool:
    """Exact address or "@domain" suffix match; no allow-list matches everyone."""
    if not allowed:
        return True
    addrs = [a.strip().lower() for a in addresses if a and a.strip()]
    allowed_lower = [a.lower() for a in allowed]
    return any(
        addr == a or addr.endswith(f"@{a}")
        for addr in addrs
        for a in allowed_lower
    )


# ---------------------------------------------------------------------------
# MIME parsing
# ---------------------------------------------------------------------------

def parse_message(raw: bytes) -> EmailMessage:
    return email.message_from_bytes(raw, policy=policy.default)


def read_envelope(message: EmailMessage) -> MailEnvelope:
    def addresses(header: str) -> list[str]:
        values = [str(v) for v in message.get_all(header, [])]
        return [addr for _name, addr in getaddresses(values) if addr]

    return MailEnvelope(
        message_id=str(message["Message-ID"]) if message["Message-ID"] else None,
        subject=str(message["Subject"] or ""),
        from_addresses=addresses("From"),
        to_addresses=addresses("To"),
        date=str(message["Date"]) if message["Date"] else None,
    )


def read_body(message: EmailMessage, subject: str) -> MailPayload:
    """Pull the text/plain and text/html parts into a MailPayload."""
    text = ""
    html = ""
    plain_part = message.get_body(preferencelist=("plain",))
    if plain_part is not None:
        text = plain_part.get_content()
    html_part = message.get_body(preferencelist=("html",))
    if html_part is not None:
        html = html_part.get_content()
    return MailPayload(subject=subject, text=text, html=html)


def _log_matched(envelope: MailEnvelope, payload: MailPayload) -> None:
    if payload.text:
        preview = payload.text.strip()[:PREVIEW_CHARS]
    else:
        preview = BeautifulSoup(payload.html, "html.parser").get_text(" ", strip=True)[:PREVIEW_CHARS]
    logger.info(
        "IMAP matched email\n"
        f"  From: {', '.join(envelope.from_addresses)}\n"
        f"  To: {', '.join(envelope.to_addresses)}\n"
        f"  Subject: {envelope.subject}\n"
        f"  Date: {envelope.date}\n"
        f"  Message-ID: {envelope.message_id}\n"
        f"  Body preview: {preview}"
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

class WebhookForwarder:
    """POST matched mail to a running webhook, under both key conventions."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client

    def __call__(self, payload: MailPayload) -> None:
        try:
            if self._client is not None:
                response = self._client.post(self.url, json=payload.to_forward_dict(), timeout=self.timeout)
            else:
                response = httpx.post(self.url, json=payload.to_forward_dict(), timeout=self.timeout)
        except httpx.HTTPError as exc:
            logger.error(f"Webhook POST failed: {exc}")
            return
        logger.info(f"Webhook {self.url} -> {response.status_code} {response.text[:PREVIEW_CHARS]}")


def run_offer_pipeline(payload: MailPayload) -> None:
    """Handle a matched message in-process."""
    # Deferred: importing the pipeline creates the Supabase client
    from jobhook.services.offer_pipeline import handle_offer

    if not payload.html:
        logger.info(f"No HTML body in {payload.subject!r}, skipping.")
        return
    disposition = handle_offer(payload.html)
    outcome = disposition.claim.outcome.value if disposition.claim else "-"
    logger.info(f"Offer {payload.subject!r}: {disposition.kind.value} (claim outcome: {outcome})")


def build_handler(config: ImapListenConfig) -> MessageHandler:
    if config.webhook_url:
        return WebhookForwarder(config.webhook_url, timeout=config.webhook_timeout_seconds)
    return run_offer_pipeline


# ---------------------------------------------------------------------------
# Watcher
# ---------------------------------------------------------------------------

def connect_with_retry(
    step: Callable[[], T],
    *,
    what: str,
    retry_max: int,
    retry_delay_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[ConnectionState, Optional[T]]:
    """
    Run `step` until it succeeds or retry_max attempts have failed.

    CONNECTING -> CONNECTED on success, CONNECTING -> FAILED after the last
    failed attempt. Returns the final state and the step's result.
    """
    state = ConnectionState.CONNECTING
    attempt = 0
    result: Optional[T] = None

    while state is ConnectionState.CONNECTING:
        attempt += 1
        try:
            result = step()
            state = ConnectionState.CONNECTED
        except MAIL_ERRORS as exc:
            logger.error(f"{what} failed (attempt {attempt}/{retry_max}): {exc}")
            if attempt >= retry_max:
                state = ConnectionState.FAILED
            else:
                logger.info(f"Retrying in {retry_delay_seconds:g}s...")
                sleep(retry_delay_seconds)

    return state, result


class MailWatcher:
    def __init__(
        self,
        config: ImapListenConfig,
        transport: MailTransport,
        seen: SeenSet,
        handler: MessageHandler,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.transport = transport
        self.seen = seen
        self.handler = handler
        self._sleep = sleep
        self._stop = threading.Event()
        self.last_count = 0

    def stop(self) -> None:
        """Ask the watch loop to exit after the current batch."""
        self._stop.set()

    def process_new_messages(self, start: int, end: int) -> None:
        """Fetch messages start..end and hand every new, matching one to the handler."""
        try:
            fetched = self.transport.fetch(start, end)
        except MAIL_ERRORS as exc:
            logger.error(f"Fetch new messages failed: {exc}")
            return

        uid_validity = self.transport.uid_validity
        for item in fetched:
            message = parse_message(item.raw)
            envelope = read_envelope(message)
            key = message_key(envelope.message_id, item.uid, uid_validity)

            if not self.seen.add_if_new(key):
                continue
            if not subject_matches(envelope.subject, self.config.subject_keywords):
                continue
            if not sender_matches(envelope.from_addresses, self.config.allowed_senders):
                continue

            try:
                payload = read_body(message, envelope.subject)
            except Exception as e:
                logger.warning(f"Parse body failed for {key}: {e}")
                payload = MailPayload(subject=envelope.subject)

            _log_matched(envelope, payload)
            try:
                self.handler(payload)
            except Exception:
                logger.exception(f"Handling message {key} failed")

    def _watch(self) -> None:
        while not self._stop.is_set():
            try:
                count = self.transport.poll()
            except MAIL_ERRORS as exc:
                logger.info(f"Connection closed: {exc}")
                return

            if count > self.last_count:
                self.process_new_messages(self.last_count + 1, count)
                self.last_count = count
            elif count < self.last_count:
                # Messages were expunged; new mail starts after the new count
                self.last_count = count

            self._stop.wait(self.config.poll_seconds)

    def _close(self) -> None:
        try:
            self.transport.release_mailbox()
        except MAIL_ERRORS as exc:
            logger.warning(f"Mailbox release failed: {exc}")
        finally:
            try:
                self.transport.logout()
            except MAIL_ERRORS as exc:
                logger.warning(f"Logout failed: {exc}")
        logger.info("Listen stopped.")

    def run(self) -> None:
        """
        Connect, select the mailbox, and watch until stop() or connection close.

        Raises:
            SystemExit(1): connect or mailbox open failed retry_max times
        """
        cfg = self.config
        logger.info("Starting IMAP listen service")
        logger.info(
            f"Connecting to {cfg.host}:{cfg.port} as {cfg.user} "
            f"(pass: {mask_password(cfg.password)})..."
        )

        state, _ = connect_with_retry(
            self.transport.connect,
            what="Connect",
            retry_max=cfg.retry_max,
            retry_delay_seconds=cfg.retry_delay_seconds,
            sleep=self._sleep,
        )
        if state is ConnectionState.FAILED:
            logger.error("Max retries reached. Exiting.")
            raise SystemExit(1)
        logger.info(f"Connected as {cfg.user}@{cfg.host}")

        logger.info(f"Opening mailbox: {cfg.mailbox} ...")
        state, exists = connect_with_retry(
            lambda: self.transport.open_mailbox(cfg.mailbox),
            what="Mailbox open",
            retry_max=cfg.retry_max,
            retry_delay_seconds=cfg.retry_delay_seconds,
            sleep=self._sleep,
        )
        if state is ConnectionState.FAILED:
            logger.error("Max retries reached. Exiting.")
            try:
                self.transport.logout()
            except MAIL_ERRORS as exc:
                logger.warning(f"Logout failed: {exc}")
            raise SystemExit(1)

        self.last_count = exists or 0
        logger.info(f"Mailbox opened. Message count: {self.last_count} | Dedupe set size: {len(self.seen)}")
        if cfg.webhook_url:
            logger.info(f"Webhook forwarding ON -> {cfg.webhook_url}")
        else:
            logger.info("Webhook forwarding OFF (set WEBHOOK_URL or IMAP_WEBHOOK_URL to enable).")
        logger.info("Watching for new messages (Ctrl+C to stop).")

        try:
            self._watch()
        finally:
            self._close()
