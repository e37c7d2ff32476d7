"""
IMAP mailbox transport built on imaplib.

Keeps one authenticated connection with one selected mailbox. New mail is
detected by polling NOOP and reading the untagged EXISTS count the server
pushes back; messages are fetched by sequence range with their UID.
"""

import imaplib
import logging
import re
from dataclasses import dataclass
from typing import Optional

from jobhook.services.imap_config import ImapListenConfig

logger = logging.getLogger(__name__)

# Everything imaplib or the socket layer raises for a failed command or a dropped connection
MAIL_ERRORS = (imaplib.IMAP4.error, OSError)

_SEQ_PATTERN = re.compile(rb"^(\d+)")
_UID_PATTERN = re.compile(rb"UID (\d+)")


@dataclass
class FetchedMessage:
    seq: int
    uid: Optional[int]
    raw: bytes


class ImapMailbox:
    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        *,
        secure: bool = True,
        debug: bool = False,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._secure = secure
        self._debug = debug
        self._conn: Optional[imaplib.IMAP4] = None
        self._exists = 0
        self._uid_validity: Optional[str] = None

    @classmethod
    def from_config(cls, config: ImapListenConfig) -> "ImapMailbox":
        return cls(
            config.host,
            config.port,
            config.user,
            config.password,
            secure=config.secure,
            debug=config.debug,
        )

    @property
    def conn(self) -> imaplib.IMAP4:
        if self._conn is None:
            raise RuntimeError("ImapMailbox is not connected. Call connect() first.")
        return self._conn

    @property
    def uid_validity(self) -> str:
        return self._uid_validity or ""

    @property
    def exists(self) -> int:
        return self._exists

    def connect(self) -> None:
        """Open the connection and log in."""
        if self._secure:
            conn = imaplib.IMAP4_SSL(self._host, self._port)
        else:
            conn = imaplib.IMAP4(self._host, self._port)
        if self._debug:
            conn.debug = 4
        try:
            conn.login(self._user, self._password)
        except MAIL_ERRORS:
            conn.shutdown()
            raise
        self._conn = conn

    def open_mailbox(self, mailbox: str) -> int:
        """
        SELECT the mailbox and return its message count.

        The selection is held until release_mailbox().
        """
        name = f'"{mailbox}"' if " " in mailbox else mailbox
        typ, data = self.conn.select(name)
        if typ != "OK":
            raise imaplib.IMAP4.error(f"SELECT {mailbox} failed: {data!r}")
        self._exists = int(data[0] or 0)

        _, validity = self.conn.response("UIDVALIDITY")
        if validity and validity[-1] is not None:
            self._uid_validity = validity[-1].decode()
        return self._exists

    def poll(self) -> int:
        """Send NOOP and return the latest EXISTS count the server reported."""
        self.conn.noop()
        # Drop untagged counters the watcher never reads
        self.conn.response("RECENT")
        self.conn.response("EXPUNGE")
        _, data = self.conn.response("EXISTS")
        counts = [int(d) for d in data or [] if d is not None]
        if counts:
            self._exists = counts[-1]
        return self._exists

    def fetch(self, start: int, end: int) -> list[FetchedMessage]:
        """Fetch full messages start..end (sequence numbers, inclusive)."""
        typ, data = self.conn.fetch(f"{start}:{end}", "(UID RFC822)")
        if typ != "OK":
            raise imaplib.IMAP4.error(f"FETCH {start}:{end} failed: {data!r}")

        messages: list[FetchedMessage] = []
        for part in data:
            if isinstance(part, tuple):
                meta, raw = part[0], part[1]
                seq_match = _SEQ_PATTERN.match(meta)
                uid_match = _UID_PATTERN.search(meta)
                messages.append(
                    FetchedMessage(
                        seq=int(seq_match.group(1)) if seq_match else 0,
                        uid=int(uid_match.group(1)) if uid_match else None,
                        raw=raw,
                    )
                )
            elif isinstance(part, bytes) and messages and messages[-1].uid is None:
                # Some servers send UID after the message literal
                uid_match = _UID_PATTERN.search(part)
                if uid_match:
                    messages[-1].uid = int(uid_match.group(1))
        return messages

    def release_mailbox(self) -> None:
        """CLOSE the selected mailbox."""
        if self._conn is not None and self._conn.state == "SELECTED":
            self._conn.close()

    def logout(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.logout()
        finally:
            self._conn = None
