"""IMAP source adapter."""

from __future__ import annotations

import imaplib
import logging
from email import message_from_bytes
from typing import TYPE_CHECKING

from subscan.adapters.message import parse_message

if TYPE_CHECKING:
    from collections.abc import Iterator

    from subscan.config import ImapConfig
    from subscan.models import RawEmail

logger = logging.getLogger(__name__)

# Senders whose mail is most likely to carry receipts.
RECEIPT_SENDERS: tuple[str, ...] = (
    "no_reply@email.apple.com",
    "appleid@id.apple.com",
    "info@mailer.netflix.com",
    "no-reply@spotify.com",
    "noreply@youtube.com",
    "payments-noreply@google.com",
)

RECEIPT_SUBJECTS: tuple[str, ...] = ("領収書", "receipt")


class ImapAdapter:
    """Fetch likely receipt emails from an IMAP mailbox.

    The folder is searched by receipt sender and by subject keyword; the
    union of matching UIDs is fetched newest first.
    """

    def __init__(
        self,
        config: ImapConfig,
        senders: tuple[str, ...] = RECEIPT_SENDERS,
        subjects: tuple[str, ...] = RECEIPT_SUBJECTS,
    ) -> None:
        self.config = config
        self.senders = senders
        self.subjects = subjects

    def fetch(self, limit: int) -> Iterator[RawEmail]:
        """Connect to IMAP and yield up to ``limit`` parsed emails."""
        conn: imaplib.IMAP4_SSL | None = None
        try:
            conn = self._connect()
            uids = self._search_uids(conn)
            logger.info("Found %d candidate message(s)", len(uids))

            for uid in uids[:limit]:
                raw_email = self._fetch_message(conn, uid)
                if raw_email is None:
                    continue
                try:
                    yield parse_message(message_from_bytes(raw_email))
                except Exception:
                    logger.warning(
                        "Failed to parse message %s", uid.decode(), exc_info=True
                    )
        finally:
            if conn is not None:
                try:
                    conn.logout()
                except Exception:
                    logger.debug("Error during IMAP logout", exc_info=True)

    def _connect(self) -> imaplib.IMAP4_SSL:
        """Establish an IMAP4_SSL connection and authenticate."""
        conn = imaplib.IMAP4_SSL(self.config.host, self.config.port)
        conn.login(self.config.username, self.config.password)
        return conn

    def _search_uids(self, conn: imaplib.IMAP4_SSL) -> list[bytes]:
        """Return matching UIDs, highest (newest) first."""
        conn.select(self.config.folder, readonly=True)
        found: set[bytes] = set()
        for sender in self.senders:
            found.update(self._search(conn, "FROM", sender))
        for subject in self.subjects:
            found.update(self._search(conn, "SUBJECT", subject))
        return sorted(found, key=int, reverse=True)

    @staticmethod
    def _search(conn: imaplib.IMAP4_SSL, key: str, value: str) -> list[bytes]:
        """Run one UID SEARCH; failures are logged and yield nothing."""
        try:
            if value.isascii():
                _status, data = conn.uid("SEARCH", key, f'"{value}"')
            else:
                conn.literal = value.encode()  # type: ignore[attr-defined]
                _status, data = conn.uid("SEARCH", "CHARSET", "UTF-8", key)
        except imaplib.IMAP4.error:
            logger.debug("IMAP search %s %r failed", key, value, exc_info=True)
            return []
        if not data or not data[0]:
            return []
        return list(data[0].split())

    def _fetch_message(self, conn: imaplib.IMAP4_SSL, uid: bytes) -> bytes | None:
        """Fetch a single message by UID."""
        _status, data = conn.uid("FETCH", uid.decode(), "(RFC822)")
        if not data or data[0] is None:
            return None
        part = data[0]
        if isinstance(part, tuple):
            return part[1]
        return None
