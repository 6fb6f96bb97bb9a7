"""Conversion of ``email.message.Message`` objects into RawEmail."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from email.header import decode_header
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, cast

from subscan.models import RawEmail

if TYPE_CHECKING:
    from email.message import Message

logger = logging.getLogger(__name__)


def parse_message(msg: Message, source_id: str | None = None) -> RawEmail:
    """Convert an email Message to a RawEmail.

    Only the first text/plain and text/html parts are kept; attachments are
    ignored. A missing or unparseable Date header falls back to now (UTC).
    """
    subject = decode_header_value(msg.get("Subject", ""))
    sender = decode_header_value(msg.get("From", ""))
    text_body, html_body = extract_bodies(msg)

    return RawEmail(
        subject=subject,
        sender=sender,
        date=_parse_date(msg.get("Date")),
        text_body=text_body,
        html_body=html_body,
        source_id=source_id or _message_id(msg),
    )


def decode_header_value(value: str | None) -> str:
    """Decode an RFC 2047 encoded header value."""
    if not value:
        return ""
    decoded_parts: list[str] = []
    for data, charset in decode_header(str(value)):
        if isinstance(data, bytes):
            decoded_parts.append(_decode(data, charset))
        else:
            decoded_parts.append(data)
    return "".join(decoded_parts)


def extract_bodies(msg: Message) -> tuple[str | None, str | None]:
    """Return the ``(text, html)`` bodies of a message."""
    text_body: str | None = None
    html_body: str | None = None

    for part in msg.walk():
        if part.get_content_maintype() == "multipart":
            continue
        disposition = str(part.get("Content-Disposition", "")).lower()
        if part.get_filename() or "attachment" in disposition:
            continue

        content_type = part.get_content_type()
        if content_type not in ("text/plain", "text/html"):
            continue
        raw_payload = part.get_payload(decode=True)
        if raw_payload is None:
            continue
        payload = _decode(cast("bytes", raw_payload), part.get_content_charset())

        if content_type == "text/plain" and text_body is None:
            text_body = payload
        elif content_type == "text/html" and html_body is None:
            html_body = payload

    return text_body, html_body


def _decode(data: bytes, charset: str | None) -> str:
    try:
        return data.decode(charset or "utf-8", errors="replace")
    except LookupError:
        logger.debug("Unknown charset %r; decoding as utf-8", charset)
        return data.decode("utf-8", errors="replace")


def _parse_date(value: str | None) -> datetime:
    if value:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            logger.debug("Unparseable Date header %r", value)
        else:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=UTC)
            return parsed
    return datetime.now(tz=UTC)


def _message_id(msg: Message) -> str | None:
    message_id = msg.get("Message-ID")
    return message_id.strip() if message_id else None
