"""Configuration via environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_IMAP_HOST = "imap.mail.me.com"
DEFAULT_SCAN_LIMIT = 200
MAX_SCAN_LIMIT = 500


@dataclass(frozen=True)
class ImapConfig:
    """IMAP connection configuration."""

    host: str
    username: str
    password: str
    port: int = 993
    folder: str = "INBOX"


def get_imap_config() -> ImapConfig:
    """Build IMAP configuration from environment variables.

    Required: IMAP_USERNAME, IMAP_PASSWORD
    Optional: IMAP_HOST (default imap.mail.me.com), IMAP_PORT (default 993),
    IMAP_FOLDER (default INBOX)
    """
    username = os.environ.get("IMAP_USERNAME")
    password = os.environ.get("IMAP_PASSWORD")

    missing = []
    if not username:
        missing.append("IMAP_USERNAME")
    if not password:
        missing.append("IMAP_PASSWORD")

    if missing:
        msg = f"Required environment variables not set: {', '.join(missing)}"
        raise ValueError(msg)

    port_str = os.environ.get("IMAP_PORT", "993")
    try:
        port = int(port_str)
    except ValueError:
        msg = f"IMAP_PORT must be an integer, got {port_str!r}"
        raise ValueError(msg) from None

    return ImapConfig(
        host=os.environ.get("IMAP_HOST") or DEFAULT_IMAP_HOST,
        username=username,  # type: ignore[arg-type]
        password=password,  # type: ignore[arg-type]
        port=port,
        folder=os.environ.get("IMAP_FOLDER", "INBOX"),
    )


def get_scan_limit() -> int:
    """Return SCAN_LIMIT, the most emails fetched per scan.

    Defaults to 200 and must lie between 1 and 500.
    """
    raw = os.environ.get("SCAN_LIMIT", str(DEFAULT_SCAN_LIMIT))
    try:
        limit = int(raw)
    except ValueError:
        msg = f"SCAN_LIMIT must be an integer, got {raw!r}"
        raise ValueError(msg) from None
    if not 1 <= limit <= MAX_SCAN_LIMIT:
        msg = f"SCAN_LIMIT must be between 1 and {MAX_SCAN_LIMIT}, got {limit}"
        raise ValueError(msg)
    return limit


def get_anthropic_api_key() -> str:
    """Return the ANTHROPIC_API_KEY from the environment."""
    key = os.environ.get("ANTHROPIC_API_KEY")
    if not key:
        msg = "ANTHROPIC_API_KEY environment variable is required"
        raise ValueError(msg)
    return key


def get_llm_model() -> str:
    """Return the LLM model identifier.

    Defaults to claude-haiku-4-5-20251001.
    """
    return os.environ.get("LLM_MODEL", "claude-haiku-4-5-20251001")
