"""Shared test fixtures."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from subscan.config import ImapConfig
from subscan.models import RawEmail

APPLE_RECEIPT_BODY = (
    "... App Store ARK: Ultimate Mobile Edition ARK Pass - Monthly (月額) "
    "更新：2026年2月2日 問題を報告する ¥700 JCT（10%）を含む ¥64 ブロスタ "
    "BRAWL PASS PLUS UPGRADE アプリ内課金 大にっし〜 問題を報告する ¥800 "
    "JCT（10%）を含む ¥73 小計 ¥1,363 JCT10%課税 ¥137 合計 ¥1,500"
)


@pytest.fixture
def imap_config() -> ImapConfig:
    """Provide a test IMAP configuration."""
    return ImapConfig(
        host="imap.example.com",
        username="test@example.com",
        password="secret",  # pragma: allowlist secret
        port=993,
        folder="INBOX",
    )


@pytest.fixture
def apple_receipt_body() -> str:
    """Two-purchase App Store receipt body flattened onto one line."""
    return APPLE_RECEIPT_BODY


@pytest.fixture
def apple_receipt() -> RawEmail:
    """App Store receipt email carrying two purchases."""
    return RawEmail(
        subject="Appleからの領収書です。",
        sender="Apple <no_reply@email.apple.com>",
        date=datetime(2026, 1, 3, 9, 0, 0, tzinfo=UTC),
        text_body=APPLE_RECEIPT_BODY,
        source_id="<apple-1@example.com>",
    )


@pytest.fixture
def netflix_billing() -> RawEmail:
    """Billing email from a catalogued sender."""
    return RawEmail(
        subject="Netflixのお支払い完了のお知らせ",
        sender="Netflix <info@mailer.netflix.com>",
        date=datetime(2025, 6, 15, 10, 30, 0, tzinfo=UTC),
        text_body="ご利用ありがとうございます。\nスタンダードプラン 月額 ¥1,490\n",
        source_id="<netflix-1@example.com>",
    )
