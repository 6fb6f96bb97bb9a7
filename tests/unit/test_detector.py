"""Tests for subscan.detector."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from unittest.mock import patch

import pytest

from subscan.catalog import UNKNOWN_PAYMENT_NAME
from subscan.detector import SubscriptionDetector
from subscan.models import (
    BillingCycle,
    Category,
    DetectionPath,
    DetectionType,
    PurchaseType,
    RawEmail,
)


@pytest.fixture
def detector() -> SubscriptionDetector:
    return SubscriptionDetector()


def _email(
    *,
    subject: str = "Test Subject",
    sender: str = "sender@example.com",
    text: str | None = None,
    html: str | None = None,
) -> RawEmail:
    return RawEmail(
        subject=subject,
        sender=sender,
        date=datetime(2025, 6, 15, 10, 30, 0, tzinfo=UTC),
        text_body=text,
        html_body=html,
    )


class TestAppleReceipts:
    """Apple receipts go through the itemizer only."""

    def test_itemized_detections(
        self, detector: SubscriptionDetector, apple_receipt: RawEmail
    ) -> None:
        detections = detector.detect(apple_receipt)

        assert [(d.name, d.price) for d in detections] == [
            ("ARK: Ultimate Mobile Edition", Decimal(700)),
            ("ブロスタ", Decimal(800)),
        ]
        ark, brawl = detections
        assert ark.category == Category.OTHER
        assert ark.path == DetectionPath.APPLE_ITEMIZED
        assert ark.detection_type == DetectionType.SUBSCRIPTION
        assert ark.purchase_type == PurchaseType.SUBSCRIPTION
        assert ark.billing_cycle == BillingCycle.MONTHLY
        assert ark.item_name == "ARK Pass - Monthly"
        assert ark.is_billing is True
        assert ark.confidence == pytest.approx(1.15)

        assert brawl.detection_type == DetectionType.PAYMENT
        assert brawl.purchase_type == PurchaseType.IN_APP_PURCHASE
        assert brawl.confidence == pytest.approx(1.0)

    def test_catalog_reconciles_app_name(self, detector: SubscriptionDetector) -> None:
        email = _email(
            subject="Your receipt from Apple.",
            sender="no_reply@email.apple.com",
            text="App Store\nSpotify Premium (月額)\n問題を報告する ¥980\n合計 ¥980",
        )
        (detection,) = detector.detect(email)
        assert detection.name == "Spotify"
        assert detection.category == Category.MUSIC
        assert detection.item_name == "Premium"

    def test_no_anchor_means_nothing(self, detector: SubscriptionDetector) -> None:
        email = _email(
            subject="Appleからの領収書です。",
            sender="no_reply@email.apple.com",
            text="Netflix 月額 ¥1,490",
        )
        assert detector.detect(email) == []

    def test_renewal_notice(self, detector: SubscriptionDetector) -> None:
        email = _email(
            subject="サブスクリプションの確認",
            sender="no_reply@email.apple.com",
            text="YouTube Premium（1か月）¥1,280／月\n有効期限は 7月1日",
        )
        (detection,) = detector.detect(email)
        assert detection.name == "YouTube Premium"
        assert detection.category == Category.STREAMING
        assert detection.price == Decimal(1280)
        assert detection.next_billing_date == date(2025, 7, 1)
        assert detection.detection_type == DetectionType.SUBSCRIPTION

    def test_renewal_notice_drops_implausible_amount(
        self, detector: SubscriptionDetector
    ) -> None:
        email = _email(
            subject="サブスクリプションの確認",
            sender="no_reply@email.apple.com",
            text="Foo（1か月）¥2,000,000／月\nBar（1か月）¥480／月",
        )
        assert [d.name for d in detector.detect(email)] == ["Bar"]


class TestSenderMatched:
    """Catalogued senders."""

    def test_billing_email(
        self, detector: SubscriptionDetector, netflix_billing: RawEmail
    ) -> None:
        (detection,) = detector.detect(netflix_billing)

        assert detection.name == "Netflix"
        assert detection.category == Category.STREAMING
        assert detection.path == DetectionPath.SENDER_MATCHED
        assert detection.price == Decimal(1490)
        assert detection.currency == "JPY"
        assert detection.billing_cycle == BillingCycle.MONTHLY
        assert detection.is_billing is True
        assert detection.subject == netflix_billing.subject
        assert detection.confidence == pytest.approx(1.0)

    def test_lenient_window_accepts_small_amounts(
        self, detector: SubscriptionDetector
    ) -> None:
        email = _email(
            subject="Your receipt",
            sender="no-reply@spotify.com",
            text="Spotify add-on ¥60",
        )
        (detection,) = detector.detect(email)
        assert detection.path == DetectionPath.SENDER_MATCHED
        assert detection.price == Decimal(60)


class TestGeneric:
    """Catalog classification over the full text."""

    def test_prime_video_not_prime(self, detector: SubscriptionDetector) -> None:
        email = _email(
            subject="ご利用ありがとうございます",
            text="Amazon Prime Video チャンネル 月額 ¥600",
        )
        (detection,) = detector.detect(email)
        assert detection.name == "Amazon Prime Video"
        assert detection.path == DetectionPath.GENERIC
        assert detection.price == Decimal(600)

    def test_confidence_signals(self, detector: SubscriptionDetector) -> None:
        email = _email(subject="Notion receipt", text="Plus plan $10.00 per month")
        (detection,) = detector.detect(email)
        assert detection.name == "Notion"
        assert detection.price == Decimal("10.00")
        assert detection.currency == "USD"
        assert detection.confidence == pytest.approx(1.0)
        assert detection.detection_type == DetectionType.SUBSCRIPTION

    def test_without_price(self, detector: SubscriptionDetector) -> None:
        email = _email(subject="Welcome to Duolingo", text="Let's get started")
        (detection,) = detector.detect(email)
        assert detection.price is None
        assert detection.confidence == pytest.approx(0.5)
        assert detection.detection_type == DetectionType.PAYMENT


class TestPayment:
    """Payment emails from unknown senders."""

    def test_unknown_sender_with_price(self, detector: SubscriptionDetector) -> None:
        email = _email(
            subject="お支払いのお知らせ",
            sender='"Acme Cloud Billing" <billing@acme.example>',
            text="今月のご請求 ¥2,200",
        )
        (detection,) = detector.detect(email)
        assert detection.name == "Acme Cloud"
        assert detection.category == Category.OTHER
        assert detection.path == DetectionPath.PAYMENT
        assert detection.price == Decimal(2200)
        assert detection.confidence == pytest.approx(0.45)

    def test_payment_without_price_skipped(
        self, detector: SubscriptionDetector
    ) -> None:
        email = _email(subject="ご注文ありがとうございます", text="発送準備中です")
        assert detector.detect(email) == []

    def test_empty_body_no_keywords(self, detector: SubscriptionDetector) -> None:
        assert detector.detect(_email(subject="Hello", text=None)) == []

    def test_sender_without_usable_domain(self, detector: SubscriptionDetector) -> None:
        email = _email(subject="お支払い完了", sender="x@.com", text="合計 ¥980")
        (detection,) = detector.detect(email)
        assert detection.name == UNKNOWN_PAYMENT_NAME
        assert detection.price == Decimal(980)


class TestDetectAll:
    """Tests for SubscriptionDetector.detect_all."""

    def test_concatenates_in_order(
        self,
        detector: SubscriptionDetector,
        apple_receipt: RawEmail,
        netflix_billing: RawEmail,
    ) -> None:
        detections = detector.detect_all([netflix_billing, apple_receipt])
        assert [d.name for d in detections] == [
            "Netflix",
            "ARK: Ultimate Mobile Edition",
            "ブロスタ",
        ]

    def test_failure_skips_email(
        self,
        detector: SubscriptionDetector,
        netflix_billing: RawEmail,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        broken = _email(subject="broken", text="x")
        original = detector.detect

        def flaky(email: RawEmail) -> list:
            if email is broken:
                msg = "boom"
                raise RuntimeError(msg)
            return original(email)

        with patch.object(detector, "detect", side_effect=flaky):
            detections = detector.detect_all([broken, netflix_billing])

        assert [d.name for d in detections] == ["Netflix"]
        assert "Failed to process email 'broken'" in caplog.text
