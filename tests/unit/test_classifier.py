"""Tests for subscan.classifier and the default catalog."""

from __future__ import annotations

import pytest

from subscan.catalog import DEFAULT_SERVICES, UNKNOWN_PAYMENT_NAME
from subscan.classifier import (
    ServiceClassifier,
    is_billing_email,
    is_payment_related,
    is_subscription_text,
    service_name_from_sender,
)
from subscan.models import Category


@pytest.fixture
def classifier() -> ServiceClassifier:
    return ServiceClassifier()


class TestCatalog:
    """Ordering properties of the default service list."""

    def test_names_unique(self) -> None:
        names = [service.name for service in DEFAULT_SERVICES]
        assert len(names) == len(set(names))

    def test_sender_entries_have_subject_patterns(self) -> None:
        for service in DEFAULT_SERVICES:
            if service.sender_patterns:
                assert service.subject_patterns, service.name


class TestClassify:
    """Tests for ServiceClassifier.classify."""

    def test_matches_case_insensitively(self, classifier: ServiceClassifier) -> None:
        match = classifier.classify("Your NETFLIX membership")
        assert match is not None
        assert match.name == "Netflix"
        assert match.category == Category.STREAMING

    def test_prime_video_before_prime(self, classifier: ServiceClassifier) -> None:
        match = classifier.classify("Amazon Prime Video のご利用")
        assert match is not None
        assert match.name == "Amazon Prime Video"

    def test_plain_prime_membership(self, classifier: ServiceClassifier) -> None:
        match = classifier.classify("Amazon Prime 会費のお知らせ")
        assert match is not None
        assert match.name == "Amazon Prime"

    def test_shopping_is_last_resort(self, classifier: ServiceClassifier) -> None:
        match = classifier.classify("Amazon.co.jp ご注文の確認")
        assert match is not None
        assert match.name == "Amazon"

    def test_japanese_alias(self, classifier: ServiceClassifier) -> None:
        match = classifier.classify("ニンテンドースイッチオンライン 12か月")
        assert match is not None
        assert match.category == Category.GAMING

    def test_no_match(self, classifier: ServiceClassifier) -> None:
        assert classifier.classify("Lunch with friends on Friday") is None

    def test_empty_text(self, classifier: ServiceClassifier) -> None:
        assert classifier.classify("") is None


class TestReconcile:
    """Tests for ServiceClassifier.reconcile."""

    def test_first_hit_wins(self, classifier: ServiceClassifier) -> None:
        match = classifier.reconcile("Unknown App", None, "Spotify Premium")
        assert match is not None
        assert match.name == "Spotify"

    def test_no_candidates_match(self, classifier: ServiceClassifier) -> None:
        assert classifier.reconcile("ブロスタ", "BRAWL PASS PLUS UPGRADE") is None


class TestMatchSender:
    """Tests for ServiceClassifier.match_sender."""

    def test_sender_and_content(self, classifier: ServiceClassifier) -> None:
        match = classifier.match_sender(
            "Netflix <info@mailer.netflix.com>",
            "Your account",
            "Netflix standard plan",
        )
        assert match is not None
        assert match.name == "Netflix"
        assert match.content_match is True

    def test_billing_subject_without_content(
        self, classifier: ServiceClassifier
    ) -> None:
        match = classifier.match_sender(
            "no-reply@spotify.com", "Your receipt", "Thanks for paying"
        )
        assert match is not None
        assert match.name == "Spotify"
        assert match.content_match is False

    def test_unknown_sender(self, classifier: ServiceClassifier) -> None:
        assert (
            classifier.match_sender("shop@example.com", "Your receipt", "Netflix")
            is None
        )

    def test_sender_without_content_or_billing(
        self, classifier: ServiceClassifier
    ) -> None:
        assert (
            classifier.match_sender("no-reply@spotify.com", "New releases", "Hi")
            is None
        )


class TestBillingEmail:
    """Tests for is_billing_email."""

    @pytest.mark.parametrize(
        "subject",
        ["Your receipt from Apple", "領収書", "お支払い完了のお知らせ", "Invoice #12"],
    )
    def test_billing_subjects(self, subject: str) -> None:
        assert is_billing_email(subject)

    @pytest.mark.parametrize(
        "subject",
        ["キャンペーンのご案内 領収書", "Special offer: upgrade now", "Weekly digest"],
    )
    def test_promotional_or_unrelated(self, subject: str) -> None:
        assert not is_billing_email(subject)


class TestKeywordHelpers:
    """Tests for is_payment_related and is_subscription_text."""

    def test_payment_related(self) -> None:
        assert is_payment_related("ご注文ありがとうございます", "")
        assert is_payment_related("Hello", "Your payment was received")
        assert not is_payment_related("Hello", "See you soon")

    def test_subscription_wording(self) -> None:
        assert is_subscription_text("月額プランが自動更新されました")
        assert is_subscription_text("Your subscription renewed")

    def test_in_app_wording_vetoes(self) -> None:
        assert not is_subscription_text("ジェム 500個 継続してお楽しみください")

    def test_explicit_wording_overrides_in_app(self) -> None:
        assert is_subscription_text("コイン付き月額パス")


class TestServiceNameFromSender:
    """Tests for service_name_from_sender."""

    def test_display_name(self) -> None:
        assert service_name_from_sender('"Acme Billing" <billing@acme.io>') == "Acme"

    def test_domain_fallback(self) -> None:
        assert service_name_from_sender("noreply@mail.example.com") == "Example"

    def test_unparseable(self) -> None:
        assert service_name_from_sender("") == UNKNOWN_PAYMENT_NAME

    def test_empty_domain_label(self) -> None:
        assert service_name_from_sender("x@.com") == UNKNOWN_PAYMENT_NAME

    def test_top_level_domain_ignored(self) -> None:
        assert service_name_from_sender("receipts@shop.jp") == "Shop"
