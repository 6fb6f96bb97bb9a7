"""Turn raw emails into subscription and payment detections."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from subscan.apple import (
    AppleReceiptItemizer,
    extract_renewal_notices,
    is_apple_receipt,
    is_apple_sender,
    is_renewal_notice,
)
from subscan.catalog import DEFAULT_CATALOG, RECEIPT_KEYWORDS
from subscan.classifier import (
    ServiceClassifier,
    is_billing_email,
    is_payment_related,
    is_subscription_text,
    service_name_from_sender,
)
from subscan.models import (
    Category,
    DetectedSubscription,
    DetectionPath,
    DetectionType,
    PurchaseType,
)
from subscan.normalizer import body_lines, full_text, normalize
from subscan.pricing import LENIENT_WINDOWS, STRICT_WINDOWS, PriceExtractor
from subscan.scoring import Signals, score

if TYPE_CHECKING:
    from collections.abc import Iterable

    from subscan.apple import ApplePurchase
    from subscan.catalog import Catalog
    from subscan.models import RawEmail

logger = logging.getLogger(__name__)


class SubscriptionDetector:
    """Run every detection path over an email; the first path that finds
    something wins.

    Order: itemized Apple receipts, Apple renewal notices, catalog entries
    matched by sender, catalog entries matched anywhere in the text, and
    finally any payment email with a readable price.
    """

    def __init__(self, catalog: Catalog = DEFAULT_CATALOG) -> None:
        self.catalog = catalog
        self.classifier = ServiceClassifier(catalog.services)
        self.prices = PriceExtractor(catalog)
        self.itemizer = AppleReceiptItemizer(catalog)

    def detect(self, email: RawEmail) -> list[DetectedSubscription]:
        if is_apple_receipt(email.sender, email.subject):
            # Receipt bodies don't classify reliably; no generic fallback.
            return self.itemize_email(email)

        if is_renewal_notice(email.sender, email.subject):
            notices = self.renewal_notices(email)
            if notices:
                return notices

        text = full_text(email)
        if not is_apple_sender(email.sender):
            detection = self._sender_matched(email, text)
            if detection is not None:
                return [detection]

        detection = self._generic(email, text)
        if detection is not None:
            return [detection]

        detection = self._payment(email, text)
        return [detection] if detection is not None else []

    def detect_all(self, emails: Iterable[RawEmail]) -> list[DetectedSubscription]:
        """Detect across a batch; an email that fails is logged and skipped."""
        detections: list[DetectedSubscription] = []
        for email in emails:
            try:
                detections.extend(self.detect(email))
            except Exception:
                logger.warning(
                    "Failed to process email %r from %s",
                    email.subject,
                    email.sender,
                    exc_info=True,
                )
        return detections

    def itemize_email(self, email: RawEmail) -> list[DetectedSubscription]:
        """One detection per purchase on an Apple receipt."""
        lines = body_lines(email.text_body, email.html_body)
        purchases = self.itemizer.itemize(lines)
        logger.debug("Itemized %d purchase(s) from %r", len(purchases), email.subject)
        return [self._from_purchase(email, purchase) for purchase in purchases]

    def renewal_notices(self, email: RawEmail) -> list[DetectedSubscription]:
        lines = body_lines(email.text_body, email.html_body)
        purchases = extract_renewal_notices("\n".join(lines), email.date.date())
        return [self._from_purchase(email, purchase) for purchase in purchases]

    def _from_purchase(
        self, email: RawEmail, purchase: ApplePurchase
    ) -> DetectedSubscription:
        joined = f"{purchase.app_name} {purchase.item_name or ''}".strip()
        match = self.classifier.reconcile(
            purchase.app_name, purchase.item_name, joined
        )
        signals = Signals(
            price=True,
            cycle=purchase.billing_cycle is not None,
            keyword=bool(RECEIPT_KEYWORDS.search(email.subject)),
        )
        if purchase.purchase_type is PurchaseType.SUBSCRIPTION:
            detection_type = DetectionType.SUBSCRIPTION
        else:
            detection_type = DetectionType.PAYMENT
        return DetectedSubscription(
            name=match.name if match else purchase.app_name,
            category=match.category if match else Category.OTHER,
            price=purchase.price,
            currency=purchase.currency,
            billing_cycle=purchase.billing_cycle,
            source_address=email.sender,
            detected_date=email.date,
            confidence=score(DetectionPath.APPLE_ITEMIZED, signals),
            detection_type=detection_type,
            path=DetectionPath.APPLE_ITEMIZED,
            purchase_type=purchase.purchase_type,
            item_name=purchase.item_name,
            is_billing=is_billing_email(email.subject),
            subject=email.subject,
            next_billing_date=purchase.next_billing_date,
        )

    def _sender_matched(
        self, email: RawEmail, text: str
    ) -> DetectedSubscription | None:
        match = self.classifier.match_sender(email.sender, email.subject, text)
        if match is None:
            return None
        price = self.prices.extract_price(text, LENIENT_WINDOWS)
        cycle = self.prices.extract_billing_cycle(text)
        billing = is_billing_email(email.subject)
        signals = Signals(
            sender=True,
            content=match.content_match,
            keyword=billing,
            price=price is not None,
            cycle=cycle is not None,
        )
        return DetectedSubscription(
            name=match.name,
            category=match.category,
            price=price.amount if price else None,
            currency=price.currency if price else "JPY",
            billing_cycle=cycle,
            source_address=email.sender,
            detected_date=email.date,
            confidence=score(DetectionPath.SENDER_MATCHED, signals),
            detection_type=_detection_type(text, cycle is not None),
            path=DetectionPath.SENDER_MATCHED,
            is_billing=billing,
            subject=email.subject,
        )

    def _generic(self, email: RawEmail, text: str) -> DetectedSubscription | None:
        match = self.classifier.classify(text)
        if match is None:
            return None
        price = self.prices.extract_price(text, STRICT_WINDOWS)
        cycle = self.prices.extract_billing_cycle(text)
        signals = Signals(
            price=price is not None,
            cycle=cycle is not None,
            keyword=bool(RECEIPT_KEYWORDS.search(email.subject)),
        )
        return DetectedSubscription(
            name=match.name,
            category=match.category,
            price=price.amount if price else None,
            currency=price.currency if price else "JPY",
            billing_cycle=cycle,
            source_address=email.sender,
            detected_date=email.date,
            confidence=score(DetectionPath.GENERIC, signals),
            detection_type=_detection_type(text, cycle is not None),
            path=DetectionPath.GENERIC,
            is_billing=is_billing_email(email.subject),
            subject=email.subject,
        )

    def _payment(self, email: RawEmail, text: str) -> DetectedSubscription | None:
        body = normalize(email.text_body, email.html_body)
        if not is_payment_related(email.subject, body):
            return None
        price = self.prices.extract_price(text, STRICT_WINDOWS)
        if price is None:
            logger.debug("Payment email %r has no price; skipped", email.subject)
            return None
        cycle = self.prices.extract_billing_cycle(text)
        subscription = is_subscription_text(text)
        signals = Signals(
            cycle=cycle is not None,
            keyword=bool(RECEIPT_KEYWORDS.search(email.subject)),
            subscription=subscription,
        )
        return DetectedSubscription(
            name=service_name_from_sender(email.sender),
            category=Category.OTHER,
            price=price.amount,
            currency=price.currency,
            billing_cycle=cycle,
            source_address=email.sender,
            detected_date=email.date,
            confidence=score(DetectionPath.PAYMENT, signals),
            detection_type=_detection_type(text, cycle is not None),
            path=DetectionPath.PAYMENT,
            is_billing=is_billing_email(email.subject),
            subject=email.subject,
        )


def _detection_type(text: str, has_cycle: bool) -> DetectionType:
    if has_cycle or is_subscription_text(text):
        return DetectionType.SUBSCRIPTION
    return DetectionType.PAYMENT
