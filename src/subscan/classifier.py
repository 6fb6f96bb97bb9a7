"""Catalog-based service classification."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from subscan.catalog import (
    BILLING_SUBJECT_KEYWORDS,
    DEFAULT_SERVICES,
    DOMAIN_NOISE_LABELS,
    EXPLICIT_SUBSCRIPTION_KEYWORDS,
    IN_APP_PATTERNS,
    PAYMENT_KEYWORDS,
    PROMO_SUBJECT_PATTERNS,
    SENDER_NOISE_WORDS,
    SUBSCRIPTION_KEYWORDS,
    UNKNOWN_PAYMENT_NAME,
)

if TYPE_CHECKING:
    from subscan.catalog import ServicePattern
    from subscan.models import Category

logger = logging.getLogger(__name__)

_DISPLAY_NAME = re.compile(r'^"?([^"<]+)"?\s*<')
_ADDRESS = re.compile(r"<?\s*([^\s<>]+@([^\s<>]+))\s*>?")


@dataclass(frozen=True)
class ServiceMatch:
    """Result of classifying a piece of text against the catalog."""

    name: str
    category: Category
    service: ServicePattern


@dataclass(frozen=True)
class SenderMatch:
    """A catalog entry matched through its sender address."""

    service: ServicePattern
    content_match: bool

    @property
    def name(self) -> str:
        return self.service.name

    @property
    def category(self) -> Category:
        return self.service.category


class ServiceClassifier:
    """Classify text against an ordered service catalog; first match wins."""

    def __init__(
        self, services: tuple[ServicePattern, ...] = DEFAULT_SERVICES
    ) -> None:
        self.services = services

    def classify(self, text: str) -> ServiceMatch | None:
        """Return the first catalog entry whose pattern occurs in ``text``."""
        if not text:
            return None
        for service in self.services:
            if service.pattern.search(text):
                logger.debug("Classified text as %s", service.name)
                return ServiceMatch(service.name, service.category, service)
        return None

    def reconcile(self, *candidates: str | None) -> ServiceMatch | None:
        """Classify each candidate string in turn; return the first hit."""
        for candidate in candidates:
            if not candidate:
                continue
            match = self.classify(candidate)
            if match is not None:
                return match
        return None

    def match_sender(
        self, sender: str, subject: str, text: str
    ) -> SenderMatch | None:
        """Match a catalog entry by sender address.

        Only entries that declare sender patterns take part. The sender must
        match, and either the entry's subject patterns occur in ``text`` or
        the subject reads like a billing email.
        """
        sender_lower = sender.lower()
        billing = is_billing_email(subject)
        for service in self.services:
            if not service.sender_patterns or not service.subject_patterns:
                continue
            if not any(p.search(sender_lower) for p in service.sender_patterns):
                continue
            content_match = any(p.search(text) for p in service.subject_patterns)
            if content_match or billing:
                logger.debug(
                    "Sender %s matched %s (content=%s)",
                    sender,
                    service.name,
                    content_match,
                )
                return SenderMatch(service, content_match)
        return None


def is_billing_email(subject: str) -> bool:
    """Strict billing test: a billing keyword in a non-promotional subject."""
    if any(p.search(subject) for p in PROMO_SUBJECT_PATTERNS):
        return False
    return any(p.search(subject) for p in BILLING_SUBJECT_KEYWORDS)


def is_payment_related(subject: str, body: str) -> bool:
    """Loose test: any payment keyword anywhere in the subject or body."""
    text = f"{subject} {body}".lower()
    return any(keyword in text for keyword in PAYMENT_KEYWORDS)


def is_in_app_text(text: str) -> bool:
    """Whether the text mentions an in-app purchase or virtual currency."""
    return any(p.search(text) for p in IN_APP_PATTERNS)


def is_subscription_text(text: str) -> bool:
    """Whether the wording describes a recurring charge.

    In-app purchase wording (coins, gems, "アプリ内課金") vetoes the result
    unless explicit subscription wording is also present.
    """
    lowered = text.lower()
    if is_in_app_text(text) and not any(
        keyword.lower() in lowered for keyword in EXPLICIT_SUBSCRIPTION_KEYWORDS
    ):
        return False
    return any(keyword.lower() in lowered for keyword in SUBSCRIPTION_KEYWORDS)


def service_name_from_sender(sender: str) -> str:
    """Derive a display name for an unknown payment from the From header.

    Uses the display name with noreply/support style words removed, falling
    back to the main label of the sender's domain.
    """
    match = _DISPLAY_NAME.match(sender)
    if match and match.group(1).strip():
        name = SENDER_NOISE_WORDS.sub(" ", match.group(1)).strip()
        if name:
            return name
    return _domain_name(sender)


def _domain_name(sender: str) -> str:
    match = _ADDRESS.search(sender)
    if not match:
        return UNKNOWN_PAYMENT_NAME
    labels = match.group(2).lower().split(".")
    # The top-level domain never names the service.
    candidates = labels[:-1] or labels
    meaningful = (c for c in candidates if c and c not in DOMAIN_NOISE_LABELS)
    main = next(meaningful, candidates[0])
    if not main:
        return UNKNOWN_PAYMENT_NAME
    return main[:1].upper() + main[1:]
