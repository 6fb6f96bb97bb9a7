"""Input and detection models for subscription scanning."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Category(StrEnum):
    """Service category shown alongside a detection."""

    STREAMING = "streaming"
    MUSIC = "music"
    PRODUCTIVITY = "productivity"
    CLOUD = "cloud"
    GAMING = "gaming"
    NEWS = "news"
    FITNESS = "fitness"
    EDUCATION = "education"
    OTHER = "other"


class BillingCycle(StrEnum):
    """How often a subscription charges."""

    MONTHLY = "monthly"
    YEARLY = "yearly"
    WEEKLY = "weekly"
    QUARTERLY = "quarterly"


class PurchaseType(StrEnum):
    """Kind of charge found on an itemized App Store receipt."""

    SUBSCRIPTION = "subscription"
    IN_APP_PURCHASE = "in_app_purchase"
    PURCHASE = "purchase"


class DetectionType(StrEnum):
    """Whether a detection looks like a recurring or a one-off charge."""

    SUBSCRIPTION = "subscription"
    PAYMENT = "payment"


class DetectionPath(StrEnum):
    """Which matching path produced a detection."""

    GENERIC = "generic"
    SENDER_MATCHED = "sender_matched"
    APPLE_ITEMIZED = "apple_itemized"
    PAYMENT = "payment"


# Upper sanity bound for a single charge, inclusive.
PRICE_CEILINGS: dict[str, Decimal] = {
    "JPY": Decimal("999999"),
    "USD": Decimal("1000"),
    "EUR": Decimal("1000"),
}


@dataclass(frozen=True)
class RawEmail:
    """Raw email as delivered by a source adapter. Never mutated."""

    subject: str
    sender: str
    date: datetime
    text_body: str | None = None
    html_body: str | None = None
    source_id: str | None = None


class DetectedSubscription(BaseModel):
    """A single purchase or subscription found in one email.

    ``confidence`` is an additive heuristic score, not a probability. Some
    detection paths can push it above 1.0.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    category: Category = Category.OTHER
    price: Decimal | None = Field(default=None, gt=0)
    currency: str = Field(default="JPY", pattern=r"^[A-Z]{3}$")
    billing_cycle: BillingCycle | None = None
    source_address: str = ""
    detected_date: datetime
    confidence: float = Field(ge=0.0)
    detection_type: DetectionType = DetectionType.PAYMENT
    path: DetectionPath = DetectionPath.GENERIC
    purchase_type: PurchaseType | None = None
    item_name: str | None = None
    is_billing: bool = False
    subject: str | None = None
    next_billing_date: date | None = None
    extracted_by_ai: bool = False

    @model_validator(mode="after")
    def _check_price_ceiling(self) -> DetectedSubscription:
        ceiling = PRICE_CEILINGS.get(self.currency)
        if self.price is not None and ceiling is not None and self.price > ceiling:
            msg = f"price {self.price} {self.currency} exceeds ceiling {ceiling}"
            raise ValueError(msg)
        return self


class PaymentRecord(BaseModel):
    """One billed charge contributing to a subscription's history."""

    model_config = ConfigDict(frozen=True)

    date: datetime
    price: Decimal = Field(gt=0)
    currency: str = Field(pattern=r"^[A-Z]{3}$")
    subject: str | None = None


class SubItemPurchase(BaseModel):
    """A single dated charge for one item."""

    model_config = ConfigDict(frozen=True)

    date: datetime
    price: Decimal = Field(gt=0)


class SubItem(BaseModel):
    """Per-item breakdown of charges within one app."""

    model_config = ConfigDict(frozen=True)

    name: str
    currency: str
    purchases: tuple[SubItemPurchase, ...] = ()
    total_paid: Decimal = Decimal(0)


class AggregatedSubscription(DetectedSubscription):
    """Deduplicated detection with its accumulated payment history."""

    payment_history: tuple[PaymentRecord, ...] = ()
    total_paid: Decimal = Decimal(0)
    payment_count: int = 0
    sub_items: tuple[SubItem, ...] = ()
