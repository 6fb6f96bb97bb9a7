"""Apple receipt itemization.

An App Store receipt bundles several purchases into one email. Each purchase
ends with Apple's "問題を報告する" (report a problem) link followed by the
item price, so the body is scanned line by line for that anchor and the text
since the previous anchor becomes the purchase's context window.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from subscan.catalog import DEFAULT_CATALOG
from subscan.models import BillingCycle, PurchaseType
from subscan.pricing import PriceWindow, parse_amount

if TYPE_CHECKING:
    from collections.abc import Iterable

    from subscan.catalog import Catalog

logger = logging.getLogger(__name__)

APPLE_SENDER_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"no_reply@email\.apple\.com",
        r"appleid@id\.apple\.com",
        r"@apple\.com",
        r"@itunes\.com",
        r"@email\.apple\.com",
    )
)
_RECEIPT_SUBJECT = re.compile(r"領収書|請求書|receipt|invoice", re.IGNORECASE)
_RENEWAL_SUBJECT = re.compile(r"有効期限|サブスクリプション", re.IGNORECASE)

# Per-item amounts outside this range are tax lines or stray digits.
ITEM_PRICE_WINDOW = PriceWindow(Decimal(50), Decimal(100_000))

_ANCHOR_PHRASE = "問題を報告する"
_ANCHOR = re.compile(_ANCHOR_PHRASE + r"\s*[¥￥]\s*(\d[\d,]*)")
_TRAILING_ANCHOR = re.compile(_ANCHOR_PHRASE + r"\s*$")
_LEADING_PRICE = re.compile(r"^[¥￥]\s*(\d[\d,]*)")
_TAX_DISCLOSURE = re.compile(
    r"JCT\s*[（(]\s*\d+\s*%?\s*[）)]\s*[をが]?含む\s*[¥￥]\s*[\d,]+"
)

_BOILERPLATE_LINES: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^(?:注文番号|ご注文番号|書類番号|請求日|日付|order\s*(?:id|number)|"
        r"document\s*(?:no|number)|invoice\s*date)\b",
        r"^(?:小計|合計|subtotal|total)\b",
        r"^JCT",
        r"^(?:消費税|税|tax)\b",
        r"^(?:visa|mastercard|master\s*card|jcb|amex|american\s*express|"
        r"apple\s*pay|paypay|キャリア決済)\b",
        r"^〒?\s*\d{3}-\d{4}",
        r"^\S+@\S+\.\S+$",
        r"^(?:apple\s*(?:id|account)|請求先)\b",
        r"^[¥￥]\s*[\d,]+$",
    )
)

_APP_STORE_PREFIX = re.compile(r"^.*?App\s*Store\s*", re.IGNORECASE)
_RENEWAL_SUFFIX = re.compile(r"\s*更新\s*[:：].*$")
_IN_APP_SUFFIX = re.compile(r"\s*(?:アプリ内課金|App\s*内課金).*$", re.IGNORECASE)
_CYCLE_SUFFIX = re.compile(r"\s*[（(]\s*(?:月額|年額)\s*[）)].*$")

_YEARLY_MARKER = re.compile(r"[（(]\s*年額\s*[）)]")
_MONTHLY_MARKER = re.compile(r"[（(]\s*月額\s*[）)]|更新\s*[:：]")
_IN_APP_MARKER = re.compile(r"アプリ内課金|App\s*内課金", re.IGNORECASE)

_ITEM_WORDS = re.compile(
    r"^(?:pass|premium|plus|pro|coins?|gems?|bundle|pack|upgrade|"
    r"monthly|yearly|annual|weekly)$",
    re.IGNORECASE,
)
_ITEM_WORDS_JA = re.compile(r"(?:パック|パス|コイン|ジェム|プレミアム)$")
_ALL_CAPS = re.compile(r"^(?=.*[A-Z])[A-Z0-9][A-Z0-9+&'!.]+$")
_JOINERS = frozenset({"-", "–", "—", "/", "+", "&", "・", "x", "×"})

_RENEWAL_LINE = re.compile(
    r"([A-Za-z][A-Za-z0-9 \t\-+]*?)\s*[（(](\d+\s*か?\s*[月年週])[）)]\s*"
    r"[¥￥]\s*(\d[\d,]*)\s*[／/]\s*([月年週])"
)
_EXPIRY_DATE = re.compile(r"有効期限[はが]?\s*(\d{1,2})月(\d{1,2})日")
_PERIOD_CYCLES = {
    "月": BillingCycle.MONTHLY,
    "年": BillingCycle.YEARLY,
    "週": BillingCycle.WEEKLY,
}


class ScanState(enum.Enum):
    """Where the line scanner is relative to the next purchase boundary."""

    SEEKING_ANCHOR = enum.auto()
    IN_CONTEXT_WINDOW = enum.auto()
    AWAITING_PRICE = enum.auto()


@dataclass
class ReceiptLineGroup:
    """Context lines for one purchase, closed by its anchor price."""

    lines: list[str] = field(default_factory=list)
    amount: str | None = None

    @property
    def context(self) -> str:
        return " ".join(self.lines).strip()


@dataclass(frozen=True)
class ApplePurchase:
    app_name: str
    item_name: str | None
    price: Decimal
    currency: str = "JPY"
    purchase_type: PurchaseType = PurchaseType.PURCHASE
    billing_cycle: BillingCycle | None = None
    next_billing_date: date | None = None


def is_apple_sender(sender: str) -> bool:
    """Whether the From header belongs to an Apple billing address."""
    return any(p.search(sender) for p in APPLE_SENDER_PATTERNS)


def is_apple_receipt(sender: str, subject: str) -> bool:
    """Apple sender plus a receipt or invoice word in the subject."""
    return is_apple_sender(sender) and bool(_RECEIPT_SUBJECT.search(subject))


def is_renewal_notice(sender: str, subject: str) -> bool:
    """Apple expiry or subscription-confirmation notice."""
    return is_apple_sender(sender) and bool(_RENEWAL_SUBJECT.search(subject))


def strip_tax_disclosures(line: str) -> str:
    """Remove ``JCT（10%）を含む ¥64`` style tax breakdowns from a line."""
    return " ".join(_TAX_DISCLOSURE.sub(" ", line).split())


def is_boilerplate(line: str) -> bool:
    """Whether a receipt line is order metadata, a total or other non-item text."""
    return any(p.search(line) for p in _BOILERPLATE_LINES)


class AppleReceiptItemizer:
    """Split an App Store receipt body into individual purchases."""

    def __init__(self, catalog: Catalog = DEFAULT_CATALOG) -> None:
        self.catalog = catalog

    def itemize(self, lines: Iterable[str]) -> list[ApplePurchase]:
        """Return the purchases on a receipt, in document order.

        Text after the last anchor (subtotal, tax, total) never becomes a
        purchase. Implausible amounts are skipped and repeated
        ``(app_name, price)`` pairs are reported once.
        """
        purchases: list[ApplePurchase] = []
        seen: set[tuple[str, Decimal]] = set()
        for group in self.group_lines(lines):
            purchase = self._purchase_from_group(group)
            if purchase is None:
                continue
            key = (purchase.app_name, purchase.price)
            if key in seen:
                logger.debug("Skipping duplicate purchase %s %s", *key)
                continue
            seen.add(key)
            purchases.append(purchase)
        return purchases

    def group_lines(self, lines: Iterable[str]) -> list[ReceiptLineGroup]:
        """Run the anchor scanner and return the closed line groups."""
        groups: list[ReceiptLineGroup] = []
        current = ReceiptLineGroup()
        state = ScanState.SEEKING_ANCHOR

        for raw_line in lines:
            line = strip_tax_disclosures(raw_line)
            if not line:
                continue

            if state is ScanState.AWAITING_PRICE:
                price = _LEADING_PRICE.match(line)
                if price:
                    current.amount = price.group(1)
                    groups.append(current)
                    current = ReceiptLineGroup()
                    state = ScanState.SEEKING_ANCHOR
                    line = line[price.end() :].strip()
                    if not line:
                        continue
                else:
                    logger.debug("Anchor without a price; discarding context")
                    current = ReceiptLineGroup()
                    state = ScanState.SEEKING_ANCHOR

            if _ANCHOR_PHRASE not in line:
                if is_boilerplate(line):
                    continue
                current.lines.append(line)
                state = ScanState.IN_CONTEXT_WINDOW
                continue

            position = 0
            for anchor in _ANCHOR.finditer(line):
                current.lines.append(line[position : anchor.start()])
                current.amount = anchor.group(1)
                groups.append(current)
                current = ReceiptLineGroup()
                position = anchor.end()

            rest = line[position:]
            trailing = _TRAILING_ANCHOR.search(rest)
            if trailing:
                current.lines.append(rest[: trailing.start()])
                state = ScanState.AWAITING_PRICE
            elif rest.strip():
                current.lines.append(rest)
                state = ScanState.IN_CONTEXT_WINDOW
            else:
                state = ScanState.SEEKING_ANCHOR

        if current.lines:
            logger.debug("Dropping trailing receipt text: %r", current.context)
        return groups

    def _purchase_from_group(self, group: ReceiptLineGroup) -> ApplePurchase | None:
        amount = parse_amount(group.amount)
        if amount is None or amount not in ITEM_PRICE_WINDOW:
            logger.debug("Rejected receipt amount %s", group.amount)
            return None

        context = group.context
        purchase_type, cycle = purchase_kind(context)
        residual = strip_context(context)
        if not residual:
            logger.debug("No item text before amount %s", amount)
            return None

        app_name, item_name = self.resolve_names(residual)
        return ApplePurchase(
            app_name=app_name,
            item_name=item_name,
            price=amount,
            purchase_type=purchase_type,
            billing_cycle=cycle,
        )

    def resolve_names(self, residual: str) -> tuple[str, str | None]:
        """Split ``"<app> <item>"`` into its app and item parts."""
        for known in self.catalog.known_apps:
            match = known.pattern.match(residual)
            if match:
                return known.name, match.group(2).strip() or None
        split = split_trailing_item(residual)
        if split is not None:
            return split
        return residual, None


def purchase_kind(context: str) -> tuple[PurchaseType, BillingCycle | None]:
    """Classify a receipt line group by its renewal and in-app markers."""
    if _YEARLY_MARKER.search(context):
        return PurchaseType.SUBSCRIPTION, BillingCycle.YEARLY
    if _MONTHLY_MARKER.search(context):
        return PurchaseType.SUBSCRIPTION, BillingCycle.MONTHLY
    if _IN_APP_MARKER.search(context):
        return PurchaseType.IN_APP_PURCHASE, None
    return PurchaseType.PURCHASE, None


def strip_context(context: str) -> str:
    """Remove the App Store marker and trailing renewal/in-app/cycle text."""
    text = _APP_STORE_PREFIX.sub("", context)
    text = _RENEWAL_SUFFIX.sub("", text)
    text = _IN_APP_SUFFIX.sub("", text)
    text = _CYCLE_SUFFIX.sub("", text)
    return " ".join(text.split())


def split_trailing_item(residual: str) -> tuple[str, str] | None:
    """Treat a trailing run of item-like tokens as the item name.

    ``"Spotify Premium"`` splits into ``("Spotify", "Premium")``. Returns
    ``None`` when no such run exists or nothing would be left for the app.
    """
    tokens = residual.split()
    cut = len(tokens)
    while cut > 0 and _is_item_token(tokens[cut - 1]):
        cut -= 1
    while cut < len(tokens) and tokens[cut] in _JOINERS:
        cut += 1
    if cut == 0 or cut == len(tokens):
        return None
    return " ".join(tokens[:cut]), " ".join(tokens[cut:])


def _is_item_token(token: str) -> bool:
    return bool(
        token in _JOINERS
        or _ITEM_WORDS.match(token)
        or _ITEM_WORDS_JA.search(token)
        or _ALL_CAPS.match(token)
    )


def extract_renewal_notices(text: str, reference_date: date) -> list[ApplePurchase]:
    """Parse ``Service（1か月）¥480／月`` lines from an Apple notice.

    The expiry date (``有効期限は 3月15日``) carries no year; the year of
    ``reference_date`` is used.
    """
    purchases: list[ApplePurchase] = []
    if not text:
        return purchases
    for match in _RENEWAL_LINE.finditer(text):
        amount = parse_amount(match.group(3))
        if amount is None or amount not in ITEM_PRICE_WINDOW:
            logger.debug("Skipping implausible renewal amount %r", match.group(3))
            continue
        period = match.group(2)
        cycle = _PERIOD_CYCLES[match.group(4)]
        for unit, unit_cycle in _PERIOD_CYCLES.items():
            if unit != "月" and unit in period:
                cycle = unit_cycle
        purchases.append(
            ApplePurchase(
                app_name=" ".join(match.group(1).split()),
                item_name=None,
                price=amount,
                purchase_type=PurchaseType.SUBSCRIPTION,
                billing_cycle=cycle,
                next_billing_date=_expiry_date(text[match.start() :], reference_date),
            )
        )
    return purchases


def _expiry_date(text: str, reference_date: date) -> date | None:
    match = _EXPIRY_DATE.search(text)
    if not match:
        return None
    try:
        return date(reference_date.year, int(match.group(1)), int(match.group(2)))
    except ValueError:
        logger.debug("Ignoring invalid expiry date %r", match.group(0))
        return None
