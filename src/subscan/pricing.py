"""Price and billing-cycle extraction from normalized text."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from subscan.catalog import (
    DEFAULT_CATALOG,
    PRICE_CONTEXT_EXCLUSIONS,
    PRICE_LABELS,
    PRICE_SUFFIX_EXCLUSIONS,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from subscan.catalog import Catalog
    from subscan.models import BillingCycle

logger = logging.getLogger(__name__)

# Characters either side of a match inspected for "points", "order no." etc.
_CONTEXT_CHARS = 12


@dataclass(frozen=True)
class PriceWindow:
    """Plausible range for one currency.

    Bounds are inclusive unless the matching ``*_exclusive`` flag is set.
    """

    minimum: Decimal
    maximum: Decimal
    minimum_exclusive: bool = False
    maximum_exclusive: bool = False

    def __contains__(self, amount: object) -> bool:
        if not isinstance(amount, Decimal):
            return False
        if self.minimum_exclusive:
            above = amount > self.minimum
        else:
            above = amount >= self.minimum
        if self.maximum_exclusive:
            below = amount < self.maximum
        else:
            below = amount <= self.maximum
        return above and below


@dataclass(frozen=True)
class Price:
    amount: Decimal
    currency: str


_USD_WINDOW = PriceWindow(Decimal(1), Decimal(1000))
_EUR_WINDOW = PriceWindow(Decimal(1), Decimal(1000))

# Any positive yen amount under a million.
LENIENT_WINDOWS: Mapping[str, PriceWindow] = {
    "JPY": PriceWindow(
        Decimal(0),
        Decimal(1_000_000),
        minimum_exclusive=True,
        maximum_exclusive=True,
    ),
    "USD": _USD_WINDOW,
    "EUR": _EUR_WINDOW,
}

# Typical subscription price range, used when matching catalog services.
STRICT_WINDOWS: Mapping[str, PriceWindow] = {
    "JPY": PriceWindow(Decimal(100), Decimal(100_000)),
    "USD": _USD_WINDOW,
    "EUR": _EUR_WINDOW,
}


def parse_amount(token: str | None) -> Decimal | None:
    """Parse a numeric token with ``,`` thousands separators."""
    if not token:
        return None
    try:
        amount = Decimal(token.replace(",", ""))
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


class PriceExtractor:
    """Find the first plausible price and billing cycle in a text."""

    def __init__(self, catalog: Catalog = DEFAULT_CATALOG) -> None:
        self.catalog = catalog

    def extract_price(
        self, text: str, windows: Mapping[str, PriceWindow] = STRICT_WINDOWS
    ) -> Price | None:
        """Return the first pattern occurrence whose value is plausible.

        Patterns are tried in catalog order and each pattern's occurrences in
        document order. Values outside the currency's window, and numbers
        labelled as points, coupons or order/member numbers, are skipped.
        """
        if not text:
            return None
        for price_pattern in self.catalog.price_patterns:
            window = windows.get(price_pattern.currency)
            if window is None:
                continue
            for match in price_pattern.pattern.finditer(text):
                amount = parse_amount(match.group(1))
                if amount is None or amount not in window:
                    logger.debug(
                        "Rejected %s %s outside plausible window",
                        match.group(1),
                        price_pattern.currency,
                    )
                    continue
                if _labelled_as_non_price(text, match.start(), match.end()):
                    logger.debug("Rejected %r by surrounding context", match.group(0))
                    continue
                return Price(amount, price_pattern.currency)
        return None

    def extract_billing_cycle(self, text: str) -> BillingCycle | None:
        """Return the first billing cycle whose keywords occur in ``text``."""
        if not text:
            return None
        for cycle_pattern in self.catalog.cycle_patterns:
            if cycle_pattern.pattern.search(text):
                return cycle_pattern.cycle
        return None


def _labelled_as_non_price(text: str, start: int, end: int) -> bool:
    """Whether the words around a matched amount say it is not a charge.

    An exclusion in the preceding context only counts when no billing label
    sits between it and the amount (``50 points. 合計: ¥980`` is a price).
    """
    context_start = max(0, start - _CONTEXT_CHARS)
    for pattern in PRICE_CONTEXT_EXCLUSIONS:
        hits = list(pattern.finditer(text, context_start, start))
        if hits and not PRICE_LABELS.search(text, hits[-1].end(), end):
            return True
    after = text[end : end + _CONTEXT_CHARS]
    return any(p.search(after) for p in PRICE_SUFFIX_EXCLUSIONS)
