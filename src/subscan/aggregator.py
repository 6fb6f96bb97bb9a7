"""Merge per-email detections into one record per service."""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import TYPE_CHECKING

from subscan.models import (
    AggregatedSubscription,
    PaymentRecord,
    SubItem,
    SubItemPurchase,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from subscan.models import DetectedSubscription

logger = logging.getLogger(__name__)

_SUBJECT_LIMIT = 100


def aggregate(
    detections: Iterable[DetectedSubscription],
) -> list[AggregatedSubscription]:
    """Deduplicate detections by name and attach payment history.

    For each name the detection with the highest confidence is kept; on a
    tie the one seen first stays. Every billing detection with a price adds
    a :class:`PaymentRecord`, and detections naming an item add to that
    item's breakdown. Totals are plain sums with no currency conversion.
    The result is ordered by confidence, highest first.
    """
    best: dict[str, DetectedSubscription] = {}
    history: defaultdict[str, list[PaymentRecord]] = defaultdict(list)
    items: defaultdict[str, dict[str, list[DetectedSubscription]]] = defaultdict(
        dict
    )

    seen = 0
    for detection in detections:
        seen += 1
        existing = best.get(detection.name)
        if existing is None or detection.confidence > existing.confidence:
            best[detection.name] = detection

        if detection.is_billing and detection.price is not None:
            history[detection.name].append(
                PaymentRecord(
                    date=detection.detected_date,
                    price=detection.price,
                    currency=detection.currency,
                    subject=(detection.subject or "")[:_SUBJECT_LIMIT] or None,
                )
            )

        if detection.item_name and detection.price is not None:
            items[detection.name].setdefault(detection.item_name, []).append(
                detection
            )

    results = []
    for name, detection in best.items():
        payments = sorted(history[name], key=lambda record: record.date)
        results.append(
            AggregatedSubscription(
                **detection.model_dump(),
                payment_history=tuple(payments),
                total_paid=sum((p.price for p in payments), Decimal(0)),
                payment_count=len(payments),
                sub_items=_sub_items(items.get(name, {})),
            )
        )
    logger.debug("Aggregated %d detection(s) into %d", seen, len(results))

    results.sort(key=lambda summary: summary.confidence, reverse=True)
    return results


def _sub_items(
    by_item: dict[str, list[DetectedSubscription]],
) -> tuple[SubItem, ...]:
    sub_items = []
    for item_name, purchases in by_item.items():
        ordered = sorted(purchases, key=lambda d: d.detected_date, reverse=True)
        sub_items.append(
            SubItem(
                name=item_name,
                currency=ordered[0].currency,
                purchases=tuple(
                    SubItemPurchase(date=d.detected_date, price=d.price)
                    for d in ordered
                    if d.price is not None
                ),
                total_paid=sum(
                    (d.price for d in ordered if d.price is not None), Decimal(0)
                ),
            )
        )
    sub_items.sort(key=lambda item: item.total_paid, reverse=True)
    return tuple(sub_items)
