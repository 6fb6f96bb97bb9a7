"""Additive confidence scoring for detections.

Each detection path has its own base and increments. Scores are summed and
never clamped: the Apple itemized path reaches 1.15 when every signal is
present, so callers must not read a score as a probability.
"""

from __future__ import annotations

from dataclasses import dataclass

from subscan.models import DetectionPath


@dataclass(frozen=True)
class ScoringProfile:
    base: float
    price: float = 0.0
    cycle: float = 0.0
    keyword: float = 0.0
    sender: float = 0.0
    content: float = 0.0
    subscription: float = 0.0


@dataclass(frozen=True)
class Signals:
    """What the matching step found for one detection."""

    price: bool = False
    cycle: bool = False
    keyword: bool = False
    sender: bool = False
    content: bool = False
    subscription: bool = False


PROFILES: dict[DetectionPath, ScoringProfile] = {
    DetectionPath.GENERIC: ScoringProfile(
        base=0.5, price=0.2, cycle=0.15, keyword=0.15
    ),
    DetectionPath.SENDER_MATCHED: ScoringProfile(
        base=0.2, sender=0.2, content=0.1, keyword=0.3, price=0.15, cycle=0.05
    ),
    DetectionPath.APPLE_ITEMIZED: ScoringProfile(
        base=0.5, price=0.2, cycle=0.15, keyword=0.3
    ),
    DetectionPath.PAYMENT: ScoringProfile(
        base=0.3, cycle=0.15, keyword=0.15, subscription=0.1
    ),
}


def score(path: DetectionPath, signals: Signals) -> float:
    """Sum the profile increments for every signal that is set."""
    profile = PROFILES[path]
    total = profile.base
    for name in ("price", "cycle", "keyword", "sender", "content", "subscription"):
        if getattr(signals, name):
            total += getattr(profile, name)
    return round(total, 4)
