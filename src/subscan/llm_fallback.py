"""LLM price extraction for services detected without a price.

Pattern matching misses prices that are phrased unusually or rendered as
images with alt text. When enabled, the most informative email for each
price-less service is sent to a pydantic-ai agent.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field
from pydantic_ai import Agent

from subscan.config import get_anthropic_api_key, get_llm_model
from subscan.models import PRICE_CEILINGS, BillingCycle
from subscan.normalizer import normalize

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from subscan.models import AggregatedSubscription, RawEmail

logger = logging.getLogger(__name__)

# Hints below this are treated as guesses and discarded.
MIN_HINT_CONFIDENCE = 0.5

_BODY_LIMIT = 4000

_SYSTEM_PROMPT = """\
You read billing emails for a subscription tracker. Given one email and the \
name of the service it belongs to, report the recurring price charged for \
that service:

- price: the amount charged per billing period (numeric, e.g. 980 or 9.99), \
or null if the email states no price for the service
- currency: ISO 4217 currency code (e.g. "JPY", "USD", "EUR")
- billing_cycle: one of "monthly", "yearly", "weekly", "quarterly", or null
- confidence: your confidence from 0.0 to 1.0. Use below 0.5 if the amount \
may be a discount, a points balance or a total for several services.

Ignore tax breakdowns, order numbers and membership numbers. If the currency \
is not stated and the email is in Japanese, assume JPY.\
"""


class PriceHint(BaseModel):
    """Price details read from an email by the LLM."""

    price: Decimal | None = Field(default=None, gt=0)
    currency: str = Field(default="JPY", pattern=r"^[A-Z]{3}$")
    billing_cycle: BillingCycle | None = None
    confidence: float = Field(ge=0.0, le=1.0)


def create_price_agent() -> Agent[None, PriceHint]:
    """Create a pydantic-ai Agent configured for price extraction."""
    # Ensure API key is available (fail fast)
    get_anthropic_api_key()

    model_name = get_llm_model()
    return Agent(
        f"anthropic:{model_name}",
        output_type=PriceHint,
        system_prompt=_SYSTEM_PROMPT,
    )


def extract_price_hint(
    email: RawEmail,
    service_name: str,
    *,
    agent: Agent[None, PriceHint] | None = None,
) -> PriceHint | None:
    """Ask the agent for the price of ``service_name`` in ``email``.

    Returns ``None`` when no price was found, the answer is low-confidence,
    or the amount is above the currency's ceiling.
    """
    if agent is None:
        agent = create_price_agent()

    result: Any = agent.run_sync(_build_prompt(email, service_name))
    hint: PriceHint = result.output
    if hint.price is None or hint.confidence < MIN_HINT_CONFIDENCE:
        logger.debug("No usable price hint for %s: %r", service_name, hint)
        return None
    ceiling = PRICE_CEILINGS.get(hint.currency)
    if ceiling is not None and hint.price > ceiling:
        logger.debug("Price hint %s %s above ceiling", hint.price, hint.currency)
        return None
    return hint


def fill_missing_prices(
    summaries: Sequence[AggregatedSubscription],
    emails_by_name: Mapping[str, RawEmail],
    *,
    agent: Agent[None, PriceHint] | None = None,
) -> list[AggregatedSubscription]:
    """Return ``summaries`` with prices filled in where the LLM found one.

    Summaries that already have a price, or have no source email, are
    returned unchanged. An LLM failure for one service is logged and the
    summary kept as is.
    """
    filled: list[AggregatedSubscription] = []
    for summary in summaries:
        email = emails_by_name.get(summary.name)
        if summary.price is not None or email is None:
            filled.append(summary)
            continue
        if agent is None:
            agent = create_price_agent()
        try:
            hint = extract_price_hint(email, summary.name, agent=agent)
        except Exception:
            logger.warning(
                "LLM price extraction failed for %s", summary.name, exc_info=True
            )
            hint = None
        if hint is None:
            filled.append(summary)
            continue
        logger.info("LLM price for %s: %s %s", summary.name, hint.price, hint.currency)
        filled.append(
            summary.model_copy(
                update={
                    "price": hint.price,
                    "currency": hint.currency,
                    "billing_cycle": summary.billing_cycle or hint.billing_cycle,
                    "extracted_by_ai": True,
                }
            )
        )
    return filled


def _build_prompt(email: RawEmail, service_name: str) -> str:
    """Build the user prompt from the email and service name."""
    body = normalize(email.text_body, email.html_body)
    parts = [
        f"Service: {service_name}",
        f"Subject: {email.subject}",
        f"From: {email.sender}",
        f"Date: {email.date.isoformat()}",
        "",
        "--- Email Body ---",
        body[:_BODY_LIMIT] if body else "(no body content)",
    ]
    return "\n".join(parts)
