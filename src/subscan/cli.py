"""CLI entry point for subscan."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import click

from subscan.adapters.eml import EmlFileAdapter
from subscan.adapters.imap import ImapAdapter
from subscan.aggregator import aggregate
from subscan.config import MAX_SCAN_LIMIT, get_imap_config, get_scan_limit
from subscan.detector import SubscriptionDetector

if TYPE_CHECKING:
    from subscan.adapters.base import SourceAdapter
    from subscan.models import AggregatedSubscription, DetectedSubscription, RawEmail

logger = logging.getLogger(__name__)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Subscription scanner: find recurring charges in your inbox."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option(
    "--limit",
    type=click.IntRange(1, MAX_SCAN_LIMIT),
    default=None,
    help="Maximum emails to scan (default: SCAN_LIMIT or 200).",
)
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON.")
@click.option(
    "--llm-fallback",
    is_flag=True,
    help="Ask the LLM for prices the patterns could not find.",
)
def scan(limit: int | None, as_json: bool, llm_fallback: bool) -> None:
    """Scan the configured IMAP mailbox."""
    try:
        config = get_imap_config()
        if limit is None:
            limit = get_scan_limit()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    _run(ImapAdapter(config), limit, as_json=as_json, llm_fallback=llm_fallback)


@cli.command()
@click.argument(
    "paths", nargs=-1, required=True, type=click.Path(exists=True, path_type=str)
)
@click.option("--limit", type=click.IntRange(min=1), default=MAX_SCAN_LIMIT)
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON.")
@click.option(
    "--llm-fallback",
    is_flag=True,
    help="Ask the LLM for prices the patterns could not find.",
)
def parse(
    paths: tuple[str, ...], limit: int, as_json: bool, llm_fallback: bool
) -> None:
    """Detect subscriptions in .eml files or directories of them."""
    _run(EmlFileAdapter(paths), limit, as_json=as_json, llm_fallback=llm_fallback)


def _run(
    adapter: SourceAdapter, limit: int, *, as_json: bool, llm_fallback: bool
) -> None:
    detector = SubscriptionDetector()
    detections: list[DetectedSubscription] = []
    emails_by_name: dict[str, RawEmail] = {}
    scanned = 0

    for email in adapter.fetch(limit):
        scanned += 1
        found = detector.detect_all([email])
        for detection in found:
            if detection.price is None:
                emails_by_name.setdefault(detection.name, email)
        detections.extend(found)

    summaries = aggregate(detections)
    if llm_fallback:
        from subscan.llm_fallback import fill_missing_prices

        try:
            summaries = fill_missing_prices(summaries, emails_by_name)
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc

    logger.info("Scanned %d email(s), %d result(s)", scanned, len(summaries))
    if as_json:
        payload = [summary.model_dump(mode="json") for summary in summaries]
        click.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    click.echo(f"Scanned {scanned} email(s).")
    if not summaries:
        click.echo("No subscriptions found.")
        return
    for summary in summaries:
        click.echo(_format_summary(summary))


def _format_summary(summary: AggregatedSubscription) -> str:
    price = f"{summary.price} {summary.currency}" if summary.price else "price ?"
    cycle = summary.billing_cycle or "-"
    line = (
        f"{summary.name}  [{summary.category}]  {price}  {cycle}  "
        f"confidence={summary.confidence:.2f}"
    )
    if summary.payment_count:
        line += f"  paid {summary.total_paid} over {summary.payment_count} charge(s)"
    for item in summary.sub_items:
        line += f"\n    - {item.name}: {item.total_paid} {item.currency}"
    return line
