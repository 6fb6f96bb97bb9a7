"""Source adapter protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterator

    from subscan.models import RawEmail


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for email source adapters.

    ``fetch`` yields at most ``limit`` emails. A message that cannot be
    read is logged and skipped rather than ending the iteration.
    """

    def fetch(self, limit: int) -> Iterator[RawEmail]: ...
