"""Read emails from ``.eml`` files on disk."""

from __future__ import annotations

import logging
from email import message_from_bytes
from pathlib import Path
from typing import TYPE_CHECKING

from subscan.adapters.message import parse_message

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from subscan.models import RawEmail

logger = logging.getLogger(__name__)


class EmlFileAdapter:
    """Yield emails from ``.eml`` files; directories are searched recursively."""

    def __init__(self, paths: Iterable[str | Path]) -> None:
        self.paths = [Path(p) for p in paths]

    def fetch(self, limit: int) -> Iterator[RawEmail]:
        count = 0
        for path in self._files():
            if count >= limit:
                return
            try:
                msg = message_from_bytes(path.read_bytes())
                email = parse_message(msg, source_id=str(path))
            except Exception:
                logger.warning("Failed to read %s", path, exc_info=True)
                continue
            count += 1
            yield email

    def _files(self) -> Iterator[Path]:
        for path in self.paths:
            if path.is_dir():
                yield from sorted(path.rglob("*.eml"))
            else:
                yield path
