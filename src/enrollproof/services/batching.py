"""Chunked record-store writes shared by the import services."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterator, Sequence

from enrollproof.core.exceptions import RecordStoreError, StorageWriteFailed

logger = logging.getLogger(__name__)


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    size = max(1, size)
    for start in range(0, len(items), size):
        yield items[start:start + size]


def write_batches(
    stage: str,
    rows: Sequence[dict[str, Any]],
    size: int,
    write: Callable[[Sequence[dict[str, Any]]], Any],
) -> int:
    """Apply ``write`` per chunk; the first failing chunk aborts the stage.

    Earlier chunks stay committed. Returns the number of rows written.
    """
    written = 0
    for index, part in enumerate(chunked(rows, size)):
        try:
            write(part)
        except RecordStoreError as exc:
            logger.error("%s batch %d failed after %d rows: %s", stage, index, written, exc)
            raise StorageWriteFailed(stage, index, str(exc)) from exc
        written += len(part)
    return written
