"""Bounded-concurrency scrape of many sources, merged in scheduling order."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from ...exceptions import NoContentError
from ...models import FanOutItem

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3

FetchTextFn = Callable[[str], Awaitable[Sequence[str]]]


async def aggregate(
    items: Sequence[str],
    fetch: FetchTextFn,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> List[FanOutItem]:
    """Resolve every source through `fetch` with at most `concurrency` in flight.

    Each source may yield several text blobs; every non-empty blob becomes one
    FanOutItem. The result is ordered by source position in `items` and then
    by blob position, independent of completion order. A source that fails or
    yields nothing is dropped. Raises NoContentError if nothing at all remains.
    """
    sources = [s.strip() for s in items if s and s.strip()]
    semaphore = asyncio.Semaphore(max(1, int(concurrency)))
    slots: List[Optional[List[FanOutItem]]] = [None] * len(sources)

    async def worker(index: int, source: str) -> None:
        async with semaphore:
            try:
                blobs = await fetch(source)
            except Exception as exc:
                logger.warning("[fan-out] %s failed: %s", source, exc)
                slots[index] = [FanOutItem(source_ref=source, error=str(exc))]
                return
        slots[index] = [FanOutItem(source_ref=source, extracted_text=b) for b in blobs or () if b and b.strip()]

    await asyncio.gather(*(worker(i, s) for i, s in enumerate(sources)))

    merged = [item for slot in slots for item in (slot or ()) if item.extracted_text]
    failed = sum(1 for slot in slots for item in (slot or ()) if item.error)
    logger.info("[fan-out] %d source(s), %d text item(s), %d failure(s)", len(sources), len(merged), failed)
    if not merged:
        raise NoContentError("No readable content found in provided files.")
    return merged
