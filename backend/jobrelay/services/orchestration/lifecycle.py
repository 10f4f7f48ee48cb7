"""Scoped cleanup of remote artifacts created during one top-level operation.

Usage:

    async with ResourceLifecycle("split") as scope:
        file_id = await client.upload_file(item)
        scope.track(RemoteArtifactRef(file_id, ArtifactKind.INPUT), client.delete_artifact)
        ...

Every tracked ref is deleted exactly once when the scope closes, newest first,
whether the body returned, raised, or was cancelled. A failing delete is
logged and swallowed; it never replaces the body's own outcome.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple, TypeVar

from ...exceptions import CleanupError
from ...models import RemoteArtifactRef

logger = logging.getLogger(__name__)

Deleter = Callable[[RemoteArtifactRef], Awaitable[Any]]
T = TypeVar("T")


class ResourceLifecycle:
    """Ordered lifecycle set for a single operation. Not shared across tasks."""

    def __init__(self, label: str = "operation") -> None:
        self.label = label
        self._tracked: List[Tuple[RemoteArtifactRef, Deleter]] = []
        self._closed = False

    @property
    def tracked(self) -> List[RemoteArtifactRef]:
        return [ref for ref, _ in self._tracked]

    def track(self, ref: RemoteArtifactRef, deleter: Deleter) -> RemoteArtifactRef:
        """Register a ref right after its remote creation succeeded."""
        if self._closed:
            raise RuntimeError(f"lifecycle scope '{self.label}' is already closed")
        self._tracked.append((ref, deleter))
        return ref

    async def close(self) -> List[CleanupError]:
        """Run every deleter once in reverse order. Returns the failures seen."""
        self._closed = True
        failures: List[CleanupError] = []
        cancelled: Optional[asyncio.CancelledError] = None
        while self._tracked:
            ref, deleter = self._tracked.pop()
            try:
                # deletes run to completion even if the parent task was cancelled
                await asyncio.shield(deleter(ref))
            except asyncio.CancelledError as exc:
                # keep unwinding; the cancellation is re-raised once every delete was attempted
                cancelled = exc
            except Exception as exc:
                err = CleanupError(f"failed to delete {ref.kind.value} {ref.provider_id}: {exc}")
                failures.append(err)
                logger.warning("[%s] %s", self.label, err)
        if cancelled is not None:
            raise cancelled
        return failures

    async def __aenter__(self) -> "ResourceLifecycle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]:
        await self.close()
        return None


async def with_lifecycle(body: Callable[[ResourceLifecycle], Awaitable[T]], label: str = "operation") -> T:
    """Run `body` inside a fresh lifecycle scope and return its result."""
    async with ResourceLifecycle(label) as scope:
        return await body(scope)
