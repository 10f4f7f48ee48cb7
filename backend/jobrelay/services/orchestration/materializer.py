"""Fetch finished job outputs and re-home them as durable links."""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from ...exceptions import ProviderError
from ...models import DurableLink, FileItem, RemoteArtifactRef
from ...utils.filenames import output_file_name

logger = logging.getLogger(__name__)

FetchFn = Callable[[RemoteArtifactRef], Awaitable[FileItem]]
UploadFn = Callable[[str, FileItem], Awaitable[Optional[DurableLink]]]


async def materialize(
    outputs: Sequence[RemoteArtifactRef],
    fetch: FetchFn,
    upload: UploadFn,
    *,
    base_name: str,
    extension: Optional[str] = None,
    default_extension: Optional[str] = None,
    strict: bool = True,
) -> List[DurableLink]:
    """Fetch each output in order, upload it, and return the links in the same order.

    The destination name is `base_name` plus `-<n>` when there is more than one
    output. The extension is `extension` when given, else the one the provider
    reported (filename, then content type), else `default_extension`, else a
    generic `.bin`.

    With `strict` (the default) the first fetch/upload failure aborts the rest;
    otherwise failures are logged and the output is skipped. An upload that
    returns no link counts as a failure.
    """
    links: List[DurableLink] = []
    total = len(outputs)
    for index, ref in enumerate(outputs, start=1):
        try:
            item = await fetch(ref)
            name = output_file_name(base_name, index, total, extension or item.guess_extension() or default_extension)
            link = await upload(name, item)
            if link is None:
                raise ProviderError(f"upload of {name} returned no link")
        except Exception as exc:
            if strict:
                raise
            logger.warning("Skipping output %s (%d/%d): %s", ref.provider_id, index, total, exc)
            continue
        links.append(link)
    return links
