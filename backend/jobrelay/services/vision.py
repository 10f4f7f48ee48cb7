"""Google Cloud Vision asynchronous OCR for PDFs stored in GCS.

The long-running `async_batch_annotate_files` operation is driven by the shared
job runner: submit starts the operation, each poll refreshes it, and once it is
done the JSON result shards written under the temporary output prefix become
the job's output artifacts.

Note: keep batch_size <= MAX_PAGES so one shard covers the whole document.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from google.cloud import vision_v1 as vision

from ..models import ArtifactKind, FileItem, RemoteArtifactRef
from .gcs import GCSService, google_errors
from .orchestration.job_runner import JobAdapter, StatusVocabulary

logger = logging.getLogger(__name__)

_SHARD = re.compile(r"output-(\d+)-to-(\d+)\.json$")

VISION_OCR_STATUSES = StatusVocabulary.of(
    succeeded=["DONE"],
    failed=["FAILED"],
    cancelled=["CANCELLED"],
    pending=["CREATED", "STATE_UNSPECIFIED"],
)


@dataclass
class VisionOperation:
    """Job handle: the operation name plus the client-side operation object."""

    name: str
    operation: Any
    output_prefix: str

    def __str__(self) -> str:
        return self.name


class VisionOcrClient:
    def __init__(self, gcs: GCSService, client: Optional[vision.ImageAnnotatorClient] = None) -> None:
        self._gcs = gcs
        self._vision = client or vision.ImageAnnotatorClient()

    def _start(self, gcs_uri: str, output_prefix: str, batch_size: int) -> VisionOperation:
        input_config = vision.InputConfig(
            gcs_source=vision.GcsSource(uri=gcs_uri), mime_type="application/pdf"
        )
        output_config = vision.OutputConfig(
            gcs_destination=vision.GcsDestination(uri=output_prefix), batch_size=batch_size
        )
        feature = vision.Feature(type_=vision.Feature.Type.DOCUMENT_TEXT_DETECTION)
        request = vision.AsyncAnnotateFileRequest(
            features=[feature], input_config=input_config, output_config=output_config
        )
        with google_errors("vision OCR start"):
            operation = self._vision.async_batch_annotate_files(requests=[request])
        name = getattr(getattr(operation, "operation", None), "name", "") or output_prefix
        return VisionOperation(name=name, operation=operation, output_prefix=output_prefix)

    def _poll(self, handle: VisionOperation) -> Dict[str, Any]:
        op = handle.operation
        with google_errors("vision OCR poll"):
            done = op.done()
        if not done:
            state = getattr(getattr(getattr(op, "metadata", None), "state", None), "name", None)
            return {"state": state or "RUNNING"}
        error = op.exception()
        if error is not None:
            return {"state": "FAILED", "error": str(error)}
        outputs = [
            RemoteArtifactRef(provider_id=uri, kind=ArtifactKind.OUTPUT, uri=uri)
            for uri in sorted(self._gcs.list_uris(handle.output_prefix), key=shard_order)
        ]
        return {"state": "DONE", "outputs": outputs}

    async def start(self, gcs_uri: str, output_prefix: str, batch_size: int = 20) -> VisionOperation:
        return await asyncio.to_thread(self._start, gcs_uri, output_prefix, batch_size)

    async def poll(self, handle: VisionOperation) -> Dict[str, Any]:
        return await asyncio.to_thread(self._poll, handle)

    async def fetch_output(self, ref: RemoteArtifactRef) -> FileItem:
        return await asyncio.to_thread(self._gcs.download, ref.uri or ref.provider_id)


def shard_order(uri: str) -> Tuple[int, str]:
    """Order result shards by first page (`output-21-to-40.json` before `output-101-to-120.json`)."""
    m = _SHARD.search(uri)
    return (int(m.group(1)) if m else 0, uri)


def text_from_output(item: FileItem) -> Tuple[List[str], int]:
    """Page texts and page count from one Vision JSON result shard."""
    resp = json.loads(item.contents)
    texts: List[str] = []
    pages = 0
    for r in resp.get("responses", []):
        fta = r.get("fullTextAnnotation")
        if fta and "text" in fta:
            texts.append(fta["text"])
        pages += 1
    return texts, pages


VISION_OCR_ADAPTER = JobAdapter(
    name="vision ocr",
    vocabulary=VISION_OCR_STATUSES,
    raw_status=lambda raw: (raw or {}).get("state"),
    outputs_of=lambda raw: (raw or {}).get("outputs") or [],
    failure_of=lambda raw: (raw or {}).get("error"),
)
