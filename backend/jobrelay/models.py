"""Core job-lifecycle types and pydantic models for API requests and responses."""
from __future__ import annotations

import base64
import mimetypes
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

from .exceptions import JobFailedError


class JobStatus(str, Enum):
    """Normalized job status shared by every provider."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELLED)


class ArtifactKind(str, Enum):
    INPUT = "input"
    JOB = "job"
    OUTPUT = "output"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RemoteArtifactRef:
    """Handle to something that exists on the provider side.

    `uri` is set when the artifact is addressed by URL rather than by id
    (e.g. generated media), `name` carries a provider-supplied filename.
    """

    provider_id: str
    kind: ArtifactKind
    created_at: datetime = field(default_factory=_utcnow)
    uri: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class JobResult:
    status: JobStatus
    job_id: str
    outputs: Tuple[RemoteArtifactRef, ...] = ()
    failure_reason: Optional[str] = None
    raw: Any = None

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.SUCCEEDED

    def raise_for_status(self) -> "JobResult":
        """Raise JobFailedError unless the job succeeded. Returns self for chaining."""
        if not self.succeeded:
            reason = self.failure_reason or f"job {self.job_id} ended as {self.status.value}"
            raise JobFailedError(reason, raw=self.raw)
        return self


@dataclass
class FileItem:
    """A byte payload with optional metadata, as produced by download or fetch."""

    contents: bytes
    uri: str = ""
    filename: Optional[str] = None
    mime_type: str = "application/octet-stream"

    @property
    def is_text(self) -> bool:
        return is_text_mime_type(self.mime_type)

    @property
    def is_image(self) -> bool:
        return (self.mime_type or "").lower().startswith("image/")

    def text(self) -> str:
        return self.contents.decode("utf-8", errors="replace")

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.contents).decode('ascii')}"

    def guess_extension(self) -> Optional[str]:
        if self.filename and "." in self.filename.rsplit("/", 1)[-1]:
            return "." + self.filename.rsplit(".", 1)[-1].lower()
        mime = (self.mime_type or "").split(";")[0].strip().lower()
        if mime and mime != "application/octet-stream":
            return mimetypes.guess_extension(mime)
        return None


def is_text_mime_type(mime_type: Optional[str]) -> bool:
    mt = (mime_type or "").split(";")[0].strip().lower()
    return (
        mt.startswith("text/")
        or mt in ("application/json", "application/problem+json", "application/xml")
        or (mt.startswith("application/") and (mt.endswith("+json") or mt.endswith("+xml")))
    )


@dataclass
class FanOutItem:
    source_ref: str
    extracted_text: Optional[str] = None
    error: Optional[str] = None


class DurableLink(BaseModel):
    """Caller-visible link to a stored artifact."""

    name: str
    uri: str
    mimeType: str = "application/octet-stream"


# --- API request models ---


class JobRequestBase(BaseModel):
    """Knobs shared by every poll-based operation. Floors are applied by the runner."""

    pollingIntervalSeconds: int = Field(default=2, description="Polling interval in seconds (min 1)")
    maxWaitSeconds: int = Field(default=900, description="Maximum wait before timeout (min 30)")
    outputFileName: Optional[str] = Field(default=None, description="Base name for uploaded outputs")


class ParseFileRequest(JobRequestBase):
    fileUrl: str
    target: str = "markdown"
    chunkingType: str = "page"
    engine: str = "parse_performance"
    pageRanges: str = ""


class EditFileRequest(JobRequestBase):
    fileUrl: str
    instructions: str = ""
    flattenPdf: bool = False
    tableParsingEnabled: bool = True


class SplitFileRequest(JobRequestBase):
    fileUrl: str
    splitterId: str


class ExtractFileRequest(JobRequestBase):
    fileUrl: str
    extractorId: str
    extractorVersion: Optional[str] = Field(default=None, description="'latest' or a specific version")


class OcrRequest(JobRequestBase):
    fileUrl: str


class MediaTaskRequest(JobRequestBase):
    endpoint: Literal["text_to_video", "image_to_video", "text_to_image"] = "text_to_video"
    promptText: Optional[str] = None
    model: str
    ratio: Optional[str] = None
    duration: Optional[int] = None
    seed: Optional[int] = None
    promptImages: List[str] = Field(default_factory=list)
    fileExtension: Optional[str] = Field(default=None, description="Overrides the extension of stored outputs")
    waitUntilCompleted: bool = False


class RerankFilesRequest(BaseModel):
    query: str
    fileUrls: List[str]
    model: Optional[str] = None
    topN: int = Field(default=5, ge=1)


class RerankFolderRequest(BaseModel):
    query: str
    folderUrl: str
    model: Optional[str] = None
    topN: int = Field(default=5, ge=1)


# --- API response models ---


class PendingTask(BaseModel):
    taskId: str
    status: Literal["PENDING"] = "PENDING"


class JobResponse(BaseModel):
    """Structured payload of a completed operation: provider metadata plus links."""

    status: str
    structuredContent: Dict[str, Any] = Field(default_factory=dict)
    links: List[DurableLink] = Field(default_factory=list)


class RerankResult(BaseModel):
    index: int
    relevanceScore: float
    source: str
    document: Optional[str] = None


class RerankResponse(BaseModel):
    model: str
    query: str
    documents: int
    results: List[RerankResult]
