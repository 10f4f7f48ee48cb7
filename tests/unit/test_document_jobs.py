"""End-to-end tests for document operations against a fake provider."""
import asyncio

import pytest

from jobrelay.exceptions import InputValidationError, JobFailedError, JobTimeoutError, ProviderError
from jobrelay.models import (
    EditFileRequest,
    ExtractFileRequest,
    FileItem,
    ParseFileRequest,
    SplitFileRequest,
)
from jobrelay.services.orchestration.document_jobs import (
    DocumentJobService,
    build_parse_config,
    parse_page_ranges,
)
from jobrelay.services.gcs import GCSUploader

from conftest import FakeUploader


class FakeDocumentRuns:
    """In-memory document provider that records every call."""

    def __init__(self, polls, fail_delete=()):
        self.polls = list(polls)
        self.calls = []
        self.deleted = []
        self.fail_delete = set(fail_delete)
        self.created_bodies = []

    async def upload_file(self, item):
        self.calls.append("upload")
        return "file-in"

    async def create_run(self, kind, body):
        self.calls.append(f"create:{kind}")
        self.created_bodies.append(body)
        return {"id": "run-1", "status": "PENDING"}

    async def get_run(self, kind, run_id):
        self.calls.append(f"get:{run_id}")
        payload = self.polls.pop(0) if len(self.polls) > 1 else self.polls[0]
        return {"id": run_id, **payload}

    async def download_file(self, file_id):
        self.calls.append(f"download:{file_id}")
        return FileItem(contents=f"content {file_id}".encode(), filename=f"{file_id}.pdf", mime_type="application/pdf")

    async def delete_artifact(self, ref):
        self.deleted.append(f"file:{ref.provider_id}")
        if ref.provider_id in self.fail_delete:
            raise ProviderError("delete failed", status_code=500)

    def run_deleter(self, kind):
        async def _delete(ref):
            self.deleted.append(f"{kind}_run:{ref.provider_id}")

        return _delete


def service(client, downloads, runner, uploader=None):
    return DocumentJobService(client, downloads, uploader or FakeUploader(), runner=runner)


def test_parse_page_ranges_swaps_and_skips_garbage():
    assert parse_page_ranges("1-2, 5 ,9-7,x,3-a,") == [
        {"start": 1, "end": 2},
        {"start": 5, "end": 5},
        {"start": 7, "end": 9},
    ]
    assert parse_page_ranges("") == []


def test_parse_config_falls_back_to_defaults():
    req = ParseFileRequest(fileUrl="https://x/a.pdf", target="html", chunkingType="SECTION", engine="?")
    config = build_parse_config(req)
    assert config == {
        "target": "markdown",
        "engine": "parse_performance",
        "chunkingStrategy": {"type": "section"},
    }


@pytest.mark.asyncio
async def test_split_end_to_end_materializes_and_cleans_up(downloads, runner, clock):
    client = FakeDocumentRuns(
        [
            {"status": "PROCESSING"},
            {"status": "PROCESSING"},
            {"status": "PROCESSING"},
            {"status": "PROCESSED", "output": {"splits": [{"fileId": "s1"}, {"fileId": "s2"}]}},
        ]
    )
    uploader = FakeUploader()
    req = SplitFileRequest(fileUrl="https://example.com/in.pdf", splitterId="spl_1", outputFileName="base")

    resp = await service(client, downloads, runner, uploader).split(req)

    assert [link.name for link in resp.links] == ["base-1.pdf", "base-2.pdf"]
    assert [c for c in client.calls if c.startswith("get:")] == ["get:run-1"] * 4
    assert client.created_bodies == [{"file": {"id": "file-in"}, "splitter": {"id": "spl_1"}}]
    assert resp.structuredContent["splitRunId"] == "run-1"
    assert resp.structuredContent["fileId"] == "file-in"
    assert resp.status == "PROCESSED"
    # outputs first, then the run, then the uploaded input
    assert client.deleted == ["file:s2", "file:s1", "split_run:run-1", "file:file-in"]


@pytest.mark.asyncio
async def test_failed_run_raises_and_still_deletes_input(downloads, runner):
    client = FakeDocumentRuns([{"status": "FAILED", "failureReason": "bad input"}])
    req = SplitFileRequest(fileUrl="https://example.com/in.pdf", splitterId="spl_1")

    with pytest.raises(JobFailedError) as excinfo:
        await service(client, downloads, runner).split(req)

    assert excinfo.value.reason == "bad input"
    assert "file:file-in" in client.deleted
    assert client.deleted == ["split_run:run-1", "file:file-in"]


@pytest.mark.asyncio
async def test_failure_message_is_combined_with_reason(downloads, runner):
    client = FakeDocumentRuns(
        [{"status": "CANCELLED", "failureReason": "USER_CANCELLED", "failureMessage": "stopped by user"}]
    )
    req = ExtractFileRequest(fileUrl="https://example.com/in.pdf", extractorId="ex_1")

    with pytest.raises(JobFailedError, match="USER_CANCELLED. stopped by user"):
        await service(client, downloads, runner).extract(req)


@pytest.mark.asyncio
async def test_timeout_cleans_up_and_reports_last_status(downloads, runner):
    client = FakeDocumentRuns([{"status": "PROCESSING"}])
    req = ParseFileRequest(fileUrl="https://example.com/in.pdf", maxWaitSeconds=30, pollingIntervalSeconds=5)

    with pytest.raises(JobTimeoutError) as excinfo:
        await service(client, downloads, runner).parse(req)

    assert excinfo.value.last_status == "PROCESSING"
    assert client.deleted == ["parse_run:run-1", "file:file-in"]


@pytest.mark.asyncio
async def test_parse_returns_structured_output(downloads, runner):
    client = FakeDocumentRuns(
        [{"status": "PROCESSED", "output": {"chunks": [{"content": "# Title"}]}, "usage": {"credits": 1}}]
    )
    req = ParseFileRequest(fileUrl="https://example.com/in.pdf", pageRanges="3-1")

    resp = await service(client, downloads, runner).parse(req)

    assert resp.links == []
    assert resp.structuredContent["parseRunId"] == "run-1"
    assert resp.structuredContent["output"] == {"chunks": [{"content": "# Title"}]}
    assert client.created_bodies[0]["config"]["advancedOptions"] == {"pageRanges": [{"start": 1, "end": 3}]}


@pytest.mark.asyncio
async def test_edit_stores_single_file_without_index(downloads, runner):
    client = FakeDocumentRuns([{"status": "PROCESSED", "output": {"editedFile": {"id": "ed1", "name": "x.pdf"}}}])
    req = EditFileRequest(fileUrl="https://example.com/in.pdf", instructions="fill it", outputFileName="filled")

    resp = await service(client, downloads, runner).edit(req)

    assert [link.name for link in resp.links] == ["filled.pdf"]
    assert resp.structuredContent["editedFileId"] == "ed1"
    assert client.deleted == ["file:ed1", "edit_run:run-1", "file:file-in"]


@pytest.mark.asyncio
async def test_cleanup_error_never_changes_the_outcome(downloads, runner):
    client = FakeDocumentRuns(
        [{"status": "PROCESSED", "output": {"editedFile": {"id": "ed1"}}}],
        fail_delete={"file-in"},
    )
    req = EditFileRequest(fileUrl="https://example.com/in.pdf", outputFileName="out")

    resp = await service(client, downloads, runner).edit(req)

    assert [link.name for link in resp.links] == ["out.pdf"]
    assert client.deleted[-1] == "file:file-in"


@pytest.mark.asyncio
async def test_validation_happens_before_any_remote_call(downloads, runner):
    client = FakeDocumentRuns([{"status": "PROCESSED"}])

    with pytest.raises(InputValidationError):
        await service(client, downloads, runner).split(SplitFileRequest(fileUrl="https://x/a.pdf", splitterId=" "))
    with pytest.raises(InputValidationError):
        await service(client, downloads, runner).parse(ParseFileRequest(fileUrl="  "))

    assert client.calls == []
    assert downloads.downloaded == []


class DictStorage:
    """Blob store keyed by path, standing in for GCSService."""

    bucket_name = "b"

    def __init__(self):
        self.blobs = {}

    def upload_bytes(self, blob_path, data, content_type="application/octet-stream"):
        self.blobs[blob_path] = data
        return f"gs://b/{blob_path}"


class TaggedDocumentRuns(FakeDocumentRuns):
    def __init__(self, tag, polls):
        super().__init__(polls)
        self.tag = tag

    async def download_file(self, file_id):
        return FileItem(contents=f"{self.tag} {file_id}".encode(), filename=f"{file_id}.pdf", mime_type="application/pdf")


@pytest.mark.asyncio
async def test_concurrent_splits_never_share_output_links(downloads, runner):
    storage = DictStorage()
    uploader = GCSUploader(storage, prefix="outputs")
    done = [{"status": "PROCESSED", "output": {"splits": [{"fileId": "s1"}, {"fileId": "s2"}]}}]
    req = SplitFileRequest(fileUrl="https://example.com/in.pdf", splitterId="spl_1")

    first, second = await asyncio.gather(
        service(TaggedDocumentRuns("A", done), downloads, runner, uploader).split(req),
        service(TaggedDocumentRuns("B", done), downloads, runner, uploader).split(req),
    )

    first_uris = [l.uri for l in first.links]
    second_uris = [l.uri for l in second.links]
    assert len(set(first_uris + second_uris)) == 4
    # each operation writes into its own folder
    assert len({u.rsplit("/", 1)[0] for u in first_uris}) == 1
    assert first_uris[0].rsplit("/", 1)[0] != second_uris[0].rsplit("/", 1)[0]
    assert storage.blobs[first_uris[0][len("gs://b/"):]] == b"A s1"
    assert storage.blobs[second_uris[0][len("gs://b/"):]] == b"B s1"
