"""Tests for the Vision OCR operation with fake storage and OCR clients."""
import json

import pytest

from jobrelay.exceptions import InputValidationError, JobFailedError
from jobrelay.models import ArtifactKind, FileItem, OcrRequest, RemoteArtifactRef
from jobrelay.services.orchestration.ocr_jobs import OcrJobService
from jobrelay.services.vision import text_from_output

from conftest import FakeDownloads, FakeUploader, make_pdf


class FakeGCS:
    bucket_name = "bucket"

    def __init__(self):
        self.uploaded = []
        self.deleted = []

    def upload_bytes(self, blob_path, data, content_type="application/octet-stream"):
        self.uploaded.append(blob_path)
        return f"gs://bucket/{blob_path}"

    async def delete_artifact(self, ref):
        self.deleted.append(("object", ref.uri))

    async def delete_folder(self, ref):
        self.deleted.append(("folder", ref.uri))


class FakeVision:
    def __init__(self, states, shards):
        self.states = list(states)
        self.shards = shards
        self.started = []

    async def start(self, gcs_uri, output_prefix, batch_size=20):
        self.started.append((gcs_uri, output_prefix, batch_size))
        self.prefix = output_prefix
        return "operations/op-1"

    async def poll(self, handle):
        state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        if state == "DONE":
            outputs = [
                RemoteArtifactRef(f"{self.prefix}output-{i}.json", ArtifactKind.OUTPUT, uri=f"{self.prefix}output-{i}.json")
                for i in range(len(self.shards))
            ]
            return {"state": "DONE", "outputs": outputs}
        if state == "FAILED":
            return {"state": "FAILED", "error": "quota exceeded"}
        return {"state": state}

    async def fetch_output(self, ref):
        index = int(ref.uri.rsplit("-", 1)[-1].split(".")[0])
        return FileItem(json.dumps(self.shards[index]).encode(), uri=ref.uri, mime_type="application/json")


def shard(*texts):
    return {"responses": [{"fullTextAnnotation": {"text": t}} for t in texts]}


def make_service(vision, gcs, pdf_pages=2, max_pages=100, runner=None):
    downloads = FakeDownloads(
        files={"https://x/doc.pdf": FileItem(make_pdf(pdf_pages), filename="doc.pdf", mime_type="application/pdf")}
    )
    uploader = FakeUploader()
    svc = OcrJobService(vision, gcs, downloads, uploader, max_pages=max_pages, runner=runner)
    return svc, uploader


def test_text_from_output_counts_pages():
    item = FileItem(json.dumps({"responses": [{"fullTextAnnotation": {"text": "a"}}, {}]}).encode())
    assert text_from_output(item) == (["a"], 2)


@pytest.mark.asyncio
async def test_ocr_stores_text_and_removes_staged_files(runner):
    gcs = FakeGCS()
    vision = FakeVision(["RUNNING", "DONE"], [shard("page one", "page two"), shard("page three")])
    svc, uploader = make_service(vision, gcs, runner=runner)

    resp = await svc.run(OcrRequest(fileUrl="https://x/doc.pdf", outputFileName="scan"))

    assert [l.name for l in resp.links] == ["scan.txt"]
    stored = uploader.stored[0][1]
    assert stored.contents.decode() == "page one\npage two\npage three"
    assert resp.structuredContent["pages"] == 3
    assert vision.started[0][2] == 2
    kinds = [k for k, _ in gcs.deleted]
    assert kinds == ["folder", "object"]
    assert gcs.deleted[1][1] == f"gs://bucket/{gcs.uploaded[0]}"


@pytest.mark.asyncio
async def test_ocr_failure_still_deletes_input(runner):
    gcs = FakeGCS()
    vision = FakeVision(["FAILED"], [])
    svc, _ = make_service(vision, gcs, runner=runner)

    with pytest.raises(JobFailedError, match="quota exceeded"):
        await svc.run(OcrRequest(fileUrl="https://x/doc.pdf"))

    assert [k for k, _ in gcs.deleted] == ["folder", "object"]


@pytest.mark.asyncio
async def test_page_limit_is_checked_before_any_upload(runner):
    gcs = FakeGCS()
    vision = FakeVision(["DONE"], [])
    svc, _ = make_service(vision, gcs, pdf_pages=3, max_pages=2, runner=runner)

    with pytest.raises(InputValidationError, match="limit is 2"):
        await svc.run(OcrRequest(fileUrl="https://x/doc.pdf"))

    assert gcs.uploaded == []
    assert vision.started == []


@pytest.mark.asyncio
async def test_non_pdf_is_rejected(runner):
    gcs = FakeGCS()
    downloads = FakeDownloads(files={"https://x/a.txt": FileItem(b"hello", mime_type="text/plain")})
    svc = OcrJobService(FakeVision(["DONE"], []), gcs, downloads, FakeUploader(), runner=runner)

    with pytest.raises(InputValidationError, match="unreadable PDF"):
        await svc.run(OcrRequest(fileUrl="https://x/a.txt"))
    assert gcs.uploaded == []
