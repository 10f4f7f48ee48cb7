"""Shared fakes for the collaborator interfaces and a fake timeline."""
from __future__ import annotations

import io
from typing import Dict, List, Optional

import pytest
from pypdf import PdfWriter

from jobrelay.models import DurableLink, FileItem
from jobrelay.services.orchestration.job_runner import JobRunner


class FakeClock:
    """Monotonic clock that only moves when the runner sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeDownloads:
    def __init__(self, files: Optional[Dict[str, FileItem]] = None, scraped: Optional[Dict[str, list]] = None) -> None:
        self.files = files or {}
        self.scraped = scraped or {}
        self.downloaded: List[str] = []
        self.folders: Dict[str, List[str]] = {}

    async def download(self, url: str) -> FileItem:
        self.downloaded.append(url)
        if url in self.files:
            return self.files[url]
        return FileItem(contents=b"%PDF-1.4 fake", uri=url, filename="input.pdf", mime_type="application/pdf")

    async def scrape(self, url: str) -> List[FileItem]:
        value = self.scraped.get(url, [])
        if isinstance(value, Exception):
            raise value
        return value

    async def list_folder(self, folder_url: str) -> List[str]:
        return self.folders.get(folder_url, [])


class FakeUploader:
    def __init__(self, fail_on: Optional[str] = None) -> None:
        self.stored: List[tuple] = []
        self.fail_on = fail_on

    def for_operation(self):
        return self.store

    async def store(self, filename: str, item: FileItem) -> Optional[DurableLink]:
        if filename == self.fail_on:
            return None
        self.stored.append((filename, item))
        return DurableLink(name=filename, uri=f"gs://bucket/outputs/{filename}", mimeType=item.mime_type)


def make_pdf(pages: int = 1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=72, height=72)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def runner(clock: FakeClock) -> JobRunner:
    return JobRunner(sleep=clock.sleep, clock=clock)


@pytest.fixture
def downloads() -> FakeDownloads:
    return FakeDownloads()


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()
