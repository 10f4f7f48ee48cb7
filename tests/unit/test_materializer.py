"""Unit tests for output materialization and naming."""
from datetime import datetime

import pytest

from jobrelay.exceptions import ProviderError
from jobrelay.models import ArtifactKind, FileItem, RemoteArtifactRef
from jobrelay.services.orchestration.materializer import materialize
from jobrelay.utils.filenames import default_base_name, output_file_name

from conftest import FakeUploader


def refs(*ids):
    return [RemoteArtifactRef(i, ArtifactKind.OUTPUT) for i in ids]


def fetcher(items):
    fetched = []

    async def fetch(ref):
        fetched.append(ref.provider_id)
        item = items[ref.provider_id]
        if isinstance(item, Exception):
            raise item
        return item

    fetch.fetched = fetched
    return fetch


def test_output_file_name_rules():
    assert output_file_name("base", 1, 1, ".pdf") == "base.pdf"
    assert output_file_name("base", 2, 3, "pdf") == "base-2.pdf"
    assert output_file_name("base", 1, 1, None) == "base.bin"
    assert output_file_name("my report", 1, 2, ".PNG") == "my_report-1.png"


def test_default_base_name_uses_timestamp_and_operation():
    assert default_base_name("split", datetime(2025, 3, 4, 5, 6, 7)) == "250304_050607_split"


@pytest.mark.asyncio
async def test_two_outputs_get_indexed_names_in_order():
    uploader = FakeUploader()
    fetch = fetcher(
        {
            "o1": FileItem(b"one", filename="part.pdf", mime_type="application/pdf"),
            "o2": FileItem(b"two", filename="part.pdf", mime_type="application/pdf"),
        }
    )

    links = await materialize(refs("o1", "o2"), fetch, uploader.store, base_name="base")

    assert [l.name for l in links] == ["base-1.pdf", "base-2.pdf"]
    assert [item.contents for _, item in uploader.stored] == [b"one", b"two"]


@pytest.mark.asyncio
async def test_extension_from_content_type_then_generic():
    uploader = FakeUploader()
    fetch = fetcher(
        {
            "o1": FileItem(b"png", mime_type="image/png"),
            "o2": FileItem(b"raw"),
        }
    )

    links = await materialize(refs("o1", "o2"), fetch, uploader.store, base_name="out")

    assert [l.name for l in links] == ["out-1.png", "out-2.bin"]


@pytest.mark.asyncio
async def test_explicit_extension_wins():
    uploader = FakeUploader()
    fetch = fetcher({"o1": FileItem(b"v", filename="x.bin")})

    links = await materialize(refs("o1"), fetch, uploader.store, base_name="clip", extension="mp4")

    assert [l.name for l in links] == ["clip.mp4"]


@pytest.mark.asyncio
async def test_strict_mode_aborts_on_first_failure():
    uploader = FakeUploader()
    fetch = fetcher({"o1": ProviderError("gone", status_code=404), "o2": FileItem(b"x")})

    with pytest.raises(ProviderError):
        await materialize(refs("o1", "o2"), fetch, uploader.store, base_name="b")

    assert fetch.fetched == ["o1"]
    assert uploader.stored == []


@pytest.mark.asyncio
async def test_upload_returning_none_is_a_failure():
    uploader = FakeUploader(fail_on="b.txt")
    fetch = fetcher({"o1": FileItem(b"x", filename="x.txt", mime_type="text/plain")})

    with pytest.raises(ProviderError, match="no link"):
        await materialize(refs("o1"), fetch, uploader.store, base_name="b")


@pytest.mark.asyncio
async def test_relaxed_mode_skips_failures():
    uploader = FakeUploader()
    fetch = fetcher({"o1": RuntimeError("nope"), "o2": FileItem(b"x", filename="a.txt")})

    links = await materialize(refs("o1", "o2"), fetch, uploader.store, base_name="b", strict=False)

    assert [l.name for l in links] == ["b-2.txt"]
