"""Google Cloud Storage helper service and destination uploader."""
from __future__ import annotations

import asyncio
import functools
import logging
import uuid
from contextlib import contextmanager
from typing import Awaitable, Callable, Iterator, List, Optional, Tuple

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import storage

from ..exceptions import InputValidationError, ProviderError
from ..models import DurableLink, FileItem, RemoteArtifactRef

logger = logging.getLogger(__name__)


def split_gcs_uri(uri: str) -> Tuple[str, str]:
    """`gs://bucket/path/to/blob` -> (`bucket`, `path/to/blob`)."""
    if not uri.startswith("gs://"):
        raise ValueError(f"not a gs:// uri: {uri}")
    bucket, _, path = uri[len("gs://") :].partition("/")
    if not bucket:
        raise ValueError(f"missing bucket in uri: {uri}")
    return bucket, path


@contextmanager
def google_errors(action: str) -> Iterator[None]:
    """Map malformed links and Google API failures onto the domain errors."""
    try:
        yield
    except ValueError as exc:
        raise InputValidationError(str(exc)) from exc
    except GoogleAPICallError as exc:
        raise ProviderError(f"{action} failed", status_code=exc.code or 0, body=str(exc)) from exc


class GCSService:
    """Wrapper around google-cloud-storage for simple operations.

    Every method raises InputValidationError for a malformed `gs://` link and
    ProviderError when the storage API call fails.
    """

    def __init__(self, bucket_name: str, client: Optional[storage.Client] = None) -> None:
        self.bucket_name = bucket_name
        self._client = client or storage.Client()
        self._bucket = self._client.bucket(bucket_name)

    def upload_bytes(self, blob_path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        with google_errors(f"upload of {blob_path}"):
            self._bucket.blob(blob_path).upload_from_string(data, content_type=content_type)
        return f"gs://{self.bucket_name}/{blob_path}"

    def download(self, uri: str) -> FileItem:
        with google_errors(f"download of {uri}"):
            bucket_name, path = split_gcs_uri(uri)
            blob = self._client.bucket(bucket_name).get_blob(path)
            if blob is None:
                raise FileNotFoundError(uri)
            contents = blob.download_as_bytes()
        return FileItem(
            contents=contents,
            uri=uri,
            filename=path.rsplit("/", 1)[-1] or None,
            mime_type=blob.content_type or "application/octet-stream",
        )

    def delete_uri(self, uri: str) -> None:
        with google_errors(f"delete of {uri}"):
            bucket_name, path = split_gcs_uri(uri)
            self._client.bucket(bucket_name).blob(path).delete()

    def list_uris(self, prefix_uri: str) -> List[str]:
        """Object links under a `gs://bucket/prefix/` folder, sorted by name."""
        with google_errors(f"listing of {prefix_uri}"):
            bucket_name, prefix = split_gcs_uri(prefix_uri)
            blobs = list(self._client.list_blobs(bucket_name, prefix=prefix))
        return sorted(f"gs://{bucket_name}/{b.name}" for b in blobs if not b.name.endswith("/"))

    def delete_prefix(self, prefix_uri: str) -> int:
        """Delete every object under a folder link. Returns the number deleted."""
        with google_errors(f"delete of {prefix_uri}"):
            bucket_name, prefix = split_gcs_uri(prefix_uri)
            if not prefix:
                raise ValueError("refusing to delete a whole bucket")
            blobs = list(self._client.list_blobs(bucket_name, prefix=prefix))
            for b in blobs:
                b.delete()
        return len(blobs)

    # async facades for the orchestration layer

    async def delete_artifact(self, ref: RemoteArtifactRef) -> None:
        await asyncio.to_thread(self.delete_uri, ref.uri or ref.provider_id)

    async def delete_folder(self, ref: RemoteArtifactRef) -> None:
        deleted = await asyncio.to_thread(self.delete_prefix, ref.uri or ref.provider_id)
        logger.debug("Deleted %d object(s) under %s", deleted, ref.uri or ref.provider_id)


class GCSUploader:
    """Destination upload collaborator: persists bytes and returns a durable link.

    Each operation stores under its own `<prefix>/<folder>/` so concurrent
    operations that pick the same file name never overwrite each other.
    """

    def __init__(self, gcs: GCSService, prefix: str = "outputs") -> None:
        self._gcs = gcs
        self._prefix = prefix.strip("/")

    def for_operation(self) -> Callable[[str, FileItem], Awaitable[Optional[DurableLink]]]:
        """An upload function bound to a fresh output folder."""
        return functools.partial(self.store, folder=uuid.uuid4().hex)

    async def store(self, filename: str, item: FileItem, *, folder: Optional[str] = None) -> Optional[DurableLink]:
        folder = folder or uuid.uuid4().hex
        blob_path = "/".join(p for p in (self._prefix, folder, filename) if p)
        mime = item.mime_type or "application/octet-stream"
        uri = await asyncio.to_thread(self._gcs.upload_bytes, blob_path, item.contents, mime)
        if not uri:
            return None
        logger.info("Stored %s (%d bytes) at %s", filename, len(item.contents), uri)
        return DurableLink(name=filename, uri=uri, mimeType=mime)
