"""
Streaming transfer of whole documents between callers and the object store.

Downloads open the object (and the backend session) before the first byte is
emitted, so a missing document is a clean 404 and a broken backend a clean
500. Bytes then flow in ``chunk_size`` pieces; the session is released when
the iterator is exhausted, fails, or is closed because the caller went away.
"""

import logging
import mimetypes
import tempfile
import zipfile
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Callable, ContextManager, Iterator, List, Optional

from document_gateway.adapters.storage import ObjectStore, ObjectStream
from document_gateway.dispatcher import resolve_item
from document_gateway.errors import BackendError, BackendErrorKind, NotFoundError, ValidationError
from document_gateway.s3.keys import DELIMITER, directory_prefix, split_path, validate_name
from document_gateway.utils.decorators import log_duration

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], ContextManager[ObjectStore]]

ZIP_CONTENT_TYPE = "application/zip"


@dataclass
class DocumentStream:
    """Bytes of one document (or archive) plus the metadata to serve them."""
    chunks: Iterator[bytes]
    filename: str
    content_type: str
    content_length: Optional[int] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    _resources: ExitStack = field(default_factory=ExitStack, repr=False)

    def __iter__(self) -> Iterator[bytes]:
        return self.chunks

    def close(self) -> None:
        """Release the backend session; safe to call more than once."""
        self._resources.close()


def _stream_and_release(source: Iterator[bytes], resources: ExitStack, name: str) -> Iterator[bytes]:
    try:
        yield from source
    except BackendError:
        logger.exception(f"Streaming '{name}' aborted by a backend failure")
        raise
    finally:
        resources.close()


def _open_existing(store: ObjectStore, key: str, display_name: str) -> ObjectStream:
    try:
        return store.open(key)
    except BackendError as err:
        if err.kind is BackendErrorKind.NOT_FOUND:
            raise NotFoundError(f"Document {display_name} not found") from err
        raise


def open_document(
    store_factory: StoreFactory,
    key: str,
    filename: str,
    content_type: Optional[str] = None,
    chunk_size: int = 64 * 1024,
) -> DocumentStream:
    """
    Open ``key`` for streaming.

    ``filename`` is what the caller asked for; the backend key (and so the
    root prefix) never ends up in the response metadata.
    """
    resources = ExitStack()
    try:
        store = resources.enter_context(store_factory())
        stream = resources.enter_context(_open_existing(store, key, filename))
    except BaseException:
        resources.close()
        raise

    return DocumentStream(
        chunks=_stream_and_release(stream.iter_chunks(chunk_size), resources, filename),
        filename=filename,
        content_type=content_type or stream.content_type or "application/octet-stream",
        content_length=stream.content_length,
        etag=stream.etag,
        last_modified=stream.last_modified,
        _resources=resources,
    )


def download_items(
    store_factory: StoreFactory,
    root_prefix: str,
    path: str,
    names: List[str],
    chunk_size: int = 64 * 1024,
    spool_max_size: int = 8 * 1024 * 1024,
) -> DocumentStream:
    """
    Stream the items ``names`` of folder ``path``.

    A single file is streamed as it is. Several items, or any folder, are
    packed into a zip archive that is spooled (in memory up to
    ``spool_max_size`` bytes, on disk beyond) before streaming.
    """
    if not names:
        raise ValidationError("At least one name is required for download")
    split_path(path)
    for name in names:
        validate_name(name)

    resources = ExitStack()
    try:
        store = resources.enter_context(store_factory())
        keys = [resolve_item(store, root_prefix, path, name) for name in names]

        if len(keys) == 1 and not keys[0].endswith(DELIMITER):
            stream = resources.enter_context(_open_existing(store, keys[0], names[0]))
            guessed_type, _ = mimetypes.guess_type(names[0])
            return DocumentStream(
                chunks=_stream_and_release(stream.iter_chunks(chunk_size), resources, names[0]),
                filename=names[0],
                content_type=stream.content_type or guessed_type or "application/octet-stream",
                content_length=stream.content_length,
                etag=stream.etag,
                last_modified=stream.last_modified,
                _resources=resources,
            )

        spool = resources.enter_context(tempfile.SpooledTemporaryFile(max_size=spool_max_size))
        _write_archive(store, directory_prefix(root_prefix, path), keys, spool, chunk_size)
        content_length = spool.tell()
        spool.seek(0)
    except BaseException:
        resources.close()
        raise

    if len(keys) == 1:
        archive_name = f"{names[0]}.zip"
    else:
        archive_name = "files.zip"
    logger.info(f"Prepared archive '{archive_name}' with {len(keys)} item(s), {content_length} bytes")

    return DocumentStream(
        chunks=_stream_and_release(_read_chunks(spool, chunk_size), resources, archive_name),
        filename=archive_name,
        content_type=ZIP_CONTENT_TYPE,
        content_length=content_length,
        _resources=resources,
    )


def _read_chunks(fileobj: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    while True:
        chunk = fileobj.read(chunk_size)
        if not chunk:
            return
        yield chunk


def _write_archive(store: ObjectStore, base_prefix: str, keys: List[str], target: BinaryIO, chunk_size: int) -> None:
    """Copy each object into the archive chunk by chunk; entries are named relative to ``base_prefix``."""
    with zipfile.ZipFile(target, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
        for key in keys:
            members = store.list_all(key) if key.endswith(DELIMITER) else [store.head(key)]
            if key.endswith(DELIMITER) and not any(member.key == key for member in members):
                archive.writestr(key[len(base_prefix):], b"")
            for member in members:
                arcname = member.key[len(base_prefix):]
                if member.is_directory:
                    archive.writestr(arcname, b"")
                    continue
                with store.open(member.key) as source:
                    force_zip64 = source.content_length >= zipfile.ZIP64_LIMIT
                    with archive.open(arcname, mode="w", force_zip64=force_zip64) as entry:
                        for chunk in source.iter_chunks(chunk_size):
                            entry.write(chunk)


@log_duration("upload")
def upload_document(store: ObjectStore, key: str, fileobj: BinaryIO, content_type: Optional[str] = None) -> None:
    """
    Drain ``fileobj`` into ``key``.

    Returns only after the backend has accepted the complete body; any
    failure is a ``BackendError`` and nothing partial is acknowledged.
    """
    store.put(key, fileobj, content_type=content_type)
