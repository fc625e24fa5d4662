"""
Object store adapter.

``ObjectStore`` is the interface the dispatcher and the transfer manager talk
to; ``S3ObjectStore`` is the production implementation over a boto3 S3 client.
Keys are always produced by ``document_gateway.s3.keys``; keys ending with
``/`` address a folder (a key prefix) rather than a single object.

Every botocore/boto3 exception is translated into ``BackendError`` here, so no
backend-specific type crosses this boundary.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, BinaryIO, Dict, Iterator, List, Optional, Protocol, Sequence

from boto3.exceptions import Boto3Error
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from document_gateway.errors import BackendError, BackendErrorKind
from document_gateway.s3.keys import DELIMITER, relative_name

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

# DeleteObjects accepts at most this many keys per request
DELETE_BATCH_SIZE = 1000

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_PERMISSION_CODES = {"403", "AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch"}
_UNAVAILABLE_CODES = {"NoSuchBucket", "ServiceUnavailable", "SlowDown", "503"}


def _kind_for(code: str) -> Optional[BackendErrorKind]:
    if code in _NOT_FOUND_CODES:
        return BackendErrorKind.NOT_FOUND
    if code in _PERMISSION_CODES:
        return BackendErrorKind.PERMISSION_DENIED
    if code in _UNAVAILABLE_CODES:
        return BackendErrorKind.UNAVAILABLE
    return None


@dataclass
class ObjectInfo:
    """Metadata of one object or folder; no body."""
    key: str
    name: str
    is_directory: bool
    size: int = 0
    last_modified: Optional[datetime] = None
    content_type: Optional[str] = None
    etag: Optional[str] = None


@dataclass
class Listing:
    """One level of a folder: its direct files and sub-folders."""
    prefix: str
    items: List[ObjectInfo] = field(default_factory=list)

    @property
    def folders(self) -> List[ObjectInfo]:
        return [item for item in self.items if item.is_directory]

    @property
    def files(self) -> List[ObjectInfo]:
        return [item for item in self.items if not item.is_directory]


def translate_backend_error(exc: BaseException, operation: str, key: str) -> BackendError:
    """Turn a boto exception into a ``BackendError`` with the matching kind."""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code", ""))
        http_status = str(exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", ""))
        # the error code wins; NoSuchBucket also arrives with HTTP 404
        kind = _kind_for(code) or _kind_for(http_status) or BackendErrorKind.UNKNOWN
        message = f"{operation} '{key}' failed: {code or http_status}"
    elif isinstance(exc, (ReadTimeoutError, ConnectTimeoutError)):
        kind = BackendErrorKind.TIMEOUT
        message = f"{operation} '{key}' timed out"
    elif isinstance(exc, EndpointConnectionError):
        kind = BackendErrorKind.UNAVAILABLE
        message = f"{operation} '{key}' could not reach the object store"
    else:
        kind = BackendErrorKind.UNKNOWN
        message = f"{operation} '{key}' failed: {type(exc).__name__}"
    return BackendError(message, kind=kind, cause=exc)


@contextmanager
def backend_call(operation: str, key: str) -> Iterator[None]:
    """Re-raise any boto exception raised inside the block as ``BackendError``."""
    try:
        yield
    except (ClientError, BotoCoreError, Boto3Error) as exc:
        raise translate_backend_error(exc, operation, key) from exc


class ObjectStream:
    """
    An open object body read in bounded chunks.

    The body is never read in full; callers iterate ``iter_chunks`` and must
    call ``close`` (or use the stream as a context manager).
    """

    def __init__(
        self,
        key: str,
        body: BinaryIO,
        content_length: int,
        content_type: Optional[str] = None,
        etag: Optional[str] = None,
        last_modified: Optional[datetime] = None,
    ):
        self.key = key
        self.content_length = content_length
        self.content_type = content_type
        self.etag = etag
        self.last_modified = last_modified
        self._body = body

    def iter_chunks(self, chunk_size: int) -> Iterator[bytes]:
        while True:
            with backend_call("read", self.key):
                chunk = self._body.read(chunk_size)
            if not chunk:
                return
            yield chunk

    def close(self) -> None:
        self._body.close()

    def __enter__(self) -> "ObjectStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ObjectStore(Protocol):
    """Operations the gateway needs from a key-addressed object store."""

    def list(self, prefix: str) -> Listing: ...

    def list_all(self, prefix: str) -> List[ObjectInfo]: ...

    def has_children(self, prefix: str) -> bool: ...

    def head(self, key: str) -> ObjectInfo: ...

    def exists(self, key: str) -> bool: ...

    def prefix_exists(self, prefix: str) -> bool: ...

    def get(self, key: str) -> bytes: ...

    def open(self, key: str) -> ObjectStream: ...

    def put(self, key: str, fileobj: BinaryIO, content_type: Optional[str] = None) -> None: ...

    def create_folder(self, prefix: str) -> None: ...

    def copy(self, src_key: str, dst_key: str) -> None: ...

    def move(self, src_key: str, dst_key: str) -> bool: ...

    def rename(self, key: str, new_key: str) -> bool: ...

    def delete(self, keys: Sequence[str]) -> None: ...

    def search(self, prefix: str, substring: str, case_sensitive: bool, include_hidden: bool) -> List[ObjectInfo]: ...

    def details(self, keys: Sequence[str]) -> List[ObjectInfo]: ...


def _name_of(key: str) -> str:
    return key.rstrip(DELIMITER).rpartition(DELIMITER)[2]


def _is_hidden(relative_key: str) -> bool:
    return any(segment.startswith(".") for segment in relative_key.split(DELIMITER) if segment)


def matches_search(name: str, search_string: str, case_sensitive: bool) -> bool:
    """Substring match; ``*`` wildcards from file-manager clients are ignored."""
    needle = search_string.replace("*", "")
    if not case_sensitive:
        return needle.lower() in name.lower()
    return needle in name


class S3ObjectStore:
    """``ObjectStore`` over one boto3 S3 client and bucket."""

    def __init__(self, s3_client: "S3Client", bucket_name: str):
        self._client = s3_client
        self.bucket_name = bucket_name

    #####################
    # --- Listing --- #
    #####################

    def list(self, prefix: str) -> Listing:
        """Direct children of ``prefix``: files from Contents, folders from CommonPrefixes."""
        listing = Listing(prefix=prefix)
        with backend_call("list", prefix):
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix, Delimiter=DELIMITER):
                for common_prefix in page.get("CommonPrefixes", []):
                    folder_key = common_prefix["Prefix"]
                    listing.items.append(
                        ObjectInfo(key=folder_key, name=relative_name(prefix, folder_key), is_directory=True)
                    )
                for obj in page.get("Contents", []):
                    if obj["Key"] == prefix:
                        # the folder's own marker object
                        continue
                    listing.items.append(self._object_info(obj))
        return listing

    def list_all(self, prefix: str) -> List[ObjectInfo]:
        """Every object under ``prefix``, at any depth, folder markers included."""
        items = []
        with backend_call("list", prefix):
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                for obj in page.get("Contents", []):
                    items.append(self._object_info(obj))
        return items

    def has_children(self, prefix: str) -> bool:
        """Whether the folder at ``prefix`` contains at least one sub-folder."""
        with backend_call("list", prefix):
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix, Delimiter=DELIMITER):
                if page.get("CommonPrefixes"):
                    return True
        return False

    ######################
    # --- Metadata --- #
    ######################

    def head(self, key: str) -> ObjectInfo:
        with backend_call("head", key):
            response = self._client.head_object(Bucket=self.bucket_name, Key=key)
        return ObjectInfo(
            key=key,
            name=_name_of(key),
            is_directory=key.endswith(DELIMITER),
            size=response["ContentLength"],
            last_modified=response.get("LastModified"),
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
        )

    def exists(self, key: str) -> bool:
        try:
            self.head(key)
        except BackendError as err:
            if err.kind is BackendErrorKind.NOT_FOUND:
                return False
            raise
        return True

    def prefix_exists(self, prefix: str) -> bool:
        with backend_call("list", prefix):
            response = self._client.list_objects_v2(Bucket=self.bucket_name, Prefix=prefix, MaxKeys=1)
        return response.get("KeyCount", 0) > 0

    def details(self, keys: Sequence[str]) -> List[ObjectInfo]:
        """Metadata only; a folder reports the summed size of its tree."""
        infos = []
        for key in keys:
            if not key.endswith(DELIMITER):
                infos.append(self.head(key))
                continue
            tree = self.list_all(key)
            modified = [item.last_modified for item in tree if item.last_modified]
            infos.append(
                ObjectInfo(
                    key=key,
                    name=_name_of(key),
                    is_directory=True,
                    size=sum(item.size for item in tree),
                    last_modified=max(modified) if modified else None,
                )
            )
        return infos

    ##################
    # --- Read --- #
    ##################

    def get(self, key: str) -> bytes:
        with self.open(key) as stream:
            return b"".join(stream.iter_chunks(1024 * 1024))

    def open(self, key: str) -> ObjectStream:
        with backend_call("get", key):
            response = self._client.get_object(Bucket=self.bucket_name, Key=key)
        return ObjectStream(
            key=key,
            body=response["Body"],
            content_length=response["ContentLength"],
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
            last_modified=response.get("LastModified"),
        )

    ###################
    # --- Write --- #
    ###################

    def put(self, key: str, fileobj: BinaryIO, content_type: Optional[str] = None) -> None:
        """
        Write ``fileobj`` to ``key``, overwriting any existing object.

        Large bodies go up as a multipart upload that is only completed after
        the whole stream has been read, so a partial body is never visible.
        There is no concurrency check: the last successful write wins.
        """
        extra_args = {"ContentType": content_type or "application/octet-stream"}
        with backend_call("put", key):
            self._client.upload_fileobj(Fileobj=fileobj, Bucket=self.bucket_name, Key=key, ExtraArgs=extra_args)
        logger.info(f"Uploaded s3://{self.bucket_name}/{key}")

    def create_folder(self, prefix: str) -> None:
        with backend_call("create", prefix):
            self._client.put_object(Bucket=self.bucket_name, Key=prefix, Body=b"")
        logger.info(f"Created folder marker s3://{self.bucket_name}/{prefix}")

    def copy(self, src_key: str, dst_key: str) -> None:
        """Server-side copy of one object, or of a whole tree when both keys are prefixes."""
        if not src_key.endswith(DELIMITER):
            self._copy_object(src_key, dst_key)
            return

        tree = self.list_all(src_key)
        if not tree:
            # folder exists only implicitly; keep it visible at the destination
            self.create_folder(dst_key)
        for item in tree:
            self._copy_object(item.key, dst_key + item.key[len(src_key):])

    def _copy_object(self, src_key: str, dst_key: str) -> None:
        with backend_call("copy", src_key):
            self._client.copy(
                CopySource={"Bucket": self.bucket_name, "Key": src_key},
                Bucket=self.bucket_name,
                Key=dst_key,
            )
        logger.debug(f"Copied {src_key} -> {dst_key}")

    def move(self, src_key: str, dst_key: str) -> bool:
        """
        Copy, then delete the source.

        Returns False when the copy succeeded but the source could not be
        removed: both keys then exist. The copy is never rolled back.
        """
        self.copy(src_key, dst_key)
        try:
            self.delete([src_key])
        except BackendError:
            logger.error(
                f"Copied {src_key} to {dst_key} but could not delete the source; both now exist",
                exc_info=True,
            )
            return False
        return True

    def rename(self, key: str, new_key: str) -> bool:
        return self.move(key, new_key)

    def delete(self, keys: Sequence[str]) -> None:
        """
        Delete objects; folder prefixes expand to their whole tree.

        Any per-key failure is reported as one aggregated ``BackendError``
        without saying which keys were removed.
        """
        expanded: List[str] = []
        for key in keys:
            if key.endswith(DELIMITER):
                expanded.extend(item.key for item in self.list_all(key))
                if key not in expanded:
                    expanded.append(key)
            else:
                expanded.append(key)

        failed = 0
        for start in range(0, len(expanded), DELETE_BATCH_SIZE):
            batch = expanded[start:start + DELETE_BATCH_SIZE]
            with backend_call("delete", batch[0]):
                response = self._client.delete_objects(
                    Bucket=self.bucket_name,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
                )
            failed += len(response.get("Errors", []))

        if failed:
            raise BackendError(
                f"{failed} of {len(expanded)} objects could not be deleted",
                kind=BackendErrorKind.PARTIAL_FAILURE,
            )
        logger.info(f"Deleted {len(expanded)} object(s) from s3://{self.bucket_name}")

    ####################
    # --- Search --- #
    ####################

    def search(self, prefix: str, substring: str, case_sensitive: bool, include_hidden: bool) -> List[ObjectInfo]:
        """Filter of a recursive listing; folders are derived from the keys."""
        found: Dict[str, ObjectInfo] = {}
        for item in self.list_all(prefix):
            relative_key = item.key[len(prefix):]
            if not relative_key:
                continue
            if not include_hidden and _is_hidden(relative_key):
                continue

            # every intermediate folder is a candidate, marker object or not
            segments = relative_key.rstrip(DELIMITER).split(DELIMITER)
            for depth in range(1, len(segments)):
                folder_key = prefix + DELIMITER.join(segments[:depth]) + DELIMITER
                if folder_key not in found and matches_search(segments[depth - 1], substring, case_sensitive):
                    found[folder_key] = ObjectInfo(key=folder_key, name=segments[depth - 1], is_directory=True)

            if matches_search(item.name, substring, case_sensitive):
                found[item.key] = item
        return list(found.values())

    def _object_info(self, obj: dict) -> ObjectInfo:
        key = obj["Key"]
        return ObjectInfo(
            key=key,
            name=_name_of(key),
            is_directory=key.endswith(DELIMITER),
            size=obj.get("Size", 0),
            last_modified=obj.get("LastModified"),
            etag=obj.get("ETag"),
        )
