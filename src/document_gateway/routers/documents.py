import logging
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Header, Request, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from document_gateway.config.settings import Settings
from document_gateway.dependencies import get_settings_from_app, get_store_factory
from document_gateway.dispatcher import ActionDispatcher
from document_gateway.errors import ValidationError
from document_gateway.s3.keys import document_key
from document_gateway.schemas import (
    ActionResponse,
    DirectoryActionRequest,
    DocumentTransferRequest,
    DownloadRequest,
    UploadDocumentResponse,
)
from document_gateway.transfer import DocumentStream, StoreFactory, download_items, open_document, upload_document

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"description": "The request is invalid or targets the root folder."},
    status.HTTP_404_NOT_FOUND: {"description": "The document or item does not exist."},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "The object store failed."},
}


def _content_disposition(filename: str) -> str:
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace('"', "")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def _streaming_response(document: DocumentStream) -> StreamingResponse:
    headers = {"Content-Disposition": _content_disposition(document.filename)}
    if document.content_length is not None:
        headers["Content-Length"] = str(document.content_length)
    if document.etag:
        headers["ETag"] = document.etag
    if document.last_modified:
        headers["Last-Modified"] = document.last_modified.strftime("%a, %d %b %Y %H:%M:%S GMT")
    return StreamingResponse(
        content=document,
        media_type=document.content_type,
        headers=headers,
        background=BackgroundTask(document.close),
    )


def _etag_matches(if_none_match: Optional[str], etag: Optional[str]) -> bool:
    if not if_none_match or not etag:
        return False
    candidates = [candidate.strip().removeprefix("W/") for candidate in if_none_match.split(",")]
    return "*" in candidates or etag in candidates


@router.post(
    "/documents/actions",
    responses={
        status.HTTP_200_OK: {"model": ActionResponse},
        **ERROR_RESPONSES,
    },
)
def manage_documents(
    body: DirectoryActionRequest,
    settings: Settings = Depends(get_settings_from_app),
    store_factory: StoreFactory = Depends(get_store_factory),
) -> JSONResponse:
    """
    Run one directory action (read, create, delete, copy, move, rename, search, details).

    Failures are answered as `{"error": {"code", "message"}}`.
    """
    with store_factory() as store:
        result = ActionDispatcher(store, settings.root_folder_name).dispatch(body)
    return JSONResponse(status_code=result.status_code, content=result.body)


_FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def _read_download_request(request: Request) -> DownloadRequest:
    """Accept a JSON body, or a `downloadInput` form field holding the same JSON as a string."""
    if request.headers.get("content-type", "").startswith(_FORM_CONTENT_TYPES):
        async with request.form() as form:
            download_input = form.get("downloadInput")
        if not isinstance(download_input, str) or not download_input.strip():
            raise ValidationError("downloadInput is required")
        return DownloadRequest.model_validate_json(download_input)
    return DownloadRequest.model_validate_json(await request.body())


@router.post(
    "/documents/download",
    responses={
        status.HTTP_200_OK: {
            "description": "The file, or a zip archive for several items or a folder.",
            "content": {"application/octet-stream": {"schema": {"type": "string", "format": "binary"}}},
        },
        **ERROR_RESPONSES,
    },
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {"schema": DownloadRequest.model_json_schema(by_alias=True)},
                "application/x-www-form-urlencoded": {
                    "schema": {
                        "type": "object",
                        "properties": {"downloadInput": {"type": "string", "description": "The JSON body as a string."}},
                    }
                },
            }
        }
    },
)
async def download_documents(
    request: Request,
    settings: Settings = Depends(get_settings_from_app),
    store_factory: StoreFactory = Depends(get_store_factory),
) -> StreamingResponse:
    """Download the items `names` of folder `path`."""
    body = await _read_download_request(request)
    document = await run_in_threadpool(
        download_items,
        store_factory,
        settings.root_folder_name,
        body.path,
        body.names,
        chunk_size=settings.stream_chunk_size,
        spool_max_size=settings.zip_spool_max_size,
    )
    return _streaming_response(document)


@router.post(
    "/documents/fetch",
    responses={
        status.HTTP_200_OK: {
            "description": "The document content.",
            "content": {"application/pdf": {"schema": {"type": "string", "format": "binary"}}},
        },
        status.HTTP_304_NOT_MODIFIED: {"description": "`If-None-Match` matches the current ETag."},
        **ERROR_RESPONSES,
    },
)
def fetch_document(
    body: DocumentTransferRequest,
    if_none_match: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings_from_app),
    store_factory: StoreFactory = Depends(get_store_factory),
) -> Response:
    """Stream a whole document by name with the registered document content type."""
    if not body.document_name:
        raise ValidationError("Document name required")

    key = document_key(settings.root_folder_name, body.document_name)
    document = open_document(
        store_factory,
        key,
        filename=PurePosixPath(body.document_name).name,
        content_type=settings.document_content_type,
        chunk_size=settings.stream_chunk_size,
    )
    if _etag_matches(if_none_match, document.etag):
        document.close()
        logger.debug(f"{body.document_name} not modified since {document.etag}")
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers={"ETag": document.etag})
    return _streaming_response(document)


def _store_upload(store_factory: StoreFactory, key: str, upload: UploadFile, content_type: str) -> None:
    with store_factory() as store:
        upload_document(store, key, upload.file, content_type=content_type)


@router.post(
    "/documents/upload",
    response_model=UploadDocumentResponse,
    responses=ERROR_RESPONSES,
    openapi_extra={
        "requestBody": {
            "content": {
                "multipart/form-data": {
                    "schema": {
                        "type": "object",
                        "properties": {
                            "file": {"type": "string", "format": "binary"},
                            "documentName": {"type": "string"},
                        },
                    }
                }
            }
        }
    },
)
async def upload_document_route(
    request: Request,
    settings: Settings = Depends(get_settings_from_app),
    store_factory: StoreFactory = Depends(get_store_factory),
) -> UploadDocumentResponse:
    """
    Save a document from a multipart body: one file part plus a `documentName` field.

    Overwrites any existing document with the same name.
    """
    async with request.form() as form:
        uploads = [value for value in form.values() if isinstance(value, UploadFile)]
        if not uploads:
            raise ValidationError("No file provided")
        upload = uploads[0]

        document_name = form.get("documentName")
        if not isinstance(document_name, str) or not document_name.strip():
            document_name = upload.filename
        if not document_name:
            raise ValidationError("Document name required")

        key = document_key(settings.root_folder_name, document_name)
        content_type = upload.content_type or settings.document_content_type
        await run_in_threadpool(_store_upload, store_factory, key, upload, content_type)

    return UploadDocumentResponse(document_name=document_name, message=f"Document saved: {document_name}")
