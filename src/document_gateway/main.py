import logging
from functools import partial
from textwrap import dedent
from typing import Optional

import pydantic
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute

from document_gateway.config.settings import Settings, get_settings
from document_gateway.errors import (
    GatewayError,
    handle_broad_exceptions,
    handle_gateway_errors,
    handle_pydantic_validation_errors,
)
from document_gateway.routers.documents import router as documents_router
from document_gateway.routers.health import router as health_router
from document_gateway.s3.client import open_object_store
from document_gateway.transfer import StoreFactory

# Set up logging
logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    # botocore logs request headers at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)


def create_app(settings: Optional[Settings] = None, store_factory: Optional[StoreFactory] = None) -> FastAPI:
    """
    Create a FastAPI application.

    ``store_factory`` returns a context manager yielding an ``ObjectStore``;
    by default every request gets its own S3 client built from ``settings``.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Document Gateway",
        summary="Directory actions and streaming transfer for documents in S3",
        version="v1",
        description=dedent(
            """\
        | Endpoint | Notes |
        | --- | --- |
        | `POST /documents/actions` | read, create, delete, copy, move, rename, search, details |
        | `POST /documents/download` | one file as-is, several items or a folder as zip |
        | `POST /documents/fetch` | whole document by name, honours `If-None-Match` |
        | `POST /documents/upload` | multipart: one file part + `documentName` |
        """
        ),
        docs_url="/",  # its easier to find the docs when they live on the base url
        generate_unique_id_function=custom_generate_unique_id,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "ETag"],
    )
    app.state.settings = settings
    app.state.store_factory = store_factory or partial(open_object_store, settings)
    logger.info(
        f"Serving bucket '{settings.s3_bucket_name}' under root folder '{settings.root_folder_name}'"
    )

    app.include_router(documents_router, tags=["documents"])
    app.include_router(health_router, tags=["health"])

    app.add_exception_handler(
        exc_class_or_status_code=GatewayError,
        handler=handle_gateway_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)
