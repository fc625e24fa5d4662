from fastapi import APIRouter, Depends

from document_gateway.config.settings import Settings
from document_gateway.dependencies import get_settings_from_app

router = APIRouter()


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings_from_app)):
    """
    Liveness endpoint.

    Reports the configured bucket and root folder; it never calls the object
    store, so it stays up while the backend is down.
    """
    return {
        "status": "ok",
        "bucket": settings.s3_bucket_name,
        "rootFolder": settings.root_folder_name,
    }
