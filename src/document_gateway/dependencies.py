from fastapi import Request

from document_gateway.config.settings import Settings
from document_gateway.transfer import StoreFactory


def get_settings_from_app(request: Request) -> Settings:
    """Settings the app was created with."""
    return request.app.state.settings


def get_store_factory(request: Request) -> StoreFactory:
    """Factory for request-scoped object stores; tests swap it for an in-memory fake."""
    return request.app.state.store_factory
