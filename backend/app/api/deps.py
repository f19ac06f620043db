"""FastAPI dependency injection — state store, webhook client, error mapping."""
from fastapi import HTTPException, Request, status

from app.services.errors import PayrollError, RecordNotFoundError
from app.services.state_store import StateStore
from app.services.webhook_client import WebhookClient


def get_store(request: Request) -> StateStore:
    return request.app.state.store


def get_webhook(request: Request) -> WebhookClient:
    return request.app.state.webhook


def http_error(exc: PayrollError) -> HTTPException:
    """404 for missing records, 400 for every other rejected input."""
    if isinstance(exc, RecordNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
