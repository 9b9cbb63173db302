"""Push API webhook and client query endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse, Response
from sqlmodel import Session

from sightline.config import settings
from sightline.database import get_session
from sightline.registry.models import Client, ClientRead
from sightline.registry.store import (
    distinct_floors,
    enforce_capacity,
    get_client,
    list_recent_clients,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_json(client: Client) -> dict[str, Any]:
    return ClientRead.model_validate(client).model_dump(mode="json", by_alias=True)


# --- Push API ---


@router.get("/events", response_class=PlainTextResponse)
def validate_endpoint() -> str:
    """Answer the dashboard's ownership check. Do not change the body."""
    return settings.validator


@router.post("/events")
async def receive_events(request: Request) -> Response:
    content_type = request.headers.get("content-type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type != "application/json":
        logger.warning("got post with unexpected content type: %s", media_type or None)
        return Response()

    body = await request.body()
    request.app.state.ingest_worker.submit(body)
    return Response()


# --- Clients ---


@router.get("/clients/{mac}")
def client_detail(
    mac: str,
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    name = mac.replace("%20", " ", 1)
    logger.debug("Request name is %s", name)
    client = get_client(session, name)
    logger.info("Retrieved client %s", client.mac if client else None)
    return _to_json(client) if client is not None else {}


@router.get("/clients")
@router.get("/clients/", include_in_schema=False)
def list_clients(
    event_type: str | None = Query(default=None, alias="eventType"),
    floors: str | None = None,
    session: Session = Depends(get_session),
) -> list[dict[str, Any]]:
    enforce_capacity(session, ceiling=settings.client_row_ceiling)
    clients = list_recent_clients(
        session,
        event_type=event_type,
        floors=floors,
        window=settings.recency_window,
    )
    return [_to_json(c) for c in clients]


@router.get("/floors")
def list_floors(
    session: Session = Depends(get_session),
) -> list[str | None]:
    return distinct_floors(session)
