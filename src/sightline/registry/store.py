"""Client upserts, lookups, recency queries and the row-count guard."""

import logging
import time

from sqlalchemy import delete
from sqlmodel import Session, col, func, select

from sightline.push.payload import Observation
from sightline.registry.models import Client

logger = logging.getLogger(__name__)

# Filter value meaning "do not filter on this column"
ALL = "All"


def _find_by_mac(session: Session, mac: str) -> Client | None:
    stmt = select(Client).where(Client.mac == mac).order_by(col(Client.id))
    return session.exec(stmt).first()


def upsert_client(
    session: Session,
    observation: Observation,
    ap_floors: str | None,
    event_type: str,
) -> Client:
    """Create or overwrite the Client row for an observation's MAC.

    Rows are updated in arrival order. An older observation delivered late
    overwrites a newer one.
    """
    client = _find_by_mac(session, observation.client_mac)
    if client is None:
        client = Client(mac=observation.client_mac)
        session.add(client)

    location = observation.location
    client.seen_at = observation.seen_at
    client.lat = location.lat if location else None
    client.lng = location.lng if location else None
    client.unc = location.unc if location else None
    client.manufacturer = observation.manufacturer
    client.os = observation.os
    client.floors = ap_floors
    client.event_type = event_type
    client.seen_epoch = observation.effective_epoch

    session.commit()
    session.refresh(client)
    return client


def get_client(session: Session, mac: str) -> Client | None:
    """Get a single client by exact MAC match."""
    return _find_by_mac(session, mac)


def list_recent_clients(
    session: Session,
    event_type: str | None = None,
    floors: str | None = None,
    window: int = 900,
    now: float | None = None,
) -> list[Client]:
    """Get clients seen within the last ``window`` seconds.

    ``event_type`` and ``floors`` filter by exact match unless None or
    "All". An empty string matches rows whose value is empty.
    """
    if now is None:
        now = time.time()
    cutoff = int(now - window)

    stmt = select(Client).where(col(Client.seen_epoch) > cutoff)
    if event_type is not None and event_type != ALL:
        stmt = stmt.where(Client.event_type == event_type)
    if floors is not None and floors != ALL:
        stmt = stmt.where(Client.floors == floors)
    stmt = stmt.order_by(col(Client.id))
    return list(session.exec(stmt).all())


def distinct_floors(session: Session) -> list[str | None]:
    """Distinct floor values, null included, for the floor selector."""
    stmt = select(Client.floors).distinct().order_by(col(Client.floors))
    return list(session.exec(stmt).all())


def count_clients(session: Session) -> int:
    return session.exec(select(func.count()).select_from(Client)).one()


def enforce_capacity(session: Session, ceiling: int = 6000) -> bool:
    """Delete every client once the table holds ``ceiling`` rows or more.

    Returns True when the table was wiped.
    """
    count = count_clients(session)
    if count < ceiling:
        return False

    logger.warning("Number of rows (%d) at or above %d. Deleting all rows.", count, ceiling)
    session.exec(delete(Client))  # type: ignore[call-overload]
    session.commit()
    return True
