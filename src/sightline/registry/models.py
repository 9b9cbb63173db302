"""Client model: latest known state per device MAC."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from sqlmodel import Field, SQLModel


class Client(SQLModel, table=True):
    __tablename__ = "clients"

    id: int | None = Field(default=None, primary_key=True)
    # Not unique: the write path upserts, the schema does not enforce it
    mac: str = Field(index=True)
    seen_at: datetime | None = None
    lat: float | None = None
    lng: float | None = None
    unc: float | None = None
    manufacturer: str | None = None
    os: str | None = None
    floors: str | None = None
    event_type: str | None = None
    seen_epoch: int | None = Field(default=None, index=True)


class ClientRead(BaseModel):
    """JSON shape served by the clients endpoints."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: int
    mac: str
    seen_at: datetime | None
    lat: float | None
    lng: float | None
    unc: float | None
    manufacturer: str | None
    os: str | None
    floors: str | None

    @field_validator("seen_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        # SQLite hands back naive datetimes; stored values are UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v
