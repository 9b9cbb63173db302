"""Location push payload models and decoding.

The push platform POSTs one envelope per batch:

    {"secret": ..., "version": "2.0", "type": "DevicesSeen",
     "data": {"apFloors": ..., "apMac": ..., "observations": [...]}}

Decoding is pure: it validates shape and the shared secret and never
touches the database.
"""

import secrets
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel


class PayloadDecodeError(ValueError):
    """Raised when a push payload cannot be decoded."""


class SecretMismatchError(PayloadDecodeError):
    """Raised when the envelope secret does not match the configured one."""


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Location(_WireModel):
    lat: float | None = None
    lng: float | None = None
    unc: float | None = None


class Observation(_WireModel):
    """One device sighting."""

    client_mac: str = Field(min_length=1)
    seen_time: str | None = None
    seen_epoch: int | None = None
    ipv4: str | None = None
    ipv6: str | None = None
    rssi: int | None = None
    ssid: str | None = None
    manufacturer: str | None = None
    os: str | None = None
    location: Location | None = None

    def _parsed_seen_time(self) -> datetime | None:
        if not self.seen_time:
            return None
        try:
            parsed = datetime.fromisoformat(self.seen_time)
        except ValueError:
            return None
        return parsed.replace(tzinfo=UTC) if parsed.tzinfo is None else parsed.astimezone(UTC)

    @property
    def seen_at(self) -> datetime | None:
        """The sighting instant, preferring seenTime over seenEpoch."""
        parsed = self._parsed_seen_time()
        if parsed is not None:
            return parsed
        if self.seen_epoch is not None:
            try:
                return datetime.fromtimestamp(self.seen_epoch, UTC)
            except (ValueError, OverflowError, OSError):
                return None
        return None

    @property
    def effective_epoch(self) -> int | None:
        """Unix seconds of the sighting, preferring seenEpoch over seenTime."""
        if self.seen_epoch is not None:
            return self.seen_epoch
        parsed = self._parsed_seen_time()
        return int(parsed.timestamp()) if parsed is not None else None


class EnvelopeData(_WireModel):
    ap_floors: str | None = None
    ap_mac: str | None = None
    observations: list[Observation] = []

    @field_validator("ap_floors", mode="before")
    @classmethod
    def join_floor_list(cls, v: object) -> object:
        """Collapse a floor array into a single comma-separated string."""
        if isinstance(v, list):
            return ", ".join(str(floor) for floor in v if floor)
        return v


class Envelope(_WireModel):
    secret: str
    version: str | None = None
    type: str
    data: EnvelopeData


def decode_envelope(raw: bytes | str, secret: str) -> Envelope:
    """Parse raw request bytes into an Envelope and check its secret."""
    try:
        envelope = Envelope.model_validate_json(raw)
    except ValidationError as e:
        raise PayloadDecodeError(f"invalid push payload: {e.error_count()} error(s)") from e

    if not secrets.compare_digest(envelope.secret.encode(), secret.encode()):
        raise SecretMismatchError("push payload secret does not match")
    return envelope
