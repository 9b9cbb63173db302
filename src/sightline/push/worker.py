"""Background ingestion of location push payloads.

The webhook handler drops raw request bodies on an in-memory queue and
returns at once. Worker tasks drain the queue, decode each payload and
write one Client row per observation. Delivery is at-most-once: a payload
that fails to decode, or arrives while the queue is full, is logged and
discarded.
"""

import asyncio
import logging
import threading
from collections.abc import Callable

from sqlmodel import Session

from sightline.push.payload import PayloadDecodeError, SecretMismatchError, decode_envelope
from sightline.registry.store import upsert_client

logger = logging.getLogger(__name__)

# Observation fields echoed in the per-observation log line
_LOGGED_FIELDS = (
    "ipv4",
    "ipv6",
    "seen_time",
    "seen_epoch",
    "rssi",
    "ssid",
    "manufacturer",
    "os",
    "location",
)


def ingest_payload(session: Session, raw: bytes | str, secret: str) -> int:
    """Decode a push payload and upsert every observation in it.

    Returns the number of observations applied; 0 when the payload was
    discarded.
    """
    try:
        envelope = decode_envelope(raw, secret)
    except SecretMismatchError:
        logger.warning("Discarding push payload with wrong secret")
        return 0
    except PayloadDecodeError as e:
        logger.error("Discarding undecodable push payload: %s", e)
        return 0

    data = envelope.data
    for observation in data.observations:
        fields = observation.model_dump(include=set(_LOGGED_FIELDS), by_alias=True)
        logger.info("AP %s on %s: %s %s", data.ap_mac, data.ap_floors, observation.client_mac, fields)
        upsert_client(session, observation, data.ap_floors, envelope.type)
    return len(data.observations)


class IngestWorker:
    """Fire-and-forget dispatch channel between the webhook and the store."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        secret: str,
        workers: int = 1,
        maxsize: int = 1000,
    ) -> None:
        self.session_factory = session_factory
        self.secret = secret
        self.workers = workers
        self.maxsize = maxsize
        self._queue: asyncio.Queue[bytes] | None = None
        self._tasks: list[asyncio.Task[None]] = []
        # Upserts for one mac must not interleave across worker threads
        self._write_lock = threading.Lock()
        self._running = False

    async def start(self) -> None:
        logger.info("Starting %d ingest worker(s) (queue size=%d)", self.workers, self.maxsize)
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        self._running = True
        self._tasks = [
            asyncio.create_task(self._work_loop(i), name=f"ingest-worker-{i}")
            for i in range(self.workers)
        ]

    async def stop(self) -> None:
        logger.info("Stopping ingest workers")
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

    def submit(self, raw: bytes) -> bool:
        """Queue a payload without waiting. Returns False if it was dropped."""
        if self._queue is None or not self._running:
            logger.warning("Ingest worker not running; dropping payload")
            return False
        try:
            self._queue.put_nowait(raw)
        except asyncio.QueueFull:
            logger.warning("Ingest queue full (%d); dropping payload", self.maxsize)
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued payload has been processed."""
        if self._queue is not None:
            await self._queue.join()

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def _process(self, raw: bytes) -> int:
        with self._write_lock, self.session_factory() as session:
            return ingest_payload(session, raw, self.secret)

    async def _work_loop(self, index: int) -> None:
        assert self._queue is not None
        while self._running:
            raw = await self._queue.get()
            try:
                # Database work runs off the event loop
                count = await asyncio.to_thread(self._process, raw)
                logger.debug("Worker %d applied %d observation(s)", index, count)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Ingest worker %d failed to process payload", index)
            finally:
                self._queue.task_done()
