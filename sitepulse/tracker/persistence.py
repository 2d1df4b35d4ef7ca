"""
Shipping tracker output to the collector, with a bounded local fallback.

Every event and session update is posted to the collector and also written
to client-local storage. The local copy is written whatever the remote
outcome, so an event is lost only when both writes fail in the same call.
There is no retry or redelivery of failed remote writes.
"""

import asyncio
import json
from typing import List, Optional

import httpx
from pydantic import ValidationError

from sitepulse.core.config import settings
from sitepulse.core.errors import ErrorHandler
from sitepulse.core.logging_config import get_logger
from sitepulse.schemas import AnalyticsData, AnalyticsEvent, AnalyticsSession, SessionEnd
from sitepulse.tracker.storage import LocalStorage, MemoryStorage

logger = get_logger(__name__)

EVENTS_KEY = "analytics_events"
SESSIONS_KEY = "analytics_sessions"


class LocalFallbackStore:
    """
    The two named lists kept in local storage.

    Events are capped at ``event_limit`` newest entries (oldest evicted
    first); sessions are upserted by id and not capped.
    """

    def __init__(self, storage: LocalStorage, event_limit: int = settings.LOCAL_EVENT_LIMIT):
        self.storage = storage
        self.event_limit = event_limit

    def _read_list(self, key: str) -> List[dict]:
        raw = self.storage.get_item(key)
        if not raw:
            return []
        items = json.loads(raw)
        if not isinstance(items, list):
            return []
        return items

    def _write_list(self, key: str, items: List[dict]) -> None:
        self.storage.set_item(key, json.dumps(items))

    def append_event(self, event: AnalyticsEvent) -> None:
        events = self._read_list(EVENTS_KEY)
        events.append(event.to_payload())
        if len(events) > self.event_limit:
            del events[: len(events) - self.event_limit]
        self._write_list(EVENTS_KEY, events)

    def upsert_session(self, session: AnalyticsSession) -> bool:
        """Insert or merge a summary. A summary older than the stored one is ignored."""
        sessions = self._read_list(SESSIONS_KEY)
        payload = session.to_payload()
        for existing in sessions:
            if existing.get("id") == session.id:
                if session.events < existing.get("events", 0):
                    return False
                existing.update(payload)
                break
        else:
            sessions.append(payload)
        self._write_list(SESSIONS_KEY, sessions)
        return True

    def end_session(self, end: SessionEnd) -> bool:
        """Stamp end time on a known session. Unknown ids are left alone."""
        sessions = self._read_list(SESSIONS_KEY)
        for existing in sessions:
            if existing.get("id") == end.id:
                existing["endTime"] = end.end_time
                existing["duration"] = end.duration
                self._write_list(SESSIONS_KEY, sessions)
                return True
        return False

    def load(self) -> AnalyticsData:
        """Everything buffered so far. Entries that no longer parse are skipped."""
        events = []
        for item in self._read_list(EVENTS_KEY):
            try:
                events.append(AnalyticsEvent.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping unreadable buffered event", error=str(e))

        sessions = []
        for item in self._read_list(SESSIONS_KEY):
            try:
                sessions.append(AnalyticsSession.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping unreadable buffered session", error=str(e))

        return AnalyticsData(events=events, sessions=sessions)


def load_analytics_data(storage: LocalStorage) -> AnalyticsData:
    """Read the local buffers back; empty data if the store cannot be read."""
    with ErrorHandler("load_analytics_data", capture=False):
        return LocalFallbackStore(storage).load()
    return AnalyticsData()


class PersistenceAdapter:
    """
    Remote collector client plus local fallback.

    Nothing here raises to the tracker: remote failures (transport errors
    and non-2xx answers) and local storage failures are logged and dropped.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        storage: Optional[LocalStorage] = None,
        client: Optional[httpx.AsyncClient] = None,
        event_limit: int = settings.LOCAL_EVENT_LIMIT,
        timeout: float = settings.COLLECTOR_TIMEOUT_SECONDS,
    ):
        self.local = LocalFallbackStore(storage if storage is not None else MemoryStorage(), event_limit)
        # Local lists are read-modify-write; one writer at a time
        self._local_lock = asyncio.Lock()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.COLLECTOR_URL,
            timeout=timeout,
        )

    async def _post(self, path: str, payload: dict) -> bool:
        with ErrorHandler("collector_post", context={"path": path}, capture=False) as handler:
            response = await self._client.post(path, json=payload)
            response.raise_for_status()
        return not handler.failed

    async def _write_local(self, write, *args) -> None:
        # File-backed stores block, so writes run off the event loop
        async with self._local_lock:
            await asyncio.to_thread(write, *args)

    async def save_event(self, event: AnalyticsEvent) -> bool:
        """Post an event and append it to the local buffer. Returns the remote outcome."""
        remote_ok = await self._post("events", event.to_payload())

        with ErrorHandler("save_event_local", context={"event_id": event.id}):
            await self._write_local(self.local.append_event, event)

        return remote_ok

    async def update_session(self, session: AnalyticsSession) -> bool:
        """Push a session summary; the collector upserts it by id."""
        remote_ok = await self._post("sessions", session.to_payload())

        with ErrorHandler("update_session_local", context={"session_id": session.id}):
            await self._write_local(self.local.upsert_session, session)

        return remote_ok

    async def end_session(self, end: SessionEnd) -> bool:
        remote_ok = await self._post("sessions/end", end.to_payload())

        with ErrorHandler("end_session_local", context={"session_id": end.id}):
            await self._write_local(self.local.end_session, end)

        return remote_ok

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
