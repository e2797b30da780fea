from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

import httpx

from ..core.config import settings
from ..core.timeutil import now_utc
from ..domain.errors import CommandFailure, ConnectivityFailure
from ..domain.metrics import PieChart, Summary, build_pie, summarize

logger = logging.getLogger(__name__)

CONNECTION_LOST = "Lost connection to device"
COMMAND_FAILED = "Failed to send command"


@dataclass(frozen=True)
class PendingIntent:
    on: bool
    seq: int
    expires_at: float  # time.monotonic()


class SyncClient:
    """Keeps a local copy of the device state in step with the server.

    Polls ``GET /api/status`` immediately on start and then every
    ``poll_interval_s``. The last good snapshot survives failures; ``error``
    says whether the link is currently down. Toggles are reflected
    optimistically as pending intents until the next successful poll.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        poll_interval_s: Optional[float] = None,
        timeout_s: Optional[float] = None,
        intent_ttl_s: Optional[float] = None,
        actuator_only: Optional[Iterable[str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._interval = poll_interval_s if poll_interval_s is not None else settings.poll_interval_s
        self._intent_ttl = intent_ttl_s if intent_ttl_s is not None else settings.intent_ttl_s
        self._actuator_only = frozenset(
            actuator_only if actuator_only is not None else settings.actuator_only_loads
        )

        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout_s if timeout_s is not None else settings.request_timeout_s,
            transport=transport,
        )

        self.loading = True
        self.error: Optional[str] = None
        self.last_updated: Optional[datetime] = None
        self.skipped_ticks = 0

        self._status: Optional[dict[str, Any]] = None
        self._intents: dict[str, PendingIntent] = {}
        self._seq = 0

        self._cancelled = False
        self._generation = 0
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._retired: list[asyncio.Task] = []

    # --- lifecycle ---
    async def start(self) -> None:
        if self._task is not None:
            return
        self._cancelled = False
        self._generation += 1
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="sync_poll_loop")

    def stop(self) -> None:
        """Tear down: takes effect immediately, late responses are dropped."""
        self._cancelled = True
        self._stop.set()
        if self._task is not None:
            self._task.cancel()
            self._retired.append(self._task)
            self._task = None

    async def aclose(self) -> None:
        self.stop()
        pending = [t for t in self._retired if not t.done()]
        if self._inflight is not None and not self._inflight.done():
            pending.append(self._inflight)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._retired.clear()
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "SyncClient":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    @property
    def running(self) -> bool:
        return self._task is not None

    # --- polling ---
    async def _run(self) -> None:
        logger.info("Sync loop started (interval=%ss base_url=%s)", self._interval, self._http.base_url)
        while not self._stop.is_set():
            self._tick()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Sync loop stopped")

    def _tick(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            # previous round trip still out; don't let responses overtake each other
            self.skipped_ticks += 1
            logger.debug("Skipping tick, previous poll still in flight")
            return
        self._inflight = asyncio.create_task(self._poll_logged(), name="sync_poll")

    async def _poll_logged(self) -> None:
        try:
            await self.poll_once()
        except Exception as e:
            logger.exception("Sync poll error: %s", e)

    def _is_stale(self, generation: int) -> bool:
        return self._cancelled or generation != self._generation

    async def _fetch_status(self) -> dict[str, Any]:
        try:
            resp = await self._http.get("/api/status")
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ConnectivityFailure(f"{type(e).__name__}: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("loads"), dict):
            raise ConnectivityFailure("Malformed status payload")
        return data

    async def poll_once(self) -> bool:
        """Fetch one snapshot. Returns True if it was applied."""
        generation = self._generation
        issued_seq = self._seq
        try:
            data = await self._fetch_status()
        except ConnectivityFailure as e:
            if self._is_stale(generation):
                return False
            logger.warning("Failed to fetch status: %s", e)
            self.error = CONNECTION_LOST
            self.loading = False
            return False

        if self._is_stale(generation):
            logger.debug("Discarding status response that arrived after teardown")
            return False

        self._status = data
        # the snapshot is authoritative for every intent recorded before it was requested
        self._intents = {lid: i for lid, i in self._intents.items() if i.seq > issued_seq}
        self.error = None
        self.last_updated = now_utc()
        self.loading = False
        return True

    # --- commands ---
    async def send_command(self, load_id: str, on: bool) -> bool:
        if load_id in self._actuator_only:
            logger.info("Ignoring manual toggle of auto-controlled load %s", load_id)
            return False

        try:
            resp = await self._http.post("/api/control", json={"loadId": load_id, "on": bool(on)})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            failure = CommandFailure(f"{load_id} -> {'ON' if on else 'OFF'}: {e}")
            logger.warning("Failed to send control command: %s", failure)
            if not self._cancelled:
                self.error = COMMAND_FAILED
            return False

        if self._cancelled:
            return True
        self._seq += 1
        self._intents[load_id] = PendingIntent(
            on=bool(on), seq=self._seq, expires_at=time.monotonic() + self._intent_ttl
        )
        self.error = None
        return True

    async def toggle(self, load_id: str) -> bool:
        view = self.view or {}
        current = (view.get("loads") or {}).get(load_id) or {}
        return await self.send_command(load_id, not bool(current.get("on")))

    # --- views ---
    @property
    def snapshot(self) -> Optional[dict[str, Any]]:
        """Last state received from the server, without local intents."""
        return self._status

    @property
    def pending(self) -> dict[str, bool]:
        now = time.monotonic()
        self._intents = {lid: i for lid, i in self._intents.items() if i.expires_at > now}
        return {lid: i.on for lid, i in self._intents.items()}

    @property
    def view(self) -> Optional[dict[str, Any]]:
        """Snapshot with pending intents overlaid on the load flags."""
        if self._status is None:
            return None
        pending = self.pending
        if not pending:
            return self._status
        loads = dict(self._status.get("loads") or {})
        for lid, on in pending.items():
            if lid in loads:
                loads[lid] = {**loads[lid], "on": on}
        return {**self._status, "loads": loads}

    def summary(self) -> Summary:
        return summarize(self.view, self._actuator_only)

    def pie(self) -> PieChart:
        view = self.view
        return build_pie(view.get("loads") if view else None, self._actuator_only)
