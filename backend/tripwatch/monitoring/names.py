"""Background reverse geocoding of polled coordinates."""

import asyncio
import logging
import uuid
from functools import partial

import httpx

from backend.tripwatch.adapters.geocoding import reverse_geocode
from backend.tripwatch.config import Settings
from backend.tripwatch.geo.normalizer import parse_coordinates
from backend.tripwatch.models.common import GeoKey
from backend.tripwatch.models.tool_results import ReverseGeocodeRequest
from backend.tripwatch.monitoring.status import MonitoringStatusTracker
from backend.tripwatch.tools.executor import (
    CallContext,
    CallExecutionError,
    CallTimeoutError,
    CircuitOpenError,
    CollaboratorExecutor,
    SessionCancelledError,
    SessionToken,
)

logger = logging.getLogger(__name__)


class LocationNameResolver:
    """Fills the tracker's `location_names` without blocking detection.

    Each coordinate is looked up once per resolver; the result is cached and
    every new name triggers a status notification. Results for a stopped
    session are dropped.
    """

    def __init__(
        self,
        executor: CollaboratorExecutor,
        tracker: MonitoringStatusTracker,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._executor = executor
        self._tracker = tracker
        self.cache: dict[GeoKey, str] = {}
        self._pending: dict[GeoKey, asyncio.Task[None]] = {}
        self._lookup = partial(
            reverse_geocode,
            api_key=settings.google_maps_api_key,
            base_url=settings.geocode_api_url,
            client=client,
        )

    def label_for(self, key: GeoKey) -> str | None:
        return self.cache.get(key)

    def schedule(self, keys: list[GeoKey], token: SessionToken) -> None:
        """Start lookups for keys without a known name.

        Place names label themselves. Cached coordinates are applied to the
        tracker right away.
        """
        for key in keys:
            coords = parse_coordinates(key)
            if coords is None:
                self._tracker.set_location_name(key, key)
                continue
            if key in self.cache:
                self._tracker.set_location_name(key, self.cache[key])
                continue
            if key in self._pending:
                continue
            task = asyncio.create_task(self._resolve(key, coords, token))
            self._pending[key] = task
            task.add_done_callback(lambda _t, k=key: self._pending.pop(k, None))

    async def _resolve(self, key: GeoKey, coords: tuple[float, float], token: SessionToken) -> None:
        ctx = CallContext(
            trace_id=uuid.uuid4().hex,
            session_id=token.session_id,
            collaborator="geocode",
            target=key,
        )
        request = ReverseGeocodeRequest(lat=coords[0], lng=coords[1])

        try:
            name = await self._executor.execute(ctx, self._lookup, request, token)
        except SessionCancelledError:
            return
        except (CallTimeoutError, CallExecutionError, CircuitOpenError) as e:
            logger.info("Reverse geocoding failed for %s, keeping coordinate: %s", key, e)
            name = None

        if token.cancelled:
            return

        # Failed or empty lookups are retried next session
        if name is None:
            name = key
        else:
            self.cache[key] = name
        self._tracker.set_location_name(key, name)
        await self._tracker.publish()

    async def drain(self) -> None:
        """Wait for every in-flight lookup to finish."""
        while True:
            tasks = [t for t in self._pending.values() if not t.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    def cancel(self) -> None:
        for task in list(self._pending.values()):
            task.cancel()
        self._pending.clear()
