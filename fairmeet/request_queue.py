import asyncio
import logging
from collections import deque
from dataclasses import dataclass, replace
from typing import Deque, Dict, Optional, Tuple

from .cache import QueryCache, RouteKey
from .models import GeoPoint, RouteResult, TravelMode
from .oracle import RoutingOracle

logger = logging.getLogger(__name__)

REQUEST_DELAY_SECONDS = 0.1


@dataclass(frozen=True)
class RouteRequest:
    origin: GeoPoint
    destination: GeoPoint
    mode: TravelMode


@dataclass
class QueueMetrics:
    enqueued: int = 0
    completed: int = 0
    failed: int = 0
    max_pending: int = 0

    def to_dict(self) -> Dict:
        return {
            'enqueued': self.enqueued,
            'completed': self.completed,
            'failed': self.failed,
            'max_pending': self.max_pending,
        }


class RequestQueue:
    """
    FIFO of routing requests drained by a single worker task, one request at
    a time with a fixed pause between requests. Every request goes through the
    route cache; a failure rejects only that request's future.
    """

    def __init__(self, oracle: RoutingOracle, cache: QueryCache,
                 delay_seconds: float = REQUEST_DELAY_SECONDS):
        self.oracle = oracle
        self.cache = cache
        self.delay_seconds = delay_seconds
        self._pending: Deque[Tuple[RouteRequest, asyncio.Future]] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._metrics = QueueMetrics()

    @property
    def metrics(self) -> QueueMetrics:
        return replace(self._metrics)

    def reset_metrics(self):
        self._metrics = QueueMetrics()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def enqueue(self, request: RouteRequest) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending.append((request, future))
        self._metrics.enqueued += 1
        self._metrics.max_pending = max(self._metrics.max_pending, len(self._pending))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        return future

    async def route(self, origin: GeoPoint, destination: GeoPoint, mode: TravelMode) -> RouteResult:
        return await self.enqueue(RouteRequest(origin, destination, mode))

    async def _drain(self):
        while self._pending:
            request, future = self._pending.popleft()
            try:
                result = await self.cache.get_or_fetch(
                    RouteKey.build(request.origin, request.destination, request.mode),
                    lambda r=request: self.oracle.route(r.origin, r.destination, r.mode),
                )
            except Exception as e:
                self._metrics.failed += 1
                logger.debug("Route request %s failed: %r", request, e)
                if not future.done():
                    future.set_exception(e)
            else:
                self._metrics.completed += 1
                if not future.done():
                    future.set_result(result)

            if self._pending and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)
