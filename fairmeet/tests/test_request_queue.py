import asyncio

import pytest

from fairmeet import request_queue
from fairmeet.cache import QueryCache
from fairmeet.errors import OracleNoRouteError
from fairmeet.models import GeoPoint, TravelMode
from fairmeet.request_queue import RequestQueue

A = GeoPoint(52.52, 13.40)
B = GeoPoint(52.50, 13.45)
C = GeoPoint(52.48, 13.35)


@pytest.mark.asyncio
async def test_requests_run_in_fifo_order(queue, routing_oracle):
    await asyncio.gather(
        queue.route(A, B, TravelMode.DRIVING),
        queue.route(A, C, TravelMode.DRIVING),
        queue.route(B, C, TravelMode.WALKING),
    )

    assert routing_oracle.calls == [
        (A, B, TravelMode.DRIVING),
        (A, C, TravelMode.DRIVING),
        (B, C, TravelMode.WALKING),
    ]
    assert queue.metrics.max_pending == 3
    assert queue.pending == 0


@pytest.mark.asyncio
async def test_identical_requests_hit_the_cache(queue, routing_oracle):
    first, second = await asyncio.gather(
        queue.route(A, B, TravelMode.TRANSIT),
        queue.route(A, B, TravelMode.TRANSIT),
    )

    assert first == second
    assert len(routing_oracle.calls) == 1
    assert queue.cache.metrics.hits == 1


@pytest.mark.asyncio
async def test_failure_only_rejects_its_own_request(queue, routing_oracle):
    routing_oracle.script(A, C, TravelMode.DRIVING, OracleNoRouteError('no route', 'ZERO_RESULTS'))

    results = await asyncio.gather(
        queue.route(A, B, TravelMode.DRIVING),
        queue.route(A, C, TravelMode.DRIVING),
        queue.route(B, C, TravelMode.DRIVING),
        return_exceptions=True,
    )

    assert isinstance(results[1], OracleNoRouteError)
    assert results[0].total_duration_seconds > 0
    assert results[2].total_duration_seconds > 0
    metrics = queue.metrics
    assert (metrics.enqueued, metrics.completed, metrics.failed) == (3, 2, 1)


@pytest.mark.asyncio
async def test_delay_only_between_pending_requests(routing_oracle, clock, monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(request_queue.asyncio, 'sleep', fake_sleep)
    queue = RequestQueue(routing_oracle, QueryCache('directions', clock=clock), delay_seconds=0.1)

    await asyncio.gather(
        queue.route(A, B, TravelMode.DRIVING),
        queue.route(A, C, TravelMode.DRIVING),
        queue.route(B, C, TravelMode.DRIVING),
    )
    await queue.route(C, A, TravelMode.DRIVING)

    assert sleeps == [0.1, 0.1]


@pytest.mark.asyncio
async def test_queue_restarts_after_draining(queue, routing_oracle):
    await queue.route(A, B, TravelMode.DRIVING)
    await queue.route(B, A, TravelMode.DRIVING)

    assert len(routing_oracle.calls) == 2
    assert queue.metrics.completed == 2
