"""Fixed-rate load driver.

A single ticker task produces evenly spaced nominal instants and spawns
one dispatch task per tick without waiting for earlier dispatches. Each
dispatch synthesizes a request, POSTs it and, on a 200, puts a
CompletionRecord carrying the nominal tick on a bounded queue. Consumers
iterate the driver inside ``async with``:

    >>> async with LoadDriver(schema, config) as driver:
    >>>     async for record in driver:
    >>>         print(record.to_line())

Records arrive in completion order, not tick order.
"""
import asyncio
import time
from typing import Callable, Optional, Set

import httpx
from loguru import logger

from src.loadgen.core.config import ErrorAction, LoadConfig
from src.loadgen.core.exceptions import (
    InferenceStatusError,
    InferenceTransportError,
    LoadGeneratorError,
)
from src.loadgen.core.retry import RetryPolicy
from src.loadgen.models.schemas import CompletionRecord, ModelSchema
from src.loadgen.monitoring.metrics import (
    IN_FLIGHT,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    TICKS_SKIPPED,
    TICKS_TOTAL,
)
from src.loadgen.monitoring.tracing import tracer, set_span_attributes, record_exception
from src.loadgen.services.payload import build_request

JSON_HEADERS = {"Content-Type": "application/json"}


class LoadDriver:
    """Issues inference requests at a fixed rate and yields completions."""

    def __init__(
        self,
        schema: ModelSchema,
        config: LoadConfig,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            schema: Input schema of the target model
            config: Run configuration
            client: HTTP client to send with; one is created (and closed) if omitted
            clock: Wall clock in unix epoch seconds
        """
        self.schema = schema
        self.config = config
        self.retry_policy = RetryPolicy(
            max_attempts=config.retry_max_attempts,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
        )
        self._client = client
        self._owns_client = client is None
        self._clock = clock

        self._completions: Optional[asyncio.Queue] = None
        self._stopped: Optional[asyncio.Event] = None
        self._failure: Optional[Exception] = None
        self._ticker: Optional[asyncio.Task] = None
        self._dispatches: Set[asyncio.Task] = set()
        self._deadline: Optional[asyncio.TimerHandle] = None

    @property
    def in_flight(self) -> int:
        return len(self._dispatches)

    @property
    def failure(self) -> Optional[Exception]:
        return self._failure

    async def __aenter__(self) -> "LoadDriver":
        self._completions = asyncio.Queue(maxsize=self.config.queue_size)
        self._stopped = asyncio.Event()
        self._failure = None

        if self._client is None:
            self._client = self._build_client()

        if self.config.duration is not None:
            loop = asyncio.get_running_loop()
            self._deadline = loop.call_later(self.config.duration, self.stop)

        self._ticker = asyncio.create_task(self._tick_loop())
        logger.info(
            f"Driving {self.config.model} at {self.config.rate} req/s "
            f"(interval {self.config.tick_interval:.6f}s) -> {self.config.infer_url}"
        )
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.stop()
        if self._deadline is not None:
            self._deadline.cancel()

        tasks = [self._ticker, *self._dispatches]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._dispatches.clear()

        if self._owns_client:
            await self._client.aclose()
            self._client = None

        logger.info("Load driver stopped")
        return False

    def _build_client(self) -> httpx.AsyncClient:
        # Pool sized to the in-flight cap so dispatches never queue for a connection
        pool_size = self.config.max_in_flight or None
        return httpx.AsyncClient(
            timeout=self.config.request_timeout,
            limits=httpx.Limits(max_connections=pool_size, max_keepalive_connections=pool_size),
        )

    def stop(self):
        """Stop ticking; iteration ends once the consumer next waits."""
        if self._stopped is not None:
            self._stopped.set()

    def __aiter__(self):
        return self

    async def __anext__(self) -> CompletionRecord:
        record = await self._next_completion()
        if record is None:
            raise StopAsyncIteration
        return record

    async def _next_completion(self) -> Optional[CompletionRecord]:
        if self._failure is not None:
            raise self._failure
        if self._stopped.is_set():
            return None

        get = asyncio.ensure_future(self._completions.get())
        stopped = asyncio.ensure_future(self._stopped.wait())
        try:
            done, _ = await asyncio.wait({get, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (get, stopped):
                if not task.done():
                    task.cancel()

        if self._failure is not None:
            raise self._failure
        if get in done:
            return get.result()
        return None

    def _abort(self, error: Exception):
        if self._failure is None:
            self._failure = error
            logger.error(f"Aborting load run: {error}")
        self.stop()

    async def _tick_loop(self):
        loop = asyncio.get_running_loop()
        interval = self.config.tick_interval
        start = loop.time()
        start_wall = self._clock()
        n = 0

        while not self._stopped.is_set():
            n += 1
            lag = loop.time() - (start + n * interval)
            if lag >= interval:
                # Drop whole missed intervals instead of bursting to catch up
                missed = int(lag // interval)
                n += missed
                TICKS_SKIPPED.labels(reason="behind_schedule").inc(missed)
                logger.warning(f"Ticker {lag:.3f}s behind schedule, dropped {missed} ticks")

            await asyncio.sleep(max(0.0, start + n * interval - loop.time()))
            if self._stopped.is_set():
                break
            self._spawn(start_wall + n * interval)

    def _spawn(self, tick: float):
        limit = self.config.max_in_flight
        if limit and len(self._dispatches) >= limit:
            TICKS_SKIPPED.labels(reason="in_flight_limit").inc()
            logger.warning(f"{limit} dispatches in flight, skipping tick {tick:.6f}")
            return

        TICKS_TOTAL.inc()
        task = asyncio.create_task(self._dispatch(tick))
        self._dispatches.add(task)
        task.add_done_callback(self._dispatches.discard)

    async def _dispatch(self, tick: float):
        IN_FLIGHT.inc()
        try:
            with tracer.start_as_current_span("dispatch") as span:
                set_span_attributes(span, model=self.config.model, tick=tick)
                try:
                    completed_at = await self._send(tick)
                except Exception as e:
                    record_exception(span, e)
                    self._abort(e)
                    return

            if completed_at is None:
                return

            record = CompletionRecord(tick=tick, completed_at=completed_at)
            REQUEST_LATENCY.observe(record.latency)
            # Blocks while the consumer is behind
            await self._completions.put(record)
        finally:
            IN_FLIGHT.dec()

    async def _send(self, tick: float) -> Optional[float]:
        """
        POST one synthesized request, applying the configured error actions.

        Returns:
            Response arrival time, or None when the tick is dropped

        Raises:
            LoadGeneratorError: under the abort action, or when synthesis fails
        """
        body = build_request(self.schema).model_dump_json()
        url = self.config.infer_url
        attempt = 0

        while True:
            cause = None
            try:
                response = await self._client.post(url, content=body, headers=JSON_HEADERS)
            except httpx.TransportError as e:
                REQUEST_COUNT.labels(outcome="transport_error").inc()
                action = self.config.on_transport_error
                error: LoadGeneratorError = InferenceTransportError(f"POST {url} failed: {e!r}")
                cause = e
            else:
                if response.status_code == 200:
                    REQUEST_COUNT.labels(outcome="ok").inc()
                    return self._clock()
                REQUEST_COUNT.labels(outcome="status_error").inc()
                action = self.config.on_status_error
                error = InferenceStatusError(response.status_code, response.text)

            if action is ErrorAction.RETRY and self.retry_policy.should_retry(attempt):
                delay = self.retry_policy.calculate_delay(attempt)
                attempt += 1
                logger.warning(
                    f"Tick {tick:.6f}: {error}; retry {attempt}/{self.retry_policy.max_attempts} in {delay:.3f}s"
                )
                await asyncio.sleep(delay)
                continue

            if action is ErrorAction.ABORT:
                raise error from cause

            TICKS_SKIPPED.labels(reason="request_failed").inc()
            logger.warning(f"Tick {tick:.6f} dropped: {error}")
            return None


async def run_load(
    schema: ModelSchema,
    config: LoadConfig,
    sink: Callable[[CompletionRecord], None],
    client: Optional[httpx.AsyncClient] = None,
    on_start: Optional[Callable[[LoadDriver], None]] = None,
) -> int:
    """
    Drive load until stopped, passing each completion to `sink`.

    Returns:
        Number of completions delivered

    Raises:
        LoadGeneratorError: the run was aborted
    """
    delivered = 0
    async with LoadDriver(schema, config, client=client) as driver:
        if on_start is not None:
            on_start(driver)
        async for record in driver:
            sink(record)
            delivered += 1
    logger.info(f"Delivered {delivered} completions")
    return delivered
