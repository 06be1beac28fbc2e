"""
Orchestrator - Staged worker pools chained by queues.

This module implements the producer-consumer pipeline that drives the
scanners:

    URLs -> [ReflectionScanner] -> [InjectionAppendScanner]
         -> [CharacterSurvivalScanner] -> sink

Each stage is a WorkerPool: a fixed number of tasks draining one bounded
queue and publishing to the next. Shutdown cascades through the CLOSED
sentinel. The feeder closes the first queue once the input is exhausted;
each pool closes its output only after all of its workers have finished.

Design Pattern: Producer-Consumer (pipeline)
"""

import asyncio
import inspect
from collections import abc
from typing import Any, AsyncIterable, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Union

import structlog

from .config import PipelineConfig
from .http_client import ProbeClient, ProbeError
from .urls import normalize
from ..scanners.base_scanner import BaseScanner, Result, WorkItem
from ..scanners.reflection import ReflectionScanner
from ..scanners.injection import InjectionAppendScanner
from ..scanners.characters import CharacterSurvivalScanner


class _Closed:
    """End-of-stream marker passed through the stage queues"""

    def __repr__(self) -> str:
        return "CLOSED"


CLOSED = _Closed()

ResultSink = Callable[[Result], Union[None, Awaitable[None]]]
UrlSource = Union[Iterable[str], AsyncIterable[str]]


async def _next_or_closed(iterator) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return CLOSED


class WorkerPool:
    """
    Fixed-size set of workers running one scanner.

    Every item read from ``input_queue`` goes through ``scanner.process()``
    and each output is put on ``output_queue``. Items that fail with a
    ProbeError are dropped with a diagnostic; they never stop the pool.

    Example:
        >>> pool = WorkerPool("reflection", scanner, inbox, outbox, size=4)
        >>> pool.start()
        >>> await inbox.put(WorkItem(url))
        >>> await inbox.put(CLOSED)
        >>> await pool.wait_closed()
    """

    def __init__(
        self,
        name: str,
        scanner: BaseScanner,
        input_queue: asyncio.Queue,
        output_queue: asyncio.Queue,
        size: int,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        """
        Initialize the pool.

        Args:
            name: Stage name used in logs and statistics
            scanner: Scanner applied to every item
            input_queue: Queue the workers drain
            output_queue: Queue the workers publish to
            size: Number of worker tasks
            cancel_event: When set, remaining items are drained unprocessed
        """
        if size < 1:
            raise ValueError("pool size must be at least 1")

        self.name = name
        self.scanner = scanner
        self.input_queue = input_queue
        self.output_queue = output_queue
        self.size = size
        self.cancel_event = cancel_event or asyncio.Event()

        self._workers: List[asyncio.Task] = []
        self._closer: Optional[asyncio.Task] = None

        # Statistics
        self.received = 0
        self.emitted = 0
        self.dropped = 0
        self.failed = 0
        self.skipped = 0

        self.logger = structlog.get_logger(__name__, stage=self.name)

    def start(self):
        """Spawn the workers and the task that closes the output"""
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"{self.name}-{i}")
            for i in range(self.size)
        ]
        self._closer = asyncio.create_task(self._close_when_done(), name=f"{self.name}-closer")

        self.logger.debug("pool_started", workers=self.size)

    async def wait_closed(self):
        """Wait until every worker has finished and the output is closed"""
        if self._closer is None:
            raise RuntimeError(f"pool {self.name} was not started")
        await self._closer

    async def abort(self):
        """Cancel the workers and the closer without draining"""
        tasks = list(self._workers)
        if self._closer is not None:
            tasks.append(self._closer)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _close_when_done(self):
        await asyncio.gather(*self._workers)
        await self.output_queue.put(CLOSED)
        self.logger.debug("pool_closed", **self.get_statistics())

    async def _worker(self, worker_id: int):
        while True:
            item = await self.input_queue.get()

            if item is CLOSED:
                # Hand the sentinel on to the sibling workers
                await self.input_queue.put(CLOSED)
                return

            self.received += 1

            if self.cancel_event.is_set():
                self.skipped += 1
                continue

            await self._handle(worker_id, item)

    async def _handle(self, worker_id: int, item: WorkItem):
        try:
            outputs = await self.scanner.process(item)

        except ProbeError as e:
            self.failed += 1
            self.logger.warning(
                "item_dropped",
                url=item.url,
                param=item.param or None,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        except Exception as e:
            self.failed += 1
            self.logger.error(
                "worker_error",
                worker_id=worker_id,
                url=item.url,
                param=item.param or None,
                error=str(e),
                exc_info=True,
            )
            return

        if not outputs:
            self.dropped += 1
            return

        for output in outputs:
            await self.output_queue.put(output)
            self.emitted += 1

    def get_statistics(self) -> Dict[str, int]:
        """
        Get pool statistics.

        Returns:
            Dictionary with item counters for this stage
        """
        return {
            "received": self.received,
            "emitted": self.emitted,
            "dropped": self.dropped,
            "failed": self.failed,
            "skipped": self.skipped,
        }


class Pipeline:
    """
    Three-stage probing pipeline.

    Responsibilities:
    1. Build the shared probe client and the stage scanners
    2. Chain the stage pools with bounded queues
    3. Feed input URLs and stream Results to a sink
    4. Cooperative cancellation and optional run deadline

    Example:
        >>> pipeline = Pipeline(PipelineConfig(workers=10))
        >>> count = await pipeline.run(urls, sink=print)
        >>> print(f"Emitted {count} results")
    """

    STAGES = ("reflection", "append", "characters")

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Pipeline configuration (uses defaults if None)
            client: Probe client to share between stages. When omitted a
                ProbeClient is opened and closed around each run.
        """
        self.config = config or PipelineConfig()
        self.client = client

        self.pools: List[WorkerPool] = []
        self.is_running = False

        # Statistics
        self.submitted = 0
        self.duplicates = 0
        self.result_count = 0

        self._cancel_event: Optional[asyncio.Event] = None
        self._active_client: Optional[Any] = None
        self._cancel_pending = False

        self.logger = structlog.get_logger(__name__)

    def cancel(self):
        """
        Stop the run cooperatively.

        No further URLs are submitted and queued items are drained without
        probing. Requests already in flight complete normally. Called while
        idle, it cancels the next run only.
        """
        if not self.is_running:
            self._cancel_pending = True
            return

        if not self._cancel_event.is_set():
            self._cancel_event.set()
            self.logger.warning("pipeline_cancelled", submitted=self.submitted)

    @property
    def cancelled(self) -> bool:
        """Whether the current (or last) run was cancelled"""
        if self._cancel_pending:
            return True
        return self._cancel_event is not None and self._cancel_event.is_set()

    async def run(self, urls: UrlSource, sink: ResultSink) -> int:
        """
        Run every URL through the pipeline.

        Args:
            urls: Iterable or async iterable of URL strings
            sink: Called once per Result as soon as it is produced
                (plain function or coroutine function)

        Returns:
            Number of Results handed to the sink
        """
        if self.is_running:
            raise RuntimeError("pipeline is already running")

        self.is_running = True
        self.submitted = 0
        self.duplicates = 0
        self.result_count = 0
        self._cancel_event = asyncio.Event()
        if self._cancel_pending:
            self._cancel_pending = False
            self._cancel_event.set()

        deadline = None
        if self.config.max_duration is not None:
            deadline = asyncio.get_running_loop().call_later(self.config.max_duration, self.cancel)

        self.logger.info("pipeline_started", workers=self.config.workers)

        try:
            if self.client is not None:
                return await self._run_with_client(self.client, urls, sink)

            async with ProbeClient(self.config) as client:
                return await self._run_with_client(client, urls, sink)

        finally:
            if deadline is not None:
                deadline.cancel()
            self.is_running = False
            self.logger.info("pipeline_complete", **self.get_statistics())

    async def _run_with_client(self, client: Any, urls: UrlSource, sink: ResultSink) -> int:
        self._active_client = client
        scanners = [
            ReflectionScanner(client, self.config),
            InjectionAppendScanner(client, self.config),
            CharacterSurvivalScanner(client, self.config),
        ]

        # Queue between consecutive stages, plus input and result queues
        queues = [asyncio.Queue(maxsize=self.config.workers) for _ in range(len(scanners) + 1)]

        self.pools = [
            WorkerPool(
                name=name,
                scanner=scanner,
                input_queue=queues[i],
                output_queue=queues[i + 1],
                size=self.config.workers,
                cancel_event=self._cancel_event,
            )
            for i, (name, scanner) in enumerate(zip(self.STAGES, scanners))
        ]
        for pool in self.pools:
            pool.start()

        feeder = asyncio.create_task(self._feed(urls, queues[0]), name="feeder")

        try:
            await self._drain(queues[-1], sink)
            await feeder
            for pool in self.pools:
                await pool.wait_closed()

        except BaseException:
            feeder.cancel()
            await asyncio.gather(feeder, return_exceptions=True)
            for pool in self.pools:
                await pool.abort()
            raise

        return self.result_count

    async def _feed(self, urls: UrlSource, queue: asyncio.Queue):
        """Submit input URLs, then close the first stage"""
        seen: Set[str] = set()

        try:
            if isinstance(urls, abc.AsyncIterable):
                await self._feed_async(urls, queue, seen)
            else:
                for url in urls:
                    if not await self._submit(url, queue, seen):
                        break
        except Exception:
            # Let the stages finish what was already submitted
            await queue.put(CLOSED)
            raise

        await queue.put(CLOSED)

    async def _feed_async(self, urls: AsyncIterable[str], queue: asyncio.Queue, seen: Set[str]):
        """Submit from an async source that may stall between URLs"""
        iterator = urls.__aiter__()
        try:
            while True:
                url = await self._next_or_cancel(iterator)
                if url is CLOSED or not await self._submit(url, queue, seen):
                    return
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _next_or_cancel(self, iterator) -> Any:
        """Next URL, or CLOSED once the source ends or the run is cancelled"""
        next_url = asyncio.ensure_future(_next_or_closed(iterator))
        cancelled = asyncio.ensure_future(self._cancel_event.wait())
        try:
            await asyncio.wait({next_url, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if not next_url.done():
                next_url.cancel()
            await asyncio.gather(next_url, cancelled, return_exceptions=True)

        if next_url.cancelled():
            return CLOSED
        return next_url.result()

    async def _submit(self, url: str, queue: asyncio.Queue, seen: Set[str]) -> bool:
        """Queue one URL; returns False once the run is cancelled"""
        if self._cancel_event.is_set():
            return False

        url = url.strip()
        if not url:
            return True

        if self.config.dedupe:
            try:
                key = normalize(url)
            except ProbeError:
                key = url
            if key in seen:
                self.duplicates += 1
                self.logger.debug("duplicate_url_skipped", url=url)
                return True
            seen.add(key)

        await queue.put(WorkItem(url=url))
        self.submitted += 1
        return True

    async def _drain(self, queue: asyncio.Queue, sink: ResultSink):
        """Hand Results to the sink until the last stage closes"""
        while True:
            result = await queue.get()
            if result is CLOSED:
                return

            outcome = sink(result)
            if inspect.isawaitable(outcome):
                await outcome
            self.result_count += 1

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get pipeline statistics.

        Returns:
            Dictionary with input totals and per-stage counters
        """
        stats: Dict[str, Any] = {
            "submitted": self.submitted,
            "duplicates": self.duplicates,
            "results": self.result_count,
            "cancelled": self.cancelled,
            "stages": {pool.name: pool.get_statistics() for pool in self.pools},
            "scanners": {pool.name: pool.scanner.get_statistics() for pool in self.pools},
        }
        if isinstance(self._active_client, ProbeClient):
            stats["client"] = self._active_client.get_statistics()
        return stats
