# pos_edge/domain/printing/service.py
import asyncio
import inspect
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic.alias_generators import to_snake
from sqlalchemy import update

from pos_edge.core.backoff import compute_delay_ms
from pos_edge.core.clock import now_ms
from pos_edge.core.errors import JobExecutionError, StorageError, UnknownDestinationError
from pos_edge.core.events import EventBus
from pos_edge.db.models.print_jobs import JobStatus, PrintJob
from pos_edge.db.repositories.print_jobs import add_job, claim_job, delete_job, get_job, list_jobs, next_eligible_job
from pos_edge.db.transport import LocalTransport
from .receipt import render_receipt
from .schemas import JobOutcome, PrintJobCreate, PrintJobOut

logger = logging.getLogger(__name__)

JOB_FIELDS = {"id", "destination", "payload", "status", "priority", "attempts", "next_run_at", "created_at", "error"}


class JobProcessor:
    """Prioritized, retryable background job queue.

    Jobs run one at a time, lowest ``(priority, created_at)`` first. A failing
    job is retried with exponential backoff until ``max_attempts`` is reached,
    then parked as ``failed``. Errors never stop the poll loop.
    """

    def __init__(
        self,
        transport: LocalTransport,
        max_attempts: int = 5,
        retry_base_ms: int = 1000,
        retry_max_ms: int = 30000,
        retry_factor: float = 2.0,
        retry_jitter: float = 0.25,
        idle_ms: int = 400,
        loop_delay_ms: int = 200,
        rng=None,
        events: Optional[EventBus] = None,
    ):
        self.transport = transport
        self.max_attempts = max_attempts
        self.retry_base_ms = retry_base_ms
        self.retry_max_ms = retry_max_ms
        self.retry_factor = retry_factor
        self.retry_jitter = retry_jitter
        self.idle_ms = idle_ms
        self.loop_delay_ms = loop_delay_ms
        self.rng = rng
        self.events = events or EventBus()

        self.handlers: Dict[str, Callable[[Any], Any]] = {}
        self.running = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._generation = 0
        self._tasks = set()

    def on(self, event_name: str, handler: Callable) -> Callable[[], None]:
        return self.events.on(event_name, handler)

    def register_handler(self, destination: str, handler: Callable[[Any], Any]) -> None:
        self.handlers[destination] = handler

    async def enqueue(self, job: Union[PrintJobCreate, dict]) -> PrintJobOut:
        if isinstance(job, PrintJobCreate):
            job = job.model_dump(exclude_none=True)
        fields = {to_snake(key): value for key, value in job.items()}
        if not fields.get("destination"):
            raise ValueError("job requires a destination")

        now = now_ms()
        record = {
            "id": f"{now}-{uuid.uuid4().hex[:12]}",
            "status": JobStatus.QUEUED.value,
            "priority": 0,
            "created_at": now,
            "attempts": 0,
            "next_run_at": now,
            "error": None,
        }
        record.update({k: v for k, v in fields.items() if k in JOB_FIELDS and v is not None})
        record["status"] = JobStatus(record["status"]).value

        await self.transport.transaction(lambda db: add_job(db, PrintJob(**record)))
        stored = PrintJobOut.model_validate(record)
        logger.info("Job %s queued for %s", stored.id, stored.destination)
        self.events.emit("queued", stored.to_event())
        return stored

    async def get_job(self, job_id: str) -> Optional[PrintJobOut]:
        async def work(db):
            row = await get_job(db, job_id)
            return PrintJobOut.from_row(row) if row is not None else None

        return await self.transport.read(work)

    async def list_jobs(self, status: Optional[str] = None) -> List[PrintJobOut]:
        async def work(db):
            return [PrintJobOut.from_row(row) for row in await list_jobs(db, status)]

        return await self.transport.read(work)

    async def requeue_interrupted(self) -> int:
        """Return jobs left in ``printing`` by a previous process to the queue."""

        async def work(db):
            result = await db.execute(
                update(PrintJob)
                .where(PrintJob.status == JobStatus.PRINTING.value)
                .values(status=JobStatus.QUEUED.value)
            )
            return result.rowcount or 0

        count = await self.transport.transaction(work)
        if count:
            logger.warning("Requeued %s interrupted job(s)", count)
        return count

    # Loop

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self._generation += 1
        self._spawn(self._loop(self._generation))

    def stop(self) -> None:
        self.running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _is_current(self, generation: int) -> bool:
        return self.running and generation == self._generation

    async def _loop(self, generation: int) -> None:
        # an iteration still in flight across stop()/start() must not re-arm
        if not self._is_current(generation):
            return
        try:
            outcome = await self.process_one()
            if outcome is None:
                await asyncio.sleep(self.idle_ms / 1000)
        except Exception:
            logger.exception("Job loop error")
        finally:
            if self._is_current(generation):
                if self._timer is not None:
                    self._timer.cancel()
                loop = asyncio.get_running_loop()
                self._timer = loop.call_later(self.loop_delay_ms / 1000, lambda: self._spawn(self._loop(generation)))

    # Execution

    async def process_one(self) -> Optional[JobOutcome]:
        now = now_ms()

        async def claim(db):
            row = await next_eligible_job(db, now)
            if row is None or not await claim_job(db, row.id):
                return None
            return PrintJobOut.from_row(row).model_copy(update={"status": JobStatus.PRINTING.value})

        job = await self.transport.transaction(claim)
        if job is None:
            return None
        self.events.emit("status", {"id": job.id, "status": JobStatus.PRINTING.value})

        try:
            await self.send(job.destination, job.payload)
        except JobExecutionError as e:
            return await self._record_failure(job, e)

        try:
            await self.transport.transaction(lambda db: delete_job(db, job.id))
        except StorageError:
            logger.error("Job %s was sent but could not be removed; it stays printing until requeued", job.id)
            raise
        logger.info("Job %s sent to %s", job.id, job.destination)
        self.events.emit("printed", job.to_event())
        return JobOutcome.PRINTED

    async def send(self, destination: str, payload: Any) -> None:
        handler = self.handlers.get(destination)
        try:
            if handler is None:
                result = self.fallback_send(destination, payload)
            else:
                result = handler(payload)
            if inspect.isawaitable(result):
                await result
        except JobExecutionError:
            raise
        except Exception as e:
            raise JobExecutionError(str(e) or e.__class__.__name__) from e

    def fallback_send(self, destination: str, payload: Any) -> None:
        raise UnknownDestinationError(destination)

    async def _record_failure(self, job: PrintJobOut, error: JobExecutionError) -> JobOutcome:
        attempts = job.attempts + 1
        message = str(error)
        if attempts >= self.max_attempts:
            status = JobStatus.FAILED.value
            next_run_at = job.next_run_at
        else:
            status = JobStatus.QUEUED.value
            delay = compute_delay_ms(
                attempts - 1,
                base_ms=self.retry_base_ms,
                max_ms=self.retry_max_ms,
                factor=self.retry_factor,
                jitter=self.retry_jitter,
                rng=self.rng,
            )
            next_run_at = now_ms() + delay

        async def work(db):
            row = await get_job(db, job.id)
            if row is None:
                return
            row.status = status
            row.attempts = attempts
            row.next_run_at = next_run_at
            row.error = message

        await self.transport.transaction(work)

        if status == JobStatus.FAILED.value:
            logger.error("Job %s failed permanently after %s attempt(s): %s", job.id, attempts, message)
            self.events.emit("status", {"id": job.id, "status": status, "attempts": attempts, "error": message})
            return JobOutcome.FAILED

        logger.warning("Job %s failed (attempt %s/%s), retry at %s: %s", job.id, attempts, self.max_attempts, next_run_at, message)
        self.events.emit(
            "status",
            {"id": job.id, "status": JobOutcome.RETRY.value, "attempts": attempts, "nextRunAt": next_run_at, "error": message},
        )
        return JobOutcome.RETRY


class PrintJobProcessor(JobProcessor):
    """Job processor for the till's printers.

    Without a registered handler, ``receipt`` jobs are rendered to text and
    ``kitchen``/``bar`` payloads are passed through to the log.
    """

    def fallback_send(self, destination: str, payload: Any) -> None:
        if destination == "receipt":
            logger.info("\n--- PRINT (RECEIPT) ---\n%s\n----------------------", render_receipt(payload))
            return
        if destination in ("kitchen", "bar"):
            logger.info("\n--- PRINT (%s) ---\n%r\n----------------------", destination.upper(), payload)
            return
        raise UnknownDestinationError(destination)

    async def enqueue_receipt(self, order: dict, items: List[dict]) -> PrintJobOut:
        return await self.enqueue({"destination": "receipt", "priority": 0, "payload": {"order": order, "items": items}})
