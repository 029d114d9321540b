"""Single-lane serializer for one account's submissions.

Every accepted submission goes onto one FIFO queue drained by one worker task,
so exactly one submission is in flight at a time and they run in the order
they were accepted. The worker owns the nonce sequencer and the queue ledger;
nothing else writes to either.

Outcomes per entry:
- receipt success: nonce +1, entry completed, refresh callback awaited, future gets a SubmissionResult
- receipt failure: nonce +1 (the sequence was consumed), entry failed, future gets None
- raised during submit/wait: entry error, future gets None; nonce +1 only for a nonce conflict
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

import txlane.constants as C
from txlane.activity import ActivityLog
from txlane.errors import classify_failure
from txlane.models import QueueEntry, Receipt, SubmissionFn, SubmissionResult
from txlane.queue_ledger import QueueLedger
from txlane.sequencer import NonceSequencer
from txlane.utils import leading_verb, short_hash

log = logging.getLogger("txlane.serializer")

RefreshCallback = Callable[[], Awaitable[Any]]


class NonceSource(Protocol):
    async def get_nonce(self, account: str) -> int: ...


@dataclass(slots=True)
class _Job:
    entry_id: int
    description: str
    submission: SubmissionFn
    future: asyncio.Future


class Serializer:
    def __init__(
        self,
        gateway: NonceSource,
        account: str,
        *,
        activity: ActivityLog | None = None,
        on_settled: RefreshCallback | None = None,
        resync_on_conflict: bool = False,
    ) -> None:
        self.gateway = gateway
        self.account = account
        self.activity = activity if activity is not None else ActivityLog()
        self.on_settled = on_settled
        self.resync_on_conflict = resync_on_conflict

        self.ledger = QueueLedger()
        self.sequencer = NonceSequencer(self._fetch_nonce)

        self._queue: asyncio.Queue[_Job] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._current: _Job | None = None
        self._cancelled = False
        self._reset_requested = False
        self._closed = False

    async def _fetch_nonce(self) -> int:
        return await self.gateway.get_nonce(self.account)

    # ------------------------------------------------------------------ #
    # Public surface
    # ------------------------------------------------------------------ #

    def enqueue(self, submission: SubmissionFn, description: str = C.DEFAULT_DESCRIPTION) -> asyncio.Future:
        """Accept a submission and return a future for its outcome.

        The future resolves to a SubmissionResult on a successful receipt and to
        None on any failure; it never raises for a ledger failure. Must be called
        from a running event loop.
        """
        if self._closed:
            raise RuntimeError("Serializer is closed")
        loop = asyncio.get_running_loop()

        entry = self.ledger.add(description)
        future = loop.create_future()
        self._queue.put_nowait(_Job(entry.id, description, submission, future))
        self.activity.log(f"Transaction [{entry.id}] added to queue: {description}", C.Severity.INFO)

        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain(), name="txlane-serializer")
        return future

    def snapshot(self) -> list[QueueEntry]:
        return self.ledger.snapshot()

    def is_busy(self) -> bool:
        return len(self.ledger) > 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel_all(self) -> None:
        """Ask callers to stop enqueuing. Nothing already accepted is aborted."""
        self._cancelled = True
        self.activity.log("Stop requested: no new transactions will be started.", C.Severity.INFO)

    def clear_cancel(self) -> None:
        self._cancelled = False

    @property
    def next_nonce(self) -> int | None:
        return self.sequencer.next_nonce

    def reset_nonce(self) -> None:
        """Re-read the nonce from the ledger before the next entry runs."""
        self._reset_requested = True
        self.activity.log("Nonce reset requested; it will be re-read from the ledger.", C.Severity.INFO)

    async def join(self) -> None:
        """Wait until every accepted entry has settled."""
        await self._queue.join()

    async def aclose(self) -> None:
        """Stop the worker. Entries still waiting are dropped and their futures cancelled."""
        if self._closed:
            return
        self._closed = True

        current = self._current
        if self._worker is not None:
            self._worker.cancel()
            await asyncio.gather(self._worker, return_exceptions=True)
            self._worker = None

        if current is not None and not current.future.done():
            current.future.cancel()

        dropped = 0
        while True:
            try:
                job = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self.ledger.remove(job.entry_id)
            if not job.future.done():
                job.future.cancel()
            self._queue.task_done()
            dropped += 1
        if dropped:
            log.warning(f"Serializer closed with {dropped} queued transactions dropped")

    # ------------------------------------------------------------------ #
    # Lane
    # ------------------------------------------------------------------ #

    async def _drain(self) -> None:
        while True:
            job = await self._queue.get()
            self._current = job
            try:
                try:
                    result = await self._run(job)
                except Exception as exc:
                    self._abandon(job, exc)
                    result = None
                if not job.future.done():
                    job.future.set_result(result)
            finally:
                self._current = None
                self._queue.task_done()

    async def _run(self, job: _Job) -> SubmissionResult | None:
        if self._reset_requested:
            self._reset_requested = False
            self.sequencer.invalidate()

        self.ledger.update(job.entry_id, C.EntryStatus.PROCESSING)
        self.activity.log(f"Transaction [{job.entry_id}] processing: {job.description}", C.Severity.DEBUG)

        nonce: int | None = None
        try:
            nonce = await self.sequencer.acquire()
            handle = await job.submission(nonce)
            tx_hash = handle.hash
            receipt = Receipt.coerce(await handle.wait())
        except asyncio.CancelledError:
            self.ledger.settle(job.entry_id, C.EntryStatus.ERROR)
            raise
        except Exception as exc:
            self._record_error(job, exc)
            return None

        self.sequencer.advance()

        if not receipt.succeeded:
            self.ledger.settle(job.entry_id, C.EntryStatus.FAILED)
            code = receipt.result_code or "unknown result"
            self.activity.log(
                f"Transaction [{job.entry_id}] failed: rejected on ledger ({code}).", C.Severity.ERROR
            )
            return None

        self.ledger.settle(job.entry_id, C.EntryStatus.COMPLETED)
        short = short_hash(receipt.transaction_hash or tx_hash)
        self.activity.log(f"Transaction [{job.entry_id}] completed. Hash: {short}", C.Severity.DEBUG)
        if leading_verb(job.description) in C.ACTION_VERBS:
            self.activity.log(f"{job.description} completed. Tx hash: {short}", C.Severity.SUCCESS)

        await self._refresh()
        return SubmissionResult(
            entry_id=job.entry_id,
            nonce=nonce,
            transaction_hash=receipt.transaction_hash or tx_hash,
            handle=handle,
            receipt=receipt,
        )

    def _abandon(self, job: _Job, exc: Exception) -> None:
        # Raised outside the submit/wait guard; the entry is dropped and the lane moves on
        log.exception(f"Entry {job.entry_id} broke out of the lane: {exc!r}")
        with contextlib.suppress(ValueError):
            self.ledger.settle(job.entry_id, C.EntryStatus.ERROR)
        self.ledger.remove(job.entry_id)
        self.activity.log(f"Transaction [{job.entry_id}] failed: {str(exc) or type(exc).__name__}", C.Severity.ERROR)

    def _record_error(self, job: _Job, exc: Exception) -> None:
        failure = classify_failure(exc)
        self.ledger.settle(job.entry_id, C.EntryStatus.ERROR)
        self.activity.log(f"Transaction [{job.entry_id}] failed: {failure.message}", C.Severity.ERROR)
        log.debug(f"entry {job.entry_id} raised {type(exc).__name__}", exc_info=exc)

        if not failure.consumed_nonce or not self.sequencer.initialized:
            return
        if self.resync_on_conflict:
            self.sequencer.invalidate()
            self.activity.log("Nonce already used; it will be re-read from the ledger.", C.Severity.INFO)
        else:
            new_nonce = self.sequencer.advance()
            self.activity.log(f"Nonce incremented because it was already used. New nonce: {new_nonce}", C.Severity.INFO)

    async def _refresh(self) -> None:
        if self.on_settled is None:
            return
        try:
            await self.on_settled()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.activity.log(f"Refresh after settlement failed: {e}", C.Severity.WARNING)
