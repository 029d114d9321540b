import asyncio
import logging
from dataclasses import dataclass

import txlane.constants as C
from txlane.errors import RunInProgressError
from txlane.models import SubmissionFn, SubmissionResult
from txlane.serializer import Serializer

log = logging.getLogger("txlane.runner")


@dataclass
class RunReport:
    description: str
    requested: int
    completed: int = 0
    failed: int = 0
    cancelled: bool = False

    @property
    def attempted(self) -> int:
        return self.completed + self.failed


class Runner:
    """Caller-side loop that issues the same submission ``count`` times.

    Each iteration waits for the previous submission to settle and checks the
    serializer's cancel flag first, so a stop request takes effect between
    iterations and never interrupts the one in flight.
    """

    def __init__(self, serializer: Serializer) -> None:
        self.serializer = serializer
        self._running = False
        self.last_report: RunReport | None = None

    @property
    def running(self) -> bool:
        return self._running

    def claim(self) -> None:
        if self._running:
            raise RunInProgressError("A run is already in progress. Stop it first.")
        self._running = True
        self.serializer.clear_cancel()

    async def run_repeated(
        self,
        submission: SubmissionFn,
        description: str,
        count: int = 1,
        *,
        delay: float = 0.0,
        claimed: bool = False,
    ) -> RunReport:
        if not claimed:
            self.claim()

        activity = self.serializer.activity
        try:
            # Checked inside the guard so a bad count still releases the claim
            if count < 1:
                raise ValueError("count must be at least 1")
            report = RunReport(description=description, requested=count)
            self.last_report = report
            activity.log(f"Starting run: {description} x{count}", C.Severity.INFO)
            for i in range(count):
                if self.serializer.cancelled:
                    report.cancelled = True
                    activity.log(f"Run stopped after {i} of {count}: {description}", C.Severity.WARNING)
                    break
                label = description if count == 1 else f"{description} ({i + 1}/{count})"
                result: SubmissionResult | None = await self.serializer.enqueue(submission, label)
                if result is None:
                    report.failed += 1
                else:
                    report.completed += 1
                if delay and i + 1 < count:
                    await asyncio.sleep(delay)
        finally:
            self._running = False
        activity.log(
            f"Run finished: {description} ({report.completed} completed, {report.failed} failed)",
            C.Severity.INFO,
        )
        return report

    def stop(self) -> bool:
        """Request a stop. Returns False when nothing is running."""
        if not self._running:
            self.serializer.activity.log("No run in progress.", C.Severity.INFO)
            return False
        self.serializer.cancel_all()
        return True
