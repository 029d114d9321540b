"""Lane data structures.

NOTE: The ledger-specific handle lives in gateway.py; only the shape the lane relies on is here.
"""

import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

import txlane.constants as C


@dataclass(slots=True)
class QueueEntry:
    id: int
    description: str
    status: C.EntryStatus = C.EntryStatus.QUEUED
    enqueued_at: float = field(default_factory=time.time)

    @property
    def timestamp(self) -> str:
        return time.strftime("%H:%M:%S", time.localtime(self.enqueued_at))

    @property
    def is_terminal(self) -> bool:
        return self.status in C.TERMINAL_STATUS

    def __str__(self):
        return f"ID: {self.id} | {self.description} | {self.status} | {self.timestamp}"


@dataclass(slots=True)
class Receipt:
    """Finalized ledger record of a submission.

    result_code is the ledger's own code (e.g. tesSUCCESS, tecUNFUNDED_PAYMENT).
    """

    transaction_hash: str
    status: C.ReceiptStatus
    result_code: str | None = None
    ledger_index: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == C.ReceiptStatus.SUCCESS

    @classmethod
    def coerce(cls, value) -> "Receipt":
        """Accept a Receipt, a mapping or an object carrying ``status`` and a transaction hash.

        Raises TypeError or ValueError when no recognisable status is present.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            get = value.get
        else:
            def get(key, default=None):
                return getattr(value, key, default)
        status = get("status")
        if status is None:
            raise TypeError(f"Receipt without a status: {value!r}")
        return cls(
            transaction_hash=get("transaction_hash") or get("transactionHash") or "",
            status=C.ReceiptStatus(status),
            result_code=get("result_code"),
            ledger_index=get("ledger_index"),
        )


class PendingSubmission(Protocol):
    """Handle returned by a submission function once the ledger accepted the blob."""

    hash: str

    async def wait(self) -> Receipt: ...


SubmissionFn = Callable[[int], Awaitable[PendingSubmission]]


@dataclass(slots=True)
class SubmissionResult:
    entry_id: int
    nonce: int
    transaction_hash: str
    handle: PendingSubmission
    receipt: Receipt
