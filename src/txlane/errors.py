"""Error taxonomy and failure classification for the submission lane."""

from dataclasses import dataclass
from enum import StrEnum, auto

import txlane.constants as C


class TxlaneError(Exception):
    """Base class for everything raised by txlane."""


class GatewayError(TxlaneError):
    """The ledger endpoint failed or refused a request.

    engine_result is the ledger's result code when one came back.
    """

    def __init__(self, message: str, *, engine_result: str | None = None) -> None:
        super().__init__(message)
        self.engine_result = engine_result


class NonceConflictError(GatewayError):
    """The sequence number handed to the ledger was already consumed."""


class SubmissionRejectedError(GatewayError):
    """The ledger refused the transaction before applying it."""


class ConfirmationTimeoutError(GatewayError):
    """No validated result arrived within the confirmation window."""


class TransactionExpiredError(GatewayError):
    """The transaction's LastLedgerSequence passed without validation."""


class FeeTooHighError(GatewayError):
    """Open ledger fee escalated past the configured cap."""


class InvalidAmountError(TxlaneError, ValueError):
    pass


class RunInProgressError(TxlaneError):
    pass


class FailureKind(StrEnum):
    NONCE_CONFLICT = auto()
    REJECTED = auto()
    TRANSIENT = auto()


@dataclass(frozen=True, slots=True)
class Failure:
    kind: FailureKind
    message: str

    @property
    def consumed_nonce(self) -> bool:
        return self.kind is FailureKind.NONCE_CONFLICT


def _walk(exc: BaseException):
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        exc = exc.__cause__ or exc.__context__


def classify_failure(exc: BaseException) -> Failure:
    """Sort an exception raised during submission into the lane's taxonomy.

    Typed gateway errors decide first, including ones chained as the cause of a
    wrapper exception. Plain exceptions fall back to a message match so a
    submission function that re-raises with its own text is still recognised.
    """
    message = str(exc) or type(exc).__name__
    for e in _walk(exc):
        if isinstance(e, NonceConflictError):
            return Failure(FailureKind.NONCE_CONFLICT, message)
        if isinstance(e, SubmissionRejectedError):
            reason = e.engine_result or "unknown reason"
            return Failure(FailureKind.REJECTED, f"Rejected by ledger: {reason}")

    lowered = message.lower()
    if any(marker.lower() in lowered for marker in C.NONCE_CONFLICT_MARKERS):
        return Failure(FailureKind.NONCE_CONFLICT, message)
    return Failure(FailureKind.TRANSIENT, message)
