"""Sequenced transaction submission for a single XRP Ledger account."""

from txlane.errors import (
    ConfirmationTimeoutError,
    GatewayError,
    NonceConflictError,
    SubmissionRejectedError,
    TransactionExpiredError,
)
from txlane.models import QueueEntry, Receipt, SubmissionResult
from txlane.serializer import Serializer

__all__ = [
    "ConfirmationTimeoutError",
    "GatewayError",
    "NonceConflictError",
    "QueueEntry",
    "Receipt",
    "Serializer",
    "SubmissionRejectedError",
    "SubmissionResult",
    "TransactionExpiredError",
]
