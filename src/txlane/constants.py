from typing import Final
from enum import StrEnum


class EntryStatus(StrEnum):
    QUEUED     = "queued"
    PROCESSING = "processing"
    COMPLETED  = "completed"
    FAILED     = "failed"
    ERROR      = "error"


class ReceiptStatus(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"


class Severity(StrEnum):
    INFO    = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR   = "error"
    DEBUG   = "debug"


TERMINAL_STATUS: Final = frozenset({EntryStatus.COMPLETED, EntryStatus.FAILED, EntryStatus.ERROR})

# Allowed forward moves. Nothing leaves a terminal status.
TRANSITIONS: Final = {
    EntryStatus.QUEUED: frozenset({EntryStatus.PROCESSING}),
    EntryStatus.PROCESSING: TERMINAL_STATUS,
}

# Descriptions starting with one of these get a success summary in the activity log
ACTION_VERBS: Final = ("Mint", "Send", "Trust", "Shield", "Unshield")

# Fallback for submission functions that wrap gateway errors in their own exception
NONCE_CONFLICT_MARKERS: Final = (
    "nonce has already been used",
    "nonce too low",
    "tefPAST_SEQ",
    "tefALREADY",
)

# Engine results
TES_SUCCESS: Final = "tesSUCCESS"
PAST_SEQ_RESULTS: Final = frozenset({"tefPAST_SEQ", "tefALREADY"})
REJECT_PREFIXES: Final = ("tem", "tef", "tel")
REJECT_RESULTS: Final = frozenset({"terPRE_SEQ"})

DEFAULT_DESCRIPTION: Final = "Transaction"
EMPTY_QUEUE_TEXT: Final = "No transactions in queue."
INVALID_HASH: Final = "Invalid Hash"

HORIZON = 15  # Transactions expire if not validated within 15 ledgers
EXPIRY_GRACE = 2
RPC_TIMEOUT = 2.0
SUBMIT_TIMEOUT = 20.0
CONFIRM_TIMEOUT = 60.0
POLL_INTERVAL = 0.5
MAX_FEE_DROPS = 1000
ACTIVITY_MAXLEN = 500

__all__ = [
    "ACTION_VERBS",
    "ACTIVITY_MAXLEN",
    "CONFIRM_TIMEOUT",
    "DEFAULT_DESCRIPTION",
    "EMPTY_QUEUE_TEXT",
    "EXPIRY_GRACE",
    "HORIZON",
    "INVALID_HASH",
    "MAX_FEE_DROPS",
    "NONCE_CONFLICT_MARKERS",
    "PAST_SEQ_RESULTS",
    "POLL_INTERVAL",
    "REJECT_PREFIXES",
    "REJECT_RESULTS",
    "RPC_TIMEOUT",
    "SUBMIT_TIMEOUT",
    "TERMINAL_STATUS",
    "TES_SUCCESS",
    "TRANSITIONS",

    ######
    "EntryStatus",
    "ReceiptStatus",
    "Severity",
]
