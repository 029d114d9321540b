"""Fee escalation state and the fee we attach to each submission."""

import logging
from dataclasses import dataclass

from txlane.errors import FeeTooHighError

log = logging.getLogger("txlane.fee")


@dataclass
class FeeInfo:
    """Snapshot of the ``fee`` command. All fee values are in drops."""

    base_fee: int
    minimum_fee: int  # enough to get into the queue
    open_ledger_fee: int  # enough to skip the queue
    current_queue_size: int
    max_queue_size: int

    @property
    def escalated(self) -> bool:
        return self.minimum_fee > self.base_fee

    @classmethod
    def from_fee_result(cls, result: dict) -> "FeeInfo":
        drops = result["drops"]
        return cls(
            base_fee=int(drops["base_fee"]),
            minimum_fee=int(drops["minimum_fee"]),
            open_ledger_fee=int(drops["open_ledger_fee"]),
            current_queue_size=int(result.get("current_queue_size", 0)),
            max_queue_size=int(result.get("max_queue_size", 0)),
        )


def choose_fee(info: FeeInfo, cap: int) -> int:
    """Queue-entry fee, refusing to pay more than ``cap`` drops."""
    fee = info.minimum_fee
    if info.escalated:
        log.warning(
            "Queue fees escalated: minimum=%s open_ledger=%s base=%s queue=%s/%s",
            info.minimum_fee, info.open_ledger_fee, info.base_fee, info.current_queue_size, info.max_queue_size,
        )
    if fee > cap:
        raise FeeTooHighError(f"Fee too high ({fee} drops > {cap} max); queue is full, refusing to submit")
    return fee
