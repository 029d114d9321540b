import logging
from collections.abc import Awaitable, Callable

log = logging.getLogger("txlane.sequencer")


class NonceSequencer:
    """Next sequence number to hand out for one account.

    Unset until the first submission asks for it, then read once from the ledger
    and only ever moved forward by one. invalidate() is the explicit reset: the
    next acquire() reads the ledger again.
    """

    def __init__(self, fetch: Callable[[], Awaitable[int]]) -> None:
        self._fetch = fetch
        self._next: int | None = None

    @property
    def next_nonce(self) -> int | None:
        return self._next

    @property
    def initialized(self) -> bool:
        return self._next is not None

    async def acquire(self) -> int:
        if self._next is None:
            value = await self._fetch()
            if value < 0:
                raise ValueError(f"Ledger returned a negative sequence: {value}")
            self._next = value
            log.debug(f"Initial nonce: {value}")
        return self._next

    def advance(self) -> int:
        if self._next is None:
            raise RuntimeError("advance() before the nonce was initialized")
        self._next += 1
        return self._next

    def invalidate(self) -> None:
        log.debug("Nonce invalidated (was %s)", self._next)
        self._next = None
