"""Fakes standing in for the ledger in lane tests."""

import asyncio
import inspect

from xrpl.models.response import Response, ResponseStatus

import txlane.constants as C
from txlane.models import Receipt


class FakeGateway:
    def __init__(self, sequence: int = 7) -> None:
        self.sequence = sequence
        self.nonce_calls = 0
        self.fail_with: Exception | None = None
        self.balances: tuple[str, list[dict]] = ("0", [])
        self.broadcasts: list[tuple] = []

    async def get_nonce(self, account: str) -> int:
        self.nonce_calls += 1
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        return self.sequence

    async def account_balances(self, account: str):
        if self.fail_with is not None:
            raise self.fail_with
        return self.balances

    async def broadcast(self, txn, wallet, sequence):
        self.broadcasts.append((txn, wallet, sequence))
        return FakeHandle(f"HASH{sequence:04d}")


class FakeHandle:
    def __init__(self, tx_hash: str, *, status=C.ReceiptStatus.SUCCESS, result_code=None,
                 delay: float = 0.0, wait_exc: Exception | None = None, on_done=None) -> None:
        self.hash = tx_hash
        self.status = status
        self.result_code = result_code or ("tesSUCCESS" if status == C.ReceiptStatus.SUCCESS else "tecUNFUNDED_PAYMENT")
        self.delay = delay
        self.wait_exc = wait_exc
        self.on_done = on_done

    async def wait(self) -> Receipt:
        try:
            await asyncio.sleep(self.delay)
            if self.wait_exc is not None:
                raise self.wait_exc
            return Receipt(transaction_hash=self.hash, status=self.status, result_code=self.result_code, ledger_index=1)
        finally:
            if self.on_done is not None:
                self.on_done()


class Recorder:
    """Builds submission functions that record nonces, start/end order and overlap."""

    def __init__(self) -> None:
        self.nonces: list[tuple[str, int]] = []
        self.events: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0

    def _end(self, name: str) -> None:
        self.active -= 1
        self.events.append(("end", name))

    def make(self, name: str, *, delay: float = 0.0, status=C.ReceiptStatus.SUCCESS,
             raise_exc: Exception | None = None, wait_exc: Exception | None = None,
             gate: asyncio.Event | None = None, on_start=None):
        async def submit(nonce: int):
            self.nonces.append((name, nonce))
            self.events.append(("start", name))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            if on_start is not None:
                on_start()
            try:
                if gate is not None:
                    await gate.wait()
                await asyncio.sleep(delay)
                if raise_exc is not None:
                    raise raise_exc
            except BaseException:
                self._end(name)
                raise
            return FakeHandle(f"{name.upper()}{nonce:06d}", status=status, wait_exc=wait_exc,
                              on_done=lambda: self._end(name))

        return submit

    def order(self, kind: str) -> list[str]:
        return [name for k, name in self.events if k == kind]


def ok(result: dict) -> Response:
    return Response(status=ResponseStatus.SUCCESS, result=result)


def err(result: dict) -> Response:
    return Response(status=ResponseStatus.ERROR, result=result)


class FakeClient:
    """Answers xrpl requests by request type."""

    def __init__(self, handlers: dict) -> None:
        self.handlers = handlers
        self.requests: list = []

    async def request(self, req):
        self.requests.append(req)
        handler = self.handlers[type(req)]
        return await handler(req) if inspect.iscoroutinefunction(handler) else handler(req)
