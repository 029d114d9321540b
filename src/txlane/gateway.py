"""XRP Ledger gateway: sequence lookup, signing and submission, validation wait.

The account ``Sequence`` is the nonce. It is read from the ``current`` (open)
ledger so transactions already queued by the server are counted.
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from xrpl.asyncio.clients import AsyncJsonRpcClient
from xrpl.core.binarycodec import encode, encode_for_signing
from xrpl.core.keypairs import sign
from xrpl.models import SubmitOnly, Transaction
from xrpl.models.requests import AccountInfo, AccountLines, Fee, ServerState, Tx
from xrpl.wallet import Wallet

import txlane.constants as C
from txlane.errors import (
    ConfirmationTimeoutError,
    GatewayError,
    NonceConflictError,
    SubmissionRejectedError,
    TransactionExpiredError,
)
from txlane.fee import FeeInfo, choose_fee
from txlane.models import Receipt

log = logging.getLogger("txlane.gateway")


class LedgerGateway(Protocol):
    async def get_nonce(self, account: str) -> int: ...

    async def broadcast(self, txn: Transaction, wallet: Wallet, sequence: int) -> "XrplSubmission": ...


def _sha512half(b: bytes) -> bytes:
    return hashlib.sha512(b).digest()[:32]


def _txid_from_signed_blob_hex(signed_blob_hex: str) -> str:
    # XRPL txid = SHA512Half(0x54584E00 || signed_bytes)
    return _sha512half(bytes.fromhex("54584E00") + bytes.fromhex(signed_blob_hex)).hex().upper()


@dataclass(slots=True)
class XrplSubmission:
    gateway: "XrplGateway"
    hash: str
    account: str
    sequence: int
    last_ledger_sequence: int
    engine_result: str | None = None

    async def wait(self) -> Receipt:
        return await self.gateway.wait_for_receipt(self)

    def __str__(self):
        return f"{self.account} seq={self.sequence} {self.hash} ({self.engine_result})"


class XrplGateway:
    def __init__(
        self,
        client: AsyncJsonRpcClient,
        *,
        rpc_timeout: float = C.RPC_TIMEOUT,
        submit_timeout: float = C.SUBMIT_TIMEOUT,
        confirm_timeout: float = C.CONFIRM_TIMEOUT,
        poll_interval: float = C.POLL_INTERVAL,
        horizon: int = C.HORIZON,
        max_fee_drops: int = C.MAX_FEE_DROPS,
    ) -> None:
        self.client = client
        self.rpc_timeout = rpc_timeout
        self.submit_timeout = submit_timeout
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self.horizon = horizon
        self.max_fee_drops = max_fee_drops

    async def _rpc(self, req, *, t: float | None = None):
        t = t or self.rpc_timeout
        try:
            return await asyncio.wait_for(self.client.request(req), timeout=t)
        except TimeoutError as e:
            raise GatewayError(f"{type(req).__name__} timed out after {t}s") from e
        except httpx.HTTPError as e:
            raise GatewayError(f"{type(req).__name__} transport error: {e}") from e

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def get_nonce(self, account: str, ledger_index: str = "current") -> int:
        ai = await self._rpc(AccountInfo(account=account, ledger_index=ledger_index, strict=True))
        if not ai.is_successful():
            raise GatewayError(f"account_info failed for {account}: {ai.result.get('error', ai.result)}")
        return int(ai.result["account_data"]["Sequence"])

    async def get_fee_info(self) -> FeeInfo:
        r = await self._rpc(Fee())
        return FeeInfo.from_fee_result(r.result)

    async def fee_drops(self) -> int:
        return choose_fee(await self.get_fee_info(), self.max_fee_drops)

    async def latest_validated_ledger(self) -> int:
        ss = await self._rpc(ServerState())
        return int(ss.result["state"]["validated_ledger"]["seq"])

    async def account_balances(self, account: str) -> tuple[str, list[dict[str, Any]]]:
        """Native balance in drops and the account's trust lines, from the validated ledger."""
        ai = await self._rpc(AccountInfo(account=account, ledger_index="validated"))
        if not ai.is_successful():
            raise GatewayError(f"account_info failed for {account}: {ai.result.get('error', ai.result)}")
        drops = ai.result["account_data"]["Balance"]

        lines: list[dict[str, Any]] = []
        al = await self._rpc(AccountLines(account=account, ledger_index="validated"))
        if al.is_successful():
            lines = al.result.get("lines", [])
        return drops, lines

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #

    async def prepare(self, txn: Transaction, wallet: Wallet, sequence: int) -> tuple[dict, str, str]:
        """Fill Sequence/Fee/LastLedgerSequence and sign locally.

        Returns (tx_json, signed_blob_hex, local_txid).
        """
        lls = await self.latest_validated_ledger() + self.horizon
        tx = txn.to_xrpl()
        if tx.get("Flags") == 0:
            del tx["Flags"]

        tx["Sequence"] = sequence
        if not tx.get("Fee"):
            tx["Fee"] = str(await self.fee_drops())
        tx["SigningPubKey"] = wallet.public_key
        tx["LastLedgerSequence"] = lls

        signing_blob = encode_for_signing(tx)
        to_sign = bytes.fromhex(signing_blob) if isinstance(signing_blob, str) else signing_blob
        tx["TxnSignature"] = sign(to_sign, wallet.private_key)
        signed_blob_hex = encode(tx)
        return tx, signed_blob_hex, _txid_from_signed_blob_hex(signed_blob_hex)

    async def broadcast(self, txn: Transaction, wallet: Wallet, sequence: int) -> XrplSubmission:
        tx, blob, local_txid = await self.prepare(txn, wallet, sequence)
        resp = await self._rpc(SubmitOnly(tx_blob=blob), t=self.submit_timeout)
        res = resp.result
        if not resp.is_successful():
            raise GatewayError(f"submit failed: {res.get('error_message') or res.get('error') or res}")

        er = res.get("engine_result")
        msg = res.get("engine_result_message", "")
        log.debug(f"submit {tx.get('TransactionType')} seq={sequence} -> {er} {msg}")

        if er in C.PAST_SEQ_RESULTS:
            raise NonceConflictError(f"Sequence {sequence} has already been used ({er})", engine_result=er)
        if er in C.REJECT_RESULTS or (isinstance(er, str) and er.startswith(C.REJECT_PREFIXES)):
            raise SubmissionRejectedError(f"{er}: {msg}", engine_result=er)

        srv_txid = res.get("tx_json", {}).get("hash")
        return XrplSubmission(
            gateway=self,
            hash=srv_txid or local_txid,
            account=tx["Account"],
            sequence=sequence,
            last_ledger_sequence=tx["LastLedgerSequence"],
            engine_result=er,
        )

    async def wait_for_receipt(self, submission: XrplSubmission) -> Receipt:
        """Poll ``tx`` until the transaction is in a validated ledger.

        Raises TransactionExpiredError once the validated ledger is past
        LastLedgerSequence (plus a small grace), ConfirmationTimeoutError when
        the overall window runs out first.
        """
        try:
            async with asyncio.timeout(self.confirm_timeout):
                while True:
                    try:
                        r = await asyncio.wait_for(
                            self.client.request(Tx(transaction=submission.hash)), timeout=self.rpc_timeout
                        )
                    except TimeoutError:
                        log.debug(f"tx lookup timed out for {submission.hash}; retrying")
                        await asyncio.sleep(self.poll_interval)
                        continue

                    result: dict[str, Any] = r.result
                    if result.get("validated"):
                        return self._receipt(submission, result)

                    latest = await self.latest_validated_ledger()
                    if latest > submission.last_ledger_sequence + C.EXPIRY_GRACE:
                        raise TransactionExpiredError(
                            f"{submission.hash} expired: validated ledger {latest} "
                            f"> LastLedgerSequence {submission.last_ledger_sequence}"
                        )
                    await asyncio.sleep(self.poll_interval)
        except TimeoutError:
            raise ConfirmationTimeoutError(
                f"No validated result for {submission.hash} after {self.confirm_timeout}s"
            ) from None

    @staticmethod
    def _receipt(submission: XrplSubmission, result: dict[str, Any]) -> Receipt:
        meta = result.get("meta")
        if not isinstance(meta, dict) or "TransactionResult" not in meta:
            raise GatewayError(f"Validated response missing meta.TransactionResult for {submission.hash}")
        code: str = meta["TransactionResult"]
        status = C.ReceiptStatus.SUCCESS if code == C.TES_SUCCESS else C.ReceiptStatus.FAILURE
        return Receipt(
            transaction_hash=result.get("hash", submission.hash),
            status=status,
            result_code=code,
            ledger_index=result.get("ledger_index"),
        )
