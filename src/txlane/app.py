import asyncio
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, NonNegativeFloat, PositiveInt
from xrpl.constants import CryptoAlgorithm
from xrpl.asyncio.clients import AsyncJsonRpcClient
from xrpl.models.exceptions import XRPLModelException
from xrpl.wallet import Wallet

import txlane.operations as ops
from txlane.activity import ActivityLog
from txlane.config import cfg
from txlane.errors import RunInProgressError
from txlane.gateway import XrplGateway
from txlane.logging_config import setup_logging
from txlane.runner import Runner
from txlane.serializer import Serializer
from txlane.wallet import WalletView

setup_logging()
log = logging.getLogger("txlane.app")

TIMEOUT = 3.0


async def _probe_rippled(url: str, max_retries: int = 30, retry_delay: float = 2.0) -> None:
    """Probe the RPC endpoint with retries until it answers server_info."""
    payload = {"method": "server_info", "params": [{}]}

    for attempt in range(1, max_retries + 1):
        try:
            async with httpx.AsyncClient(timeout=TIMEOUT) as http:
                r = await http.post(url, json=payload)
                r.raise_for_status()
                log.info(f"RPC endpoint responding (attempt {attempt}/{max_retries})")
                return
        except httpx.HTTPError as e:
            if attempt < max_retries:
                log.info(f"RPC not ready yet (attempt {attempt}/{max_retries}): {e.__class__.__name__} - retrying in {retry_delay}s...")
                await asyncio.sleep(retry_delay)
            else:
                log.error(f"RPC failed after {max_retries} attempts")
                raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    ledger_cfg, to = cfg["ledger"], cfg["timeouts"]
    seed = cfg["account"]["seed"]
    if not seed:
        raise RuntimeError("No account seed configured. Set ACCOUNT_SEED or [account].seed in config.toml")

    async with asyncio.timeout(to["startup"]):
        log.info(f"Probing RPC endpoint {ledger_cfg['rpc_url']}...")
        await _probe_rippled(ledger_cfg["rpc_url"])

    wallet = Wallet.from_seed(seed, algorithm=CryptoAlgorithm(cfg["account"]["algorithm"]))
    client = AsyncJsonRpcClient(ledger_cfg["rpc_url"])
    activity = ActivityLog(cfg["activity"]["maxlen"], debug=cfg["activity"]["debug"])
    gateway = XrplGateway(
        client,
        rpc_timeout=to["rpc"],
        submit_timeout=to["submit"],
        confirm_timeout=to["confirm"],
        poll_interval=to["poll_interval"],
        horizon=cfg["submission"]["horizon"],
        max_fee_drops=cfg["submission"]["max_fee_drops"],
    )
    wallet_view = WalletView(gateway, wallet.address, network=ledger_cfg["network"], activity=activity)
    serializer = Serializer(
        gateway,
        wallet.address,
        activity=activity,
        on_settled=wallet_view.refresh,
        resync_on_conflict=cfg["queue"]["resync_on_conflict"],
    )

    app.state.wallet = wallet
    app.state.gateway = gateway
    app.state.activity = activity
    app.state.wallet_view = wallet_view
    app.state.serializer = serializer
    app.state.runner = Runner(serializer)
    app.state.runs = set()

    await wallet_view.refresh()
    log.info(f"Lane ready for {wallet.address} on {ledger_cfg['network']}")

    try:
        yield
    finally:
        log.info("Shutting down...")
        serializer.cancel_all()
        runs = list(app.state.runs)
        for t in runs:
            t.cancel()
        await asyncio.gather(*runs, return_exceptions=True)
        await serializer.aclose()
        log.info("Shutdown complete")


app = FastAPI(
    title="txlane",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Queue", "description": "Inspect and control the submission lane"},
        {"name": "Transactions", "description": "Queue transactions from the lane's account"},
        {"name": "Wallet", "description": "Balances of the lane's account"},
        {"name": "Logs", "description": "Activity log"},
    ],
)

r_queue = APIRouter(prefix="/queue", tags=["Queue"])
r_txn = APIRouter(prefix="/transactions", tags=["Transactions"])
r_wallet = APIRouter(prefix="/wallet", tags=["Wallet"])
r_logs = APIRouter(prefix="/logs", tags=["Logs"])


class QueueEntryOut(BaseModel):
    id: int
    description: str
    status: str
    timestamp: str


class RunReq(BaseModel):
    count: PositiveInt = 1
    delay: NonNegativeFloat = 0.0


class MintReq(RunReq):
    amount: str
    currency: str | None = None
    destination: str | None = None


class SendReq(RunReq):
    amount: str
    destination: str


class TrustReq(RunReq):
    currency: str
    issuer: str
    limit: str


@app.get("/health")
def health():
    return {"status": "ok"}


@r_queue.get("")
async def queue_snapshot():
    s: Serializer = app.state.serializer
    entries = [
        QueueEntryOut(id=e.id, description=e.description, status=e.status.value, timestamp=e.timestamp)
        for e in s.snapshot()
    ]
    return {"busy": s.is_busy(), "entries": entries}


@r_queue.get("/text", response_class=PlainTextResponse)
async def queue_text():
    return app.state.serializer.ledger.render()


@r_queue.get("/busy")
async def queue_busy():
    s: Serializer = app.state.serializer
    return {"busy": s.is_busy(), "running": app.state.runner.running, "next_nonce": s.next_nonce}


@r_queue.post("/cancel")
async def queue_cancel():
    """Stop the active run between iterations. Work already queued still runs."""
    return {"stopping": app.state.runner.stop()}


@r_queue.post("/nonce/reset")
async def queue_nonce_reset():
    app.state.serializer.reset_nonce()
    return {"reset": True}


def _start_run(build, req: RunReq) -> dict:
    try:
        submission, description = build()
    except (ValueError, XRPLModelException) as e:
        raise HTTPException(status_code=422, detail=str(e))

    runner: Runner = app.state.runner
    try:
        runner.claim()
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))

    task = asyncio.create_task(
        runner.run_repeated(submission, description, req.count, delay=req.delay, claimed=True),
        name=f"run:{description}",
    )
    app.state.runs.add(task)
    task.add_done_callback(app.state.runs.discard)
    return {"status": "started", "description": description, "count": req.count}


@r_txn.post("/mint")
async def transactions_mint(req: MintReq):
    """Issue the account's token to a holder. Currency and holder default to [token] in config."""
    currency = req.currency or cfg["token"]["currency"]
    destination = req.destination or cfg["token"]["destination"]
    if not destination:
        raise HTTPException(status_code=422, detail="No destination given and none configured")
    return _start_run(
        lambda: ops.issue_tokens(app.state.gateway, app.state.wallet, req.amount, currency, destination), req
    )


@r_txn.post("/send")
async def transactions_send(req: SendReq):
    return _start_run(
        lambda: ops.send_xrp(app.state.gateway, app.state.wallet, req.amount, req.destination), req
    )


@r_txn.post("/trust")
async def transactions_trust(req: TrustReq):
    return _start_run(
        lambda: ops.set_trust_line(app.state.gateway, app.state.wallet, req.currency, req.issuer, req.limit), req
    )


@r_txn.get("/run")
async def transactions_run():
    runner: Runner = app.state.runner
    report = runner.last_report
    return {
        "running": runner.running,
        "last": None if report is None else {
            "description": report.description,
            "requested": report.requested,
            "completed": report.completed,
            "failed": report.failed,
            "cancelled": report.cancelled,
        },
    }


@r_wallet.get("")
async def wallet_summary():
    wv: WalletView = app.state.wallet_view
    await wv.refresh()
    return wv.summary()


@r_logs.get("")
async def logs_list(limit: int = 100):
    activity: ActivityLog = app.state.activity
    return [
        {"timestamp": r.timestamp, "severity": r.severity, "message": r.message}
        for r in activity.records(limit)
    ]


@r_logs.delete("")
async def logs_clear():
    app.state.activity.clear()
    return {"cleared": True}


app.include_router(r_queue)
app.include_router(r_txn)
app.include_router(r_wallet)
app.include_router(r_logs)
