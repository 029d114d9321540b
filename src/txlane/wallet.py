import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from xrpl.utils import drops_to_xrp

import txlane.constants as C
from txlane.activity import ActivityLog
from txlane.utils import short_address

log = logging.getLogger("txlane.wallet")


@dataclass
class WalletInfo:
    address: str
    network: str
    balance_xrp: Decimal = Decimal(0)
    tokens: dict[tuple[str, str], Decimal] = field(default_factory=dict)  # (currency, counterparty) -> balance
    status: str = "Initializing"


class WalletView:
    """Balances of the lane's account, refreshed after each successful settlement."""

    def __init__(self, gateway, address: str, *, network: str = "", activity: ActivityLog | None = None) -> None:
        self.gateway = gateway
        self.activity = activity if activity is not None else ActivityLog()
        self.info = WalletInfo(address=address, network=network)

    async def refresh(self) -> WalletInfo:
        try:
            drops, lines = await self.gateway.account_balances(self.info.address)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.info.status = "Error"
            self.activity.log(f"Failed to fetch wallet data: {e}", C.Severity.ERROR)
            return self.info

        self.info.balance_xrp = drops_to_xrp(str(drops))
        self.info.tokens = {
            (line["currency"], line["account"]): Decimal(str(line["balance"]))
            for line in lines
            if line.get("currency") and line.get("account") and line.get("balance") is not None
        }
        self.info.status = "Ready"
        self.activity.log(f"XRP balance: {self.info.balance_xrp}", C.Severity.DEBUG)
        self.activity.log("Balances updated.", C.Severity.INFO)
        return self.info

    def summary(self) -> dict[str, Any]:
        tokens = {}
        for (currency, _issuer), balance in sorted(self.info.tokens.items()):
            tokens[currency] = tokens.get(currency, Decimal(0)) + balance
        return {
            "address": short_address(self.info.address),
            "xrp": f"{self.info.balance_xrp:.4f}",
            "tokens": {cur: f"{bal:.2f}" for cur, bal in tokens.items()},
            "network": self.info.network,
            "status": self.info.status,
        }
