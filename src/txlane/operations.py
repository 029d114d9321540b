"""Submission functions for the lane.

Each factory validates its input up front, builds the transaction once and
returns ``(submission_fn, description)``. The function takes the nonce the lane
hands it and uses it as the transaction's Sequence.
"""

import logging
from decimal import Decimal, InvalidOperation

from xrpl.models import Transaction
from xrpl.models.amounts import IssuedCurrencyAmount
from xrpl.models.transactions import Payment, TrustSet
from xrpl.utils import XRPRangeException, xrp_to_drops
from xrpl.wallet import Wallet

from txlane.errors import InvalidAmountError
from txlane.gateway import LedgerGateway, XrplSubmission
from txlane.models import SubmissionFn
from txlane.utils import short_hash

log = logging.getLogger("txlane.operations")


def parse_amount(value, label: str = "amount") -> Decimal:
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"Invalid {label}: {value!r} is not a number") from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError(f"Invalid {label}: {value!r} must be a positive number")
    return amount


def _fmt(amount: Decimal) -> str:
    return format(amount.normalize(), "f")


def _submitter(gateway: LedgerGateway, wallet: Wallet, txn: Transaction, action: str) -> SubmissionFn:
    async def submit(nonce: int) -> XrplSubmission:
        log.info(f"Starting {action} (seq={nonce})")
        pending = await gateway.broadcast(txn, wallet, nonce)
        log.info(f"Tx sent.. Hash: {short_hash(pending.hash)}")
        return pending

    return submit


def issue_tokens(
    gateway: LedgerGateway, wallet: Wallet, amount, currency: str, destination: str
) -> tuple[SubmissionFn, str]:
    """Issue ``amount`` of the account's own ``currency`` to ``destination``."""
    value = parse_amount(amount)
    if destination == wallet.address:
        raise ValueError("An issuer cannot issue tokens to itself")
    txn = Payment(
        account=wallet.address,
        destination=destination,
        amount=IssuedCurrencyAmount(currency=currency, issuer=wallet.address, value=_fmt(value)),
    )
    description = f"Mint {_fmt(value)} {currency}"
    return _submitter(gateway, wallet, txn, description.lower()), description


def send_xrp(gateway: LedgerGateway, wallet: Wallet, amount, destination: str) -> tuple[SubmissionFn, str]:
    value = parse_amount(amount)
    try:
        drops = xrp_to_drops(value)
    except XRPRangeException as e:
        raise InvalidAmountError(f"Invalid amount: {e}") from e
    txn = Payment(account=wallet.address, destination=destination, amount=drops)
    description = f"Send {_fmt(value)} XRP"
    return _submitter(gateway, wallet, txn, description.lower()), description


def set_trust_line(
    gateway: LedgerGateway, wallet: Wallet, currency: str, issuer: str, limit
) -> tuple[SubmissionFn, str]:
    value = parse_amount(limit, "limit")
    txn = TrustSet(
        account=wallet.address,
        limit_amount=IssuedCurrencyAmount(currency=currency, issuer=issuer, value=_fmt(value)),
    )
    description = f"Trust {_fmt(value)} {currency}"
    return _submitter(gateway, wallet, txn, description.lower()), description
