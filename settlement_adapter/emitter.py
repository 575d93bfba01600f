"""Settlement emitters: the boundary where computed transfers leave the engine."""

from typing import List, Protocol, Tuple
import hashlib
import logging
import threading

from core.amount import Amount
from core.models import AssetKind

from .adapter import AdapterError, build_payment
from .models import EmittedTransfer, PaymentPayload

logger = logging.getLogger(__name__)


class SettlementError(RuntimeError):
    """Raised when an outbound transfer could not be dispatched."""


class SettlementEmitter(Protocol):
    def send(self, asset: AssetKind, amount: Amount, recipient: bytes, recipient_tag: int) -> str:
        ...


class RecordingEmitter:
    """Builds payment payloads and keeps them in memory instead of submitting."""

    def __init__(self, engine_account: bytes, currency: bytes) -> None:
        self._engine_account = engine_account
        self._currency = currency
        self._emitted: List[EmittedTransfer] = []
        self._lock = threading.Lock()

    @property
    def emitted(self) -> Tuple[EmittedTransfer, ...]:
        with self._lock:
            return tuple(self._emitted)

    def send(self, asset: AssetKind, amount: Amount, recipient: bytes, recipient_tag: int) -> str:
        try:
            payload = build_payment(
                asset=asset,
                amount=amount,
                recipient=recipient,
                recipient_tag=recipient_tag,
                engine_account=self._engine_account,
                currency=self._currency,
            )
        except AdapterError as exc:
            raise SettlementError(f"Could not build payment: {exc}") from exc

        with self._lock:
            transfer_id = _transfer_id(payload, len(self._emitted))
            self._emitted.append(EmittedTransfer(transfer_id=transfer_id, payload=payload))
        logger.info("Emitted %s %s to %s as %s", payload.amount, payload.asset, payload.destination, transfer_id)
        return transfer_id

    def clear(self) -> None:
        with self._lock:
            self._emitted.clear()


def _transfer_id(payload: PaymentPayload, sequence: int) -> str:
    material = "|".join(
        (
            payload.account,
            payload.destination,
            str(payload.destination_tag),
            payload.amount_field,
            str(sequence),
        )
    )
    return hashlib.sha512(material.encode("ascii")).digest()[:32].hex().upper()
