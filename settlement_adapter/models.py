"""Outbound payment payloads handed to the host ledger."""

from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentPayload:
    asset: str
    account: str
    destination: str
    destination_tag: int
    source_tag: int
    amount: str
    amount_field: str


@dataclass(frozen=True)
class EmittedTransfer:
    transfer_id: str
    payload: PaymentPayload
