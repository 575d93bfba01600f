from .adapter import AdapterError, build_payment
from .emitter import RecordingEmitter, SettlementEmitter, SettlementError
from .models import EmittedTransfer, PaymentPayload

__all__ = [
    "AdapterError",
    "EmittedTransfer",
    "PaymentPayload",
    "RecordingEmitter",
    "SettlementEmitter",
    "SettlementError",
    "build_payment",
]
