"""Translate transfer instructions into simple payment payloads."""

from core.amount import Amount, AmountError
from core.models import ACCOUNT_ID_SIZE, AssetKind

from .models import PaymentPayload

_NATIVE_POSITIVE_FLAG = 1 << 62
_MAX_DROPS = (1 << 62) - 1


class AdapterError(ValueError):
    """Raised when a transfer cannot be expressed as a ledger payment."""


def build_payment(
    asset: AssetKind,
    amount: Amount,
    recipient: bytes,
    recipient_tag: int,
    engine_account: bytes,
    currency: bytes,
) -> PaymentPayload:
    """Build the payment sent from the engine account back to a depositor.

    The depositor's source tag is echoed as both source and destination tag.
    """

    if len(recipient) != ACCOUNT_ID_SIZE:
        raise AdapterError("Recipient must be a 20-byte account.")
    if not amount.is_positive():
        raise AdapterError("Payment amount must be positive.")

    if asset == AssetKind.STABLECOIN:
        amount_field = _issued_amount_field(amount, currency, engine_account)
    elif asset == AssetKind.RESERVE:
        amount_field = _native_amount_field(amount)
    else:
        raise AdapterError("Unsupported asset kind for payments.")

    return PaymentPayload(
        asset=asset.value,
        account=engine_account.hex().upper(),
        destination=recipient.hex().upper(),
        destination_tag=recipient_tag,
        source_tag=recipient_tag,
        amount=str(amount),
        amount_field=_to_hex(amount_field),
    )


def _issued_amount_field(amount: Amount, currency: bytes, issuer: bytes) -> bytes:
    return amount.to_bytes() + currency + issuer


def _native_amount_field(amount: Amount) -> bytes:
    try:
        drops = amount.to_drops()
    except AmountError as exc:
        raise AdapterError(str(exc)) from exc
    if drops == 0:
        raise AdapterError("Reserve payment rounds down to zero drops.")
    if drops > _MAX_DROPS:
        raise AdapterError("Reserve payment exceeds the native amount range.")
    return (_NATIVE_POSITIVE_FLAG | drops).to_bytes(8, "big")


def _to_hex(data: bytes) -> str:
    return data.hex().upper()
