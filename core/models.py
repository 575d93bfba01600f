"""Domain schemas for the collateral vault engine."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from .amount import ZERO, Amount

ACCOUNT_ID_SIZE = 20
CURRENCY_CODE_SIZE = 20
VAULT_KEY_SIZE = 24
INVOICE_ID_SIZE = 32
VAULT_RECORD_SIZE = 16
NO_SOURCE_TAG = 0xFFFFFFFF


class AssetKind(Enum):
    RESERVE = "reserve"
    STABLECOIN = "stablecoin"


def parse_account(value: str) -> bytes:
    """Decode a 40-character hex account identifier."""

    try:
        account = bytes.fromhex(value.strip())
    except ValueError as exc:
        raise ValueError(f"Account must be hex encoded: {value!r}") from exc
    if len(account) != ACCOUNT_ID_SIZE:
        raise ValueError(f"Account must be {ACCOUNT_ID_SIZE} bytes.")
    return account


def currency_code(code: str) -> bytes:
    """Build the 20-byte currency field for a standard three-letter code."""

    if len(code) != 3 or not code.isascii() or code == "XRP":
        raise ValueError(f"Unsupported currency code: {code!r}")
    return bytes(12) + code.encode("ascii") + bytes(5)


@dataclass(frozen=True)
class VaultKey:
    """Owner account plus source tag; distinct tags address distinct vaults."""

    account: bytes
    tag: int = NO_SOURCE_TAG

    def __post_init__(self) -> None:
        if len(self.account) != ACCOUNT_ID_SIZE:
            raise ValueError(f"Vault owner must be {ACCOUNT_ID_SIZE} bytes.")
        if not 0 <= self.tag <= NO_SOURCE_TAG:
            raise ValueError("Source tag must fit in 32 unsigned bits.")

    def to_bytes(self) -> bytes:
        return self.account + self.tag.to_bytes(4, "big")

    @staticmethod
    def from_bytes(data: bytes) -> "VaultKey":
        if len(data) != VAULT_KEY_SIZE:
            raise ValueError(f"Vault key must be {VAULT_KEY_SIZE} bytes.")
        return VaultKey(account=data[:ACCOUNT_ID_SIZE], tag=int.from_bytes(data[ACCOUNT_ID_SIZE:], "big"))

    def to_hex(self) -> str:
        return self.to_bytes().hex().upper()

    @staticmethod
    def from_hex(value: str) -> "VaultKey":
        try:
            data = bytes.fromhex(value.strip())
        except ValueError as exc:
            raise ValueError(f"Vault key must be hex encoded: {value!r}") from exc
        return VaultKey.from_bytes(data)

    def to_invoice_id(self) -> bytes:
        return self.to_bytes() + bytes(INVOICE_ID_SIZE - VAULT_KEY_SIZE)


@dataclass(frozen=True)
class Vault:
    debt: Amount = ZERO
    collateral: Amount = ZERO

    def to_bytes(self) -> bytes:
        return self.debt.to_bytes() + self.collateral.to_bytes()

    @staticmethod
    def from_bytes(data: bytes) -> "Vault":
        if len(data) != VAULT_RECORD_SIZE:
            raise ValueError(f"Vault record must be {VAULT_RECORD_SIZE} bytes.")
        return Vault(debt=Amount.from_bytes(data[:8]), collateral=Amount.from_bytes(data[8:]))

    def to_dict(self) -> Dict[str, str]:
        return {"debt": str(self.debt), "collateral": str(self.collateral)}


EMPTY_VAULT = Vault()


@dataclass(frozen=True)
class StablecoinIdentity:
    issuer: bytes
    currency: bytes


@dataclass(frozen=True)
class DepositEvent:
    """An inbound payment to the engine account."""

    sender: bytes
    asset: AssetKind
    amount: Amount
    source_tag: Optional[int] = None
    invoice_id: Optional[bytes] = None
    issuer: Optional[bytes] = None
    currency: Optional[bytes] = None

    @property
    def tag(self) -> int:
        return NO_SOURCE_TAG if self.source_tag is None else self.source_tag

    def own_key(self) -> VaultKey:
        return VaultKey(account=self.sender, tag=self.tag)


@dataclass(frozen=True)
class TransferInstruction:
    asset: AssetKind
    amount: Amount
    recipient: bytes
    recipient_tag: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "asset": self.asset.value,
            "amount": str(self.amount),
            "recipient": self.recipient.hex().upper(),
            "recipient_tag": self.recipient_tag,
        }
