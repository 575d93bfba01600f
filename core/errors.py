"""Result codes and the rejection taxonomy of the collateral engine."""

from enum import IntEnum
from typing import Optional

from .models import TransferInstruction, Vault, VaultKey


class ResultCode(IntEnum):
    MALFORMED_EVENT = 1
    OUTGOING_TRANSACTION = 2
    MISSING_AUTHORIZATION = 8
    PRICE_UNAVAILABLE = 14
    TAKEOVER_TARGET_MISSING = 19
    MINT_CEILING_INCONSISTENT = 20
    TAKEOVER_DEPOSIT_INSUFFICIENT_RESERVE = 21
    ABSORBED_RESERVE = 24
    NOT_LIQUIDATABLE_RESERVE = 25
    MINT_EMISSION_FAILED = 30
    MINTED = 31
    REDEEM_VAULT_MISSING = 32
    FOREIGN_ISSUER = 34
    FOREIGN_CURRENCY = 35
    REDEEM_CEILING_INCONSISTENT = 36
    TAKEOVER_DEPOSIT_INSUFFICIENT_STABLECOIN = 37
    ABSORBED_STABLECOIN = 40
    NOT_LIQUIDATABLE_STABLECOIN = 41
    REDEEM_EMISSION_FAILED = 45
    REDEEMED = 46
    TAKEOVER_DESTINATION_OCCUPIED = 50
    ARITHMETIC_FAILURE = 60
    STORE_UNAVAILABLE = 70


class VaultEngineError(Exception):
    """Base class for every rejection; carries a stable code and note."""

    default_code = ResultCode.MALFORMED_EVENT

    def __init__(self, note: str, code: Optional[ResultCode] = None) -> None:
        super().__init__(note)
        self.note = note
        self.code = code if code is not None else self.default_code


class PreconditionError(VaultEngineError):
    """Raised for malformed events, missing authorization or foreign assets."""


class NoSuchVault(VaultEngineError):
    """Raised when an operation requires a vault that does not exist."""

    default_code = ResultCode.TAKEOVER_TARGET_MISSING


class NotYetLiquidatable(VaultEngineError):
    """Raised when a takeover targets a vault that is still solvent."""

    default_code = ResultCode.NOT_LIQUIDATABLE_RESERVE


class InsufficientTakeoverDeposit(VaultEngineError):
    """Raised when a takeover deposit would leave the vault short."""

    default_code = ResultCode.TAKEOVER_DEPOSIT_INSUFFICIENT_RESERVE


class VaultArithmeticError(VaultEngineError, ArithmeticError):
    """Raised when decimal arithmetic fails while computing a transition."""

    default_code = ResultCode.ARITHMETIC_FAILURE


class InternalComputationError(VaultEngineError):
    """Raised when a computed vault breaks its own debt ceiling."""

    default_code = ResultCode.MINT_CEILING_INCONSISTENT


class StoreUnavailable(VaultEngineError):
    """Raised when the vault store fails to read or write; nothing stays changed."""

    default_code = ResultCode.STORE_UNAVAILABLE


class EmissionError(VaultEngineError):
    """Raised when the outbound transfer fails after the vault was written.

    Unlike every other rejection, the vault change is already committed; the
    committed key, vault and undelivered transfer travel with the error.
    """

    default_code = ResultCode.MINT_EMISSION_FAILED

    def __init__(
        self,
        note: str,
        code: Optional[ResultCode] = None,
        vault_key: Optional[VaultKey] = None,
        vault: Optional[Vault] = None,
        transfer: Optional[TransferInstruction] = None,
    ) -> None:
        super().__init__(note, code)
        self.vault_key = vault_key
        self.vault = vault
        self.transfer = transfer
