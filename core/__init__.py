from .amount import ONE, ZERO, Amount, AmountError
from .engine import (
    LIQ_RATIO,
    NEW_RATIO,
    Ratio,
    Transition,
    apply_deposit,
    collateral_ratio,
    is_liquidatable,
    resolve_acting_key,
    validate_event,
)
from .errors import (
    EmissionError,
    InsufficientTakeoverDeposit,
    InternalComputationError,
    NoSuchVault,
    NotYetLiquidatable,
    PreconditionError,
    ResultCode,
    StoreUnavailable,
    VaultArithmeticError,
    VaultEngineError,
)
from .models import (
    NO_SOURCE_TAG,
    AssetKind,
    DepositEvent,
    StablecoinIdentity,
    TransferInstruction,
    Vault,
    VaultKey,
    currency_code,
    parse_account,
)

__all__ = [
    "Amount",
    "AmountError",
    "ONE",
    "ZERO",
    "LIQ_RATIO",
    "NEW_RATIO",
    "Ratio",
    "Transition",
    "apply_deposit",
    "collateral_ratio",
    "is_liquidatable",
    "resolve_acting_key",
    "validate_event",
    "EmissionError",
    "InsufficientTakeoverDeposit",
    "InternalComputationError",
    "NoSuchVault",
    "NotYetLiquidatable",
    "PreconditionError",
    "ResultCode",
    "StoreUnavailable",
    "VaultArithmeticError",
    "VaultEngineError",
    "NO_SOURCE_TAG",
    "AssetKind",
    "DepositEvent",
    "StablecoinIdentity",
    "TransferInstruction",
    "Vault",
    "VaultKey",
    "currency_code",
    "parse_account",
]
