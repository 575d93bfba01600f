"""Pure collateralization, liquidation and takeover logic for vault deposits.

Nothing here touches storage, oracles or the ledger: callers pass the current
vault and price in and receive a ``Transition`` describing what to persist and
what to send back out.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .amount import ZERO, Amount, AmountError
from .errors import (
    InsufficientTakeoverDeposit,
    InternalComputationError,
    NoSuchVault,
    NotYetLiquidatable,
    PreconditionError,
    ResultCode,
    VaultArithmeticError,
)
from .models import (
    ACCOUNT_ID_SIZE,
    CURRENCY_CODE_SIZE,
    INVOICE_ID_SIZE,
    NO_SOURCE_TAG,
    VAULT_KEY_SIZE,
    AssetKind,
    DepositEvent,
    StablecoinIdentity,
    TransferInstruction,
    Vault,
    VaultKey,
)

# Tolerated excess of debt over the ceiling, as a fraction of the ceiling.
CEILING_TOLERANCE_DENOMINATOR = 10**13


@dataclass(frozen=True)
class Ratio:
    numerator: int
    denominator: int

    def as_amount(self) -> Amount:
        return Amount.of(self.numerator).ratio_scale(1, self.denominator)


# Debt may reach half of the collateral value on mint and redeem.
NEW_RATIO = Ratio(2, 4)
# Above this debt-to-value a vault may be taken over.
LIQ_RATIO = Ratio(5, 6)


@dataclass(frozen=True)
class Transition:
    """Outcome of one deposit: the vault to persist and an optional transfer."""

    code: ResultCode
    note: str
    key: VaultKey
    vault: Vault
    released_key: Optional[VaultKey] = None
    transfer: Optional[TransferInstruction] = None

    @property
    def relocated(self) -> bool:
        return self.released_key is not None


def validate_event(event: DepositEvent) -> None:
    """Reject events that cannot be interpreted before any vault logic runs."""

    if len(event.sender) != ACCOUNT_ID_SIZE:
        raise PreconditionError("Sender account is missing or malformed.")
    if not isinstance(event.asset, AssetKind):
        raise PreconditionError("Unsupported asset kind.")
    if not isinstance(event.amount, Amount) or not event.amount.is_positive():
        raise PreconditionError("Deposit amount must be positive.")
    if event.source_tag is not None and not 0 <= event.source_tag <= NO_SOURCE_TAG:
        raise PreconditionError("Source tag must fit in 32 unsigned bits.")
    if event.invoice_id is not None and len(event.invoice_id) == INVOICE_ID_SIZE:
        if any(event.invoice_id[VAULT_KEY_SIZE:]):
            raise PreconditionError("Takeover invoice id must end with eight zero bytes.")
    if event.asset == AssetKind.STABLECOIN:
        if event.issuer is None or len(event.issuer) != ACCOUNT_ID_SIZE:
            raise PreconditionError("Stablecoin deposit is missing its issuer.")
        if event.currency is None or len(event.currency) != CURRENCY_CODE_SIZE:
            raise PreconditionError("Stablecoin deposit is missing its currency.")


def resolve_acting_key(event: DepositEvent) -> Tuple[VaultKey, bool]:
    """Return the key the event acts on and whether it is a takeover."""

    own_key = event.own_key()
    if event.invoice_id is None or len(event.invoice_id) != INVOICE_ID_SIZE:
        return own_key, False
    target = VaultKey.from_bytes(event.invoice_id[:VAULT_KEY_SIZE])
    if target == own_key:
        return own_key, False
    return target, True


def collateral_ratio(vault: Vault, price: Amount) -> Optional[Amount]:
    """Debt over collateral value; ``None`` when debt exists against no value."""

    value = vault.collateral * price
    if value.is_zero():
        return ZERO if not vault.debt.is_positive() else None
    return vault.debt / value


def is_liquidatable(vault: Vault, price: Amount) -> bool:
    ratio = collateral_ratio(vault, price)
    if ratio is None:
        return True
    return ratio > LIQ_RATIO.as_amount()


def apply_deposit(
    event: DepositEvent,
    vault: Optional[Vault],
    price: Amount,
    stablecoin: StablecoinIdentity,
    destination_occupied: bool = False,
) -> Transition:
    """Compute the next vault state for one deposit.

    Args:
        event: validated inbound deposit.
        vault: vault currently stored under the acting key, if any.
        price: stablecoin units per reserve unit, already known to be positive.
        stablecoin: the issuer and currency this engine accepts back.
        destination_occupied: True when a takeover would relocate onto a key
            that already holds a vault.

    Raises:
        VaultEngineError subclasses; nothing should be persisted when raised.
    """

    key, takeover = resolve_acting_key(event)
    if takeover and vault is None:
        raise NoSuchVault("Cannot take over a vault that does not exist.")

    try:
        if event.asset == AssetKind.RESERVE:
            return _apply_reserve(event, key, takeover, vault or Vault(), price, destination_occupied)
        return _apply_stablecoin(event, key, takeover, vault, price, stablecoin, destination_occupied)
    except AmountError as exc:
        raise VaultArithmeticError(f"Arithmetic failure: {exc}") from exc


def _apply_reserve(
    event: DepositEvent,
    key: VaultKey,
    takeover: bool,
    vault: Vault,
    price: Amount,
    destination_occupied: bool,
) -> Transition:
    liquidatable = is_liquidatable(vault, price)

    new_collateral = vault.collateral + event.amount
    max_debt = (new_collateral * price).ratio_scale(NEW_RATIO.numerator, NEW_RATIO.denominator)
    to_mint = max_debt - vault.debt

    if to_mint.is_negative():
        if takeover:
            raise InsufficientTakeoverDeposit(
                "Vault is undercollateralized and your deposit would not redeem it.",
                ResultCode.TAKEOVER_DEPOSIT_INSUFFICIENT_RESERVE,
            )
        return Transition(
            code=ResultCode.ABSORBED_RESERVE,
            note="Vault is undercollateralized, absorbing without sending anything.",
            key=key,
            vault=Vault(debt=vault.debt, collateral=new_collateral),
        )

    if takeover and not liquidatable:
        raise NotYetLiquidatable(
            "Vault is not sufficiently undercollateralized to take over yet.",
            ResultCode.NOT_LIQUIDATABLE_RESERVE,
        )

    updated = Vault(debt=vault.debt + to_mint, collateral=new_collateral)
    _verify_ceiling(updated, price, ResultCode.MINT_CEILING_INCONSISTENT)
    destination, released = _relocate(event, key, takeover, destination_occupied)
    return Transition(
        code=ResultCode.MINTED,
        note=f"Sent you {to_mint} stablecoin.",
        key=destination,
        vault=updated,
        released_key=released,
        transfer=_transfer(AssetKind.STABLECOIN, to_mint, event),
    )


def _apply_stablecoin(
    event: DepositEvent,
    key: VaultKey,
    takeover: bool,
    vault: Optional[Vault],
    price: Amount,
    stablecoin: StablecoinIdentity,
    destination_occupied: bool,
) -> Transition:
    if vault is None:
        raise NoSuchVault(
            "Can only send stablecoin back to an existing vault.",
            ResultCode.REDEEM_VAULT_MISSING,
        )
    if event.issuer != stablecoin.issuer:
        raise PreconditionError("A currency we didn't issue was sent to us.", ResultCode.FOREIGN_ISSUER)
    if event.currency != stablecoin.currency:
        raise PreconditionError("A non-stablecoin currency was sent to us.", ResultCode.FOREIGN_CURRENCY)

    liquidatable = is_liquidatable(vault, price)

    # Repayment beyond the outstanding debt is absorbed, never owed back.
    new_debt = max(vault.debt - event.amount, ZERO)
    max_collateral = (new_debt / price).ratio_scale(
        NEW_RATIO.denominator, NEW_RATIO.numerator, round_up=True
    )
    to_redeem = vault.collateral - max_collateral

    if to_redeem.is_negative():
        if takeover:
            raise InsufficientTakeoverDeposit(
                "Vault is undercollateralized and your deposit would not redeem it.",
                ResultCode.TAKEOVER_DEPOSIT_INSUFFICIENT_STABLECOIN,
            )
        return Transition(
            code=ResultCode.ABSORBED_STABLECOIN,
            note="Vault is undercollateralized, absorbing without sending anything.",
            key=key,
            vault=Vault(debt=new_debt, collateral=vault.collateral),
        )

    if takeover and not liquidatable:
        raise NotYetLiquidatable(
            "Vault is not sufficiently undercollateralized to take over yet.",
            ResultCode.NOT_LIQUIDATABLE_STABLECOIN,
        )

    # Reserve leaves in whole drops; a release below one drop stays in the vault.
    if to_redeem.to_drops() == 0:
        to_redeem = ZERO
        max_collateral = vault.collateral
        note = "Debt reduced, no reserve to send."
    else:
        note = f"Sent you {to_redeem} reserve."

    updated = Vault(debt=new_debt, collateral=max_collateral)
    _verify_ceiling(updated, price, ResultCode.REDEEM_CEILING_INCONSISTENT)
    destination, released = _relocate(event, key, takeover, destination_occupied)
    return Transition(
        code=ResultCode.REDEEMED,
        note=note,
        key=destination,
        vault=updated,
        released_key=released,
        transfer=_transfer(AssetKind.RESERVE, to_redeem, event),
    )


def _relocate(
    event: DepositEvent, key: VaultKey, takeover: bool, destination_occupied: bool
) -> Tuple[VaultKey, Optional[VaultKey]]:
    if not takeover:
        return key, None
    if destination_occupied:
        raise PreconditionError(
            "Your own vault key already holds a vault; use another source tag to take over.",
            ResultCode.TAKEOVER_DESTINATION_OCCUPIED,
        )
    return event.own_key(), key


def _transfer(asset: AssetKind, amount: Amount, event: DepositEvent) -> Optional[TransferInstruction]:
    if amount.is_zero():
        return None
    return TransferInstruction(asset=asset, amount=amount, recipient=event.sender, recipient_tag=event.tag)


def _verify_ceiling(vault: Vault, price: Amount, code: ResultCode) -> None:
    if vault.debt.is_negative() or vault.collateral.is_negative():
        raise InternalComputationError("Computed vault has a negative balance.", code)
    ceiling = (vault.collateral * price).ratio_scale(NEW_RATIO.numerator, NEW_RATIO.denominator)
    tolerance = ceiling.ratio_scale(1, CEILING_TOLERANCE_DENOMINATOR)
    if vault.debt > ceiling + tolerance:
        raise InternalComputationError(
            f"Computed debt {vault.debt} exceeds its ceiling {ceiling}.", code
        )
