"""Deposit entry point: pre-flight checks, atomic commit and settlement."""

from typing import Optional
import logging

from core.amount import Amount
from core.engine import Transition, apply_deposit, resolve_acting_key, validate_event
from core.errors import EmissionError, PreconditionError, ResultCode, StoreUnavailable, VaultEngineError
from core.models import AssetKind, DepositEvent, StablecoinIdentity, Vault, VaultKey
from price_oracle.oracle import PriceOracle, PriceUnavailableError
from settlement_adapter.emitter import SettlementEmitter, SettlementError
from vault_store.store import VaultStore

from .credentials import CredentialCheck
from .locks import KeyLockTable
from .results import EngineResult

logger = logging.getLogger(__name__)


class VaultEngine:
    """Processes one deposit at a time per vault key.

    A rejected deposit writes nothing. An accepted one has persisted its vault
    and, on the mint and redeem paths, handed exactly one transfer to the
    emitter.
    """

    def __init__(
        self,
        store: VaultStore,
        oracle: PriceOracle,
        credentials: CredentialCheck,
        emitter: SettlementEmitter,
        engine_account: bytes,
        currency: bytes,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._credentials = credentials
        self._emitter = emitter
        self._engine_account = engine_account
        self._stablecoin = StablecoinIdentity(issuer=engine_account, currency=currency)
        self._locks = KeyLockTable()

    @property
    def stablecoin(self) -> StablecoinIdentity:
        return self._stablecoin

    @property
    def emitter(self) -> SettlementEmitter:
        return self._emitter

    @property
    def store(self) -> VaultStore:
        return self._store

    def on_deposit(self, event: DepositEvent) -> EngineResult:
        try:
            return self._process(event)
        except EmissionError as exc:
            logger.error("Vault %s committed but transfer failed: %s", exc.vault_key.to_hex(), exc.note)
            return EngineResult(
                accepted=False,
                code=exc.code,
                note=exc.note,
                state_committed=True,
                vault_key=exc.vault_key,
                vault=exc.vault,
                transfer=exc.transfer,
            )
        except VaultEngineError as exc:
            logger.warning("Deposit from %s rejected (%d): %s", event.sender.hex().upper(), exc.code, exc.note)
            return EngineResult.rejected(exc)

    def _process(self, event: DepositEvent) -> EngineResult:
        if event.sender == self._engine_account:
            return EngineResult(
                accepted=True,
                code=ResultCode.OUTGOING_TRANSACTION,
                note="Outgoing transaction.",
            )

        validate_event(event)
        if not self._credentials.has_authorization(event.sender):
            raise PreconditionError(
                "You must set a stablecoin trust line to the issuer for a limit of at least 10B.",
                ResultCode.MISSING_AUTHORIZATION,
            )
        price = self._read_price()

        acting_key, takeover = resolve_acting_key(event)
        own_key = event.own_key()
        with self._locks.hold(acting_key, own_key):
            vault = self._read(acting_key)
            destination_occupied = takeover and self._read(own_key) is not None
            transition = apply_deposit(
                event,
                vault,
                price,
                self._stablecoin,
                destination_occupied=destination_occupied,
            )
            self._commit(transition, vault)
            transfer_id = self._emit(transition)

        logger.info(
            "Deposit of %s %s accepted for vault %s (%d)",
            event.amount,
            event.asset.value,
            transition.key.to_hex(),
            transition.code,
        )
        return EngineResult(
            accepted=True,
            code=transition.code,
            note=transition.note,
            state_committed=True,
            vault_key=transition.key,
            vault=transition.vault,
            transfer=transition.transfer,
            transfer_id=transfer_id,
        )

    def _read_price(self) -> Amount:
        try:
            rate = self._oracle.current_rate()
        except PriceUnavailableError as exc:
            raise PreconditionError(f"Could not get exchange rate: {exc}", ResultCode.PRICE_UNAVAILABLE) from exc
        if not rate.is_positive():
            raise PreconditionError("Exchange rate must be positive.", ResultCode.PRICE_UNAVAILABLE)
        return rate

    def _read(self, key: VaultKey) -> Optional[Vault]:
        try:
            return self._store.get(key)
        except Exception as exc:
            raise StoreUnavailable(f"Could not read vault {key.to_hex()}: {exc}") from exc

    def _commit(self, transition: Transition, previous: Optional[Vault]) -> None:
        released = transition.released_key
        try:
            if released is not None:
                self._store.delete(released)
        except Exception as exc:
            raise StoreUnavailable(f"Could not release vault {released.to_hex()}: {exc}") from exc
        try:
            self._store.put(transition.key, transition.vault)
        except Exception as exc:
            # The restore must land; if it fails too, that error propagates.
            if released is not None and previous is not None:
                self._store.put(released, previous)
            raise StoreUnavailable(f"Could not write vault {transition.key.to_hex()}: {exc}") from exc

    def _emit(self, transition: Transition) -> Optional[str]:
        transfer = transition.transfer
        if transfer is None:
            return None
        try:
            return self._emitter.send(
                transfer.asset,
                transfer.amount,
                transfer.recipient,
                transfer.recipient_tag,
            )
        except SettlementError as exc:
            code = (
                ResultCode.MINT_EMISSION_FAILED
                if transfer.asset == AssetKind.STABLECOIN
                else ResultCode.REDEEM_EMISSION_FAILED
            )
            raise EmissionError(
                f"Emitting transfer failed: {exc}",
                code,
                vault_key=transition.key,
                vault=transition.vault,
                transfer=transfer,
            ) from exc
