"""End-to-end deposit handling through the vault engine."""

import tempfile
import threading
import unittest
from pathlib import Path
from typing import Optional

from core.amount import ONE, ZERO, Amount
from core.errors import ResultCode
from core.models import AssetKind, DepositEvent, Vault, VaultKey, currency_code
from price_oracle.oracle import FixedPriceOracle, PriceUnavailableError
from settlement_adapter.emitter import RecordingEmitter, SettlementError
from vault_controller.controller import VaultEngine
from vault_controller.credentials import REQUIRED_CREDIT_LIMIT, TrustLineRegistry
from vault_controller.locks import KeyLockTable
from vault_store.store import FileVaultStore, InMemoryVaultStore

OWNER = bytes([1]) * 20
TAKER = bytes([2]) * 20
STRANGER = bytes([3]) * 20
ENGINE = bytes([9]) * 20
USD = currency_code("USD")


def _vault(debt, collateral) -> Vault:
    return Vault(debt=Amount.of(debt), collateral=Amount.of(collateral))


def _reserve(sender, amount, takeover=None) -> DepositEvent:
    return DepositEvent(
        sender=sender,
        asset=AssetKind.RESERVE,
        amount=Amount.of(amount),
        invoice_id=takeover.to_invoice_id() if takeover else None,
    )


def _stablecoin(sender, amount) -> DepositEvent:
    return DepositEvent(
        sender=sender,
        asset=AssetKind.STABLECOIN,
        amount=Amount.of(amount),
        issuer=ENGINE,
        currency=USD,
    )


class _UnavailableOracle:
    def current_rate(self) -> Amount:
        raise PriceUnavailableError("feed offline")


class _OfflineEmitter:
    def send(self, asset, amount, recipient, recipient_tag) -> str:
        raise SettlementError("ledger offline")


class _FailingPutStore(InMemoryVaultStore):
    def __init__(self, fail_on: VaultKey) -> None:
        super().__init__()
        self.fail_on = fail_on
        self.armed = False

    def put(self, key: VaultKey, vault: Vault) -> None:
        if self.armed and key == self.fail_on:
            raise RuntimeError("disk full")
        super().put(key, vault)


class _UnreadableStore(InMemoryVaultStore):
    def get(self, key: VaultKey) -> Optional[Vault]:
        raise OSError("permission denied")


class VaultEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryVaultStore()
        self.oracle = FixedPriceOracle(ONE)
        self.emitter = RecordingEmitter(ENGINE, USD)
        self.engine = self._engine(self.store, self.oracle, self.emitter)

    def _engine(self, store, oracle, emitter) -> VaultEngine:
        credentials = TrustLineRegistry(
            {
                OWNER: REQUIRED_CREDIT_LIMIT,
                TAKER: REQUIRED_CREDIT_LIMIT,
                STRANGER: Amount.of(1000),
            }
        )
        return VaultEngine(store, oracle, credentials, emitter, engine_account=ENGINE, currency=USD)

    def test_mint_persists_vault_and_emits_one_transfer(self) -> None:
        result = self.engine.on_deposit(_reserve(OWNER, 200))

        self.assertTrue(result.accepted)
        self.assertTrue(result.state_committed)
        self.assertEqual(result.code, ResultCode.MINTED)
        self.assertEqual(self.store.get(VaultKey(OWNER)), _vault(100, 200))
        self.assertEqual(self.store.raw(VaultKey(OWNER)), result.vault.to_bytes())
        self.assertEqual(len(self.emitter.emitted), 1)
        self.assertEqual(self.emitter.emitted[0].payload.amount, "100")
        self.assertEqual(result.transfer_id, self.emitter.emitted[0].transfer_id)

    def test_repayment_returns_collateral(self) -> None:
        self.engine.on_deposit(_reserve(OWNER, 200))
        result = self.engine.on_deposit(_stablecoin(OWNER, 100))

        self.assertEqual(result.code, ResultCode.REDEEMED)
        self.assertEqual(self.store.get(VaultKey(OWNER)), _vault(0, 0))
        self.assertEqual(self.emitter.emitted[-1].payload.asset, "reserve")
        self.assertEqual(self.emitter.emitted[-1].payload.amount, "200")

    def test_absorbed_deposit_commits_without_transfer(self) -> None:
        self.store.put(VaultKey(OWNER), _vault(100, 50))
        result = self.engine.on_deposit(_reserve(OWNER, 10))

        self.assertTrue(result.accepted)
        self.assertEqual(result.code, ResultCode.ABSORBED_RESERVE)
        self.assertIsNone(result.transfer_id)
        self.assertEqual(self.store.get(VaultKey(OWNER)), _vault(100, 60))
        self.assertEqual(self.emitter.emitted, ())

    def test_outgoing_transaction_is_ignored(self) -> None:
        result = self.engine.on_deposit(_reserve(ENGINE, 10))

        self.assertTrue(result.accepted)
        self.assertEqual(result.code, ResultCode.OUTGOING_TRANSACTION)
        self.assertFalse(result.state_committed)
        self.assertIsNone(self.store.get(VaultKey(ENGINE)))

    def test_missing_authorization_is_rejected(self) -> None:
        for sender in (STRANGER, bytes([7]) * 20):
            with self.subTest(sender=sender.hex()):
                result = self.engine.on_deposit(_reserve(sender, 10))
                self.assertFalse(result.accepted)
                self.assertEqual(result.code, ResultCode.MISSING_AUTHORIZATION)
                self.assertIsNone(self.store.get(VaultKey(sender)))

    def test_price_failures_are_rejected(self) -> None:
        for oracle in (_UnavailableOracle(), FixedPriceOracle(ZERO), FixedPriceOracle(Amount.of(-1))):
            with self.subTest(oracle=oracle):
                engine = self._engine(self.store, oracle, self.emitter)
                result = engine.on_deposit(_reserve(OWNER, 10))
                self.assertEqual(result.code, ResultCode.PRICE_UNAVAILABLE)
        self.assertIsNone(self.store.get(VaultKey(OWNER)))

    def test_rejection_leaves_state_untouched(self) -> None:
        self.store.put(VaultKey(OWNER), _vault(50, 100))
        before = self.store.raw(VaultKey(OWNER))

        with self.assertLogs("vault_controller.controller", level="WARNING"):
            result = self.engine.on_deposit(_reserve(TAKER, 10, takeover=VaultKey(OWNER)))

        self.assertFalse(result.accepted)
        self.assertFalse(result.state_committed)
        self.assertEqual(result.code, ResultCode.NOT_LIQUIDATABLE_RESERVE)
        self.assertEqual(self.store.raw(VaultKey(OWNER)), before)
        self.assertIsNone(self.store.get(VaultKey(TAKER)))
        self.assertEqual(self.emitter.emitted, ())

    def test_takeover_moves_vault_to_taker(self) -> None:
        self.store.put(VaultKey(OWNER), _vault(100, 100))
        result = self.engine.on_deposit(_reserve(TAKER, 150, takeover=VaultKey(OWNER)))

        self.assertEqual(result.code, ResultCode.MINTED)
        self.assertEqual(result.vault_key, VaultKey(TAKER))
        self.assertIsNone(self.store.get(VaultKey(OWNER)))
        self.assertEqual(self.store.raw(VaultKey(TAKER)), _vault(125, 250).to_bytes())
        self.assertEqual(self.emitter.emitted[0].payload.destination, TAKER.hex().upper())

    def test_takeover_onto_occupied_key_is_rejected(self) -> None:
        self.store.put(VaultKey(OWNER), _vault(100, 100))
        self.store.put(VaultKey(TAKER), _vault(1, 10))

        result = self.engine.on_deposit(_reserve(TAKER, 150, takeover=VaultKey(OWNER)))

        self.assertEqual(result.code, ResultCode.TAKEOVER_DESTINATION_OCCUPIED)
        self.assertEqual(self.store.get(VaultKey(OWNER)), _vault(100, 100))
        self.assertEqual(self.store.get(VaultKey(TAKER)), _vault(1, 10))

    def test_failed_write_restores_released_vault(self) -> None:
        store = _FailingPutStore(fail_on=VaultKey(TAKER))
        store.put(VaultKey(OWNER), _vault(100, 100))
        store.armed = True
        engine = self._engine(store, self.oracle, self.emitter)

        result = engine.on_deposit(_reserve(TAKER, 150, takeover=VaultKey(OWNER)))

        self.assertFalse(result.accepted)
        self.assertFalse(result.state_committed)
        self.assertEqual(result.code, ResultCode.STORE_UNAVAILABLE)
        self.assertIn("disk full", result.note)
        self.assertEqual(store.get(VaultKey(OWNER)), _vault(100, 100))
        self.assertIsNone(store.get(VaultKey(TAKER)))
        self.assertEqual(self.emitter.emitted, ())

    def test_unreadable_store_is_rejected(self) -> None:
        engine = self._engine(_UnreadableStore(), self.oracle, self.emitter)

        result = engine.on_deposit(_reserve(OWNER, 200))

        self.assertFalse(result.accepted)
        self.assertEqual(result.code, ResultCode.STORE_UNAVAILABLE)
        self.assertEqual(self.emitter.emitted, ())

    def test_sub_drop_release_commits_without_transfer(self) -> None:
        self.store.put(VaultKey(OWNER), _vault(100, 200))

        result = self.engine.on_deposit(_stablecoin(OWNER, "0.0000001"))

        self.assertTrue(result.accepted)
        self.assertEqual(result.code, ResultCode.REDEEMED)
        self.assertIsNone(result.transfer_id)
        self.assertEqual(self.store.get(VaultKey(OWNER)), _vault("99.9999999", 200))
        self.assertEqual(self.emitter.emitted, ())

    def test_concurrent_deposits_on_distinct_keys_through_file_store(self) -> None:
        with tempfile.TemporaryDirectory() as tempdir:
            store = FileVaultStore(Path(tempdir) / "vaults.json")
            senders = [bytes([20 + index]) * 20 for index in range(24)]
            credentials = TrustLineRegistry({sender: REQUIRED_CREDIT_LIMIT for sender in senders})
            engine = VaultEngine(store, self.oracle, credentials, self.emitter, ENGINE, USD)
            barrier = threading.Barrier(len(senders))
            results = []

            def deposit(sender: bytes) -> None:
                barrier.wait()
                results.append(engine.on_deposit(_reserve(sender, 200)))

            threads = [threading.Thread(target=deposit, args=(sender,)) for sender in senders]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            self.assertEqual(len(results), len(senders))
            self.assertTrue(all(result.code == ResultCode.MINTED for result in results))
            for sender in senders:
                self.assertEqual(store.get(VaultKey(sender)), _vault(100, 200))

    def test_emission_failure_reports_committed_state(self) -> None:
        engine = self._engine(self.store, self.oracle, _OfflineEmitter())

        with self.assertLogs("vault_controller.controller", level="ERROR"):
            result = engine.on_deposit(_reserve(OWNER, 200))

        self.assertFalse(result.accepted)
        self.assertTrue(result.state_committed)
        self.assertEqual(result.code, ResultCode.MINT_EMISSION_FAILED)
        self.assertEqual(result.transfer.amount, Amount.of(100))
        self.assertEqual(self.store.get(VaultKey(OWNER)), _vault(100, 200))

        result = engine.on_deposit(_stablecoin(OWNER, 100))
        self.assertEqual(result.code, ResultCode.REDEEM_EMISSION_FAILED)
        self.assertEqual(self.store.get(VaultKey(OWNER)), _vault(0, 0))

    def test_result_serializes_for_transports(self) -> None:
        payload = self.engine.on_deposit(_reserve(OWNER, 200)).to_dict()

        self.assertEqual(payload["code"], 31)
        self.assertEqual(payload["reason"], "MINTED")
        self.assertEqual(payload["vault"], {"debt": "100", "collateral": "200"})
        self.assertEqual(payload["transfer"]["asset"], "stablecoin")
        self.assertEqual(payload["vault_key"], VaultKey(OWNER).to_hex())

    def test_concurrent_deposits_on_one_vault_serialize(self) -> None:
        barrier = threading.Barrier(8)

        def deposit() -> None:
            barrier.wait()
            self.engine.on_deposit(_reserve(OWNER, 10))

        threads = [threading.Thread(target=deposit) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(self.store.get(VaultKey(OWNER)), _vault(40, 80))
        self.assertEqual(len(self.emitter.emitted), 8)


class KeyLockTableTests(unittest.TestCase):
    def test_duplicate_keys_do_not_deadlock(self) -> None:
        table = KeyLockTable()
        key = VaultKey(OWNER)
        with table.hold(key, key):
            with table.hold(VaultKey(TAKER)):
                pass

    def test_held_key_blocks_other_holders(self) -> None:
        table = KeyLockTable()
        key = VaultKey(OWNER)
        entered = threading.Event()

        def contender() -> None:
            with table.hold(key):
                entered.set()

        with table.hold(key, VaultKey(TAKER)):
            thread = threading.Thread(target=contender)
            thread.start()
            self.assertFalse(entered.wait(0.1))
        thread.join()
        self.assertTrue(entered.is_set())
        self.assertEqual(len(table), 0)

    def test_released_keys_are_forgotten(self) -> None:
        table = KeyLockTable()
        for index in range(50):
            with table.hold(VaultKey(bytes([index]) * 20), VaultKey(OWNER)):
                self.assertEqual(len(table), 2 if index != 1 else 1)
        self.assertEqual(len(table), 0)

        with self.assertRaises(RuntimeError):
            with table.hold(VaultKey(TAKER)):
                raise RuntimeError("boom")
        self.assertEqual(len(table), 0)


if __name__ == "__main__":
    unittest.main()
