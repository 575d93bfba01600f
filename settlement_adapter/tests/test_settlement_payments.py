"""Payment payload and emitter tests."""

import threading
import unittest

from core.amount import ONE, ZERO, Amount
from core.models import AssetKind, currency_code
from settlement_adapter.adapter import AdapterError, build_payment
from settlement_adapter.emitter import RecordingEmitter, SettlementError

ENGINE = bytes([9]) * 20
RECIPIENT = bytes([1]) * 20
USD = currency_code("USD")


class BuildPaymentTests(unittest.TestCase):
    def test_stablecoin_payment_carries_issued_amount(self) -> None:
        payload = build_payment(AssetKind.STABLECOIN, ONE, RECIPIENT, 7, ENGINE, USD)

        self.assertEqual(payload.asset, "stablecoin")
        self.assertEqual(payload.account, ENGINE.hex().upper())
        self.assertEqual(payload.destination, RECIPIENT.hex().upper())
        self.assertEqual(payload.destination_tag, 7)
        self.assertEqual(payload.source_tag, 7)
        self.assertEqual(payload.amount, "1")
        self.assertEqual(
            payload.amount_field,
            "D4838D7EA4C68000" + USD.hex().upper() + ENGINE.hex().upper(),
        )

    def test_reserve_payment_carries_native_drops(self) -> None:
        payload = build_payment(AssetKind.RESERVE, Amount.of(200), RECIPIENT, 0xFFFFFFFF, ENGINE, USD)

        self.assertEqual(payload.asset, "reserve")
        self.assertEqual(payload.amount_field, "400000000BEBC200")
        self.assertEqual(payload.destination_tag, 0xFFFFFFFF)

    def test_rejects_unpayable_amounts(self) -> None:
        with self.assertRaises(AdapterError):
            build_payment(AssetKind.STABLECOIN, ZERO, RECIPIENT, 0, ENGINE, USD)
        with self.assertRaises(AdapterError):
            build_payment(AssetKind.RESERVE, Amount.of("0.0000001"), RECIPIENT, 0, ENGINE, USD)
        with self.assertRaises(AdapterError):
            build_payment(AssetKind.RESERVE, Amount.of("1e20"), RECIPIENT, 0, ENGINE, USD)
        with self.assertRaises(AdapterError):
            build_payment(AssetKind.RESERVE, ONE, bytes(3), 0, ENGINE, USD)


class RecordingEmitterTests(unittest.TestCase):
    def test_send_records_payload_and_returns_id(self) -> None:
        emitter = RecordingEmitter(ENGINE, USD)
        transfer_id = emitter.send(AssetKind.STABLECOIN, Amount.of(100), RECIPIENT, 3)

        self.assertEqual(len(transfer_id), 64)
        self.assertEqual(len(emitter.emitted), 1)
        self.assertEqual(emitter.emitted[0].transfer_id, transfer_id)
        self.assertEqual(emitter.emitted[0].payload.amount, "100")

    def test_ids_are_deterministic_and_unique_per_sequence(self) -> None:
        first = RecordingEmitter(ENGINE, USD)
        second = RecordingEmitter(ENGINE, USD)

        a = first.send(AssetKind.RESERVE, ONE, RECIPIENT, 1)
        b = second.send(AssetKind.RESERVE, ONE, RECIPIENT, 1)
        c = first.send(AssetKind.RESERVE, ONE, RECIPIENT, 1)

        self.assertEqual(a, b)
        self.assertNotEqual(a, c)

    def test_concurrent_identical_sends_get_distinct_ids(self) -> None:
        emitter = RecordingEmitter(ENGINE, USD)
        barrier = threading.Barrier(16)
        ids = []

        def send() -> None:
            barrier.wait()
            ids.append(emitter.send(AssetKind.RESERVE, ONE, RECIPIENT, 1))

        threads = [threading.Thread(target=send) for _ in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(set(ids)), 16)
        self.assertEqual(len(emitter.emitted), 16)

    def test_adapter_failures_become_settlement_errors(self) -> None:
        emitter = RecordingEmitter(ENGINE, USD)
        with self.assertRaises(SettlementError):
            emitter.send(AssetKind.RESERVE, Amount.of("0.0000001"), RECIPIENT, 1)
        self.assertEqual(emitter.emitted, ())

    def test_clear(self) -> None:
        emitter = RecordingEmitter(ENGINE, USD)
        emitter.send(AssetKind.RESERVE, ONE, RECIPIENT, 1)
        emitter.clear()
        self.assertEqual(emitter.emitted, ())


if __name__ == "__main__":
    unittest.main()
