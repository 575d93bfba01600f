"""Operator CLI for the collateral vault engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from core.amount import Amount, AmountError
from core.models import AssetKind, DepositEvent, VaultKey, currency_code, parse_account
from vault_controller.config import EngineConfig, build_engine
from vault_controller.controller import VaultEngine
from vault_controller.logging_utils import configure_logging
from vault_store.store import FileVaultStore


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="vault-engine")
    parser.add_argument("--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    key_parser = subparsers.add_parser("key")
    _add_owner_args(key_parser)
    key_parser.set_defaults(func=_vault_key)

    vault_parser = subparsers.add_parser("vault")
    vault_sub = vault_parser.add_subparsers(dest="vault_command", required=True)
    vault_show = vault_sub.add_parser("show")
    vault_show.add_argument("--config", required=True)
    vault_show.add_argument("--key")
    vault_show.add_argument("--account")
    vault_show.add_argument("--tag", type=int)
    vault_show.set_defaults(func=_vault_show)

    deposit_parser = subparsers.add_parser("deposit")
    deposit_parser.add_argument("--config", required=True)
    _add_owner_args(deposit_parser)
    asset_group = deposit_parser.add_mutually_exclusive_group(required=True)
    asset_group.add_argument("--reserve")
    asset_group.add_argument("--stablecoin")
    deposit_parser.add_argument("--takeover", help="Hex key of the vault to take over.")
    deposit_parser.add_argument("--issuer", help="Issuer of the returned stablecoin; defaults to the engine.")
    deposit_parser.add_argument("--currency", help="Currency of the returned stablecoin; defaults to config.")
    deposit_parser.set_defaults(func=_deposit)

    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        return args.func(args)
    except (ValueError, KeyError, AmountError, OSError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2


def _add_owner_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--account", required=True)
    parser.add_argument("--tag", type=int)


def _vault_key(args: argparse.Namespace) -> int:
    key = _owner_key(args.account, args.tag)
    print(
        json.dumps(
            {"vault_key": key.to_hex(), "invoice_id": key.to_invoice_id().hex().upper()},
            indent=2,
        )
    )
    return 0


def _vault_show(args: argparse.Namespace) -> int:
    config = EngineConfig.from_file(Path(args.config))
    if args.key:
        key = VaultKey.from_hex(args.key)
    elif args.account:
        key = _owner_key(args.account, args.tag)
    else:
        raise ValueError("Either --key or --account is required.")

    vault = FileVaultStore(config.store_path).get(key)
    if vault is None:
        raise KeyError(f"No vault stored under {key.to_hex()}")
    print(json.dumps({"vault_key": key.to_hex(), "vault": vault.to_dict()}, indent=2))
    return 0


def _deposit(args: argparse.Namespace) -> int:
    config = EngineConfig.from_file(Path(args.config))
    engine = build_engine(config)
    event = _build_event(args, config)

    result = engine.on_deposit(event)
    output = result.to_dict()
    emitted = _emitted_payloads(engine)
    if emitted:
        output["payments"] = emitted
    print(json.dumps(output, indent=2))
    if not result.accepted:
        print(f"ERROR: {result.note}", file=sys.stderr)
        return 2
    return 0


def _emitted_payloads(engine: VaultEngine) -> List[dict]:
    emitter = engine.emitter
    return [
        {"transfer_id": item.transfer_id, "payload": asdict(item.payload)}
        for item in getattr(emitter, "emitted", ())
    ]


def _build_event(args: argparse.Namespace, config: EngineConfig) -> DepositEvent:
    sender = parse_account(args.account)
    invoice_id = VaultKey.from_hex(args.takeover).to_invoice_id() if args.takeover else None

    if args.reserve is not None:
        return DepositEvent(
            sender=sender,
            asset=AssetKind.RESERVE,
            amount=Amount.of(args.reserve),
            source_tag=args.tag,
            invoice_id=invoice_id,
        )

    issuer = parse_account(args.issuer) if args.issuer else config.engine_account
    currency = currency_code(args.currency) if args.currency else config.currency_field
    return DepositEvent(
        sender=sender,
        asset=AssetKind.STABLECOIN,
        amount=Amount.of(args.stablecoin),
        source_tag=args.tag,
        invoice_id=invoice_id,
        issuer=issuer,
        currency=currency,
    )


def _owner_key(account: str, tag: Optional[int]) -> VaultKey:
    owner = parse_account(account)
    if tag is None:
        return VaultKey(account=owner)
    return VaultKey(account=owner, tag=tag)


if __name__ == "__main__":
    raise SystemExit(main())
