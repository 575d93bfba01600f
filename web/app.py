"""Local-first FastAPI shell for the collateral vault engine."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.amount import Amount, AmountError
from core.errors import ResultCode
from core.models import AssetKind, DepositEvent, VaultKey, currency_code, parse_account
from vault_controller.config import EngineConfig, build_engine
from vault_controller.controller import VaultEngine

app = FastAPI(title="Vault Engine", description="Local-first collateral vault shell")

_CONTEXT: Dict[str, Optional[str]] = {"config_path": None}
_ENGINES: Dict[str, VaultEngine] = {}

_EMISSION_FAILURES = {ResultCode.MINT_EMISSION_FAILED, ResultCode.REDEEM_EMISSION_FAILED}


class ContextRequest(BaseModel):
    config_path: str


class DepositRequest(BaseModel):
    sender: str
    asset: str
    amount: str
    source_tag: Optional[int] = None
    takeover_key: Optional[str] = None
    issuer: Optional[str] = None
    currency: Optional[str] = None


@app.middleware("http")
async def _local_only(request: Request, call_next):
    client = request.client
    if client is not None:
        host = client.host
        if host not in {"127.0.0.1", "::1", "testclient"}:
            return JSONResponse({"error": "Remote access disabled."}, status_code=403)
    return await call_next(request)


async def _handle_errors(request: Request, exc: Exception):
    return JSONResponse({"error": str(exc)}, status_code=400)


for _exc_class in (AmountError, ValueError, KeyError, OSError):
    app.add_exception_handler(_exc_class, _handle_errors)


@app.post("/api/context")
async def set_context(payload: ContextRequest):
    config = EngineConfig.from_file(Path(payload.config_path))
    _CONTEXT["config_path"] = payload.config_path
    _ENGINES[payload.config_path] = build_engine(config)
    return {"status": "ok"}


@app.get("/api/status")
async def status():
    engine = _require_engine()
    return {
        "config_path": _CONTEXT["config_path"],
        "engine_account": engine.stablecoin.issuer.hex().upper(),
        "currency": engine.stablecoin.currency.hex().upper(),
    }


@app.get("/api/vaults/{key}")
async def get_vault(key: str):
    engine = _require_engine()
    vault_key = VaultKey.from_hex(key)
    vault = engine.store.get(vault_key)
    if vault is None:
        raise HTTPException(status_code=404, detail="Vault not found.")
    return {"vault_key": vault_key.to_hex(), "vault": vault.to_dict()}


@app.post("/api/deposits")
async def deposit(payload: DepositRequest):
    engine = _require_engine()
    event = _build_event(payload, engine)
    result = engine.on_deposit(event)
    body = result.to_dict()
    if result.accepted:
        return body
    if result.code in _EMISSION_FAILURES:
        return JSONResponse(body, status_code=502)
    return JSONResponse(body, status_code=400)


@app.get("/api/transfers")
async def list_transfers():
    engine = _require_engine()
    return {
        "transfers": [
            {"transfer_id": item.transfer_id, "payload": asdict(item.payload)}
            for item in getattr(engine.emitter, "emitted", ())
        ]
    }


def _require_engine() -> VaultEngine:
    config_path = _CONTEXT.get("config_path")
    if not config_path or config_path not in _ENGINES:
        raise HTTPException(status_code=400, detail="Context not set.")
    return _ENGINES[config_path]


def _parse_asset(value: str) -> AssetKind:
    normalized = value.strip().lower()
    for asset in AssetKind:
        if asset.value == normalized:
            return asset
    raise ValueError(f"Unsupported asset: {value}")


def _build_event(payload: DepositRequest, engine: VaultEngine) -> DepositEvent:
    asset = _parse_asset(payload.asset)
    invoice_id = None
    if payload.takeover_key:
        invoice_id = VaultKey.from_hex(payload.takeover_key).to_invoice_id()

    issuer = None
    currency = None
    if asset == AssetKind.STABLECOIN:
        issuer = parse_account(payload.issuer) if payload.issuer else engine.stablecoin.issuer
        currency = currency_code(payload.currency) if payload.currency else engine.stablecoin.currency

    return DepositEvent(
        sender=parse_account(payload.sender),
        asset=asset,
        amount=Amount.of(payload.amount),
        source_tag=payload.source_tag,
        invoice_id=invoice_id,
        issuer=issuer,
        currency=currency,
    )


def _reset_state() -> None:
    _CONTEXT["config_path"] = None
    _ENGINES.clear()
