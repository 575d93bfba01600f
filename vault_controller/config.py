"""Engine configuration and wiring of the file-backed collaborators."""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional
import json
import os

from core.amount import Amount
from core.models import currency_code, parse_account
from price_oracle.oracle import FilePriceOracle
from settlement_adapter.emitter import RecordingEmitter
from vault_store.store import FileVaultStore

from .controller import VaultEngine
from .credentials import REQUIRED_CREDIT_LIMIT, TrustLineRegistry

ENV_PREFIX = "VAULT_ENGINE_"


@dataclass(frozen=True)
class EngineConfig:
    engine_account: bytes
    store_path: Path
    price_feed_path: Path
    currency: str = "USD"
    required_credit_limit: Amount = REQUIRED_CREDIT_LIMIT
    trust_lines: Mapping[bytes, Amount] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: Mapping[str, object], base_dir: Optional[Path] = None) -> "EngineConfig":
        base = base_dir or Path.cwd()
        trust_lines: Dict[bytes, Amount] = {
            parse_account(str(account)): Amount.of(str(limit))
            for account, limit in dict(data.get("trust_lines", {})).items()
        }
        return EngineConfig(
            engine_account=parse_account(str(data["engine_account"])),
            store_path=base / str(data["store_path"]),
            price_feed_path=base / str(data["price_feed_path"]),
            currency=str(data.get("currency", "USD")),
            required_credit_limit=Amount.of(str(data.get("required_credit_limit", REQUIRED_CREDIT_LIMIT))),
            trust_lines=trust_lines,
        )

    @staticmethod
    def from_file(path: Path, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Load a JSON config; relative paths resolve against the file's directory."""

        data = json.loads(path.read_text())
        config = EngineConfig.from_dict(data, base_dir=path.parent)
        return config.with_overrides(os.environ if environ is None else environ)

    def with_overrides(self, environ: Mapping[str, str]) -> "EngineConfig":
        config = self
        if environ.get(ENV_PREFIX + "STORE_PATH"):
            config = replace(config, store_path=Path(environ[ENV_PREFIX + "STORE_PATH"]))
        if environ.get(ENV_PREFIX + "PRICE_FEED_PATH"):
            config = replace(config, price_feed_path=Path(environ[ENV_PREFIX + "PRICE_FEED_PATH"]))
        return config

    @property
    def currency_field(self) -> bytes:
        return currency_code(self.currency)


def build_engine(config: EngineConfig) -> VaultEngine:
    return VaultEngine(
        store=FileVaultStore(config.store_path),
        oracle=FilePriceOracle(config.price_feed_path),
        credentials=TrustLineRegistry(config.trust_lines, required_limit=config.required_credit_limit),
        emitter=RecordingEmitter(config.engine_account, config.currency_field),
        engine_account=config.engine_account,
        currency=config.currency_field,
    )
