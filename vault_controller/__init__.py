from .config import EngineConfig, build_engine
from .controller import VaultEngine
from .credentials import REQUIRED_CREDIT_LIMIT, CredentialCheck, TrustLineRegistry
from .locks import KeyLockTable
from .logging_utils import configure_logging
from .results import EngineResult

__all__ = [
    "CredentialCheck",
    "EngineConfig",
    "EngineResult",
    "KeyLockTable",
    "REQUIRED_CREDIT_LIMIT",
    "TrustLineRegistry",
    "VaultEngine",
    "build_engine",
    "configure_logging",
]
