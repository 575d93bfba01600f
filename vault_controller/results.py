"""Engine results returned to the invoking transport."""

from dataclasses import dataclass
from typing import Dict, Optional

from core.errors import ResultCode, VaultEngineError
from core.models import TransferInstruction, Vault, VaultKey


@dataclass(frozen=True)
class EngineResult:
    accepted: bool
    code: ResultCode
    note: str
    state_committed: bool = False
    vault_key: Optional[VaultKey] = None
    vault: Optional[Vault] = None
    transfer: Optional[TransferInstruction] = None
    transfer_id: Optional[str] = None

    @staticmethod
    def rejected(error: VaultEngineError) -> "EngineResult":
        return EngineResult(accepted=False, code=error.code, note=error.note)

    def to_dict(self) -> Dict[str, object]:
        result: Dict[str, object] = {
            "accepted": self.accepted,
            "code": int(self.code),
            "reason": self.code.name,
            "note": self.note,
            "state_committed": self.state_committed,
        }
        if self.vault_key is not None:
            result["vault_key"] = self.vault_key.to_hex()
        if self.vault is not None:
            result["vault"] = self.vault.to_dict()
        if self.transfer is not None:
            result["transfer"] = self.transfer.to_dict()
        if self.transfer_id is not None:
            result["transfer_id"] = self.transfer_id
        return result
