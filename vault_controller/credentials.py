"""Credit-line authorization gating who may receive minted stablecoin."""

from typing import Dict, Mapping, Optional, Protocol

from core.amount import Amount

REQUIRED_CREDIT_LIMIT = Amount.of(10_000_000_000)


class CredentialCheck(Protocol):
    def has_authorization(self, account: bytes) -> bool:
        ...


class TrustLineRegistry:
    """Known stablecoin trust-line limits per account."""

    def __init__(
        self,
        limits: Optional[Mapping[bytes, Amount]] = None,
        required_limit: Amount = REQUIRED_CREDIT_LIMIT,
    ) -> None:
        self._limits: Dict[bytes, Amount] = dict(limits or {})
        self._required_limit = required_limit

    def set_limit(self, account: bytes, limit: Amount) -> None:
        self._limits[account] = limit

    def has_authorization(self, account: bytes) -> bool:
        limit = self._limits.get(account)
        return limit is not None and limit >= self._required_limit
