from .store import FileVaultStore, InMemoryVaultStore, VaultNotFoundError, VaultStore

__all__ = [
    "FileVaultStore",
    "InMemoryVaultStore",
    "VaultNotFoundError",
    "VaultStore",
]
