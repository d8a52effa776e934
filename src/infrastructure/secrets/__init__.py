"""
シークレット取得関連モジュールの公開API。
"""

from .exceptions import RemoteVaultError, SecretSourceError
from .keyvault_client import (
    KEYVAULT_SCOPE,
    KeyVaultSecretSource,
    KeyVaultSettings,
    SecretEntry,
    SecretSource,
    TokenCredential,
)

__all__ = [
    "KEYVAULT_SCOPE",
    "KeyVaultSecretSource",
    "KeyVaultSettings",
    "RemoteVaultError",
    "SecretEntry",
    "SecretSource",
    "SecretSourceError",
    "TokenCredential",
]
