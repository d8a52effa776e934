"""
シークレット取得関連の例外定義。
"""

from __future__ import annotations


class SecretSourceError(RuntimeError):
    """シークレットソースが発生させる基底例外。"""


class RemoteVaultError(SecretSourceError):
    """キーボルトとの通信・認証に失敗した。"""
