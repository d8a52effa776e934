"""
Key Vault REST API からシークレットを一括取得するクライアント。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Protocol, cast

import httpx

from .exceptions import RemoteVaultError

LOGGER = logging.getLogger("hello_service.secrets.keyvault")

KEYVAULT_SCOPE = "https://vault.azure.net/.default"


class AccessToken(Protocol):
    token: str


class TokenCredential(Protocol):
    """azure-identity の資格情報と互換のインターフェース。"""

    def get_token(self, *scopes: str) -> AccessToken:
        ...


class SecretSource(Protocol):
    """有効なシークレットを key -> value のマップとして返すソース。"""

    def fetch(self) -> dict[str, str]:
        ...


@dataclass(frozen=True)
class SecretEntry:
    """キーボルトから読み出した単一のシークレット。"""

    name: str
    value: str
    enabled: bool


@dataclass(frozen=True)
class KeyVaultSettings:
    """
    キーボルト呼び出しに必要な設定値。
    """

    vault_url: str
    api_version: str = "7.4"
    timeout_seconds: float = 10.0
    retries: int = 3
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        if not self.vault_url:
            raise ValueError("vault_url は必須です。")
        if self.retries < 0:
            raise ValueError("retries は 0 以上で指定してください。")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds は正の値である必要があります。")


class KeyVaultSecretSource:
    """
    キーボルト内の全シークレットを列挙し、有効なものだけを返す。

    列挙はページングされるため ``nextLink`` が無くなるまで辿る。途中で
    1 件でも失敗した場合は部分的な結果を破棄して ``RemoteVaultError`` を送出する。
    """

    def __init__(
        self,
        settings: KeyVaultSettings,
        credential: TokenCredential,
        *,
        client_factory: Callable[[KeyVaultSettings], httpx.Client] | None = None,
    ) -> None:
        self._settings = settings
        self._credential = credential
        self._client_factory = client_factory or _default_client_factory

    @property
    def vault_url(self) -> str:
        return self._settings.vault_url

    def fetch(self) -> dict[str, str]:
        try:
            token = self._credential.get_token(KEYVAULT_SCOPE).token
        except Exception as exc:
            raise RemoteVaultError(
                f"キーボルトのアクセストークン取得に失敗しました (vault={self.vault_url})"
            ) from exc

        secrets: dict[str, str] = {}
        with self._client_factory(self._settings) as client:
            client.headers["Authorization"] = f"Bearer {token}"
            for name, listed_enabled in self._list_secret_names(client):
                if not listed_enabled:
                    continue
                LOGGER.info("Reading secret %r", name)
                entry = self._get_secret(client, name)
                if entry.enabled:
                    secrets[entry.name] = entry.value
        return secrets

    def _list_secret_names(self, client: httpx.Client) -> Iterator[tuple[str, bool]]:
        url: str | None = f"{self._base_url}/secrets"
        params: Mapping[str, str] | None = {"api-version": self._settings.api_version}
        while url:
            page = self._get_json(client, url, params=params)
            for item in cast(list[Mapping[str, Any]], page.get("value") or []):
                name = _simple_name(str(item.get("id", "")))
                if not name:
                    continue
                attributes = cast(Mapping[str, Any], item.get("attributes") or {})
                yield name, bool(attributes.get("enabled", True))
            # nextLink は api-version を含む絶対 URL
            url = cast(str | None, page.get("nextLink"))
            params = None

    def _get_secret(self, client: httpx.Client, name: str) -> SecretEntry:
        payload = self._get_json(
            client,
            f"{self._base_url}/secrets/{name}",
            params={"api-version": self._settings.api_version},
        )
        attributes = cast(Mapping[str, Any], payload.get("attributes") or {})
        return SecretEntry(
            name=name,
            value=str(payload.get("value", "")),
            enabled=bool(attributes.get("enabled", False)),
        )

    def _get_json(
        self,
        client: httpx.Client,
        url: str,
        *,
        params: Mapping[str, str] | None,
    ) -> Mapping[str, Any]:
        try:
            response = client.get(url, params=params)
            response.raise_for_status()
            return cast(Mapping[str, Any], response.json())
        except httpx.HTTPStatusError as exc:
            raise RemoteVaultError(
                f"キーボルト呼び出しに失敗しました (status={exc.response.status_code}, url={url})"
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteVaultError(f"キーボルトへのリクエストに失敗しました (url={url})") from exc
        except ValueError as exc:
            raise RemoteVaultError(f"キーボルトの応答が JSON ではありません (url={url})") from exc

    @property
    def _base_url(self) -> str:
        return self._settings.vault_url.rstrip("/")


def _simple_name(identifier: str) -> str:
    """シークレット ID (``https://<vault>/secrets/<name>``) の末尾セグメントを返す。"""

    return identifier.rstrip("/").split("/")[-1]


def _default_client_factory(settings: KeyVaultSettings) -> httpx.Client:
    return httpx.Client(
        timeout=settings.timeout_seconds,
        verify=settings.verify_ssl,
        transport=httpx.HTTPTransport(retries=settings.retries, verify=settings.verify_ssl),
    )
