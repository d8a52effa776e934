"""
キーボルト・設定ファイル・環境変数を優先順位順に重ね合わせ、検証済みの Config を生成するローダ。
"""

from __future__ import annotations

import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, Sequence

from pydantic import BaseModel, ValidationError

from infrastructure.secrets import SecretSource

from .config_models import Config, CoreConfig, PreinitConfig
from .container import (
    ConfigResolver,
    ConfigSourceError,
    InvalidConfigurationError,
    MissingConfigurationError,
    PreinitMismatchError,
)

LOGGER = logging.getLogger("hello_service.config")

DEFAULT_CONFIG_FILE = "web_config.json"
NESTING_SEPARATOR = "--"


class ConfigSource(Protocol):
    """ネストされた設定マッピングを返す単一の設定ソース。"""

    name: str

    def collect(self) -> dict[str, Any]:
        raise NotImplementedError


class JsonFileSource(ConfigSource):
    """
    ローカルの JSON 設定ファイル。
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self.name = f"file:{path}"

    def collect(self) -> dict[str, Any]:
        if not self._path.is_file():
            raise MissingConfigurationError(f"設定ファイル ({self._path}) が存在しません。")

        try:
            with self._path.open("r", encoding="utf-8") as fh:
                content = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigSourceError(f"設定ファイルの解析に失敗しました: {self._path}") from exc

        if not isinstance(content, Mapping):
            raise ConfigSourceError(
                f"設定ファイルのトップレベルは Mapping である必要があります: {self._path}"
            )
        return _normalize_keys(content)


class EnvironmentSource(ConfigSource):
    """
    環境変数。``CORE--SLOT`` のように ``--`` で階層を区切る。
    """

    name = "environment"

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        *,
        separator: str = NESTING_SEPARATOR,
        sections: frozenset[str] = frozenset(),
    ) -> None:
        self._environ = environ
        self._separator = separator
        self._sections = sections

    def collect(self) -> dict[str, Any]:
        environ = os.environ if self._environ is None else self._environ
        flat: dict[str, str] = {}
        for key, value in environ.items():
            # 区切りを含まない変数はセクション全体を上書きできない
            if self._separator not in key and key.lower() in self._sections:
                LOGGER.debug("Ignoring environment variable %s shadowing a config section", key)
                continue
            flat[key] = value
        return _unflatten(flat, separator=self._separator)


class KeyVaultConfigSource(ConfigSource):
    """
    SecretSource を設定ソースとして扱うアダプタ。シークレット名の ``--`` は階層区切り。
    """

    def __init__(self, name: str, secret_source: SecretSource, *, separator: str = NESTING_SEPARATOR) -> None:
        self.name = name
        self._secret_source = secret_source
        self._separator = separator

    def collect(self) -> dict[str, Any]:
        return _unflatten(self._secret_source.fetch(), separator=self._separator)


class LayeredConfigResolver(ConfigResolver):
    """
    2 段階で設定を解決する実装。

    1. preinit: 設定ファイルと環境変数のみから ``core`` を読み込む。
    2. final: 共有キーボルト → 個別キーボルト → 設定ファイル → 環境変数の順に
       重ね合わせ (後勝ち)、``Config`` として検証する。

    最終結果の ``core`` が preinit と異なる場合は ``PreinitMismatchError`` とする。
    """

    def __init__(
        self,
        *,
        config_path: Path | str = DEFAULT_CONFIG_FILE,
        environ: Mapping[str, str] | None = None,
        vault_source_factory: Callable[[str], SecretSource] | None = None,
    ) -> None:
        self._file_source = JsonFileSource(Path(config_path))
        self._env_source = EnvironmentSource(environ, sections=_section_keys(Config))
        self._vault_source_factory = vault_source_factory

    def resolve(self) -> Config:
        core = self.load_preinit()
        merged = self.build_final_view(core)
        config = _validate(Config, merged)

        if config.core != core:
            raise PreinitMismatchError(core, config.core)

        LOGGER.info(
            "configuration resolved: slot=%s stage=%s keys=%s",
            config.core.slot,
            config.core.stage,
            sorted(config.model_fields_set),
        )
        return config

    def load_preinit(self) -> CoreConfig:
        merged = _merge_sources([self._file_source.collect(), self._env_source.collect()])
        preinit = _validate(PreinitConfig, merged)
        LOGGER.info("preinit configuration: %r", preinit.core)
        return preinit.core

    def build_final_view(self, core: CoreConfig) -> dict[str, Any]:
        """
        preinit の core に従って設定ソースを積み上げ、マージ済みのマッピングを返す。
        """

        layers = self._collect_vaults(self._vault_sources(core))
        layers.append(self._file_source.collect())
        layers.append(self._env_source.collect())
        return _merge_sources(layers)

    def _vault_sources(self, core: CoreConfig) -> list[ConfigSource]:
        uris = [("shared_keyvault", core.shared_keyvault), ("private_keyvault", core.private_keyvault)]
        sources: list[ConfigSource] = []
        for name, uri in uris:
            if not uri:
                continue
            if self._vault_source_factory is None:
                raise MissingConfigurationError(
                    f"core.{name} が指定されていますが、キーボルトの資格情報が構成されていません。"
                )
            sources.append(KeyVaultConfigSource(name, self._vault_source_factory(uri)))
        return sources

    @staticmethod
    def _collect_vaults(sources: Sequence[ConfigSource]) -> list[dict[str, Any]]:
        if len(sources) <= 1:
            return [source.collect() for source in sources]

        # 2 つのキーボルトは並行に取得し、結果はスタック順で並べる
        with ThreadPoolExecutor(max_workers=len(sources), thread_name_prefix="keyvault") as executor:
            futures = [executor.submit(source.collect) for source in sources]
            return [future.result() for future in futures]


def _section_keys(model: type[BaseModel]) -> frozenset[str]:
    return frozenset(
        name
        for name, info in model.model_fields.items()
        if isinstance(info.annotation, type) and issubclass(info.annotation, BaseModel)
    )


def _validate(model: type[BaseModel], merged: Mapping[str, Any]) -> Any:
    try:
        return model.model_validate(merged)
    except ValidationError as exc:
        fields = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
        raise InvalidConfigurationError(
            f"設定値の検証に失敗しました: {', '.join(fields)}",
            fields=fields,
        ) from exc


def _merge_sources(layers: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for layer in layers:
        merged = _deep_merge(merged, layer)
    return merged


def _deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """
    ネストされた辞書をマージする。overlay の値が優先されるが、
    base 側が Mapping の場合はスカラー値による置き換えを行わない。
    """

    result: dict[str, Any] = dict(base)
    for key, value in overlay.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(current, value)
        elif isinstance(current, Mapping):
            # 下位層のセクションはスカラー値で置き換えない
            continue
        else:
            result[key] = value
    return result


def _normalize_keys(mapping: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in mapping.items():
        if isinstance(value, Mapping):
            value = _normalize_keys(value)
        result[str(key).lower()] = value
    return result


def _unflatten(flat: Mapping[str, str], *, separator: str) -> dict[str, Any]:
    """
    ``a--b--c = v`` 形式のフラットなマッピングを小文字キーのネスト辞書へ変換する。
    """

    result: dict[str, Any] = {}
    for raw_key in sorted(flat):
        parts = [part for part in raw_key.lower().split(separator) if part]
        if not parts:
            continue
        node = result
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = flat[raw_key]
    return result
