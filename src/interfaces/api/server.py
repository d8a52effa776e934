"""
サービスの起動シーケンス。

設定解決 → ロギングパイプライン導入 → HTTP リスナー起動の順に実行し、
停止シグナル受信後は処理中のリクエスト完了を待ってからテレメトリを排出する。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import uvicorn

from bootstrap import (
    DEFAULT_CONFIG_FILE,
    BootstrapContainer,
    BootstrapContext,
    LayeredConfigResolver,
    LogPipelineBuilder,
)
from infrastructure.secrets import KeyVaultSecretSource, KeyVaultSettings, SecretSource, TokenCredential
from interfaces.api import create_api_app
from interfaces.api.deps import ApiDependencies, configure_dependencies

LOGGER = logging.getLogger("hello_service.server")


def keyvault_source_factory(credential: TokenCredential) -> Callable[[str], SecretSource]:
    def factory(vault_url: str) -> SecretSource:
        return KeyVaultSecretSource(KeyVaultSettings(vault_url=vault_url), credential)

    return factory


def build_container(
    *,
    config_file: Path | str = DEFAULT_CONFIG_FILE,
    credential: TokenCredential | None = None,
) -> BootstrapContainer:
    if credential is None:
        from azure.identity import AzureCliCredential

        LOGGER.warning("Finding azure credentials...")
        credential = AzureCliCredential()

    resolver = LayeredConfigResolver(
        config_path=config_file,
        vault_source_factory=keyvault_source_factory(credential),
    )
    return BootstrapContainer(config_resolver=resolver, log_pipeline=LogPipelineBuilder())


def create_service_app(context: BootstrapContext):
    configure_dependencies(
        ApiDependencies(config=context.config, reconfiguration=context.reconfiguration)
    )
    return create_api_app(tracer_provider=context.tracer_provider)


async def run_service(container: BootstrapContainer) -> None:
    context = await container.initialize_async()
    try:
        app = create_service_app(context)
        server_config = context.config.server
        server = uvicorn.Server(
            uvicorn.Config(app, host=server_config.host, port=server_config.port, log_config=None)
        )
        LOGGER.warning("Starting service on %s:%s", server_config.host, server_config.port)
        await server.serve()
        LOGGER.info("Bye.")
    finally:
        context.shutdown()


def format_error_chain(error: BaseException) -> str:
    """
    エラーと原因の連鎖を起動失敗時の出力形式に整形する。
    """

    lines = [f"[ERROR] {error}"]
    cause = error.__cause__ or error.__context__
    if cause is not None:
        lines.append("")
        lines.append("Caused by:")
        index = 0
        while cause is not None:
            lines.append(f"   {index}: {type(cause).__name__}: {cause}")
            cause = cause.__cause__ or cause.__context__
            index += 1
    return "\n".join(lines)
