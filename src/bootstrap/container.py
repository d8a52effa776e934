"""
サービス起動時の初期化を担うDIコンテナ。

設定解決 (preinit → キーボルト → ファイル → 環境変数) とロギング・トレーシング
パイプラインの導入を順に実行し、利用側には初期化済みのコンテキストを返す。
設定解決はブロッキングなネットワーク I/O を含むため、非同期の呼び出し元からは
専用スレッドへ処理を委譲して完了を待つ。
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Sequence

from application.reconfiguration import ReconfigurationEndpoint
from infrastructure.telemetry import ReloadHandle

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import TracerProvider

    from .config_models import Config, CoreConfig, TelemetryConfig


class ConfigResolver(Protocol):
    """設定ソース群を解決し、検証済みの Config を返すインターフェース。"""

    def resolve(self) -> "Config":
        raise NotImplementedError


class LogPipeline(Protocol):
    """ロギング・トレーシングパイプラインを導入するインターフェース。"""

    @property
    def tracer_provider(self) -> "TracerProvider | None":
        raise NotImplementedError

    def install(self, config: "TelemetryConfig") -> ReloadHandle | None:
        raise NotImplementedError

    def shutdown(self) -> None:
        raise NotImplementedError


class BootstrapError(RuntimeError):
    """ブートストラップ処理でのエラーを表す基底例外。"""


class ConfigSourceError(BootstrapError):
    """単一の設定ソースを読み込めなかった場合の例外。"""


class MissingConfigurationError(BootstrapError):
    """必須設定が欠落している場合の例外。"""


class InvalidConfigurationError(BootstrapError):
    """設定値が期待する形式ではない場合の例外。"""

    def __init__(self, message: str, *, fields: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.fields = tuple(fields)


class PreinitMismatchError(BootstrapError):
    """preinit と最終結果の core 設定が一致しない場合の例外。"""

    def __init__(self, preinit: "CoreConfig", final: "CoreConfig") -> None:
        super().__init__(
            f"preinit と最終設定の core が一致しません: preinit={preinit!r}, final={final!r}"
        )
        self.preinit = preinit
        self.final = final


class TelemetryInitError(BootstrapError):
    """指定されたテレメトリバックエンドを初期化できなかった場合の例外。"""


class TelemetryAlreadyInstalledError(BootstrapError):
    """ロギングパイプラインが既に導入済みの場合の例外。"""


@dataclass(frozen=True)
class BootstrapContext:
    """
    ブートストラップ処理後に利用側へ渡すコンテキスト。
    """

    config: "Config"
    reconfiguration: ReconfigurationEndpoint
    pipeline: LogPipeline

    @property
    def tracer_provider(self) -> "TracerProvider | None":
        return self.pipeline.tracer_provider

    def shutdown(self) -> None:
        """バッチエクスポータの送出待ちスパンを排出する。"""

        self.pipeline.shutdown()


@dataclass
class BootstrapContainer:
    """
    サービス全体の初期化を司るコンテナ。

    Attributes:
        config_resolver: 設定を解決するオブジェクト。
        log_pipeline: ロギング・トレーシングパイプラインの導入オブジェクト。
    """

    config_resolver: ConfigResolver
    log_pipeline: LogPipeline

    def initialize(self) -> BootstrapContext:
        """
        設定解決・パイプライン導入を順に実行する。

        Raises:
            BootstrapError: 初期化過程での検証エラー。
            SecretSourceError: キーボルトの読み込みに失敗した場合。
        """

        from .logging_setup import preinit_logging

        with preinit_logging():
            config = self.config_resolver.resolve()
        reload_handle = self.log_pipeline.install(config.tracing)

        return BootstrapContext(
            config=config,
            reconfiguration=ReconfigurationEndpoint(reload_handle),
            pipeline=self.log_pipeline,
        )

    async def initialize_async(self) -> BootstrapContext:
        """
        ``initialize`` を専用スレッドで実行し、完了まで待機する。

        解決中のキーボルト通信がイベントループ上の他のタスクを止めないようにする。
        """

        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bootstrap")
        try:
            return await loop.run_in_executor(executor, self.initialize)
        finally:
            executor.shutdown(wait=False)
