"""
サービス設定の検証モデル。

各設定ソースのキーは小文字へ正規化された後にこれらのモデルへ渡される。
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

SERVICE_NAME = "hello-world"


class CoreConfig(BaseModel):
    """
    デプロイメントの識別情報とキーボルトの所在。

    preinit と最終結果で完全に一致している必要がある。
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    slot: str
    stage: str
    shared_keyvault: str | None = None
    private_keyvault: str | None = None


class PreinitConfig(BaseModel):
    """キーボルト参照前に読み込む最小構成。"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    core: CoreConfig


class NoTelemetry(BaseModel):
    """テレメトリ無効。"""

    model_config = ConfigDict(frozen=True)

    type: Literal["none"] = "none"


class StdOutTelemetry(BaseModel):
    """スパンを標準出力へ書き出す。"""

    model_config = ConfigDict(frozen=True)

    type: Literal["stdOut"] = "stdOut"


class JaegerTelemetry(BaseModel):
    """Jaeger (https://www.jaegertracing.io) へ送出する。"""

    model_config = ConfigDict(frozen=True)

    type: Literal["jaeger"] = "jaeger"


class ZipkinTelemetry(BaseModel):
    """Zipkin (https://zipkin.io/) へ送出する。"""

    model_config = ConfigDict(frozen=True)

    type: Literal["zipkin"] = "zipkin"


class AppInsightTelemetry(BaseModel):
    """Application Insights へ送出する。"""

    model_config = ConfigDict(frozen=True)

    type: Literal["appInsight"] = "appInsight"
    instrumentation_key: str


TelemetrySelection = Annotated[
    Union[NoTelemetry, StdOutTelemetry, JaegerTelemetry, ZipkinTelemetry, AppInsightTelemetry],
    Field(discriminator="type"),
]


class TelemetryConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    allow_reconfigure: bool
    telemetry: TelemetrySelection


class ServerConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    host: str = "0.0.0.0"
    port: int = Field(default=80, ge=0, le=65535)


class Config(BaseModel):
    """
    解決済みのサービス設定全体。

    ``sql_connection_string`` は設定ソース上では ``FullSqlCns`` キーで与えられる。
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    core: CoreConfig
    tracing: TelemetryConfig
    sql_connection_string: str = Field(validation_alias="fullsqlcns", serialization_alias="FullSqlCns")
    server: ServerConfig = ServerConfig()

    def to_public_dict(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)
