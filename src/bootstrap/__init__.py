"""
ブートストラップ関連の公開API。
"""

from .config_loader import (
    DEFAULT_CONFIG_FILE,
    EnvironmentSource,
    JsonFileSource,
    KeyVaultConfigSource,
    LayeredConfigResolver,
)
from .config_models import (
    SERVICE_NAME,
    AppInsightTelemetry,
    Config,
    CoreConfig,
    JaegerTelemetry,
    NoTelemetry,
    ServerConfig,
    StdOutTelemetry,
    TelemetryConfig,
    TelemetrySelection,
    ZipkinTelemetry,
)
from .container import (
    BootstrapContainer,
    BootstrapContext,
    BootstrapError,
    ConfigResolver,
    ConfigSourceError,
    InvalidConfigurationError,
    LogPipeline,
    MissingConfigurationError,
    PreinitMismatchError,
    TelemetryAlreadyInstalledError,
    TelemetryInitError,
)
from .logging_setup import LogPipelineBuilder, preinit_logging
from .telemetry_setup import TelemetryBackendFactory

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "SERVICE_NAME",
    "AppInsightTelemetry",
    "BootstrapContainer",
    "BootstrapContext",
    "BootstrapError",
    "Config",
    "ConfigResolver",
    "ConfigSourceError",
    "CoreConfig",
    "EnvironmentSource",
    "InvalidConfigurationError",
    "JaegerTelemetry",
    "JsonFileSource",
    "KeyVaultConfigSource",
    "LayeredConfigResolver",
    "LogPipeline",
    "LogPipelineBuilder",
    "MissingConfigurationError",
    "NoTelemetry",
    "PreinitMismatchError",
    "ServerConfig",
    "StdOutTelemetry",
    "TelemetryAlreadyInstalledError",
    "TelemetryBackendFactory",
    "TelemetryConfig",
    "TelemetryInitError",
    "TelemetrySelection",
    "ZipkinTelemetry",
    "preinit_logging",
]
