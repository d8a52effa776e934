"""
サービス起動・設定確認コマンド。
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer

from bootstrap import DEFAULT_CONFIG_FILE, BootstrapError, preinit_logging
from infrastructure.secrets import SecretSourceError
from interfaces.api.server import build_container, format_error_chain, run_service

CONFIG_FILE_OPTION = typer.Option(
    Path(DEFAULT_CONFIG_FILE),
    "--config-file",
    help="ローカル設定ファイル (JSON) のパス",
)


def serve(config_file: Path = CONFIG_FILE_OPTION) -> None:
    """
    設定を解決してロギングを導入し、HTTP サービスを起動する。
    """

    try:
        asyncio.run(run_service(build_container(config_file=config_file)))
    except (BootstrapError, SecretSourceError) as exc:
        typer.echo(format_error_chain(exc))
        raise typer.Exit(code=1) from exc


def show_config(config_file: Path = CONFIG_FILE_OPTION) -> None:
    """
    設定を解決し、/hello/config と同じ形式の JSON を出力する。
    """

    container = build_container(config_file=config_file)
    try:
        with preinit_logging():
            config = container.config_resolver.resolve()
    except (BootstrapError, SecretSourceError) as exc:
        typer.echo(format_error_chain(exc))
        raise typer.Exit(code=1) from exc

    typer.echo(json.dumps(config.to_public_dict(), indent=2, ensure_ascii=False))
