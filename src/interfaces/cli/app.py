"""
Typer ベースの CLI。
"""

from __future__ import annotations

import typer

from .commands import service


def create_cli() -> typer.Typer:
    app = typer.Typer(help="hello-world service CLI")
    app.command("serve")(service.serve)
    app.command("show-config")(service.show_config)
    return app


def main() -> None:
    create_cli()()
