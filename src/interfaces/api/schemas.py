"""
FastAPI 用の Pydantic スキーマ定義。
"""

from __future__ import annotations

from pydantic import BaseModel


class TraceConfigRequestSchema(BaseModel):
    filter: str
