"""
FastAPI アプリケーションのルート設定。
"""

from __future__ import annotations

from fastapi import APIRouter, FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from opentelemetry.sdk.trace import TracerProvider

from application import ReconfigureDisabledError
from bootstrap import SERVICE_NAME
from infrastructure.telemetry import FilterParseError
from interfaces.api.deps import APIContainer
from interfaces.api.schemas import TraceConfigRequestSchema


def create_api_app(*, tracer_provider: TracerProvider | None = None) -> FastAPI:
    app = FastAPI(title=SERVICE_NAME)
    app.include_router(_create_hello_router(), prefix="/hello")
    app.include_router(_create_tracing_router(), prefix="/tracing")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if tracer_provider is not None:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

        FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider)
    return app


def _create_hello_router() -> APIRouter:
    router = APIRouter()

    @router.get("/config")
    def get_configuration():
        deps = APIContainer.resolve()
        return deps.config.to_public_dict()

    return router


def _create_tracing_router() -> APIRouter:
    router = APIRouter()

    @router.put("/config")
    def reconfigure(payload: TraceConfigRequestSchema):
        deps = APIContainer.resolve()
        try:
            deps.reconfiguration.reconfigure(payload.filter)
        except ReconfigureDisabledError as exc:
            return PlainTextResponse(str(exc), status_code=409)
        except FilterParseError as exc:
            return PlainTextResponse(str(exc), status_code=400)
        return Response(status_code=200)

    return router
