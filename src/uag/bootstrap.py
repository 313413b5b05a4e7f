from __future__ import annotations

from typing import Mapping
from uuid import uuid4

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from atr.contracts import AnalysisProvider
from atr.errors import AnalysisUnavailableError
from csm.errors import CsmValidationError
from mdc.api_client import TransportFn, urllib_transport
from pld.errors import PldValidationError
from sst.errors import TokenNotFoundError

from .models import (
    AnalysePairRequest,
    AnalyseTokensRequest,
    PurchaseCreateRequest,
    SettingsSaveRequest,
    TokenCreateRequest,
    build_error_envelope,
    build_success_envelope,
)
from .service import DEFAULT_USER_ID, UagService, map_csm_error


def _request_id(request: Request, header_value: str | None) -> str:
    if header_value:
        request.state.request_id = header_value
        return header_value
    prior = getattr(request.state, "request_id", None)
    if prior:
        return prior
    request.state.request_id = request.headers.get("X-Request-Id") or f"req-{uuid4().hex[:12]}"
    return request.state.request_id


def create_app(
    *,
    settings_path: str = "runtime/config/settings.local.json",
    credentials_path: str = "runtime/config/credentials.local.json",
    db_path: str | None = None,
    transport: TransportFn = urllib_transport,
    analysis_provider: AnalysisProvider | None = None,
    environ: Mapping[str, str] | None = None,
    start_workers: bool = True,
) -> FastAPI:
    app = FastAPI(title="DexIQ", version="0.1.0")
    service = UagService(
        settings_path=settings_path,
        credentials_path=credentials_path,
        db_path=db_path,
        transport=transport,
        analysis_provider=analysis_provider,
        environ=environ,
    )
    app.state.service = service
    if start_workers:
        service.start_workers()

    @app.exception_handler(CsmValidationError)
    async def _handle_csm_validation(request: Request, exc: CsmValidationError) -> JSONResponse:
        status_code, message = map_csm_error(exc)
        payload = build_error_envelope(
            request_id=_request_id(request, None),
            code=exc.code,
            message=message,
            details=[{"field": exc.field, "reason": str(exc.value)}],
            source="CSM",
        )
        return JSONResponse(status_code=status_code, content=payload)

    @app.exception_handler(PldValidationError)
    async def _handle_pld_validation(request: Request, exc: PldValidationError) -> JSONResponse:
        payload = build_error_envelope(
            request_id=_request_id(request, None),
            code=exc.code,
            message="Transaction validation failed.",
            details=[{"field": exc.field, "reason": str(exc.value)}],
            source="PLD",
        )
        return JSONResponse(status_code=400, content=payload)

    @app.exception_handler(TokenNotFoundError)
    async def _handle_token_not_found(request: Request, exc: TokenNotFoundError) -> JSONResponse:
        payload = build_error_envelope(
            request_id=_request_id(request, None),
            code=exc.code,
            message=f"Token {exc.token_id} not found.",
            source="SST",
        )
        return JSONResponse(status_code=404, content=payload)

    @app.exception_handler(AnalysisUnavailableError)
    async def _handle_analysis_unavailable(request: Request, exc: AnalysisUnavailableError) -> JSONResponse:
        payload = build_error_envelope(
            request_id=_request_id(request, None),
            code=exc.code,
            message=exc.message,
            details=[{"field": "analysis", "reason": exc.reason}],
            retryable=exc.reason != "not_configured",
            source="ATR",
        )
        return JSONResponse(status_code=503, content=payload)

    @app.exception_handler(HTTPException)
    async def _handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        message = str(exc.detail) if exc.detail else "Request could not be processed."
        payload = build_error_envelope(request_id=_request_id(request, None), code="UAG_HTTP_ERROR", message=message)
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        service.shutdown()

    @app.post("/api/v1/tokens", status_code=202)
    def create_token(
        body: TokenCreateRequest,
        request: Request,
        x_request_id: str | None = Header(default=None, alias="X-Request-Id"),
        x_user_id: str = Header(default=DEFAULT_USER_ID, alias="X-User-Id"),
    ) -> dict:
        request_id = _request_id(request, x_request_id)
        data = service.register_token(user_id=x_user_id, payload=body.model_dump())
        return build_success_envelope(request_id=request_id, data=data)

    @app.get("/api/v1/tokens/{token_id}")
    def show_token(
        token_id: int,
        request: Request,
        x_request_id: str | None = Header(default=None, alias="X-Request-Id"),
    ) -> dict:
        request_id = _request_id(request, x_request_id)
        return build_success_envelope(request_id=request_id, data=service.token_detail(token_id))

    @app.get("/api/v1/tokens/{token_id}/status")
    def token_status(
        token_id: int,
        request: Request,
        x_request_id: str | None = Header(default=None, alias="X-Request-Id"),
    ) -> dict:
        request_id = _request_id(request, x_request_id)
        return build_success_envelope(request_id=request_id, data=service.token_status(token_id))

    @app.post("/api/v1/tokens/{token_id}/refresh", status_code=202)
    def refresh_token(
        token_id: int,
        request: Request,
        x_request_id: str | None = Header(default=None, alias="X-Request-Id"),
    ) -> dict:
        request_id = _request_id(request, x_request_id)
        return build_success_envelope(request_id=request_id, data=service.refresh_token(token_id))

    @app.get("/api/v1/tokens/{token_id}/events")
    def token_events(
        token_id: int,
        request: Request,
        limit: int = Query(default=20, ge=1, le=200),
        x_request_id: str | None = Header(default=None, alias="X-Request-Id"),
    ) -> dict:
        request_id = _request_id(request, x_request_id)
        return build_success_envelope(request_id=request_id, data=service.token_events(token_id, limit))

    @app.post("/api/v1/tokens/{token_id}/analyse_pair")
    def analyse_pair(
        token_id: int,
        request: Request,
        body: AnalysePairRequest | None = None,
        x_request_id: str | None = Header(default=None, alias="X-Request-Id"),
    ) -> dict:
        request_id = _request_id(request, x_request_id)
        payload = body.model_dump() if body is not None else {}
        return build_success_envelope(request_id=request_id, data=service.analyse_pair(token_id, payload))

    @app.get("/api/v1/tokens/{token_id}/purchases")
    def list_purchases(
        token_id: int,
        request: Request,
        current_price: str | None = Query(default=None),
        x_request_id: str | None = Header(default=None, alias="X-Request-Id"),
        x_user_id: str = Header(default=DEFAULT_USER_ID, alias="X-User-Id"),
    ) -> dict:
        request_id = _request_id(request, x_request_id)
        data = service.list_purchases(token_id, x_user_id, current_price)
        return build_success_envelope(request_id=request_id, data=data)

    @app.post("/api/v1/tokens/{token_id}/purchases", status_code=201)
    def create_purchase(
        token_id: int,
        body: PurchaseCreateRequest,
        request: Request,
        x_request_id: str | None = Header(default=None, alias="X-Request-Id"),
        x_user_id: str = Header(default=DEFAULT_USER_ID, alias="X-User-Id"),
    ) -> dict:
        request_id = _request_id(request, x_request_id)
        data = service.create_purchase(token_id, x_user_id, body.model_dump())
        return build_success_envelope(request_id=request_id, data=data)

    @app.post("/api/v1/analyse_tokens")
    def analyse_tokens(
        body: AnalyseTokensRequest,
        request: Request,
        x_request_id: str | None = Header(default=None, alias="X-Request-Id"),
    ) -> dict:
        request_id = _request_id(request, x_request_id)
        rows = [row.model_dump() for row in body.tokens]
        return build_success_envelope(request_id=request_id, data=service.analyse_tokens(rows))

    @app.get("/api/settings")
    def get_settings(
        request: Request,
        x_request_id: str | None = Header(default=None, alias="X-Request-Id"),
    ) -> dict:
        request_id = _request_id(request, x_request_id)
        return build_success_envelope(request_id=request_id, data=service.get_settings())

    @app.post("/api/settings")
    def save_settings(
        body: SettingsSaveRequest,
        request: Request,
        x_request_id: str | None = Header(default=None, alias="X-Request-Id"),
    ) -> dict:
        request_id = _request_id(request, x_request_id)
        data = service.save_settings(body.model_dump(exclude_unset=True))
        return build_success_envelope(request_id=request_id, data=data)

    return app
