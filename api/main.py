from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from mangum import Mangum
from pydantic import BaseModel, Field

from tokenscope.config import Settings, load_ssm_parameters, validate_settings
from tokenscope.service import TokenDataService

_LOGGER = logging.getLogger("tokenscope.api")
logging.getLogger("tokenscope").setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

_SETTINGS: Optional[Settings] = None
_SERVICE: Optional[TokenDataService] = None
_SSM_LOADED = False


class TokenDataQuery(BaseModel):
    analyze: bool = Field(False, description="Append an AI narrative to the bundle")
    lang: str = Field("en", description="Narrative language: en or zh")


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS


def get_service() -> TokenDataService:
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = TokenDataService.from_settings(get_settings())
    return _SERVICE


app = FastAPI(
    title="Tokenscope API",
    version="0.1",
    root_path=os.getenv("TOKENSCOPE_ROOT_PATH", ""),
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_http_request(request, call_next):
    _LOGGER.info(
        "http request method=%s path=%s client=%s",
        request.method,
        request.url.path,
        request.client.host if request.client else "unknown",
    )
    response = await call_next(request)
    _LOGGER.info("http response status=%s path=%s", response.status_code, request.url.path)
    return response


@app.on_event("startup")
def _log_startup() -> None:
    settings = get_settings()
    validate_settings(settings)
    _LOGGER.info(
        "startup cache_enabled=%s cache_ttl=%s analytics_ttl=%s holder_stats_mode=%s strict_chain=%s models=%s",
        settings.cache_enabled,
        settings.cache_ttl_seconds,
        settings.analytics_cache_ttl_seconds,
        settings.holder_stats_mode,
        settings.strict_chain_detection,
        ",".join(settings.xai_models),
    )


@app.get("/", response_class=PlainTextResponse)
def root() -> str:
    return "Backend OK"


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/api/token-data/{chain}/{address}")
async def token_data(
    chain: str,
    address: str,
    query: TokenDataQuery = Depends(),
    service: TokenDataService = Depends(get_service),
) -> JSONResponse:
    status, body = await service.handle(chain, address, analyze=query.analyze, lang=query.lang)
    return JSONResponse(status_code=status, content=body)


@app.get("/api/token-analytics/{chain}/{address}")
async def token_analytics(
    chain: str,
    address: str,
    service: TokenDataService = Depends(get_service),
) -> JSONResponse:
    status, body = await service.token_analytics(chain, address)
    return JSONResponse(status_code=status, content=body)


@app.get("/api/test-birdeye")
async def test_birdeye(service: TokenDataService = Depends(get_service)) -> JSONResponse:
    _LOGGER.info("test-birdeye start")
    status, body = await service.test_birdeye()
    return JSONResponse(status_code=status, content=body)


def _load_lambda_secrets() -> None:
    global _SSM_LOADED
    if _SSM_LOADED or not os.getenv("AWS_LAMBDA_FUNCTION_NAME"):
        return
    _SSM_LOADED = True
    prefix = os.getenv("SSM_PARAMETER_PREFIX")
    if not prefix:
        _LOGGER.info("ssm skipped: SSM_PARAMETER_PREFIX not set")
        return
    try:
        load_ssm_parameters(prefix)
    except Exception:
        _LOGGER.exception("Failed to load API keys from SSM prefix=%s", prefix)


_MANGUM_HANDLER = Mangum(app)


def handler(event, context):
    _load_lambda_secrets()
    request_context = event.get("requestContext", {}) if isinstance(event, dict) else {}
    http_ctx = request_context.get("http", {}) if isinstance(request_context, dict) else {}
    _LOGGER.info(
        "lambda event method=%s path=%s stage=%s source=%s",
        http_ctx.get("method"),
        event.get("rawPath") if isinstance(event, dict) else None,
        request_context.get("stage"),
        http_ctx.get("sourceIp"),
    )
    return _MANGUM_HANDLER(event, context)
