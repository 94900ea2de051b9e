# posagent/main.py

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from posagent.api.endpoints import status
from posagent.api.v1 import api_router
from posagent.core.config import Settings, get_settings
from posagent.core.logging_config import add_trace_id_middleware, setup_logging
from posagent.models.api import ErrorDetail
from posagent.services.llm_client import BaseLLMClient, get_llm_client_instance
from posagent.services.sunmi.client import SunmiClient


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    log = logger.bind(trace_id=getattr(request.state, "trace_id", "N/A"))
    log.warning(f"HTTP Exception Caught: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=ErrorDetail(msg=str(exc.detail), type="http_exception").model_dump())


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    log = logger.bind(trace_id=getattr(request.state, "trace_id", "N/A"))
    log.warning(f"Validation Error: {exc.errors()}")
    first = exc.errors()[0] if exc.errors() else {}
    return JSONResponse(
        status_code=422,
        content=ErrorDetail(msg=first.get("msg", "Validation Error"), type="validation_error", loc=list(first.get("loc", [])) or None).model_dump(),
    )


async def generic_exception_handler(request: Request, exc: Exception):
    log = logger.bind(trace_id=getattr(request.state, "trace_id", "N/A"))
    log.exception(f"Unhandled Exception: {exc}")
    return JSONResponse(status_code=500, content=ErrorDetail(msg="Internal server error", type="unhandled_exception").model_dump())


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.PROJECT_NAME}...")
    owned = []
    if getattr(app.state, "sunmi_client", None) is None:
        app.state.sunmi_client = SunmiClient.from_settings(settings)
        owned.append(app.state.sunmi_client)
    if getattr(app.state, "llm_client", None) is None:
        app.state.llm_client = get_llm_client_instance(settings)
        owned.append(app.state.llm_client)
    yield
    logger.info("Shutting down...")
    for client in owned:
        await client.aclose()


def create_app(
    settings: Optional[Settings] = None,
    sunmi_client: Optional[SunmiClient] = None,
    llm_client: Optional[BaseLLMClient] = None,
) -> FastAPI:
    """Builds the application; clients not passed in are created (and closed) by the lifespan."""
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        lifespan=lifespan,
        exception_handlers={
            StarletteHTTPException: http_exception_handler,
            RequestValidationError: validation_exception_handler,
            Exception: generic_exception_handler,
        },
    )
    app.state.settings = settings
    app.state.sunmi_client = sunmi_client
    app.state.llm_client = llm_client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(add_trace_id_middleware)

    app.include_router(status.router)
    app.include_router(api_router, prefix=settings.API_PREFIX)
    return app


app = create_app()
