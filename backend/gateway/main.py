import uuid
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from gateway.api.routes import accounts, creator_agent, creators, health, ops, reviews
from gateway.logging import configure_logging
from gateway.utils.errors import GatewayError

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """One pooled upstream client for the life of the process."""
    async with httpx.AsyncClient() as client:
        app.state.http_client = client
        yield


app = FastAPI(
    title="Creator Storefront Gateway",
    version="0.1.0",
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)


def _with_request_id(request: Request, response: JSONResponse) -> JSONResponse:
    response.headers["X-Request-ID"] = getattr(
        request.state, "request_id", request.headers.get("X-Request-ID", "")
    )
    return response


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Bind a request ID to the structlog context and echo it in X-Request-ID."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Malformed request bodies are a 400 with the usual {error, detail} shape."""
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    response = JSONResponse(
        status_code=400,
        content={"error": "invalid_request", "detail": "; ".join(messages)},
    )
    return _with_request_id(request, response)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    logger.warning(
        "gateway_error",
        path=request.url.path,
        error=exc.error,
        status=exc.status_code,
        detail=exc.message,
    )
    response = JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "detail": exc.message},
    )
    return _with_request_id(request, response)


@app.exception_handler(httpx.HTTPError)
async def upstream_transport_error_handler(request: Request, exc: httpx.HTTPError) -> JSONResponse:
    """Connection failures and timeouts talking to an upstream."""
    logger.error(
        "upstream_unreachable",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    response = JSONResponse(
        status_code=500,
        content={"error": "upstream_unreachable", "detail": str(exc) or type(exc).__name__},
    )
    return _with_request_id(request, response)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    response = JSONResponse(
        status_code=500,
        content={"error": "internal_error", "detail": "An unexpected error occurred"},
    )
    return _with_request_id(request, response)


app.include_router(health.router)
app.include_router(creator_agent.router)
app.include_router(creators.router)
app.include_router(ops.router)
app.include_router(accounts.router)
app.include_router(reviews.router)
