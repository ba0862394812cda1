import os
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from config import settings
from database import check_connection, init_db
from errors import ServiceError
from logging_config import bind_request_id, clear_request_context, configure_logging, get_logger
from routers import orders_router, payments_router
from services import ChainClient, NotificationService, PaymentService, ReceiptService

configure_logging()
logger = get_logger(__name__)


def build_services(app: FastAPI) -> None:
    """Wire the service graph onto app.state; routes reach it through dependencies."""
    chain = settings.chain
    chain_client = None
    if chain.rpc_url:
        chain_client = ChainClient(rpc_url=chain.rpc_url, poll_interval=chain.poll_interval_ms / 1000)
    else:
        logger.warning("chain_client_disabled", reason="WEB3_RPC_URL not set")

    receipts = ReceiptService(settings)
    notifier = NotificationService(settings)
    app.state.settings = settings
    app.state.notification_service = notifier
    app.state.payment_service = PaymentService(
        settings,
        chain_client=chain_client,
        receipts=receipts,
        notifier=notifier,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.is_production:
        # Production schema is managed by Alembic
        init_db()
    logger.info(
        "startup",
        app_env=settings.app_env,
        database_ok=check_connection(),
        chain_id=settings.chain.chain_id,
        rpc_configured=bool(settings.chain.rpc_url),
    )
    yield
    logger.info("shutdown")


# App instance
app = FastAPI(title="AutoAssist Payments", lifespan=lifespan)
build_services(app)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    bind_request_id(request_id)
    started = time.perf_counter()
    logger.info("request_started", method=request.method, path=request.url.path)
    try:
        response = await call_next(request)
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
    except Exception:
        logger.error(
            "request_failed",
            method=request.method,
            path=request.url.path,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            exc_info=True,
        )
        raise
    finally:
        clear_request_context()
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    log = logger.warning if exc.status_code < 500 else logger.error
    log("service_error", path=request.url.path, code=exc.code.value, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.get("/healthz")
def healthz():
    return {"ok": True, "env": settings.app_env}


app.include_router(payments_router)
app.include_router(orders_router)

if __name__ == "__main__":
    port = int(os.getenv("PORT", 10000))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=not settings.is_production)
