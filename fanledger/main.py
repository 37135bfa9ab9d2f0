import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fanledger.api import fans, health, ppv, purchases, realtime
from fanledger.core.config import settings
from fanledger.core.errors import LedgerError
from fanledger.realtime.hub import EventHub
from fanledger.utils.redis_pool import close_redis

log = logging.getLogger("fanledger")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis()


def create_app(hub: EventHub | None = None) -> FastAPI:
    app = FastAPI(title="fanledger", lifespan=lifespan)
    app.state.event_hub = hub or EventHub()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(fans.router)
    app.include_router(ppv.router)
    app.include_router(purchases.router)
    app.include_router(realtime.router)
    app.include_router(health.router)

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        if exc.status_code >= 500:
            log.error("request.failed %s %s code=%s", request.method, request.url.path, exc.code)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_payload()))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "ok": False,
                "error": "VALIDATION_ERROR",
                "message": "Invalid request",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.exception("request.unhandled %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "INTERNAL_ERROR", "message": "Unexpected server error"},
        )

    return app


app = create_app()
