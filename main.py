from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import logging
import time

from config import LendingConfig
from db import Base, engine
from errors import (
    DuplicateError,
    InvalidStateError,
    LendingError,
    NotFoundError,
    OutOfStockError,
    StorageError,
    ValidationError,
)
from routers import ALL_ROUTERS

import orm  # noqa: F401  registers tables on Base.metadata

ERROR_STATUS = {
    NotFoundError: 404,
    OutOfStockError: 409,
    DuplicateError: 409,
    InvalidStateError: 409,
    ValidationError: 422,
    StorageError: 503,
}

# -----------------------
# Logging
# -----------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("app")


def create_app(config: LendingConfig | None = None) -> FastAPI:
    app = FastAPI(title="Lending API")
    app.state.config = config or LendingConfig()

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        elapsed_ms = int((time.time() - start) * 1000)
        logger.info(
            "method=%s path=%s status=%s elapsed_ms=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    @app.exception_handler(LendingError)
    async def lending_error_handler(request: Request, exc: LendingError):
        status_code = ERROR_STATUS.get(type(exc), 400)
        if status_code >= 500:
            logger.error("path=%s code=%s detail=%s", request.url.path, exc.code, exc.detail)
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.detail, "code": exc.code},
        )

    @app.get("/")
    def root():
        return {"message": "Lending API", "docs": "/docs"}

    for router in ALL_ROUTERS:
        app.include_router(router)

    return app


Base.metadata.create_all(bind=engine)
app = create_app()

