import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from tokenprices.api.backfill import router as backfill_router
from tokenprices.api.prices import router as prices_router
from tokenprices.container import Container
from tokenprices.exceptions import (
    BackfillConflict,
    InvalidBracket,
    JobNotFound,
    UpstreamUnavailable,
    ValidationError,
)

logger = logging.getLogger("tokenprices.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = Container()
    app.state.container = container
    yield
    await container.backfill_runner().shutdown()
    await container.http_client().close()
    engine = container.engine()
    await engine.dispose()


app = FastAPI(title="Token Prices", version="0.1.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    missing = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("type") == "missing"})
    detail = f"Missing required fields: {', '.join(missing)}" if missing else "Invalid request"
    return JSONResponse(status_code=400, content={"detail": detail, "errors": jsonable_errors(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(UpstreamUnavailable)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailable):
    logger.warning("Upstream unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Price source unavailable", "reason": str(exc)})


@app.exception_handler(InvalidBracket)
async def invalid_bracket_handler(request: Request, exc: InvalidBracket):
    logger.error("Interpolation failed on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(BackfillConflict)
async def backfill_conflict_handler(request: Request, exc: BackfillConflict):
    return JSONResponse(status_code=409, content={"detail": str(exc), "job_id": exc.job_id})


@app.exception_handler(JobNotFound)
async def job_not_found_handler(request: Request, exc: JobNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled error on %s %s:\n%s", request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]} for err in exc.errors()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(prices_router)
app.include_router(backfill_router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}
