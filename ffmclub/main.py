import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .db import close_mongo_connection, connect_to_mongo, is_connected
from .errors import ServiceError
from .events import handle_realtime_event
from .integrations.cloudinary import get_status as cloudinary_status
from .redis_bus import start_consumer as redis_bus_start_consumer, stop as redis_bus_stop
from .routers import auth, conversations, interactions, profiles

LOGGER = logging.getLogger("uvicorn.error")

app = FastAPI(title="FFM Club API", default_response_class=ORJSONResponse)
settings = get_settings()

_allow_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
LOGGER.info("CORS allow_origins=%s", _allow_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)
app.add_middleware(GZipMiddleware, minimum_size=512)


@app.middleware("http")
async def log_slow_requests(request: Request, call_next):
    t0 = time.time()
    response = await call_next(request)
    dt = (time.time() - t0) * 1000
    if dt >= get_settings().slow_request_ms:
        LOGGER.warning(
            "slow request %s %s %dms status=%s",
            request.method,
            request.url.path,
            int(dt),
            response.status_code,
        )
    return response


def _failure(status_code: int, kind: str, message: str, **extra) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"kind": kind, "message": message, **extra}},
    )


@app.exception_handler(ServiceError)
async def service_error_handler(_request: Request, exc: ServiceError):
    payload = exc.to_dict()
    return _failure(exc.status_code, **payload)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "invalid request"))
    return _failure(422, "InvalidOperation", message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_request: Request, exc: StarletteHTTPException):
    kind = "NotFound" if exc.status_code == 404 else "InvalidOperation"
    return _failure(exc.status_code, kind, str(exc.detail))


@app.on_event("startup")
async def startup():
    await connect_to_mongo()
    if get_settings().redis_pubsub_enabled:
        await redis_bus_start_consumer(handle_realtime_event)
        LOGGER.info("Redis realtime listener started")
    else:
        LOGGER.info("Redis realtime fan-out disabled")
    status = cloudinary_status()
    LOGGER.info(
        "Cloudinary configured=%s cloud=%s",
        status.get("configured"),
        status.get("cloudName") or "unknown",
    )


@app.on_event("shutdown")
async def shutdown():
    await close_mongo_connection()
    await redis_bus_stop()


app.include_router(auth.router, prefix="/api")
app.include_router(profiles.router, prefix="/api")
app.include_router(interactions.router, prefix="/api")
app.include_router(conversations.router, prefix="/api")


@app.get("/")
async def root():
    return {"status": "ffmclub-api-ok"}


@app.get("/api/health/db")
async def db_health():
    return {
        "mongo": "connected" if is_connected() else "disconnected",
        "db": settings.mongo_db,
    }


def run() -> None:
    import uvicorn

    uvicorn.run("ffmclub.main:app", host="0.0.0.0", port=get_settings().port)


__all__ = ["app", "run"]
