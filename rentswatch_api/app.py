"""
app.py – FastAPI application for the RentsWatch statistics API

Production-ready features:
- Structured JSON logging
- Config via environment variables (pydantic-settings)
- Lifespan-managed listing store loading (no heavy work at import time)
- Periodic store refresh with atomic snapshot swap
- Dependency injection for the store holder, city registry and geocoder
- Centralized exception handling with JSON errors
- Health, live, and ready probes
- CORS, GZip, Trusted Hosts
- Request ID & timing middleware with templated-path logging
- Async-friendly endpoints (run heavy work in a threadpool)

Notes:
- Listings come from LISTINGS_CSV when set, otherwise from the `listings` table.
- For production, run with gunicorn + uvicorn workers:
  gunicorn -k uvicorn.workers.UvicornWorker rentswatch_api.app:app --bind 0.0.0.0:8000 --workers 4
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from typing import Callable, List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict
from starlette.concurrency import run_in_threadpool

# === Domain imports ===
from rentswatch_api.schemas.output_data_schemas import (
    CityResponse,
    CitySummaryResponse,
    GeocodeStatsResponse,
    PlaceResponse,
    StatsResponse,
)
from rentswatch_api.schemas.request_data_schemas import CenterParams, FilterParams
from rentswatch_api.services.aggregation import stats_for_region
from rentswatch_api.services.cities import CityRegistry, cities_from_frame
from rentswatch_api.services.geocoder import Geocoder
from rentswatch_api.services.ingestion import load_cities, load_listings
from rentswatch_api.services.ranking import Indicator
from rentswatch_api.services.store import StoreHolder
from rentswatch_api.utils.errors import InvalidQueryError, UpstreamUnavailableError

load_dotenv()


# =============================
# Config (env-driven, typed)
# =============================
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "RentsWatch API"
    env: str = "production"
    allowed_hosts: str = "*"
    cors_origins: str = "*"
    request_body_limit_mb: int = 1
    gzip_min_size: int = 500
    log_level: str = "INFO"

    listings_csv: str = ""
    cities_csv: str = ""
    store_refresh_sec: int = 3600

    geocoder_url: str = "https://nominatim.openstreetmap.org/search"
    geocoder_user_agent: str = "rentswatch-api/1.0"
    geocoder_timeout_sec: float = 5.0
    geocode_cache_ttl_sec: int = 3600


settings = Settings()


# =============================
# Structured logging
# =============================
class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": int(time.time() * 1000),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "request_id"):
            payload["request_id"] = getattr(record, "request_id")
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(level: str = settings.log_level) -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    for h in list(root.handlers):
        root.removeHandler(h)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    root.addHandler(handler)


configure_logging()
logger = logging.getLogger(__name__)


# =============================
# Resources & refresh
# =============================
@dataclass
class AppResources:
    store: StoreHolder
    cities: CityRegistry
    geocoder: Geocoder


def build_resources() -> AppResources:
    return AppResources(
        store=StoreHolder(),
        cities=CityRegistry(),
        geocoder=Geocoder(
            url=settings.geocoder_url,
            user_agent=settings.geocoder_user_agent,
            timeout=settings.geocoder_timeout_sec,
            cache_ttl_sec=settings.geocode_cache_ttl_sec,
        ),
    )


def refresh_resources(res: AppResources) -> None:
    """Reload listings, then recompute city stats on the new snapshot."""
    store = res.store.refresh(lambda: load_listings(settings.listings_csv))
    try:
        cities = cities_from_frame(load_cities(settings.cities_csv))
    except Exception:
        logger.exception("City list could not be loaded; keeping previous city stats")
        return
    res.cities.rebuild(store, cities)


async def refresh_periodically(res: AppResources, interval_sec: int) -> None:
    while True:
        await asyncio.sleep(interval_sec)
        try:
            await run_in_threadpool(refresh_resources, res)
        except Exception:
            logger.exception("Scheduled refresh failed; previous snapshot stays published")


# =============================
# App lifespan: load listings once
# =============================
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up, loading listings...")
    res = build_resources()
    app.state.resources = res
    try:
        await run_in_threadpool(refresh_resources, res)
        logger.info("Listings loaded.")
    except UpstreamUnavailableError:
        logger.exception("Initial listing load failed; service stays not-ready until a refresh succeeds.")

    task: Optional[asyncio.Task] = None
    if settings.store_refresh_sec > 0:
        task = asyncio.create_task(refresh_periodically(res, settings.store_refresh_sec))

    yield

    logger.info("Shutting down application...")
    if task is not None:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    lifespan=lifespan,
    default_response_class=JSONResponse,
)


# =============================
# Middleware
# =============================
@app.middleware("http")
async def add_request_id_and_timing(request: Request, call_next: Callable) -> Response:
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    start = time.time()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Unhandled error", extra={"request_id": request_id})
        raise
    duration_ms = int((time.time() - start) * 1000)
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Response-Time-ms"] = str(duration_ms)
    route = getattr(request.scope.get("route"), "path", request.url.path)
    logger.info(
        f"{request.method} {route} -> {response.status_code} in {duration_ms}ms",
        extra={"request_id": request_id},
    )
    return response


@app.middleware("http")
async def limit_body_size(request: Request, call_next: Callable) -> Response:
    max_bytes = settings.request_body_limit_mb * 1024 * 1024
    try:
        cl = int(request.headers.get("content-length", "0") or 0)
    except ValueError:
        cl = 0
    if cl > max_bytes:
        return JSONResponse(status_code=413, content={"detail": "Request body too large"})
    return await call_next(request)


origins = ["*"] if settings.cors_origins == "*" else [o.strip() for o in settings.cors_origins.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=settings.gzip_min_size)

hosts = ["*"] if settings.allowed_hosts == "*" else [h.strip() for h in settings.allowed_hosts.split(",")]
app.add_middleware(TrustedHostMiddleware, allowed_hosts=hosts)


# =============================
# Error handlers
# =============================
class ErrorResponse(BaseModel):
    detail: str
    request_id: Optional[str] = None


def _error(request: Request, status_code: int, detail: str) -> JSONResponse:
    rid = request.headers.get("X-Request-ID")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(detail=detail, request_id=rid).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error(request, exc.status_code, str(exc.detail))


@app.exception_handler(InvalidQueryError)
async def invalid_query_handler(request: Request, exc: InvalidQueryError):
    return _error(request, 400, str(exc))


@app.exception_handler(UpstreamUnavailableError)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailableError):
    logger.warning("Upstream unavailable: %s", exc, extra={"request_id": request.headers.get("X-Request-ID")})
    return _error(request, 502, str(exc))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = request.headers.get("X-Request-ID")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors()), "request_id": rid})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = request.headers.get("X-Request-ID")
    logger.exception("Unhandled server error", extra={"request_id": rid})
    return _error(request, 500, "Internal server error")


# =============================
# Dependencies
# =============================
def get_resources(request: Request) -> AppResources:
    res: Optional[AppResources] = getattr(request.app.state, "resources", None)
    if res is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return res


# =============================
# Health endpoints
# =============================
@app.get("/ping", tags=["health"])
async def ping() -> PlainTextResponse:
    return PlainTextResponse(content="pong", status_code=200)


@app.get("/live", tags=["health"])
async def live() -> PlainTextResponse:
    return PlainTextResponse(content="live", status_code=200)


@app.get("/ready", tags=["health"])
async def ready(request: Request) -> PlainTextResponse:
    res: Optional[AppResources] = getattr(request.app.state, "resources", None)
    ok = res is not None and res.store.ready
    return PlainTextResponse(content="ready" if ok else "not-ready", status_code=200 if ok else 503)


# =============================
# API endpoints
# =============================
@app.get("/api/docs/center", response_model=StatsResponse, tags=["stats"])
async def stats_around_center(
    params: CenterParams = Depends(),
    res: AppResources = Depends(get_resources),
) -> StatsResponse:
    query = params.to_region_query()
    store = res.store.current()
    result = await run_in_threadpool(stats_for_region, store, query)
    return StatsResponse.from_result(result)


@app.get("/api/cities/geocode", response_model=GeocodeStatsResponse, tags=["stats"])
async def stats_around_place(
    q: str = Query(..., min_length=1),
    params: FilterParams = Depends(),
    res: AppResources = Depends(get_resources),
) -> GeocodeStatsResponse:
    place = await run_in_threadpool(res.geocoder.geocode, q)
    if place is None:
        raise HTTPException(status_code=404, detail="Not found")

    query = params.to_query(place.latitude, place.longitude)
    store = res.store.current()
    result = await run_in_threadpool(stats_for_region, store, query)
    return GeocodeStatsResponse(
        **StatsResponse.from_result(result).model_dump(),
        place=PlaceResponse.from_result(place),
        radius=query.radius_km,
    )


@app.get("/api/cities", response_model=List[CitySummaryResponse], tags=["cities"])
async def list_cities(
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    res: AppResources = Depends(get_resources),
) -> List[CitySummaryResponse]:
    return [CitySummaryResponse.from_snapshot(s) for s in res.cities.index(offset, limit)]


@app.get("/api/cities/ranking", response_model=List[CitySummaryResponse], tags=["cities"])
async def rank_cities(
    indicator: str = Query(Indicator.AVG_PRICE_PER_SQM.value),
    res: AppResources = Depends(get_resources),
) -> List[CitySummaryResponse]:
    return [CitySummaryResponse.from_snapshot(s) for s in res.cities.ranking(indicator)]


@app.get("/api/cities/{name}", response_model=CityResponse, tags=["cities"])
async def show_city(
    name: str,
    res: AppResources = Depends(get_resources),
) -> CityResponse:
    snap = res.cities.get(name)
    if snap is None:
        raise HTTPException(status_code=404, detail="Not found")
    return CityResponse.from_snapshot(snap)
