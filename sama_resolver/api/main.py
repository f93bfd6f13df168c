import logging
import threading
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sama_resolver.config import load_settings
from sama_resolver.providers.base import ContentIdentifier, Language
from sama_resolver.providers.cache import TTLCache
from sama_resolver.providers.errors import NotFound, ResolverError, UpstreamUnavailable
from sama_resolver.providers.runner import ResolutionEngine

settings = load_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("sama_resolver.api")

cache = TTLCache(settings.cache_ttl, enabled=settings.cache_enabled)
_engine: Optional[ResolutionEngine] = None


def get_engine() -> ResolutionEngine:
    global _engine
    if _engine is None:
        _engine = ResolutionEngine(settings=settings, cache=cache)
    return _engine


def get_cache() -> TTLCache:
    return cache


# --- RATE LIMIT (fixed window, per client) ---
class RateLimiter:
    def __init__(self, max_requests: int, window: float, clock=time.monotonic):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def allow(self, client: str) -> bool:
        now = self._clock()
        with self._lock:
            reset_at, count = self._windows.get(client, (0.0, 0))
            if now >= reset_at:
                self._windows[client] = (now + self.window, 1)
                return True
            if count >= self.max_requests:
                return False
            self._windows[client] = (reset_at, count + 1)
            return True


rate_limiter = RateLimiter(settings.rate_limit_max, settings.rate_limit_window)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client.host if request.client else "unknown")


def enforce_rate_limit(request: Request):
    if not rate_limiter.allow(client_ip(request)):
        raise HTTPException(status_code=429, detail="Too many requests")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _engine is not None:
        await _engine.close()


app = FastAPI(title="sama-resolver", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)


# --- RESPONSE ENVELOPE ---
def success(data, meta: Optional[dict] = None):
    body = {"success": True, "data": data, "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())}
    if meta:
        body["meta"] = meta
    return jsonable_encoder(body)


def error_response(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={
        "error": True,
        "message": message,
        "status": status,
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
    })


@app.exception_handler(ResolverError)
async def resolver_error_handler(request: Request, exc: ResolverError):
    if isinstance(exc, NotFound):
        return error_response(404, str(exc) or "Content not found")
    if isinstance(exc, UpstreamUnavailable):
        return error_response(502, str(exc) or "Origin site unavailable")
    log.error(f"Unhandled resolver error on {request.url.path}: {exc}")
    return error_response(500, str(exc))


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return error_response(400, str(exc))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
    return error_response(400, f"Invalid parameter(s): {', '.join(fields)}")


# --- ROUTES ---
@app.get("/")
async def root():
    return {
        "name": "sama-resolver",
        "documentation": "/docs",
        "endpoints": ["/health", "/api/strategies", "/api/seasons/{anime_id}",
                      "/api/anime/{anime_id}/sources", "/api/episode/{episode_id}"],
    }


@app.get("/health")
async def health(store: TTLCache = Depends(get_cache)):
    return {"status": "ok", "cache": store.stats()["size"]}


@app.get("/api/strategies")
async def strategies(engine: ResolutionEngine = Depends(get_engine)):
    return success(engine.list_strategies())


@app.get("/api/seasons/{anime_id}", dependencies=[Depends(enforce_rate_limit)])
async def seasons(
    anime_id: str,
    engine: ResolutionEngine = Depends(get_engine),
    store: TTLCache = Depends(get_cache),
):
    key = f"structure:{anime_id}"
    sections = store.get(key)
    cached = sections is not None
    if not cached:
        sections = await engine.resolve_structure(anime_id)
        if sections:
            store.set(key, sections)
    if not sections:
        raise NotFound(f"No sections found for {anime_id}")
    return success(
        {
            "animeId": anime_id,
            "seasons": [s.to_dict() for s in sections],
            "totalEpisodes": sum(s.episode_count for s in sections),
        },
        meta={"cached": cached},
    )


async def _sources_response(identifier: ContentIdentifier, engine: ResolutionEngine, store: TTLCache):
    key = f"sources:{identifier.cache_key}"
    result = store.get(key)
    cached = result is not None
    if not cached:
        result = await engine.resolve(identifier)
        # Synthetic results are never cached so a later request can find real ones
        if not result.is_synthetic:
            store.set(key, result)
    data = result.to_dict()
    data.update({
        "animeId": identifier.anime_id,
        "section": identifier.section_path,
        "episodeNumber": identifier.episode_number,
        "language": identifier.language.value,
    })
    return success(data, meta={"cached": cached, "synthetic": result.is_synthetic})


@app.get("/api/anime/{anime_id}/sources", dependencies=[Depends(enforce_rate_limit)])
async def anime_sources(
    anime_id: str,
    section: Optional[str] = Query(None, description="Section path, e.g. saison2 or film"),
    episode: Optional[int] = Query(None, ge=1),
    lang: str = Query("VOSTFR", description="VF or VOSTFR"),
    engine: ResolutionEngine = Depends(get_engine),
    store: TTLCache = Depends(get_cache),
):
    identifier = ContentIdentifier(
        anime_id=anime_id, section_path=section, episode_number=episode,
        language=Language.parse(lang),
    )
    return await _sources_response(identifier, engine, store)


@app.get("/api/episode/{episode_id}", dependencies=[Depends(enforce_rate_limit)])
async def episode_sources(
    episode_id: str,
    engine: ResolutionEngine = Depends(get_engine),
    store: TTLCache = Depends(get_cache),
):
    return await _sources_response(ContentIdentifier.from_episode_id(episode_id), engine, store)
