from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from valtracker import config
from valtracker.cache import TTLCache
from valtracker.errors import NotFound, RateLimited, UpstreamError
from valtracker.log import get_logger
from valtracker.routes.players import router as players_router
from valtracker.store import StatsStore, open_store

log = get_logger("main")


def _error(status: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
  return JSONResponse({"success": False, "error": message}, status_code=status, headers=headers)


def create_app(store: Optional[StatsStore] = None, cache: Optional[TTLCache] = None) -> FastAPI:
  @asynccontextmanager
  async def lifespan(app: FastAPI):
    app.state.cache = cache if cache is not None else TTLCache(config.CACHE_TTL, config.CACHE_MAX_ENTRIES)
    app.state.store = store if store is not None else open_store(config.DB_PATH)
    log.info("cache ttl=%ss, store=%s", app.state.cache.ttl, type(app.state.store).__name__)
    yield
    app.state.store.close()

  app = FastAPI(title="Valorant Stats Tracker", lifespan=lifespan)

  #health check
  @app.get("/api/health")
  async def health():
    return {"success": True, "message": "Valorant Tracker API is running"}

  @app.exception_handler(NotFound)
  async def not_found(request: Request, exc: NotFound):
    return _error(404, str(exc))

  @app.exception_handler(RateLimited)
  async def rate_limited(request: Request, exc: RateLimited):
    headers = {"Retry-After": str(int(exc.retry_after))} if exc.retry_after else None
    return _error(429, str(exc), headers)

  @app.exception_handler(UpstreamError)
  async def upstream_error(request: Request, exc: UpstreamError):
    return _error(502, str(exc))

  @app.exception_handler(ValueError)
  async def bad_request(request: Request, exc: ValueError):
    return _error(400, str(exc))

  #register API routes
  app.include_router(players_router)
  return app


app = create_app()
