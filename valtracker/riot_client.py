# valtracker/riot_client.py
import asyncio
import httpx
import time
from urllib.parse import quote
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from valtracker import config
from valtracker.cache import TTLCache, cache_key
from valtracker.errors import NotFound, PartialData, RateLimited, UpstreamError
from valtracker.log import get_logger
from valtracker.models import Identity

log = get_logger("riot_client")

MAX_RETRY_AFTER = 10.0

# ----------------------------
# Async token bucket, one per client
# ----------------------------
class _AsyncTokenBucket:
  def __init__(self, rate_per_sec: float, capacity: int):
    self.rate = rate_per_sec
    self.capacity = capacity
    self.tokens = capacity
    self.updated = time.monotonic()
    self.lock = asyncio.Lock()

  async def acquire(self):
    while True:
      async with self.lock:
        now = time.monotonic()
        elapsed = now - self.updated
        self.updated = now
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        if self.tokens >= 1.0:
          self.tokens -= 1.0
          return
      # sleep outside lock to let others progress
      await asyncio.sleep(0.2)


def norm_region(region: str) -> str:
  r = (region or "").lower()
  if r not in config.REGIONAL:
    raise ValueError(f"region must be one of: {', '.join(config.REGIONAL)}")
  return r

def norm_platform(platform: str) -> str:
  p = (platform or "").strip().lower()
  p = config.PLATFORM_ALIASES.get(p, p)
  if p not in config.PLATFORM:
    raise ValueError(f"platformRegion must be one of: {', '.join(config.PLATFORM)}")
  return p


class ValorantClient:
  """
  Cache-fronted reader for the match-data provider.

  The cache is passed in so several clients (one per request) share it;
  without one the client owns a private cache.
  """

  def __init__(
      self,
      cache: Optional[TTLCache] = None,
      *,
      api_key: Optional[str] = None,
      transport: Optional[httpx.AsyncBaseTransport] = None,
      max_retries: int = config.MAX_RETRIES,
      concurrency: int = config.DETAIL_CONCURRENCY,
      fetch_timeout: float = config.FETCH_TIMEOUT,
      rate_per_sec: Optional[float] = config.RATE_PER_SEC,
      burst: int = config.RATE_BURST,
      sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
  ):
    self.cache = cache if cache is not None else TTLCache()
    self.api_key = config.RIOT_API_KEY if api_key is None else api_key
    self.max_retries = max_retries
    self.concurrency = max(1, concurrency)
    self.fetch_timeout = fetch_timeout
    self._transport = transport
    self._bucket = _AsyncTokenBucket(rate_per_sec, burst) if rate_per_sec else None
    self._sleep = sleep
    self._inflight: Dict[str, asyncio.Future] = {}
    self._client: Optional[httpx.AsyncClient] = None

  async def __aenter__(self):
    limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
    # Small connect timeout; generous read timeout because match bodies are a bit larger
    self._client = httpx.AsyncClient(
        timeout=httpx.Timeout(config.HTTP_TIMEOUT, connect=5.0),
        limits=limits,
        transport=self._transport,
    )
    return self

  async def __aexit__(self, *exc):
    if self._client:
      await self._client.aclose()
      self._client = None

  # ----------------------------
  # Cache access; failures here only cost a network call
  # ----------------------------
  def _cache_get(self, key: str) -> Any:
    try:
      return self.cache.get(key)
    except Exception as e:
      log.warning("cache read failed for %s: %s", key, e)
      return None

  def _cache_set(self, key: str, value: Any) -> None:
    try:
      self.cache.set(key, value)
    except Exception as e:
      log.warning("cache write failed for %s: %s", key, e)

  async def _get(self, url: str, *, params: dict | None = None, key: str | None = None) -> Any:
    """
    GET with:
      - token bucket pacing,
      - bounded backoff for 429/5xx/transport errors,
      - TTL caching,
      - in-flight coalescing.
    """
    if not self.api_key:
      raise UpstreamError("missing RIOT_API_KEY")
    if self._client is None:
      raise RuntimeError("ValorantClient must be used as an async context manager")

    if key:
      hit = self._cache_get(key)
      if hit is not None:
        return hit
      inflight = self._inflight.get(key)
      if inflight:
        return await asyncio.shield(inflight)  # share the same request

    fut = None
    if key:
      fut = asyncio.get_running_loop().create_future()
      self._inflight[key] = fut

    try:
      data = await self._fetch(url, params)
      if key:
        self._cache_set(key, data)
      if fut and not fut.done():
        fut.set_result(data)
      return data
    except asyncio.CancelledError:
      if fut and not fut.done():
        fut.cancel()
      raise
    except Exception as e:
      if fut and not fut.done():
        fut.set_exception(e)
        fut.exception()  # mark retrieved when nobody else was waiting
      raise
    finally:
      if key:
        self._inflight.pop(key, None)

  async def _fetch(self, url: str, params: dict | None) -> Any:
    headers = {"X-Riot-Token": self.api_key}
    attempts = 0
    while True:
      attempts += 1
      retry = attempts <= self.max_retries
      if self._bucket:
        await self._bucket.acquire()
      try:
        r = await self._client.get(url, headers=headers, params=params)
      except httpx.TransportError as e:
        if retry:
          log.info("transport error (%s), retry %d", type(e).__name__, attempts)
          await self._sleep(0.5 * attempts)
          continue
        raise UpstreamError(f"transport failure: {type(e).__name__}") from e

      if r.status_code == 429:
        wait = _retry_after(r)
        if retry:
          log.warning("rate limited, waiting %.1fs (retry %d)", wait, attempts)
          await self._sleep(wait)
          continue
        raise RateLimited(retry_after=wait)
      if r.status_code >= 500:
        if retry:
          log.info("upstream %d, retry %d", r.status_code, attempts)
          await self._sleep(0.5 * attempts)
          continue
        raise UpstreamError(f"upstream returned {r.status_code}", status=r.status_code)
      if r.status_code == 404:
        raise NotFound("not found upstream")
      if r.status_code >= 400:
        raise UpstreamError(f"upstream rejected request ({r.status_code})", status=r.status_code)
      try:
        return r.json()
      except ValueError as e:
        raise UpstreamError("upstream returned invalid JSON", status=r.status_code) from e

  # -------- Account via REGIONAL --------
  async def resolve_account(self, game_name: str, tag_line: str, region: str = config.DEFAULT_REGION,
                            platform: str = config.DEFAULT_PLATFORM) -> Identity:
    reg = norm_region(region)
    plat = norm_platform(platform)
    url = f"https://{config.REGIONAL[reg]}/riot/account/v1/accounts/by-riot-id/{quote(game_name)}/{quote(tag_line)}"
    data = await self._get(url, key=cache_key("account", reg, game_name, tag_line))
    return _identity(data, reg, plat, game_name, tag_line)

  async def account_by_puuid(self, puuid: str, region: str = config.DEFAULT_REGION,
                             platform: str = config.DEFAULT_PLATFORM) -> Identity:
    reg = norm_region(region)
    plat = norm_platform(platform)
    url = f"https://{config.REGIONAL[reg]}/riot/account/v1/accounts/by-puuid/{quote(puuid)}"
    data = await self._get(url, key=cache_key("account-puuid", reg, puuid))
    return _identity(data, reg, plat)

  # -------- Match list / detail via REGIONAL --------
  async def list_recent_match_ids(self, puuid: str, region: str = config.DEFAULT_REGION, limit: int = 20) -> List[str]:
    """Most recent first, as upstream reports them. The list endpoint has no count, so truncation is local."""
    reg = norm_region(region)
    if limit <= 0:
      return []
    url = f"https://{config.REGIONAL[reg]}/val/match/v1/matchlists/by-puuid/{quote(puuid)}"
    data = await self._get(url, key=cache_key("matchlist", reg, puuid))
    history = (data.get("history") or []) if isinstance(data, dict) else data
    if not isinstance(history, list):
      raise UpstreamError("unexpected match list payload")
    ids: List[str] = []
    for h in history:
      mid = h.get("matchId") if isinstance(h, dict) else h
      if mid:
        ids.append(str(mid))
    return ids[:limit]

  async def fetch_match_detail(self, match_id: str, region: str = config.DEFAULT_REGION) -> dict:
    reg = norm_region(region)
    url = f"https://{config.REGIONAL[reg]}/val/match/v1/matches/{quote(match_id)}"
    data = await self._get(url, key=cache_key("match", reg, match_id))
    # some mirrors wrap the payload in {"status": ..., "data": {...}}
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
      data = data["data"]
    if not isinstance(data, dict):
      raise UpstreamError("unexpected match payload")
    return data

  async def fetch_recent_matches_report(self, puuid: str, region: str = config.DEFAULT_REGION,
                                        count: int = 10) -> Tuple[List[dict], Optional[PartialData]]:
    """
    List ids, then fetch details with bounded fan-out. Failed or timed-out
    fetches are dropped and reported through PartialData; order follows the id list.
    """
    reg = norm_region(region)
    ids = await self.list_recent_match_ids(puuid, reg, count)
    if not ids:
      return [], None

    sem = asyncio.Semaphore(self.concurrency)

    async def _one(mid: str) -> dict:
      async with sem:
        return await self.fetch_match_detail(mid, reg)

    tasks = [asyncio.ensure_future(_one(mid)) for mid in ids]
    done, pending = await asyncio.wait(tasks, timeout=self.fetch_timeout)
    for t in pending:
      t.cancel()  # abandoned, not awaited
    if pending:
      log.warning("match detail fan-out timed out, abandoning %d fetches", len(pending))

    matches: List[dict] = []
    fetched: List[str] = []
    for mid, t in zip(ids, tasks):
      if t not in done or t.cancelled():
        continue
      exc = t.exception()
      if exc is not None:
        log.info("dropping match %s: %s", mid, exc)
        continue
      matches.append(t.result())
      fetched.append(mid)

    partial = None
    if len(fetched) < len(ids):
      partial = PartialData(ids, fetched)
      log.warning("partial match data for %s: %s", puuid, partial)
    return matches, partial

  async def fetch_recent_matches_with_details(self, puuid: str, region: str = config.DEFAULT_REGION,
                                              count: int = 10) -> List[dict]:
    matches, _ = await self.fetch_recent_matches_report(puuid, region, count)
    return matches

  # --- Content & ranked via PLATFORM ---
  async def get_content(self, platform: str = config.DEFAULT_PLATFORM, locale: str | None = None) -> dict:
    plat = norm_platform(platform)
    url = f"https://{config.PLATFORM[plat]}/val/content/v1/contents"
    params = {"locale": locale} if locale else None
    return await self._get(url, params=params, key=cache_key("content", plat, locale))

  async def get_leaderboard(self, act_id: str, platform: str = config.DEFAULT_PLATFORM,
                            size: int = 200, start_index: int = 0) -> dict:
    plat = norm_platform(platform)
    size = max(1, min(size, 200))
    start_index = max(0, start_index)
    url = f"https://{config.PLATFORM[plat]}/val/ranked/v1/leaderboards/by-act/{quote(act_id)}"
    params = {"size": size, "startIndex": start_index}
    return await self._get(url, params=params, key=cache_key("leaderboard", plat, act_id, size, start_index))

  async def get_player_mmr(self, puuid: str, platform: str = config.DEFAULT_PLATFORM) -> Optional[dict]:
    """This provider exposes no rank data; callers must treat None as 'no source'."""
    norm_platform(platform)
    return None


def _retry_after(r: httpx.Response) -> float:
  try:
    wait = float(r.headers.get("Retry-After", "2"))
  except ValueError:
    wait = 2.0
  return min(max(1.0, wait), MAX_RETRY_AFTER)

def _identity(data: Any, region: str, platform: str, game_name: str = "", tag_line: str = "") -> Identity:
  if not isinstance(data, dict) or not data.get("puuid"):
    raise NotFound("account not found upstream")
  return Identity(
    puuid=data["puuid"],
    gameName=data.get("gameName") or game_name,
    tagLine=data.get("tagLine") or tag_line,
    region=region,
    platformRegion=platform,
  )
