# valtracker/routes/players.py
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Request

from valtracker.config import DEFAULT_PLATFORM, DEFAULT_REGION
from valtracker.log import get_logger
from valtracker.riot_client import ValorantClient
from valtracker.services import tracker
from valtracker.store import StatsStore

log = get_logger("routes")

router = APIRouter(prefix="/api", tags=["players"])


async def riot_client(request: Request) -> AsyncIterator[ValorantClient]:
  """Fresh client per request, sharing the app-wide response cache."""
  async with ValorantClient(cache=request.app.state.cache) as rc:
    yield rc

def stats_store(request: Request) -> StatsStore:
  return request.app.state.store

def ok(data, **extra) -> dict:
  return {"success": True, "data": data, **extra}


@router.get("/player/{gameName}/{tagLine}")
async def player_profile(gameName: str, tagLine: str, region: str = DEFAULT_REGION,
                         platformRegion: str = DEFAULT_PLATFORM,
                         rc: ValorantClient = Depends(riot_client), store: StatsStore = Depends(stats_store)):
  """
  Example:
    /api/player/TenZ/0505?region=americas&platformRegion=na
  """
  log.info("fetching profile for %s#%s", gameName, tagLine)
  profile = await tracker.get_profile(rc, store, gameName, tagLine, region, platformRegion)
  return ok(profile.model_dump(mode="json"))

@router.get("/matches/{puuid}")
async def matches(puuid: str, region: str = DEFAULT_REGION, count: int = 20,
                  rc: ValorantClient = Depends(riot_client)):
  return ok(await tracker.get_matches(rc, puuid, region, count))

@router.get("/match/{matchId}")
async def match_detail(matchId: str, region: str = DEFAULT_REGION, rc: ValorantClient = Depends(riot_client)):
  return ok(await tracker.get_match_detail(rc, matchId, region))

@router.get("/stats/{puuid}")
async def statistics(puuid: str, region: str = DEFAULT_REGION, count: int = 20,
                     rc: ValorantClient = Depends(riot_client), store: StatsStore = Depends(stats_store)):
  result = await tracker.get_statistics(rc, store, puuid, region, count)
  return ok(result.model_dump(mode="json"))

@router.get("/rank/{puuid}")
async def rank(puuid: str, platformRegion: str = DEFAULT_PLATFORM,
               rc: ValorantClient = Depends(riot_client), store: StatsStore = Depends(stats_store)):
  result = await tracker.get_rank(rc, store, puuid, platformRegion)
  extra = {"warnings": result.warnings} if result.warnings else {}
  return ok(result.rank.model_dump(mode="json") if result.rank else None, **extra)

@router.get("/rank-history/{puuid}")
def rank_history(puuid: str, limit: int = 50, store: StatsStore = Depends(stats_store)):
  return ok([s.model_dump(mode="json") for s in tracker.get_rank_history(store, puuid, limit)])

@router.get("/content")
async def content(platformRegion: str = DEFAULT_PLATFORM, locale: Optional[str] = None,
                  rc: ValorantClient = Depends(riot_client)):
  return ok(await tracker.get_content(rc, platformRegion, locale))

@router.get("/search")
def search(name: str = "", store: StatsStore = Depends(stats_store)):
  return ok([i.model_dump(mode="json") for i in tracker.search_players(store, name)])

@router.get("/leaderboard")
async def leaderboard(actId: str = "", platformRegion: str = DEFAULT_PLATFORM, size: int = 200,
                      startIndex: int = 0, rc: ValorantClient = Depends(riot_client)):
  log.info("fetching leaderboard for %s", platformRegion)
  data = await tracker.get_leaderboard(rc, actId, platformRegion, size, startIndex)
  return ok(data, region=platformRegion)
