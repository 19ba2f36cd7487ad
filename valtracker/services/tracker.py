"""
Read operations behind the HTTP surface. Each one returns typed results or
raises from the error taxonomy; status codes and envelopes live in routes.

Store writes happen after the computation and never fail the call: a failed
write is logged and reported as a warning, the next read recomputes anyway.
"""
from datetime import datetime, timezone
from typing import List, Optional

from valtracker.config import DEFAULT_PLATFORM, DEFAULT_REGION, PROFILE_MATCH_WINDOW
from valtracker.log import get_logger
from valtracker.models import Identity, PlayerProfile, RankResult, RankSample, StatsResult
from valtracker.riot_client import ValorantClient
from valtracker.services.profile import build_player_profile
from valtracker.services.stats_agg import aggregate, match_record_from_payload
from valtracker.store import StatsStore

log = get_logger("tracker")

SEARCH_LIMIT = 10


def _persist_failed(what: str, e: Exception) -> str:
  log.warning("failed to persist %s: %s", what, e)
  return f"could not save {what}"


async def get_profile(rc: ValorantClient, store: StatsStore, game_name: str, tag_line: str,
                      region: str = DEFAULT_REGION, platform: str = DEFAULT_PLATFORM,
                      window: int = PROFILE_MATCH_WINDOW) -> PlayerProfile:
  profile = await build_player_profile(rc, game_name, tag_line, region, platform, window)
  try:
    store.upsert_identity(profile.account, totalMatches=profile.statistics.totalMatches)
  except Exception as e:
    profile.warnings.append(_persist_failed("player", e))
  return profile


async def get_matches(rc: ValorantClient, puuid: str, region: str = DEFAULT_REGION, count: int = 20) -> List[dict]:
  count = max(1, min(count, 50))
  return await rc.fetch_recent_matches_with_details(puuid, region, count)


async def get_match_detail(rc: ValorantClient, match_id: str, region: str = DEFAULT_REGION) -> dict:
  return await rc.fetch_match_detail(match_id, region)


async def get_statistics(rc: ValorantClient, store: StatsStore, puuid: str,
                         region: str = DEFAULT_REGION, count: int = 20) -> StatsResult:
  """Fetch, aggregate, then store the match records and replace the snapshot."""
  count = max(1, min(count, 50))
  matches, partial = await rc.fetch_recent_matches_report(puuid, region, count)
  stats = aggregate(matches, puuid)
  now = datetime.now(timezone.utc)

  warnings: List[str] = []
  if partial is not None:
    warnings.append(f"partial match data: {partial}")

  try:
    for m in matches:
      rec = match_record_from_payload(m, puuid)
      if rec is not None and rec.matchId:
        store.add_match(rec)
    store.upsert_statistics(puuid, stats, now)
  except Exception as e:
    warnings.append(_persist_failed("statistics", e))

  return StatsResult(puuid=puuid, statistics=stats, lastCalculated=now, warnings=warnings)


def _rank_sample(puuid: str, mmr: dict) -> RankSample:
  return RankSample(
    puuid=puuid,
    currentTier=mmr.get("currenttier"),
    currentTierName=mmr.get("currenttierpatched"),
    rankedRating=mmr.get("ranking_in_tier"),
    leaderboardRank=mmr.get("leaderboard_rank"),
    competitiveSeason=mmr.get("current_season"),
    recordedAt=datetime.now(timezone.utc),
  )


async def get_rank(rc: ValorantClient, store: StatsStore, puuid: str,
                   platform: str = DEFAULT_PLATFORM) -> RankResult:
  """rank is None when no source is available; otherwise the sample is also appended to history."""
  mmr = await rc.get_player_mmr(puuid, platform)
  if not mmr or not mmr.get("currenttier"):
    return RankResult()
  sample = _rank_sample(puuid, mmr)
  warnings: List[str] = []
  try:
    store.add_rank_sample(sample)
  except Exception as e:
    warnings.append(_persist_failed("rank sample", e))
  return RankResult(rank=sample, warnings=warnings)


def get_rank_history(store: StatsStore, puuid: str, limit: int = 50) -> List[RankSample]:
  return store.rank_history(puuid, max(1, min(limit, 500)))


def search_players(store: StatsStore, name: str, limit: int = SEARCH_LIMIT) -> List[Identity]:
  name = (name or "").strip()
  if not name:
    raise ValueError("Search name is required")
  return store.search_identities(name, limit)


async def get_content(rc: ValorantClient, platform: str = DEFAULT_PLATFORM, locale: Optional[str] = None) -> dict:
  return await rc.get_content(platform, locale)


async def get_leaderboard(rc: ValorantClient, act_id: str, platform: str = DEFAULT_PLATFORM,
                          size: int = 200, start_index: int = 0) -> dict:
  if not act_id:
    raise ValueError("actId is required")
  return await rc.get_leaderboard(act_id, platform, size, start_index)
