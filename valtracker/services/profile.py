from datetime import datetime, timezone
from typing import List

from valtracker.config import DEFAULT_PLATFORM, DEFAULT_REGION, PROFILE_MATCH_WINDOW
from valtracker.errors import ValTrackerError
from valtracker.log import get_logger
from valtracker.models import PlayerProfile
from valtracker.riot_client import ValorantClient
from valtracker.services.stats_agg import aggregate, empty_snapshot

log = get_logger("profile")


async def build_player_profile(
    rc: ValorantClient,
    game_name: str,
    tag_line: str,
    region: str = DEFAULT_REGION,
    platform: str = DEFAULT_PLATFORM,
    window: int = PROFILE_MATCH_WINDOW,
) -> PlayerProfile:
  """
  Identity + aggregate over a small recent window.

  Account lookup errors propagate. Anything going wrong with match history
  degrades to an all-zero snapshot; rank has no source here and stays None.
  """
  account = await rc.resolve_account(game_name, tag_line, region, platform)
  log.info("account found: %s (%s)", account.riotId, account.puuid)

  warnings: List[str] = []
  stats = empty_snapshot()
  try:
    matches, partial = await rc.fetch_recent_matches_report(account.puuid, account.region, window)
    if partial is not None:
      warnings.append(f"partial match data: {partial}")
    if matches:
      stats = aggregate(matches, account.puuid)
  except ValTrackerError as e:
    log.info("match history not available for %s: %s", account.puuid, e)
    warnings.append("match history unavailable")
  except Exception:
    # malformed upstream data must not cost the caller the identity
    log.warning("match history unreadable for %s", account.puuid, exc_info=True)
    warnings.append("match history unavailable")

  return PlayerProfile(
    account=account,
    rank=None,
    statistics=stats,
    lastUpdated=datetime.now(timezone.utc),
    warnings=warnings,
  )
