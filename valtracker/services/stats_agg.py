from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple

from valtracker.config import RECENT_MATCH_LIMIT
from valtracker.models import (
  AgentBreakdown,
  MapBreakdown,
  MatchRecord,
  MatchSummary,
  StatisticsSnapshot,
)

WIN, LOSS, DRAW = "win", "loss", "draw"

# ----------------------------
# Helpers
# ----------------------------
def _half_up(num: int, den: int, places: int) -> Decimal:
  """Exact num/den rounded half-up, so 0.125 -> 0.13 and 10.25 -> 10.3."""
  return (Decimal(num) / Decimal(den)).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)

def _ratio(num: int, den: int) -> float:
  """K/D shape: num/den to 2dp, or num itself when den is zero."""
  return float(_half_up(num, den, 2)) if den > 0 else float(num)

def _pct(part: int, whole: int) -> float:
  return float(_half_up(100 * part, whole, 1)) if whole > 0 else 0.0

def _avg(total: int, n: int) -> float:
  return float(_half_up(total, n, 1)) if n > 0 else 0.0

def _avg_int(total: int, n: int) -> int:
  return int(_half_up(total, n, 0)) if n > 0 else 0

def _int(x) -> int:
  try:
    return int(x or 0)
  except (TypeError, ValueError):
    return 0

def _dict(x) -> dict:
  return x if isinstance(x, dict) else {}

# ----------------------------
# Payload shapes
#
# Two layouts reach this module: the mirrored one
#   {metadata, players: {all_players: [...]}, teams: {red: {...}, blue: {...}}}
# and the provider's own match-v1 one
#   {matchInfo, players: [...], teams: [{teamId, won, roundsWon, ...}], roundResults}.
# Anything else reads as "subject not found".
# ----------------------------
def _metadata(match: dict) -> dict:
  meta = _dict(match.get("metadata"))
  if meta:
    return meta
  info = _dict(match.get("matchInfo"))
  if not info:
    return {}
  start_ms = info.get("gameStartMillis")
  return {
    "matchid": info.get("matchId"),
    "map": info.get("mapId"),
    "mode": info.get("gameMode") or info.get("queueId"),
    "game_start": _int(start_ms) // 1000 if start_ms not in (None, "") else None,
    "game_length": info.get("gameLengthMillis"),
  }

def _game_start(metadata: dict) -> Optional[datetime]:
  ts = metadata.get("game_start")
  if ts in (None, ""):
    return None
  try:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)
  except (TypeError, ValueError, OverflowError, OSError):
    return None

def _players(match: dict) -> List[dict]:
  players = match.get("players")
  if isinstance(players, dict):
    players = players.get("all_players")
  if not isinstance(players, list):
    return []
  return [p for p in players if isinstance(p, dict)]

def find_participant(match: dict, puuid: str) -> Optional[dict]:
  if not isinstance(match, dict):
    return None
  return next((p for p in _players(match) if p.get("puuid") == puuid), None)

def _teams(match: dict) -> Dict[str, dict]:
  """Teams keyed by lowercase name, each as {has_won, rounds_won, rounds_lost}."""
  teams = match.get("teams")
  if isinstance(teams, dict):
    return {str(k).lower(): _dict(v) for k, v in teams.items()}
  if not isinstance(teams, list):
    return {}
  out = {}
  for t in teams:
    if not isinstance(t, dict) or t.get("teamId") in (None, ""):
      continue
    won = _int(t.get("roundsWon"))
    out[str(t["teamId"]).lower()] = {
      "has_won": bool(t.get("won")),
      "rounds_won": won,
      "rounds_lost": max(0, _int(t.get("roundsPlayed")) - won),
    }
  return out

def _team_of(match: dict, player: dict) -> Tuple[Dict[str, dict], Optional[dict]]:
  teams = _teams(match)
  name = player.get("team") or player.get("teamId") or ""
  return teams, teams.get(str(name).lower())

def _shots(match: dict, player: dict) -> Tuple[int, int, int]:
  src = player.get("damage_made")
  if not isinstance(src, dict):
    src = _dict(player.get("stats"))
  if any(k in src for k in ("headshots", "bodyshots", "legshots")):
    return _int(src.get("headshots")), _int(src.get("bodyshots")), _int(src.get("legshots"))
  # match-v1 keeps shots per round, per damaged opponent
  hs = bs = ls = 0
  rounds = match.get("roundResults")
  for rnd in rounds if isinstance(rounds, list) else []:
    stats = _dict(rnd).get("playerStats")
    for ps in stats if isinstance(stats, list) else []:
      if _dict(ps).get("puuid") != player.get("puuid"):
        continue
      damage = ps.get("damage")
      for d in damage if isinstance(damage, list) else []:
        d = _dict(d)
        hs += _int(d.get("headshots"))
        bs += _int(d.get("bodyshots"))
        ls += _int(d.get("legshots"))
  return hs, bs, ls

def classify_outcome(teams: Dict[str, dict], team: Optional[dict]) -> str:
  """
  has_won on the subject's team is authoritative. Round equality only marks a
  draw when no team is flagged as the winner.
  """
  if team and team.get("has_won"):
    return WIN
  if not teams or any((t or {}).get("has_won") for t in teams.values()):
    return LOSS
  rounds = {_int((t or {}).get("rounds_won")) for t in teams.values()}
  if len(teams) >= 2 and len(rounds) == 1:
    return DRAW
  return LOSS

# ----------------------------
# Record extraction
# ----------------------------
def match_record_from_payload(match: dict, puuid: str) -> Optional[MatchRecord]:
  """Subject's participation in one raw match, or None if they are not in it."""
  you = find_participant(match, puuid)
  if not you:
    return None
  meta = _metadata(match)
  stats = _dict(you.get("stats"))
  teams, team = _team_of(match, you)
  hs, bs, ls = _shots(match, you)
  outcome = classify_outcome(teams, team)
  return MatchRecord(
    matchId=str(meta.get("matchid") or meta.get("matchId") or ""),
    puuid=puuid,
    map=str(meta.get("map") or ""),
    mode=str(meta.get("mode") or ""),
    gameStartTime=_game_start(meta),
    gameLengthMillis=_int(meta.get("game_length")),
    kills=_int(stats.get("kills")),
    deaths=_int(stats.get("deaths")),
    assists=_int(stats.get("assists")),
    score=_int(stats.get("score")),
    agent=str(you.get("character") or you.get("characterId") or ""),
    outcome=outcome,
    won=outcome == WIN,
    roundsWon=_int((team or {}).get("rounds_won")),
    roundsLost=_int((team or {}).get("rounds_lost")),
    teamColor=str(you.get("team") or you.get("teamId") or ""),
    headshots=hs,
    bodyshots=bs,
    legshots=ls,
    fullMatchData=match,
  )

# ----------------------------
# Aggregation
# ----------------------------
def empty_snapshot() -> StatisticsSnapshot:
  return StatisticsSnapshot()

def aggregate(matches: Iterable[dict], puuid: str, recent_limit: int = RECENT_MATCH_LIMIT) -> StatisticsSnapshot:
  """
  Fold raw match payloads into one StatisticsSnapshot for `puuid`.

  Matches the subject does not appear in are skipped. Total over any input,
  including empty. Pure: no clock, no I/O, so equal input gives equal output.
  """
  total = defaultdict(int)
  agents = defaultdict(lambda: {"matches": 0, "wins": 0, "kills": 0, "deaths": 0, "assists": 0})
  maps = defaultdict(lambda: {"matches": 0, "wins": 0, "kills": 0, "deaths": 0, "roundsWon": 0, "roundsLost": 0})
  recent: List[MatchSummary] = []

  for m in matches:
    rec = match_record_from_payload(m, puuid)
    if rec is None:
      continue
    total["matches"] += 1
    total["kills"] += rec.kills
    total["deaths"] += rec.deaths
    total["assists"] += rec.assists
    total["score"] += rec.score
    total["headshots"] += rec.headshots
    total["bodyshots"] += rec.bodyshots
    total["legshots"] += rec.legshots
    total[rec.outcome] += 1
    total["roundsWon"] += rec.roundsWon
    total["roundsLost"] += rec.roundsLost

    a = agents[rec.agent]
    a["matches"] += 1
    a["wins"] += 1 if rec.won else 0
    a["kills"] += rec.kills
    a["deaths"] += rec.deaths
    a["assists"] += rec.assists

    mp = maps[rec.map]
    mp["matches"] += 1
    mp["wins"] += 1 if rec.won else 0
    mp["kills"] += rec.kills
    mp["deaths"] += rec.deaths
    mp["roundsWon"] += rec.roundsWon
    mp["roundsLost"] += rec.roundsLost

    if len(recent) < recent_limit:
      recent.append(MatchSummary(
        matchId=rec.matchId,
        map=rec.map,
        mode=rec.mode,
        date=rec.gameStartTime,
        kills=rec.kills,
        deaths=rec.deaths,
        assists=rec.assists,
        score=rec.score,
        agent=rec.agent,
        outcome=rec.outcome,
        won=rec.won,
        roundsWon=rec.roundsWon,
        roundsLost=rec.roundsLost,
      ))

  n = total["matches"]
  shots = total["headshots"] + total["bodyshots"] + total["legshots"]

  return StatisticsSnapshot(
    totalMatches=n,
    wins=total[WIN],
    losses=total[LOSS],
    draws=total[DRAW],
    totalKills=total["kills"],
    totalDeaths=total["deaths"],
    totalAssists=total["assists"],
    totalScore=total["score"],
    totalRounds=total["roundsWon"] + total["roundsLost"],
    roundsWon=total["roundsWon"],
    roundsLost=total["roundsLost"],
    totalHeadshots=total["headshots"],
    totalBodyshots=total["bodyshots"],
    totalLegshots=total["legshots"],
    kd=_ratio(total["kills"], total["deaths"]),
    winRate=_pct(total[WIN], n),
    headshotPercentage=_pct(total["headshots"], shots),
    averageKills=_avg(total["kills"], n),
    averageDeaths=_avg(total["deaths"], n),
    averageAssists=_avg(total["assists"], n),
    averageScore=_avg_int(total["score"], n),
    agents={
      name: AgentBreakdown(
        **r,
        kd=_ratio(r["kills"], r["deaths"]),
        winRate=_pct(r["wins"], r["matches"]),
      )
      for name, r in agents.items()
    },
    maps={
      name: MapBreakdown(
        **r,
        kd=_ratio(r["kills"], r["deaths"]),
        winRate=_pct(r["wins"], r["matches"]),
        roundWinRate=_pct(r["roundsWon"], r["roundsWon"] + r["roundsLost"]),
      )
      for name, r in maps.items()
    },
    recentMatches=recent,
  )
