from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Identity(BaseModel):
  puuid: str
  gameName: str = ""
  tagLine: str = ""
  region: str = "europe"
  platformRegion: str = "eu"

  @property
  def riotId(self) -> str:
    return f"{self.gameName}#{self.tagLine}"


class MatchRecord(BaseModel):
  """One player's participation in one match, plus the raw upstream payload."""
  matchId: str
  puuid: str
  map: str = ""
  mode: str = ""
  gameStartTime: Optional[datetime] = None
  gameLengthMillis: int = 0
  kills: int = 0
  deaths: int = 0
  assists: int = 0
  score: int = 0
  agent: str = ""
  outcome: str = "loss"
  won: bool = False
  roundsWon: int = 0
  roundsLost: int = 0
  teamColor: str = ""
  headshots: int = 0
  bodyshots: int = 0
  legshots: int = 0
  fullMatchData: Dict[str, Any] = Field(default_factory=dict)


class AgentBreakdown(BaseModel):
  matches: int = 0
  wins: int = 0
  kills: int = 0
  deaths: int = 0
  assists: int = 0
  kd: float = 0.0
  winRate: float = 0.0


class MapBreakdown(BaseModel):
  matches: int = 0
  wins: int = 0
  kills: int = 0
  deaths: int = 0
  roundsWon: int = 0
  roundsLost: int = 0
  kd: float = 0.0
  winRate: float = 0.0
  roundWinRate: float = 0.0


class MatchSummary(BaseModel):
  matchId: str
  map: str = ""
  mode: str = ""
  date: Optional[datetime] = None
  kills: int = 0
  deaths: int = 0
  assists: int = 0
  score: int = 0
  agent: str = ""
  outcome: str = "loss"
  won: bool = False
  roundsWon: int = 0
  roundsLost: int = 0


class StatisticsSnapshot(BaseModel):
  totalMatches: int = 0
  wins: int = 0
  losses: int = 0
  draws: int = 0
  totalKills: int = 0
  totalDeaths: int = 0
  totalAssists: int = 0
  totalScore: int = 0
  totalRounds: int = 0
  roundsWon: int = 0
  roundsLost: int = 0
  totalHeadshots: int = 0
  totalBodyshots: int = 0
  totalLegshots: int = 0

  kd: float = 0.0
  winRate: float = 0.0
  headshotPercentage: float = 0.0
  averageKills: float = 0.0
  averageDeaths: float = 0.0
  averageAssists: float = 0.0
  averageScore: int = 0

  # open string keys: agent/map vocabulary grows upstream without a code change
  agents: Dict[str, AgentBreakdown] = Field(default_factory=dict)
  maps: Dict[str, MapBreakdown] = Field(default_factory=dict)
  recentMatches: List[MatchSummary] = Field(default_factory=list)


class RankSample(BaseModel):
  puuid: str
  currentTier: Optional[int] = None
  currentTierName: Optional[str] = None
  rankedRating: Optional[int] = None
  leaderboardRank: Optional[int] = None
  competitiveSeason: Optional[str] = None
  recordedAt: datetime


class PlayerProfile(BaseModel):
  account: Identity
  rank: Optional[RankSample] = None
  statistics: StatisticsSnapshot = Field(default_factory=StatisticsSnapshot)
  lastUpdated: datetime
  warnings: List[str] = Field(default_factory=list)


class StatsResult(BaseModel):
  puuid: str
  statistics: StatisticsSnapshot
  lastCalculated: datetime
  warnings: List[str] = Field(default_factory=list)


class RankResult(BaseModel):
  rank: Optional[RankSample] = None
  warnings: List[str] = Field(default_factory=list)
