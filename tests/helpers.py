"""Builders for raw match payloads in the provider's shape, and a fake client."""
from valtracker.models import Identity

SUBJECT = "puuid-subject"
OTHER = "puuid-other"


def make_match(
    match_id: str,
    *,
    puuid: str = SUBJECT,
    agent: str = "Jett",
    map_name: str = "Ascent",
    mode: str = "Competitive",
    kills: int = 10,
    deaths: int = 5,
    assists: int = 3,
    score: int = 200,
    team: str = "Red",
    red_won: bool = True,
    blue_won: bool = False,
    red_rounds: int = 13,
    blue_rounds: int = 7,
    headshots: int = 0,
    bodyshots: int = 0,
    legshots: int = 0,
    game_start: int = 1700000000,
):
  return {
    "metadata": {
      "matchid": match_id,
      "map": map_name,
      "mode": mode,
      "game_start": game_start,
      "game_length": 1800000,
    },
    "players": {
      "all_players": [
        {
          "puuid": puuid,
          "team": team,
          "character": agent,
          "stats": {"kills": kills, "deaths": deaths, "assists": assists, "score": score},
          "damage_made": {"headshots": headshots, "bodyshots": bodyshots, "legshots": legshots},
        },
        {
          "puuid": OTHER,
          "team": "Blue" if team == "Red" else "Red",
          "character": "Sage",
          "stats": {"kills": 1, "deaths": 1, "assists": 1, "score": 10},
        },
      ]
    },
    "teams": {
      "red": {"has_won": red_won, "rounds_won": red_rounds, "rounds_lost": blue_rounds},
      "blue": {"has_won": blue_won, "rounds_won": blue_rounds, "rounds_lost": red_rounds},
    },
  }


def make_official_match(
    match_id: str,
    *,
    puuid: str = SUBJECT,
    agent: str = "add6443a-41bd-e414-f6ad-e58d267f4e95",
    map_id: str = "/Game/Maps/Ascent/Ascent",
    kills: int = 10,
    deaths: int = 5,
    assists: int = 3,
    score: int = 200,
    team: str = "Red",
    red_won: bool = True,
    red_rounds: int = 13,
    blue_rounds: int = 7,
    round_shots=(),
    game_start_millis: int = 1700000000000,
):
  """match-v1 layout: players and teams are lists, shots live under roundResults."""
  other_team = "Blue" if team == "Red" else "Red"
  played = red_rounds + blue_rounds
  return {
    "matchInfo": {
      "matchId": match_id,
      "mapId": map_id,
      "gameMode": "/Game/GameModes/Bomb/BombGameMode.BombGameMode_C",
      "gameStartMillis": game_start_millis,
      "gameLengthMillis": 1800000,
    },
    "players": [
      {
        "puuid": puuid,
        "teamId": team,
        "characterId": agent,
        "stats": {"kills": kills, "deaths": deaths, "assists": assists, "score": score},
      },
      {
        "puuid": OTHER,
        "teamId": other_team,
        "characterId": "569fdd95-4d10-43ab-ca70-79becc718b46",
        "stats": {"kills": 1, "deaths": 1, "assists": 1, "score": 10},
      },
    ],
    "teams": [
      {"teamId": "Red", "won": red_won, "roundsPlayed": played, "roundsWon": red_rounds},
      {"teamId": "Blue", "won": not red_won, "roundsPlayed": played, "roundsWon": blue_rounds},
    ],
    "roundResults": [
      {
        "roundNum": i,
        "playerStats": [
          {"puuid": puuid, "damage": [{"receiver": OTHER, "headshots": hs, "bodyshots": bs, "legshots": ls}]},
        ],
      }
      for i, (hs, bs, ls) in enumerate(round_shots)
    ],
  }


class FakeClient:
  """Stands in for ValorantClient at the service seam."""

  def __init__(self, matches=None, partial=None, history_error=None, account_error=None, mmr=None):
    self.matches = matches or []
    self.partial = partial
    self.history_error = history_error
    self.account_error = account_error
    self.mmr = mmr
    self.windows = []

  async def resolve_account(self, game_name, tag_line, region="europe", platform="eu"):
    if self.account_error:
      raise self.account_error
    return Identity(puuid=SUBJECT, gameName=game_name, tagLine=tag_line, region=region, platformRegion=platform)

  async def fetch_recent_matches_report(self, puuid, region="europe", count=10):
    self.windows.append(count)
    if self.history_error:
      raise self.history_error
    return self.matches[:count], self.partial

  async def fetch_recent_matches_with_details(self, puuid, region="europe", count=10):
    matches, _ = await self.fetch_recent_matches_report(puuid, region, count)
    return matches

  async def get_player_mmr(self, puuid, platform="eu"):
    return self.mmr
