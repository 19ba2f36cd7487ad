import asyncio

import pytest

from valtracker.errors import NotFound, PartialData, UpstreamError
from valtracker.services import tracker
from valtracker.services.profile import build_player_profile
from valtracker.store import MemoryStore
from tests.helpers import SUBJECT, FakeClient, make_match, make_official_match


class BrokenStore(MemoryStore):
  def upsert_identity(self, identity, totalMatches=0):
    raise RuntimeError("db down")

  def upsert_statistics(self, puuid, snapshot, calculated_at):
    raise RuntimeError("db down")

  def add_rank_sample(self, sample):
    raise RuntimeError("db down")


IMMORTAL = {"currenttier": 24, "currenttierpatched": "Immortal 1", "ranking_in_tier": 40,
            "leaderboard_rank": 812, "current_season": "e9a1"}


def run(coro):
  return asyncio.run(coro)


def test_profile_aggregates_recent_window():
  rc = FakeClient(matches=[make_match(f"m{i}") for i in range(8)])
  profile = run(build_player_profile(rc, "TenZ", "0505"))
  assert profile.account.puuid == SUBJECT
  assert profile.rank is None
  assert profile.statistics.totalMatches == 5
  assert rc.windows == [5]
  assert profile.warnings == []


def test_profile_survives_match_history_failure():
  rc = FakeClient(history_error=UpstreamError("upstream returned 503", status=503))
  profile = run(build_player_profile(rc, "TenZ", "0505"))
  assert profile.statistics.totalMatches == 0
  assert profile.statistics.agents == {}
  assert profile.warnings == ["match history unavailable"]


def test_profile_survives_unreadable_match_history():
  rc = FakeClient(history_error=TypeError("'int' object is not iterable"))
  profile = run(build_player_profile(rc, "TenZ", "0505"))
  assert profile.account.puuid == SUBJECT
  assert profile.statistics.totalMatches == 0
  assert profile.warnings == ["match history unavailable"]


def test_profile_skips_garbage_match_payloads():
  garbage = [{"players": 5}, {"players": {"all_players": "x"}, "teams": "x"}, {"metadata": None}, "m1", None]
  profile = run(build_player_profile(FakeClient(matches=garbage + [make_match("m1")]), "TenZ", "0505", window=6))
  assert profile.statistics.totalMatches == 1
  assert profile.warnings == []


def test_profile_over_match_v1_payloads():
  rc = FakeClient(matches=[make_official_match("m1", kills=12, deaths=4), make_official_match("m2", red_won=False, red_rounds=9, blue_rounds=13)])
  profile = run(build_player_profile(rc, "TenZ", "0505"))
  stats = profile.statistics
  assert stats.totalMatches == 2
  assert (stats.wins, stats.losses) == (1, 1)
  assert stats.totalKills == 22
  assert stats.roundsWon == 22
  assert [m.matchId for m in stats.recentMatches] == ["m1", "m2"]


def test_profile_with_no_matches_is_all_zero():
  profile = run(build_player_profile(FakeClient(), "TenZ", "0505"))
  assert profile.statistics.totalMatches == 0
  assert profile.statistics.kd == 0


def test_profile_account_errors_propagate():
  with pytest.raises(NotFound):
    run(build_player_profile(FakeClient(account_error=NotFound("account not found upstream")), "x", "y"))


def test_profile_reports_partial_data():
  partial = PartialData(["m1", "m2"], ["m1"])
  profile = run(build_player_profile(FakeClient(matches=[make_match("m1")], partial=partial), "TenZ", "0505"))
  assert profile.statistics.totalMatches == 1
  assert profile.warnings == ["partial match data: fetched 1 of 2 matches"]


def test_get_profile_saves_identity():
  store = MemoryStore()
  run(tracker.get_profile(FakeClient(matches=[make_match("m1")]), store, "TenZ", "0505"))
  assert store.get_identity(SUBJECT).gameName == "TenZ"
  assert store.match_counts[SUBJECT] == 1


def test_get_profile_store_failure_is_a_warning():
  profile = run(tracker.get_profile(FakeClient(), BrokenStore(), "TenZ", "0505"))
  assert profile.account.puuid == SUBJECT
  assert profile.warnings == ["could not save player"]


def test_get_statistics_persists_matches_and_snapshot():
  store = MemoryStore()
  rc = FakeClient(matches=[make_match("m1", game_start=100), make_match("m2", game_start=200)])
  result = run(tracker.get_statistics(rc, store, SUBJECT))
  assert result.statistics.totalMatches == 2
  assert store.get_statistics(SUBJECT) == result.statistics
  assert [m.matchId for m in store.matches_for(SUBJECT)] == ["m2", "m1"]
  assert result.warnings == []


def test_get_statistics_replaces_snapshot():
  store = MemoryStore()
  run(tracker.get_statistics(FakeClient(matches=[make_match("m1")]), store, SUBJECT))
  run(tracker.get_statistics(FakeClient(matches=[make_match("m1"), make_match("m2")]), store, SUBJECT))
  assert store.get_statistics(SUBJECT).totalMatches == 2
  assert len(store.matches) == 2


def test_get_statistics_store_failure_still_returns_result():
  result = run(tracker.get_statistics(FakeClient(matches=[make_match("m1")]), BrokenStore(), SUBJECT))
  assert result.statistics.totalMatches == 1
  assert result.warnings == ["could not save statistics"]


def test_get_statistics_clamps_count():
  rc = FakeClient()
  run(tracker.get_statistics(rc, MemoryStore(), SUBJECT, count=500))
  assert rc.windows == [50]


def test_rank_absent_is_none():
  store = MemoryStore()
  result = run(tracker.get_rank(FakeClient(), store, SUBJECT))
  assert result.rank is None
  assert result.warnings == []
  assert tracker.get_rank_history(store, SUBJECT) == []


def test_rank_sample_recorded_when_available():
  store = MemoryStore()
  result = run(tracker.get_rank(FakeClient(mmr=IMMORTAL), store, SUBJECT))
  assert result.rank.currentTierName == "Immortal 1"
  assert result.warnings == []
  assert tracker.get_rank_history(store, SUBJECT) == [result.rank]


def test_rank_store_failure_is_a_warning():
  result = run(tracker.get_rank(FakeClient(mmr=IMMORTAL), BrokenStore(), SUBJECT))
  assert result.rank.currentTier == 24
  assert result.warnings == ["could not save rank sample"]


def test_search_requires_name():
  with pytest.raises(ValueError):
    tracker.search_players(MemoryStore(), "  ")


def test_leaderboard_requires_act():
  with pytest.raises(ValueError):
    run(tracker.get_leaderboard(FakeClient(), ""))
