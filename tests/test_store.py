import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

from valtracker.models import Identity, RankSample
from valtracker.services.stats_agg import aggregate, match_record_from_payload
from valtracker.store import MemoryStore, SqliteStore, open_store
from tests.helpers import SUBJECT, make_match


@pytest.fixture
def sqlite_store():
  fd, db_path = tempfile.mkstemp(suffix=".db")
  os.close(fd)
  store = SqliteStore(db_path)
  try:
    yield store
  finally:
    store.close()
    for suffix in ("", "-wal", "-shm"):
      if os.path.exists(db_path + suffix):
        os.remove(db_path + suffix)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, sqlite_store):
  if request.param == "memory":
    return MemoryStore()
  return sqlite_store


def _identity(puuid, name, tag):
  return Identity(puuid=puuid, gameName=name, tagLine=tag)


def test_identity_upsert_replaces_handle(store):
  store.upsert_identity(_identity("p1", "Old", "EUW"))
  store.upsert_identity(_identity("p1", "New", "EUW"), totalMatches=4)
  got = store.get_identity("p1")
  assert got.gameName == "New"
  assert store.get_identity("missing") is None


def test_matches_append_once_newest_first(store):
  early = match_record_from_payload(make_match("m1", game_start=1000), SUBJECT)
  late = match_record_from_payload(make_match("m2", game_start=2000), SUBJECT)
  assert store.add_match(early) is True
  assert store.add_match(late) is True
  assert store.add_match(early) is False
  got = store.matches_for(SUBJECT)
  assert [m.matchId for m in got] == ["m2", "m1"]
  assert got[0].fullMatchData["metadata"]["matchid"] == "m2"
  assert [m.matchId for m in store.matches_for(SUBJECT, limit=1)] == ["m2"]
  assert store.matches_for("someone-else") == []


def test_statistics_upsert_replaces(store):
  now = datetime.now(timezone.utc)
  store.upsert_statistics(SUBJECT, aggregate([make_match("m1")], SUBJECT), now)
  second = aggregate([make_match("m1"), make_match("m2", agent="Reyna")], SUBJECT)
  store.upsert_statistics(SUBJECT, second, now)
  got = store.get_statistics(SUBJECT)
  assert got == second
  assert got.agents["Reyna"].matches == 1
  assert store.get_statistics("nobody") is None


def test_rank_history_newest_first_with_limit(store):
  base = datetime(2025, 1, 1, tzinfo=timezone.utc)
  for i in range(3):
    store.add_rank_sample(RankSample(puuid=SUBJECT, currentTier=10 + i, recordedAt=base + timedelta(days=i)))
  store.add_rank_sample(RankSample(puuid="other", currentTier=3, recordedAt=base))
  history = store.rank_history(SUBJECT)
  assert [s.currentTier for s in history] == [12, 11, 10]
  assert [s.currentTier for s in store.rank_history(SUBJECT, limit=2)] == [12, 11]


def test_search_is_case_insensitive_substring(store):
  store.upsert_identity(_identity("p1", "TenZ", "0505"))
  store.upsert_identity(_identity("p2", "tenzfan", "EUW"))
  store.upsert_identity(_identity("p3", "Boaster", "FNC"))
  found = {i.puuid for i in store.search_identities("TENZ")}
  assert found == {"p1", "p2"}
  assert {i.puuid for i in store.search_identities("fnc")} == {"p3"}
  assert len(store.search_identities("e", limit=2)) == 2


def test_search_treats_wildcards_literally(sqlite_store):
  sqlite_store.upsert_identity(_identity("p1", "under_score", "X"))
  sqlite_store.upsert_identity(_identity("p2", "underXscore", "X"))
  assert [i.puuid for i in sqlite_store.search_identities("r_s")] == ["p1"]
  assert sqlite_store.search_identities("%") == []


def test_open_store():
  assert isinstance(open_store(""), MemoryStore)
