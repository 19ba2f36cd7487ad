# valtracker/store.py

import os
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from valtracker.log import get_logger
from valtracker.models import Identity, MatchRecord, RankSample, StatisticsSnapshot

log = get_logger("store")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _start_key(rec: MatchRecord) -> datetime:
  ts = rec.gameStartTime or _EPOCH
  return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


class StatsStore(ABC):
  """
  Narrow key-value contract for identities, match records, statistics
  snapshots and rank samples, all keyed by puuid.
  """

  @abstractmethod
  def upsert_identity(self, identity: Identity, totalMatches: int = 0) -> None: ...

  @abstractmethod
  def get_identity(self, puuid: str) -> Optional[Identity]: ...

  @abstractmethod
  def add_match(self, record: MatchRecord) -> bool:
    """Append; returns False when the match id is already stored."""

  @abstractmethod
  def matches_for(self, puuid: str, limit: int = 20) -> List[MatchRecord]:
    """Newest first by game start time."""

  @abstractmethod
  def upsert_statistics(self, puuid: str, snapshot: StatisticsSnapshot, calculated_at: datetime) -> None: ...

  @abstractmethod
  def get_statistics(self, puuid: str) -> Optional[StatisticsSnapshot]: ...

  @abstractmethod
  def add_rank_sample(self, sample: RankSample) -> None: ...

  @abstractmethod
  def rank_history(self, puuid: str, limit: int = 50) -> List[RankSample]:
    """Newest first."""

  @abstractmethod
  def search_identities(self, text: str, limit: int = 10) -> List[Identity]:
    """Case-insensitive substring match on gameName or tagLine."""

  def close(self) -> None:
    pass


class MemoryStore(StatsStore):
  def __init__(self):
    self._lock = threading.Lock()
    self.identities: Dict[str, Identity] = {}
    self.match_counts: Dict[str, int] = {}
    self.matches: Dict[str, MatchRecord] = {}
    self.statistics: Dict[str, StatisticsSnapshot] = {}
    self.ranks: Dict[str, List[RankSample]] = {}

  def upsert_identity(self, identity, totalMatches=0):
    with self._lock:
      self.identities[identity.puuid] = identity.model_copy()
      self.match_counts[identity.puuid] = totalMatches

  def get_identity(self, puuid):
    with self._lock:
      return self.identities.get(puuid)

  def add_match(self, record):
    with self._lock:
      if record.matchId in self.matches:
        return False
      self.matches[record.matchId] = record
      return True

  def matches_for(self, puuid, limit=20):
    with self._lock:
      mine = [m for m in self.matches.values() if m.puuid == puuid]
    mine.sort(key=_start_key, reverse=True)
    return mine[:max(0, limit)]

  def upsert_statistics(self, puuid, snapshot, calculated_at):
    with self._lock:
      self.statistics[puuid] = snapshot.model_copy(deep=True)

  def get_statistics(self, puuid):
    with self._lock:
      return self.statistics.get(puuid)

  def add_rank_sample(self, sample):
    with self._lock:
      self.ranks.setdefault(sample.puuid, []).append(sample)

  def rank_history(self, puuid, limit=50):
    with self._lock:
      samples = list(self.ranks.get(puuid, []))
    samples.sort(key=lambda s: s.recordedAt, reverse=True)
    return samples[:max(0, limit)]

  def search_identities(self, text, limit=10):
    needle = (text or "").lower()
    with self._lock:
      found = [i for i in self.identities.values()
               if needle in i.gameName.lower() or needle in i.tagLine.lower()]
    return found[:max(0, limit)]


class SqliteStore(StatsStore):
  """Same contract on a single SQLite file."""

  def __init__(self, db_path: str = "data/valtracker.db"):
    self.db_path = db_path
    self.conn = None
    self._lock = threading.Lock()
    self.init_database()

  def init_database(self):
    """Create tables if they don't exist."""
    db_dir = os.path.dirname(self.db_path)
    if db_dir and self.db_path != ":memory:":
      try:
        os.makedirs(db_dir, exist_ok=True)
      except OSError as e:
        raise RuntimeError(f"Failed to create database directory '{db_dir}': {e}")

    self.conn = sqlite3.connect(self.db_path, timeout=30.0, check_same_thread=False)
    self.conn.row_factory = sqlite3.Row
    self.conn.execute("PRAGMA busy_timeout = 30000")
    self._set_wal_mode_best_effort()

    self.conn.executescript("""
      CREATE TABLE IF NOT EXISTS users (
        puuid TEXT PRIMARY KEY,
        game_name TEXT NOT NULL,
        tag_line TEXT NOT NULL,
        region TEXT DEFAULT 'europe',
        platform_region TEXT DEFAULT 'eu',
        total_matches INTEGER DEFAULT 0,
        last_updated TEXT
      );

      CREATE TABLE IF NOT EXISTS matches (
        match_id TEXT PRIMARY KEY,
        puuid TEXT NOT NULL,
        game_start_time TEXT,
        record_json TEXT NOT NULL
      );
      CREATE INDEX IF NOT EXISTS idx_matches_puuid_start ON matches (puuid, game_start_time DESC);

      CREATE TABLE IF NOT EXISTS statistics (
        puuid TEXT PRIMARY KEY,
        snapshot_json TEXT NOT NULL,
        last_calculated TEXT
      );

      CREATE TABLE IF NOT EXISTS rank_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        puuid TEXT NOT NULL,
        recorded_at TEXT NOT NULL,
        sample_json TEXT NOT NULL
      );
      CREATE INDEX IF NOT EXISTS idx_rank_puuid ON rank_history (puuid, recorded_at DESC);
    """)
    self.conn.commit()

  def _set_wal_mode_best_effort(self):
    try:
      self.conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError as e:
      log.info("WAL mode not enabled: %s", e)

  def close(self):
    if self.conn:
      self.conn.close()
      self.conn = None

  def upsert_identity(self, identity, totalMatches=0):
    with self._lock:
      self.conn.execute("""
        INSERT INTO users (puuid, game_name, tag_line, region, platform_region, total_matches, last_updated)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(puuid) DO UPDATE SET
          game_name = excluded.game_name,
          tag_line = excluded.tag_line,
          region = excluded.region,
          platform_region = excluded.platform_region,
          total_matches = excluded.total_matches,
          last_updated = excluded.last_updated
      """, (identity.puuid, identity.gameName, identity.tagLine, identity.region,
            identity.platformRegion, totalMatches, datetime.now(timezone.utc).isoformat()))
      self.conn.commit()

  def get_identity(self, puuid):
    with self._lock:
      row = self.conn.execute("SELECT * FROM users WHERE puuid = ?", (puuid,)).fetchone()
    return _identity_row(row) if row else None

  def add_match(self, record):
    with self._lock:
      cur = self.conn.execute(
          "INSERT OR IGNORE INTO matches (match_id, puuid, game_start_time, record_json) VALUES (?, ?, ?, ?)",
          (record.matchId, record.puuid, _start_key(record).isoformat(), record.model_dump_json()))
      self.conn.commit()
      return cur.rowcount == 1

  def matches_for(self, puuid, limit=20):
    with self._lock:
      rows = self.conn.execute(
          "SELECT record_json FROM matches WHERE puuid = ? ORDER BY game_start_time DESC LIMIT ?",
          (puuid, max(0, limit))).fetchall()
    return [MatchRecord.model_validate_json(r["record_json"]) for r in rows]

  def upsert_statistics(self, puuid, snapshot, calculated_at):
    with self._lock:
      self.conn.execute("""
        INSERT INTO statistics (puuid, snapshot_json, last_calculated) VALUES (?, ?, ?)
        ON CONFLICT(puuid) DO UPDATE SET
          snapshot_json = excluded.snapshot_json,
          last_calculated = excluded.last_calculated
      """, (puuid, snapshot.model_dump_json(), calculated_at.isoformat()))
      self.conn.commit()

  def get_statistics(self, puuid):
    with self._lock:
      row = self.conn.execute("SELECT snapshot_json FROM statistics WHERE puuid = ?", (puuid,)).fetchone()
    return StatisticsSnapshot.model_validate_json(row["snapshot_json"]) if row else None

  def add_rank_sample(self, sample):
    with self._lock:
      self.conn.execute(
          "INSERT INTO rank_history (puuid, recorded_at, sample_json) VALUES (?, ?, ?)",
          (sample.puuid, sample.recordedAt.isoformat(), sample.model_dump_json()))
      self.conn.commit()

  def rank_history(self, puuid, limit=50):
    with self._lock:
      rows = self.conn.execute(
          "SELECT sample_json FROM rank_history WHERE puuid = ? ORDER BY recorded_at DESC, id DESC LIMIT ?",
          (puuid, max(0, limit))).fetchall()
    return [RankSample.model_validate_json(r["sample_json"]) for r in rows]

  def search_identities(self, text, limit=10):
    # LIKE is case-insensitive for ASCII; escape wildcards so input is literal
    needle = (text or "").replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{needle}%"
    with self._lock:
      rows = self.conn.execute("""
        SELECT * FROM users
        WHERE game_name LIKE ? ESCAPE '\\' OR tag_line LIKE ? ESCAPE '\\'
        ORDER BY last_updated DESC
        LIMIT ?
      """, (pattern, pattern, max(0, limit))).fetchall()
    return [_identity_row(r) for r in rows]


def _identity_row(row: sqlite3.Row) -> Identity:
  return Identity(
    puuid=row["puuid"],
    gameName=row["game_name"],
    tagLine=row["tag_line"],
    region=row["region"] or "europe",
    platformRegion=row["platform_region"] or "eu",
  )


def open_store(db_path: Optional[str]) -> StatsStore:
  """SQLite when a path is configured, in-memory otherwise."""
  if not db_path:
    return MemoryStore()
  return SqliteStore(db_path)
