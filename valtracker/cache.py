# valtracker/cache.py
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from valtracker.config import CACHE_MAX_ENTRIES, CACHE_TTL


def cache_key(op: str, *parts: Any) -> str:
  """Key fully determined by operation name + request parameters."""
  return ":".join([op] + ["" if p is None else str(p) for p in parts])


class TTLCache:
  """
  Fixed-TTL key -> value store for upstream responses.

  Expiry is lazy: an expired entry reads as absent and stays put until a
  purge or an eviction needs the slot. Entry count is bounded; when full,
  expired entries go first, then the one closest to expiry.
  """

  def __init__(self, ttl: float = CACHE_TTL, max_entries: int = CACHE_MAX_ENTRIES,
               clock: Callable[[], float] = time.monotonic):
    if ttl <= 0:
      raise ValueError("ttl must be positive")
    if max_entries < 1:
      raise ValueError("max_entries must be at least 1")
    self.ttl = ttl
    self.max_entries = max_entries
    self._clock = clock
    self._m: Dict[str, Tuple[float, Any]] = {}
    self._lock = threading.Lock()

  def get(self, k: str) -> Optional[Any]:
    with self._lock:
      v = self._m.get(k)
    if v is None:
      return None
    exp, payload = v
    if self._clock() >= exp:
      return None
    return payload

  def set(self, k: str, payload: Any) -> None:
    with self._lock:
      if k not in self._m and len(self._m) >= self.max_entries:
        self._make_room()
      self._m[k] = (self._clock() + self.ttl, payload)

  def purge_expired(self) -> int:
    with self._lock:
      return self._purge()

  def clear(self) -> None:
    with self._lock:
      self._m.clear()

  def __len__(self) -> int:
    with self._lock:
      return len(self._m)

  # caller holds the lock
  def _purge(self) -> int:
    now = self._clock()
    dead = [k for k, (exp, _) in self._m.items() if now >= exp]
    for k in dead:
      del self._m[k]
    return len(dead)

  def _make_room(self) -> None:
    if self._purge():
      return
    oldest = min(self._m.items(), key=lambda kv: kv[1][0])[0]
    del self._m[oldest]
