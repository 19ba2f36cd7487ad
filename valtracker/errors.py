# valtracker/errors.py
from typing import List, Optional


class ValTrackerError(Exception):
  """Base for everything the core raises or reports."""


class NotFound(ValTrackerError):
  """Account or match unknown upstream."""


class RateLimited(ValTrackerError):
  def __init__(self, message: str = "upstream rate limit exceeded", retry_after: Optional[float] = None):
    super().__init__(message)
    self.retry_after = retry_after


class UpstreamError(ValTrackerError):
  """Transport failure, 5xx, or an unexpected upstream status."""

  def __init__(self, message: str = "upstream request failed", status: Optional[int] = None):
    super().__init__(message)
    self.status = status


class PartialData(ValTrackerError):
  """
  Not raised. Describes a match-detail fan-out where some fetches were dropped;
  callers attach it to results as a warning.
  """

  def __init__(self, requested: List[str], fetched: List[str]):
    self.requested = list(requested)
    self.fetched = list(fetched)
    got = set(self.fetched)
    self.missing = [mid for mid in self.requested if mid not in got]
    super().__init__(f"fetched {len(self.fetched)} of {len(self.requested)} matches")
