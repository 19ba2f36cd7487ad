import os
from dotenv import load_dotenv

load_dotenv()

# Checked lazily by the client so tests and tooling can import without a key.
RIOT_API_KEY = os.getenv("RIOT_API_KEY", "")

REGIONAL = {
  "americas": "americas.api.riotgames.com",
  "europe":   "europe.api.riotgames.com",
  "asia":     "asia.api.riotgames.com",
  "ap":       "ap.api.riotgames.com",
}

PLATFORM = {
  "eu":      "eu.api.riotgames.com",
  "na":      "na.api.riotgames.com",
  "ap":      "ap.api.riotgames.com",
  "kr":      "kr.api.riotgames.com",
  "br":      "br.api.riotgames.com",
  "latam":   "latam.api.riotgames.com",
  "esports": "esports.api.riotgames.com",
}

PLATFORM_ALIASES = {"euw": "eu", "eune": "eu", "nae": "na", "sea": "ap", "asia": "ap"}

DEFAULT_REGION = os.getenv("DEFAULT_REGION", "europe")
DEFAULT_PLATFORM = os.getenv("DEFAULT_PLATFORM", "eu")

# Cache
CACHE_TTL = int(os.getenv("CACHE_TTL", "300"))
CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "5000"))

# Upstream
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "15"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
DETAIL_CONCURRENCY = int(os.getenv("DETAIL_CONCURRENCY", "4"))
FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", "20"))
# dev keys allow 100 req / 120s; 0.80 rps leaves headroom, bursts up to 20
RATE_PER_SEC = float(os.getenv("RATE_PER_SEC", "0.8"))
RATE_BURST = int(os.getenv("RATE_BURST", "20"))

# Aggregation
PROFILE_MATCH_WINDOW = int(os.getenv("PROFILE_MATCH_WINDOW", "5"))
RECENT_MATCH_LIMIT = int(os.getenv("RECENT_MATCH_LIMIT", "20"))

# Persistence
DB_PATH = os.getenv("DB_PATH", "data/valtracker.db")
