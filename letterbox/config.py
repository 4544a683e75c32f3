"""Configuration constants and project paths for letterbox.

Defines the data directory and default SQLite DB path, Buttondown API
settings, HTTP retry knobs, image download limits and static-site/reader
defaults. Secrets are read from the environment; a local `.env` file is
loaded on import.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = ROOT / "data"
DB_PATH = DATA_DIR / "newsletters.db"

# Buttondown API
API_BASE_URL = "https://api.buttondown.com/v1"
API_KEY_ENV = "BUTTONDOWN_API_KEY"
USER_AGENT = "letterbox-sync/1.0"

# Read timeout (seconds) for API responses
API_TIMEOUT = 30
# Connect timeout (seconds) to avoid long TCP connect hangs
API_CONNECT_TIMEOUT = 5
# Number of retries for transient errors (network/5xx/429)
API_RETRIES = 3
# Base factor for exponential backoff (sleep = backoff * 2 ** (attempt - 1))
API_BACKOFF = 0.3
API_STATUS_FORCELIST = [429, 500, 502, 503, 504]
# Seconds to wait on a 429 when the server sends no Retry-After header
API_RATE_LIMIT_DEFAULT = 5
# Seconds to wait after a network error before retrying
API_NETWORK_RETRY_DELAY = 2
# Pause between pagination requests
API_PAGE_DELAY = 0.1

# Statuses requested on every sync. The API returns only 'sent' by default.
SYNC_STATUSES = ["sent", "imported", "draft"]
# Statuses shown by the reader and the static site
PUBLISHED_STATUSES = ("sent", "imported")

# Embedded image downloads
IMAGE_CONCURRENCY = 5
IMAGE_TIMEOUT = (5, 30)
# Images above this size are reported by `image-stats`
LARGE_IMAGE_BYTES = 1_000_000

# Static site
SITE_TITLE = "thank you notes"
SITE_DESCRIPTION = "Thank You Notes - A newsletter collection"
SITE_BASE_PATH = "/letters"
SITE_LINK = "https://example.github.io/letters/"

# Reader web server
READER_HOST = "0.0.0.0"
READER_PORT = 3000

SCHEMA_VERSION = 4


def get_api_key() -> str | None:
    """Return the Buttondown API key from the environment, or None."""
    key = os.environ.get(API_KEY_ENV)
    return key.strip() if key and key.strip() else None
