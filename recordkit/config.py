from __future__ import annotations
import os, logging
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# ---- Config (all defined here) ---------------------------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
COLLECTIONS_FILE = Path(os.getenv("COLLECTIONS_FILE", "config/collections.yaml"))

DEFAULT_PER_PAGE = int(os.getenv("DEFAULT_PER_PAGE", "30"))
RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
RETRY_BASE_DELAY_MS = int(os.getenv("RETRY_BASE_DELAY_MS", "1000"))
FIELD_MAPPING_MAX_DEPTH = int(os.getenv("FIELD_MAPPING_MAX_DEPTH", "32"))

CORS_ALLOW_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "").split(",") if o.strip()
]

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Install a basic handler on the root logger. Library code only logs;
    applications call this once at startup.
    """
    logging.basicConfig(level=(level or LOG_LEVEL), format=_LOG_FORMAT)
    logging.getLogger("recordkit").setLevel(level or LOG_LEVEL)
