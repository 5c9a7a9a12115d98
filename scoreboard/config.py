import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
MATCHES_DIR = Path(os.environ.get("SCOREBOARD_MATCHES_DIR") or PROJECT_ROOT / "matches")

SCHEMA_VERSION = 1

DEFAULT_POINTS_PER_SET = 21
DEFAULT_CAP_POINT = 30

# A lock older than this may be taken over by another device
LOCK_STALE_TIMEOUT_MS = int(os.environ.get("SCOREBOARD_LOCK_STALE_TIMEOUT_SEC", "300")) * 1000

# Second rally event inside this window is treated as a double tap
RALLY_DEBOUNCE_MS = int(os.environ.get("SCOREBOARD_RALLY_DEBOUNCE_MS", "200"))
