from typing import Dict
import os

# DB
DB_URL = os.getenv(
    "DB_URL", "mysql+pymysql://intrack:intrack@db:3306/intrack?charset=utf8mb4")

# Calendar days are cut in this zone; stored timestamps are naive UTC
BUSINESS_TZ = os.getenv("BUSINESS_TZ", "UTC")


def parse_lines(raw: str) -> Dict[int, str]:
    """Parse ``"1:Line A,2:Line B"`` into ``{1: "Line A", 2: "Line B"}``.

    An entry without a name gets ``"Production Line <id>"``.
    """
    lines: Dict[int, str] = {}
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        key, _, name = chunk.partition(":")
        line_id = int(key.strip())
        lines[line_id] = name.strip() or f"Production Line {line_id}"
    return lines


PRODUCTION_LINES = parse_lines(os.getenv(
    "PRODUCTION_LINES", ",".join(f"{i}:Production Line {i}" for i in range(1, 6))))

# Dashboards
DASHBOARD_DAYS = int(os.getenv("DASHBOARD_DAYS", "7"))
MAX_WINDOW_DAYS = int(os.getenv("MAX_WINDOW_DAYS", "366"))

# History paging
HISTORY_PAGE_SIZE = int(os.getenv("HISTORY_PAGE_SIZE", "50"))
HISTORY_MAX_PAGE_SIZE = int(os.getenv("HISTORY_MAX_PAGE_SIZE", "500"))

# CORS
CORS_ORIGINS = [o.strip() for o in os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
