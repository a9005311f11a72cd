"""User-configurable values loaded from environment variables."""

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()


def _detect_local_tz() -> str:
    """Detect the system's IANA timezone name. Falls back to UTC."""
    # Debian/Ubuntu: plain text file with IANA name
    etc_tz = Path("/etc/timezone")
    if etc_tz.exists():
        name = etc_tz.read_text().strip()
        if name:
            return name

    # Most Linux/WSL: /etc/localtime is a symlink into zoneinfo
    localtime = Path("/etc/localtime")
    if localtime.is_symlink():
        target = str(localtime.resolve())
        marker = "/zoneinfo/"
        idx = target.find(marker)
        if idx != -1:
            return target[idx + len(marker) :]

    return "UTC"


_tz_name = os.environ.get("ECHOMIND_TIMEZONE") or _detect_local_tz()
try:
    TZ: ZoneInfo = ZoneInfo(_tz_name)
except (ZoneInfoNotFoundError, ValueError):
    print(f"Unknown timezone: {_tz_name}", file=sys.stderr)
    print("Set ECHOMIND_TIMEZONE to an IANA name, e.g. America/New_York.", file=sys.stderr)
    raise SystemExit(1)

DATA_DIR: Path = Path(
    os.environ.get("ECHOMIND_DATA_DIR") or Path.home() / ".echomind"
).expanduser()
USER_ID: str = os.environ.get("ECHOMIND_USER_ID") or "local"
LOG_LEVEL: str = (os.environ.get("ECHOMIND_LOG_LEVEL") or "INFO").upper()
