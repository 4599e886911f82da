"""Configuration for budgetsync.

Values come from environment variables, optionally seeded from a ``.env``
file in the working directory.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from budgetsync.sharing import DEFAULT_TOKEN_BYTES, MIN_TOKEN_BYTES

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
HANDLER_NAME = "budgetsync"
DEFAULT_SHARE_BASE_URL = "http://localhost:8501/shared"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    cache_file: Path
    share_base_url: str
    share_token_bytes: int
    log_level: str


def _int_env(name: str, default: int, minimum: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer, using %d", name, raw, default)
        return default
    if value < minimum:
        logger.warning("%s=%d is below %d, using %d", name, value, minimum, default)
        return default
    return value


def load_settings(dotenv: bool = True) -> Settings:
    if dotenv:
        load_dotenv()
    data_dir = Path(os.getenv("BUDGETSYNC_DATA_DIR", _PROJECT_ROOT / "data"))
    return Settings(
        data_dir=data_dir,
        cache_file=Path(os.getenv("BUDGETSYNC_CACHE_FILE", data_dir / "local_cache.json")),
        share_base_url=os.getenv("BUDGETSYNC_SHARE_BASE_URL", DEFAULT_SHARE_BASE_URL),
        share_token_bytes=_int_env("BUDGETSYNC_SHARE_TOKEN_BYTES", DEFAULT_TOKEN_BYTES, MIN_TOKEN_BYTES),
        log_level=os.getenv("BUDGETSYNC_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not any(h.get_name() == HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler()
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
