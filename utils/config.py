from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parent.parent


@dataclass(slots=True)
class AppConfig:
    api_url: str
    ws_url: str
    request_timeout: float
    log_dir: Path
    log_level: str


def _resolve_path(value: str | None, fallback: str) -> Path:
    candidate = Path(value or fallback)
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    return candidate


def load_config(env_file: str | os.PathLike[str] | None = None) -> AppConfig:
    """Load configuration values from a .env file and environment variables."""

    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    timeout = os.getenv("REQUEST_TIMEOUT", "30")
    try:
        request_timeout = float(timeout)
    except ValueError as exc:
        raise ValueError(f"REQUEST_TIMEOUT must be a number of seconds, got {timeout!r}") from exc

    return AppConfig(
        api_url=os.getenv("INBOX_API_URL", "http://localhost:5000"),
        ws_url=os.getenv("INBOX_WS_URL", "ws://localhost:5000"),
        request_timeout=request_timeout,
        log_dir=_resolve_path(os.getenv("LOG_DIR"), "logs"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
