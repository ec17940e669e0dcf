"""Runtime settings for the PrepWise voice interview service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


PLATFORM_NAME = "PrepWise"

DEFAULT_VAPI_BASE_URL = "https://api.vapi.ai"
DEFAULT_ENV_FILES = (".env.local", ".env")

WEB_TOKEN_ENV_VARS = ("VAPI_WEB_TOKEN", "NEXT_PUBLIC_VAPI_WEB_TOKEN")
WORKFLOW_ID_ENV_VARS = ("VAPI_WORKFLOW_ID", "NEXT_PUBLIC_VAPI_WORKFLOW_ID")
ASSISTANT_ID_ENV_VARS = ("VAPI_ASSISTANT_ID", "NEXT_PUBLIC_VAPI_ASSISTANT_ID")

DEFAULT_CORS_ORIGINS: tuple[str, ...] = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
)


@dataclass(frozen=True)
class AppSettings:
    """Service configuration, resolved once at startup and passed explicitly."""

    web_token: Optional[str] = None
    web_token_env: str = WEB_TOKEN_ENV_VARS[0]
    workflow_id: Optional[str] = None
    assistant_id: Optional[str] = None
    vapi_base_url: str = DEFAULT_VAPI_BASE_URL
    vapi_timeout_seconds: float = 30.0
    data_dir: Path = Path("data")
    openai_model: Optional[str] = None
    completion_settle_seconds: float = 1.0
    server_host: str = "0.0.0.0"
    server_port: int = 8000
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)

    @property
    def call_endpoint(self) -> str:
        return f"{self.vapi_base_url.rstrip('/')}/call/web"


def load_env_files(paths: tuple[str, ...] = DEFAULT_ENV_FILES) -> list[Path]:
    """
    Load dotenv files without overriding variables already in the environment.

    `.env.local` is loaded before `.env`, so its values win.

    Returns:
        The files that were found and loaded.
    """
    loaded: list[Path] = []
    for raw_path in paths:
        path = Path(raw_path).expanduser()
        if path.is_file():
            load_dotenv(path, override=False)
            loaded.append(path)
    if loaded:
        logger.info("Loaded environment from: %s", ", ".join(str(p) for p in loaded))
    return loaded


def _first_env(names: tuple[str, ...]) -> tuple[Optional[str], str]:
    """Return (raw value, variable name) for the first variable that is set."""
    for name in names:
        value = os.environ.get(name)
        if value is not None and value.strip():
            return value, name
    return None, names[0]


def _optional_env(names: tuple[str, ...]) -> Optional[str]:
    value, _ = _first_env(names)
    return value.strip() if value is not None else None


def _positive_float(name: str, default: str) -> float:
    raw = (os.environ.get(name, default) or "").strip()
    if not raw:
        raise RuntimeError(f"{name} resolved to empty value.")
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number. Got: {raw}") from exc
    if value < 0:
        raise RuntimeError(f"{name} must not be negative. Got: {value}.")
    return value


def load_settings(env_files: tuple[str, ...] | None = DEFAULT_ENV_FILES) -> AppSettings:
    """
    Load settings from the environment with strict validation.

    Missing voice credentials are allowed here. They surface later as a
    ConfigurationError on the request that needs them, so the server can
    still boot and report what is wrong.

    Args:
        env_files: Dotenv files to load first, or None to skip dotenv.

    Raises:
        RuntimeError: If a numeric or host setting is malformed.
    """
    if env_files:
        load_env_files(env_files)

    web_token, web_token_env = _first_env(WEB_TOKEN_ENV_VARS)

    vapi_base_url = (os.environ.get("VAPI_BASE_URL", DEFAULT_VAPI_BASE_URL) or "").strip()
    if not vapi_base_url:
        raise RuntimeError("VAPI_BASE_URL resolved to empty value.")

    vapi_timeout_seconds = _positive_float("VAPI_TIMEOUT_SECONDS", "30")
    if vapi_timeout_seconds == 0:
        raise RuntimeError("VAPI_TIMEOUT_SECONDS must be greater than zero.")

    completion_settle_seconds = _positive_float("COMPLETION_SETTLE_SECONDS", "1.0")

    server_host = (os.environ.get("SERVER_HOST", "0.0.0.0") or "").strip()
    if not server_host:
        raise RuntimeError("SERVER_HOST resolved to empty value.")

    server_port_raw = (os.environ.get("SERVER_PORT", "8000") or "").strip()
    try:
        server_port = int(server_port_raw)
    except ValueError as exc:
        raise RuntimeError(f"SERVER_PORT must be an integer. Got: {server_port_raw}") from exc
    if server_port < 1 or server_port > 65535:
        raise RuntimeError(f"SERVER_PORT must be in range 1-65535. Got: {server_port}.")

    data_dir = Path(os.environ.get("DATA_DIR") or Path(__file__).resolve().parent.parent / "data")

    cors_raw = (os.environ.get("CORS_ORIGINS") or "").strip()
    cors_origins = (
        tuple(origin.strip() for origin in cors_raw.split(",") if origin.strip())
        if cors_raw
        else DEFAULT_CORS_ORIGINS
    )

    return AppSettings(
        web_token=web_token,
        web_token_env=web_token_env,
        workflow_id=_optional_env(WORKFLOW_ID_ENV_VARS),
        assistant_id=_optional_env(ASSISTANT_ID_ENV_VARS),
        vapi_base_url=vapi_base_url,
        vapi_timeout_seconds=vapi_timeout_seconds,
        data_dir=data_dir.expanduser(),
        openai_model=(os.environ.get("OPENAI_MODEL") or "").strip() or None,
        completion_settle_seconds=completion_settle_seconds,
        server_host=server_host,
        server_port=server_port,
        cors_origins=cors_origins,
    )
