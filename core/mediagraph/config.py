"""Shared mediagraph configuration utilities.

Centralises reading of ~/.mediagraph/configuration.json so that the engine,
the HTTP service client and the CLI share one implementation.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_SERVICE_URL = "http://localhost:3000"
DEFAULT_HISTORY_LIMIT = 100
DEFAULT_IMAGE_HISTORY_LIMIT = 100
DEFAULT_REQUEST_TIMEOUT = 600.0

# Seconds to wait after a successful call, per node type, to stay under
# provider rate limits.
DEFAULT_RATE_LIMIT_DELAYS: dict[str, float] = {"videoGenerate": 3.0}

# Request header -> environment variable
API_KEY_HEADERS: dict[str, str] = {
    "x-gemini-api-key": "GEMINI_API_KEY",
    "x-openai-api-key": "OPENAI_API_KEY",
    "x-elevenlabs-api-key": "ELEVENLABS_API_KEY",
    "x-replicate-api-key": "REPLICATE_API_KEY",
    "x-kie-api-key": "KIE_API_KEY",
}

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

MEDIAGRAPH_CONFIG_FILE = Path.home() / ".mediagraph" / "configuration.json"


def get_mediagraph_config() -> dict[str, Any]:
    """Load configuration from ~/.mediagraph/configuration.json."""
    if not MEDIAGRAPH_CONFIG_FILE.exists():
        return {}
    try:
        with open(MEDIAGRAPH_CONFIG_FILE, encoding="utf-8-sig") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_service_base_url() -> str:
    """Return the base URL of the media service API (env var wins over file)."""
    env_url = os.environ.get("MEDIAGRAPH_SERVICE_URL")
    if env_url:
        return env_url.rstrip("/")
    services = get_mediagraph_config().get("services", {})
    return services.get("base_url", DEFAULT_SERVICE_URL).rstrip("/")


def get_api_keys() -> dict[str, str]:
    """Return the API key headers that have a value in the environment or config."""
    configured = get_mediagraph_config().get("api_keys", {})
    keys: dict[str, str] = {}
    for header, env_var in API_KEY_HEADERS.items():
        value = os.environ.get(env_var) or configured.get(env_var)
        if value:
            keys[header] = value
    return keys


def get_history_limit() -> int:
    return get_mediagraph_config().get("history", {}).get("limit", DEFAULT_HISTORY_LIMIT)


def get_rate_limit_delays() -> dict[str, float]:
    """Return per-node-type post-success delays, merged over the defaults."""
    delays = dict(DEFAULT_RATE_LIMIT_DELAYS)
    delays.update(get_mediagraph_config().get("rate_limit_delays", {}))
    return delays


def get_request_timeout() -> float:
    return get_mediagraph_config().get("services", {}).get("timeout", DEFAULT_REQUEST_TIMEOUT)


# ---------------------------------------------------------------------------
# EngineConfig
# ---------------------------------------------------------------------------


@dataclass
class EngineConfig:
    """Engine configuration loaded from ~/.mediagraph/configuration.json."""

    history_limit: int = field(default_factory=get_history_limit)
    service_base_url: str = field(default_factory=get_service_base_url)
    api_keys: dict[str, str] = field(default_factory=get_api_keys)
    request_timeout: float = field(default_factory=get_request_timeout)
    rate_limit_delays: dict[str, float] = field(default_factory=get_rate_limit_delays)
    paste_offset: tuple[float, float] = (50.0, 50.0)
    image_history_limit: int = DEFAULT_IMAGE_HISTORY_LIMIT
