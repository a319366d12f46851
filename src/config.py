"""Runtime configuration for the park data proxy.

Environment variables override the defaults below. Upstream source
definitions and static fallback tables live as YAML under ``config/`` and are
validated against the JSON schemas under ``schemas/`` when loaded.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from jsonschema import ValidationError, validate

logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR = ROOT / "config"
SCHEMA_DIR = ROOT / "schemas"

SOURCES_PATH = CONFIG_DIR / "sources.yaml"
FALLBACK_PATH = CONFIG_DIR / "fallback.yaml"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


@dataclass
class Settings:
    """Process-wide settings, resolved once at startup."""

    port: int = 3000
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # HTTP client
    http_retries: int = 2
    retry_delay_seconds: float = 1.0

    # Per-domain cache TTLs (seconds)
    wait_times_ttl: float = 300
    entertainment_ttl: float = 1800
    park_hours_ttl: float = 3600

    # Wait-times circuit breaker
    breaker_error_threshold: float = 50.0
    breaker_volume_threshold: int = 5
    breaker_window_seconds: float = 10.0
    breaker_reset_seconds: float = 30.0

    # /api/ rate limit: N requests per window
    rate_limit_requests: int = 200
    rate_limit_window_seconds: float = 900

    sources_path: Path = SOURCES_PATH
    fallback_path: Path = FALLBACK_PATH


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    origins = os.environ.get("CORS_ORIGINS", "*")
    return Settings(
        port=_env_int("PORT", 3000),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        http_retries=_env_int("HTTP_RETRIES", 2),
        retry_delay_seconds=_env_float("RETRY_DELAY_SECONDS", 1.0),
        wait_times_ttl=_env_float("WAIT_TIMES_TTL_SECONDS", 300),
        entertainment_ttl=_env_float("ENTERTAINMENT_TTL_SECONDS", 1800),
        park_hours_ttl=_env_float("PARK_HOURS_TTL_SECONDS", 3600),
        breaker_error_threshold=_env_float("BREAKER_ERROR_THRESHOLD", 50.0),
        breaker_volume_threshold=_env_int("BREAKER_VOLUME_THRESHOLD", 5),
        breaker_window_seconds=_env_float("BREAKER_WINDOW_SECONDS", 10.0),
        breaker_reset_seconds=_env_float("BREAKER_RESET_SECONDS", 30.0),
        rate_limit_requests=_env_int("API_RATE_LIMIT_REQUESTS", 200),
        rate_limit_window_seconds=_env_float("API_RATE_LIMIT_WINDOW_SECONDS", 900),
    )


def load_yaml_config(path: Path, schema_name: str) -> dict:
    """Load a YAML config file and validate it against ``schemas/<schema_name>``.

    Raises:
        FileNotFoundError: If the config file is missing.
        jsonschema.ValidationError: If the document does not match the schema.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    schema_path = SCHEMA_DIR / schema_name
    if schema_path.exists():
        try:
            schema = json.loads(schema_path.read_text(encoding="utf-8"))
            validate(instance=data, schema=schema)
        except ValidationError as exc:
            logger.error("%s failed schema validation: %s", path.name, exc.message)
            raise

    return data
