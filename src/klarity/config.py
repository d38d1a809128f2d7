import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import dotenv_values

from .logging import get_logger

log = get_logger("config")

DEFAULT_VISION_MODEL = "gpt-4o"
DEFAULT_LINK_BASE_URL = "https://klarity.app"
DEFAULT_LINK_TTL_DAYS = 15

_TRUTHY = {"1", "true", "yes", "on"}


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    This makes running tools from subdirectories (e.g., `src/`) still find
    repository-level config files like `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Read the nearest .env into a mapping; does not mutate the environment."""
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return {}
    values = {k: v.strip() for k, v in dotenv_values(path).items() if v is not None}
    log.debug(f"Loaded {len(values)} key(s) from .env at {path}")
    return values


def _lookup(key: str, env: Dict[str, str]) -> Optional[str]:
    v = os.environ.get(key)
    if v is not None and v.strip():
        return v.strip()
    v = env.get(key) or env.get(key.lower())
    return v.strip() if v else None


@dataclass
class Settings:
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    vision_model: str = DEFAULT_VISION_MODEL
    use_mock: bool = False
    link_base_url: str = DEFAULT_LINK_BASE_URL
    link_ttl_days: int = DEFAULT_LINK_TTL_DAYS


def load_settings(dotenv_dir: Optional[str] = None) -> Settings:
    """Collect runtime settings from the environment, then the nearest .env."""
    env = _read_dotenv(dotenv_dir or os.getcwd())

    ttl_raw = _lookup("KLARITY_LINK_TTL_DAYS", env)
    try:
        ttl = int(ttl_raw) if ttl_raw else DEFAULT_LINK_TTL_DAYS
    except ValueError:
        log.warning(f"Ignoring invalid KLARITY_LINK_TTL_DAYS={ttl_raw!r}; using {DEFAULT_LINK_TTL_DAYS}")
        ttl = DEFAULT_LINK_TTL_DAYS
    if ttl <= 0:
        log.warning(f"KLARITY_LINK_TTL_DAYS must be positive; using {DEFAULT_LINK_TTL_DAYS}")
        ttl = DEFAULT_LINK_TTL_DAYS

    settings = Settings(
        openai_api_key=_lookup("OPENAI_API_KEY", env),
        openai_base_url=_lookup("OPENAI_BASE_URL", env),
        vision_model=_lookup("KLARITY_VISION_MODEL", env) or DEFAULT_VISION_MODEL,
        use_mock=(_lookup("USE_MOCK", env) or "").lower() in _TRUTHY,
        link_base_url=(_lookup("KLARITY_LINK_BASE_URL", env) or DEFAULT_LINK_BASE_URL).rstrip("/"),
        link_ttl_days=ttl,
    )
    log.debug(
        "Settings: model=%s mock=%s link_base=%s ttl=%sd api_key=%s",
        settings.vision_model,
        settings.use_mock,
        settings.link_base_url,
        settings.link_ttl_days,
        "set" if settings.openai_api_key else "missing",
    )
    return settings
