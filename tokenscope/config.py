"""Runtime settings, .env loading and Lambda secret bootstrap."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

import boto3


_LOGGER = logging.getLogger("tokenscope.config")

API_KEY_NAMES = ("MORALIS_API_KEY", "BIRDEYE_API_KEY", "XAI_API_KEY")
HOLDER_STATS_MODES = ("auto", "provider", "local")
DEFAULT_XAI_MODELS = "grok-3-mini,grok-3,grok-2-latest"

_SSM_CLIENT = None


def load_dotenv(path: str = ".env") -> None:
    """Copy KEY=VALUE lines from ``path`` into the environment without overriding."""

    env_file = Path(path)
    if not env_file.exists():
        return
    for line in env_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


@dataclass(frozen=True)
class Settings:
    moralis_api_key: str = ""
    birdeye_api_key: str = ""
    xai_api_key: str = ""
    xai_base_url: str = "https://api.x.ai/v1"
    xai_models: List[str] = field(default_factory=lambda: DEFAULT_XAI_MODELS.split(","))
    http_timeout_seconds: float = 30.0
    llm_timeout_seconds: float = 120.0
    cache_enabled: bool = True
    cache_ttl_seconds: int = 120
    analytics_cache_ttl_seconds: int = 1800
    holder_stats_mode: str = "auto"
    strict_chain_detection: bool = False
    require_moralis_key: bool = False
    ssm_parameter_prefix: str = ""
    root_path: str = ""

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = ".env") -> "Settings":
        if dotenv_path:
            load_dotenv(dotenv_path)
        models = [m.strip() for m in _env_str("XAI_MODELS", DEFAULT_XAI_MODELS).split(",") if m.strip()]
        mode = _env_str("HOLDER_STATS_MODE", "auto").lower()
        if mode not in HOLDER_STATS_MODES:
            _LOGGER.warning("unknown HOLDER_STATS_MODE=%s, using auto", mode)
            mode = "auto"
        return cls(
            moralis_api_key=_env_str("MORALIS_API_KEY"),
            birdeye_api_key=_env_str("BIRDEYE_API_KEY"),
            xai_api_key=_env_str("XAI_API_KEY"),
            xai_base_url=_env_str("XAI_BASE_URL", "https://api.x.ai/v1").rstrip("/"),
            xai_models=models,
            http_timeout_seconds=float(_env_str("HTTP_TIMEOUT_SECONDS", "30")),
            llm_timeout_seconds=float(_env_str("LLM_TIMEOUT_SECONDS", "120")),
            cache_enabled=_env_bool("CACHE_ENABLED", True),
            cache_ttl_seconds=int(_env_str("CACHE_TTL_SECONDS", "120")),
            analytics_cache_ttl_seconds=int(_env_str("ANALYTICS_CACHE_TTL_SECONDS", "1800")),
            holder_stats_mode=mode,
            strict_chain_detection=_env_bool("STRICT_CHAIN_DETECTION", False),
            require_moralis_key=_env_bool("REQUIRE_MORALIS_KEY", False),
            ssm_parameter_prefix=_env_str("SSM_PARAMETER_PREFIX"),
            root_path=_env_str("TOKENSCOPE_ROOT_PATH"),
        )


def validate_settings(settings: Settings) -> None:
    """Warn about missing API keys; a missing Moralis key is fatal when required."""

    missing = [
        name
        for name, value in (
            ("MORALIS_API_KEY", settings.moralis_api_key),
            ("BIRDEYE_API_KEY", settings.birdeye_api_key),
            ("XAI_API_KEY", settings.xai_api_key),
        )
        if not value
    ]
    if missing:
        _LOGGER.warning("missing api keys=%s", ",".join(missing))
    else:
        _LOGGER.info("all api keys present")
    if settings.require_moralis_key and not settings.moralis_api_key:
        raise RuntimeError("MORALIS_API_KEY is not configured")


def _ssm_client():
    global _SSM_CLIENT
    if _SSM_CLIENT is None:
        region = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")
        _LOGGER.info("ssm init region=%s", region)
        _SSM_CLIENT = boto3.client("ssm", region_name=region)
    return _SSM_CLIENT


def load_ssm_parameters(
    prefix: str,
    names: Iterable[str] = API_KEY_NAMES,
    client=None,
) -> List[str]:
    """Fill missing env vars from SSM parameters named ``<prefix>/<NAME>``.

    Returns the names that were loaded. Variables already present in the environment win.
    """

    wanted = [name for name in names if not os.getenv(name)]
    if not prefix or not wanted:
        return []
    base = prefix.rstrip("/")
    by_path = {f"{base}/{name}": name for name in wanted}
    response = (client or _ssm_client()).get_parameters(
        Names=list(by_path.keys()),
        WithDecryption=True,
    )
    loaded = []
    for param in response.get("Parameters", []):
        env_name = by_path.get(param.get("Name"))
        value = param.get("Value")
        if env_name and value:
            os.environ[env_name] = value
            loaded.append(env_name)
    invalid = response.get("InvalidParameters") or []
    if invalid:
        _LOGGER.warning("ssm missing parameters=%s", ",".join(invalid))
    _LOGGER.info("ssm loaded parameters=%s", ",".join(loaded) or "none")
    return loaded
