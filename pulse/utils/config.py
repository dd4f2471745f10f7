"""
Configuration management with schema validation.
Single source of truth for the relay's settings.

Layering (lowest to highest precedence):
- built-in defaults (``DEFAULT_SETTINGS``) or ``config/settings.yaml``
- ``${VAR}`` / ``${VAR:default}`` substitution from the environment (.env is loaded first)
- ``config.local.json`` flat keys (FB_APP_ID, FB_PAGE_ID, ...), for running without env vars
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .exceptions import ConfigError
from .logger import get_logger

logger = get_logger(__name__)

# Load environment variables
load_dotenv()

CONFIG_DIR = Path(os.getenv("PULSE_CONFIG_DIR", "config"))
SETTINGS_FILE = CONFIG_DIR / "settings.yaml"
LOCAL_CONFIG_FILE = Path(os.getenv("PULSE_LOCAL_CONFIG", "config.local.json"))

# config.local.json key -> (section, field)
LOCAL_KEYS = {
    "FB_APP_ID": ("facebook", "app_id"),
    "FB_APP_SECRET": ("facebook", "app_secret"),
    "FB_PAGE_ID": ("token_mode", "page_id"),
    "FB_PAGE_ACCESS_TOKEN": ("token_mode", "page_access_token"),
    "IG_USER_ID": ("token_mode", "ig_user_id"),
    "IG_ACCESS_TOKEN": ("token_mode", "ig_access_token"),
}

DEFAULT_SETTINGS: Dict[str, Any] = {
    "app": {
        "name": "Social Pulse",
        "version": "1.0.0",
        "environment": "${ENVIRONMENT:development}",
    },
    "graph": {
        "api_base_url": "https://graph.facebook.com",
        "api_version": "v18.0",
        "timeout_seconds": 10,
    },
    "facebook": {
        "app_id": "${FB_APP_ID:}",
        "app_secret": "${FB_APP_SECRET:}",
    },
    "token_mode": {
        "page_id": "${FB_PAGE_ID:}",
        "page_access_token": "${FB_PAGE_ACCESS_TOKEN:}",
        "ig_user_id": "${IG_USER_ID:}",
        "ig_access_token": "${IG_ACCESS_TOKEN:}",
    },
    "relay": {
        "default_interval_ms": 10000,
        "min_interval_ms": 3000,
        "max_interval_ms": 60000,
        "keepalive_seconds": 30,
    },
    "server": {
        "cors_origins": "${CORS_ORIGINS:*}",
        "session_expiry_hours": "${SESSION_EXPIRY_HOURS:24}",
        "static_dir": "${PULSE_STATIC_DIR:}",
    },
    "logging": {
        "level": "${LOG_LEVEL:INFO}",
        "format": "json",
        "file_path": "",
        "max_bytes": 10485760,
        "backup_count": 5,
    },
    "demo": {
        "enabled": False,
        "facebook": {"followers": 15420, "likes": 12850},
        "instagram": {"followers": 8760, "posts": 142},
    },
}


class AppSettings(BaseModel):
    name: str = "Social Pulse"
    version: str = "1.0.0"
    environment: str = "development"


class GraphSettings(BaseModel):
    api_base_url: str = "https://graph.facebook.com"
    api_version: str = "v18.0"
    timeout_seconds: float = 10


class FacebookAppSettings(BaseModel):
    """Credentials of the Meta app that performs the token exchange"""
    app_id: Optional[str] = None
    app_secret: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.app_secret)


class TokenModeSettings(BaseModel):
    """Static page/IG credentials; lets the stream run without a login"""
    page_id: Optional[str] = None
    page_access_token: Optional[str] = None
    ig_user_id: Optional[str] = None
    ig_access_token: Optional[str] = None

    @property
    def active(self) -> bool:
        return bool(self.page_id and (self.page_access_token or self.ig_access_token))


class RelaySettings(BaseModel):
    default_interval_ms: int = 10000
    min_interval_ms: int = 3000
    max_interval_ms: int = 60000
    keepalive_seconds: float = 30


class ServerSettings(BaseModel):
    cors_origins: Optional[str] = "*"
    session_expiry_hours: int = 24
    static_dir: Optional[str] = None

    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in (self.cors_origins or "*").split(",") if o.strip()] or ["*"]


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file_path: Optional[str] = None
    max_bytes: int = 10485760
    backup_count: int = 5


class DemoBranch(BaseModel):
    followers: int = 0
    likes: Optional[int] = None
    posts: Optional[int] = None


class DemoSettings(BaseModel):
    enabled: bool = False
    facebook: DemoBranch = Field(default_factory=lambda: DemoBranch(followers=15420, likes=12850))
    instagram: DemoBranch = Field(default_factory=lambda: DemoBranch(followers=8760, posts=142))


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    graph: GraphSettings = Field(default_factory=GraphSettings)
    facebook: FacebookAppSettings = Field(default_factory=FacebookAppSettings)
    token_mode: TokenModeSettings = Field(default_factory=TokenModeSettings)
    relay: RelaySettings = Field(default_factory=RelaySettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    demo: DemoSettings = Field(default_factory=DemoSettings)

    @property
    def is_production(self) -> bool:
        return self.app.environment.strip().lower() == "production"


def substitute_env_vars(value: Any) -> Any:
    """Recursively substitute environment variables"""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            var_expr = value[2:-1]
            if ":" in var_expr:
                var_name, default = var_expr.split(":", 1)
                return os.getenv(var_name.strip(), default.strip())
            else:
                return os.getenv(var_expr, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(item) for item in value]
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _blank_to_none(v) for k, v in value.items()}
    if isinstance(value, str) and value == "":
        return None
    return value


def load_local_overrides(path: Path) -> Dict[str, Any]:
    """Read config.local.json; a missing or unreadable file yields no overrides."""
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to read local config", path=str(path), error=str(e))
        return {}
    if not isinstance(raw, dict):
        return {}
    return raw


def load_settings(
    settings_path: Optional[Path] = None,
    local_path: Optional[Path] = None,
) -> Settings:
    """Load and validate settings (yaml or defaults, env substitution, local overrides)"""
    settings_path = settings_path or SETTINGS_FILE
    local_path = local_path or LOCAL_CONFIG_FILE

    if settings_path.exists():
        try:
            with open(settings_path, "r", encoding="utf-8") as f:
                raw_data = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            raise ConfigError(f"Failed to read settings file {settings_path}: {e}")
    else:
        raw_data = DEFAULT_SETTINGS

    data = _blank_to_none(substitute_env_vars(raw_data))

    local = load_local_overrides(local_path)
    for key, (section, field) in LOCAL_KEYS.items():
        if local.get(key):
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field] = str(local[key])

    try:
        return Settings(**data)
    except ValueError as e:
        raise ConfigError(f"Invalid settings: {e}")


def validate_settings(settings: Settings) -> List[str]:
    """Return human-readable configuration warnings (empty when usable)"""
    warnings: List[str] = []
    if settings.demo.enabled:
        return warnings
    if not settings.facebook.app_id:
        warnings.append("Facebook App ID is not configured (FB_APP_ID)")
    if not settings.facebook.app_secret:
        warnings.append("Facebook App Secret is not configured (FB_APP_SECRET)")
    if warnings and settings.token_mode.active:
        # Login is unavailable, but the stream still runs from static credentials
        return []
    return warnings
