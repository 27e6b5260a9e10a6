"""Environment configuration for the event tracker runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

LEGACY_KEY_VARS = ("FALLBACK_HYPIXEL_API_KEY", "2ND_FALLBACK_HYPIXEL_API_KEY")
STORAGE_BACKENDS = ("file", "dynamodb")


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_str(name: str, *, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = raw.strip()
    return raw or default


def read_api_keys() -> list[str]:
    """Collect Hypixel API keys from HYPIXEL_API_KEYS and the legacy variables."""
    keys: list[str] = []
    combined = os.getenv("HYPIXEL_API_KEYS", "")
    candidates = [part.strip() for part in combined.split(",")]
    candidates.extend((os.getenv(name) or "").strip() for name in LEGACY_KEY_VARS)
    for key in candidates:
        if key and key not in keys:
            keys.append(key)
    return keys


@dataclass(frozen=True)
class ShadowConfig:
    enabled: bool
    channel_id: int | None


def read_shadow_config(*, default_enabled: bool = False) -> ShadowConfig:
    return ShadowConfig(
        enabled=env_bool("SHADOW_MODE", default=default_enabled),
        channel_id=env_int("SHADOW_CHANNEL_ID"),
    )


@dataclass(frozen=True)
class TrackerSettings:
    discord_token: str
    report_channel_id: int
    guild_player: str | None
    guild_id: str | None
    api_keys: list[str] = field(default_factory=list)
    rotation_calls: int = 65
    request_delay: float = 10.0
    identity_ttl: float = 3600.0
    timezone: str = "UTC"
    storage: str = "file"
    data_dir: str = "data"
    table_name: str | None = None
    aws_region: str = "us-east-1"
    leaderboard_size: int = 10
    report_size: int = 5
    text_commands: bool = False
    shadow: ShadowConfig = field(default_factory=lambda: ShadowConfig(False, None))

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def load(cls) -> "TrackerSettings":
        missing: list[str] = []

        def need(name: str) -> str:
            value = env_str(name)
            if not value:
                missing.append(name)
                return ""
            return value

        discord_token = need("DISCORD_TOKEN")
        report_channel_raw = need("EVENT_REPORT_CHANNEL_ID")
        guild_player = env_str("HYPIXEL_GUILD_PLAYER")
        guild_id = env_str("HYPIXEL_GUILD_ID")
        if not guild_player and not guild_id:
            missing.append("HYPIXEL_GUILD_PLAYER or HYPIXEL_GUILD_ID")

        storage = (env_str("EVENT_STORAGE", default="file") or "file").lower()
        table_name = env_str("EVENT_TABLE_NAME")
        if storage == "dynamodb" and not table_name:
            missing.append("EVENT_TABLE_NAME")

        if missing:
            raise RuntimeError("Missing env vars: " + ", ".join(missing))

        if storage not in STORAGE_BACKENDS:
            raise RuntimeError(f"Unsupported EVENT_STORAGE: {storage}")
        try:
            report_channel_id = int(report_channel_raw)
        except ValueError as exc:
            raise RuntimeError("EVENT_REPORT_CHANNEL_ID must be numeric") from exc

        timezone = env_str("EVENT_TIMEZONE", default="UTC") or "UTC"
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise RuntimeError(f"Unknown EVENT_TIMEZONE: {timezone}") from exc

        return cls(
            discord_token=discord_token,
            report_channel_id=report_channel_id,
            guild_player=guild_player,
            guild_id=guild_id,
            api_keys=read_api_keys(),
            rotation_calls=env_int("HYPIXEL_KEY_ROTATION_CALLS", default=65) or 65,
            request_delay=float(env_int("EVENT_REQUEST_DELAY_SECONDS", default=10) or 0),
            identity_ttl=float(env_int("IDENTITY_CACHE_TTL_SECONDS", default=3600) or 0),
            timezone=timezone,
            storage=storage,
            data_dir=env_str("EVENT_DATA_DIR", default="data") or "data",
            table_name=table_name,
            aws_region=env_str("AWS_REGION", default="us-east-1") or "us-east-1",
            leaderboard_size=env_int("EVENT_LEADERBOARD_SIZE", default=10) or 10,
            report_size=env_int("EVENT_REPORT_SIZE", default=5) or 5,
            text_commands=env_bool("EVENT_TEXT_COMMANDS"),
            shadow=read_shadow_config(default_enabled=False),
        )
