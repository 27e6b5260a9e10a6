"""Guild event tracker: stat snapshots, daily leaderboards and giveaways."""

from .config import ShadowConfig, TrackerSettings, read_api_keys, read_shadow_config
from .engine import CaptureResult, EventEngine, install_signal_handlers
from .errors import (
    ConflictError,
    DeliveryError,
    EventTrackerError,
    ExternalServiceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .hypixel_api import FetchResult, GuildMember, GuildRoster, HypixelFetcher
from .leaderboard import LeaderboardCompiler, build_summary
from .lottery import DrawResult, LotterySelector
from .models import (
    DailySummary,
    EventConfig,
    GiveawayRecord,
    PlayerDelta,
    PlayerSnapshot,
    utc_now_iso,
)
from .reporting import ReportDispatcher, render_report
from .rotation import CredentialRotator
from .snapshots import SnapshotStore
from .storage import DynamoBackend, JsonFileBackend, SnapshotBackend

__all__ = [
    "ShadowConfig",
    "TrackerSettings",
    "read_api_keys",
    "read_shadow_config",
    "CaptureResult",
    "EventEngine",
    "install_signal_handlers",
    "ConflictError",
    "DeliveryError",
    "EventTrackerError",
    "ExternalServiceError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
    "FetchResult",
    "GuildMember",
    "GuildRoster",
    "HypixelFetcher",
    "LeaderboardCompiler",
    "build_summary",
    "DrawResult",
    "LotterySelector",
    "DailySummary",
    "EventConfig",
    "GiveawayRecord",
    "PlayerDelta",
    "PlayerSnapshot",
    "utc_now_iso",
    "ReportDispatcher",
    "render_report",
    "CredentialRotator",
    "SnapshotStore",
    "DynamoBackend",
    "JsonFileBackend",
    "SnapshotBackend",
]
