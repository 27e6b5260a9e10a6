"""Mojang identity and Hypixel statistics lookups.

Every call returns a :class:`FetchResult` instead of raising, so a poll cycle
can log one member's failure and move on to the next.
"""

from __future__ import annotations

import asyncio
import logging
import time
import urllib.parse
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Final, Literal

import requests

from .errors import ExternalServiceError
from .models import normalize_uuid
from .rotation import CredentialRotator

log: Final = logging.getLogger("event-tracker")

MOJANG_PROFILE_URL: Final = "https://api.mojang.com/users/profiles/minecraft/{name}"
HYPIXEL_API_URL: Final = "https://api.hypixel.net/v2"
USER_AGENT: Final = "GuildEventTracker/1.0"

FetchStatus = Literal[
    "ok", "not_found", "rate_limited", "auth_failed", "unavailable", "network"
]


@dataclass(slots=True)
class FetchResult:
    """Return object describing the result of an external lookup."""

    status: FetchStatus
    payload: Any = None
    exception: Exception | None = None
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def raise_for_status(self) -> Any:
        if self.ok:
            return self.payload
        raise ExternalServiceError(
            f"lookup failed: {self.status}",
            status=self.status,
            status_code=self.status_code,
        ) from self.exception


@dataclass(slots=True)
class Identity:
    uuid: str
    name: str


@dataclass(slots=True)
class GuildMember:
    uuid: str
    rank: str | None = None
    exp_history: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> GuildMember:
        history = data.get("expHistory") or {}
        return cls(
            uuid=normalize_uuid(str(data.get("uuid", ""))),
            rank=data.get("rank"),
            exp_history={str(day): int(exp or 0) for day, exp in history.items()},
        )


@dataclass(slots=True)
class GuildRoster:
    name: str
    members: list[GuildMember]

    def member(self, uuid: str) -> GuildMember | None:
        uuid = normalize_uuid(uuid)
        for member in self.members:
            if member.uuid == uuid:
                return member
        return None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> GuildRoster:
        return cls(
            name=str(data.get("name", "")),
            members=[
                GuildMember.from_payload(item)
                for item in data.get("members", [])
                if item.get("uuid")
            ],
        )


def classify_status(status_code: int) -> FetchStatus:
    if 200 <= status_code < 300 and status_code != 204:
        return "ok"
    if status_code in (204, 404):
        return "not_found"
    if status_code == 429:
        return "rate_limited"
    if status_code in (401, 403):
        return "auth_failed"
    return "unavailable"


class HypixelFetcher:
    def __init__(
        self,
        rotator: CredentialRotator,
        *,
        session: requests.Session | None = None,
        identity_ttl: float = 3600.0,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._rotator = rotator
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
        self._identity_ttl = identity_ttl
        self._timeout = timeout
        self._clock = clock
        self._identity_cache: dict[str, tuple[Identity, float]] = {}

    def close(self) -> None:
        self._session.close()

    def _request(
        self, url: str, *, params: dict[str, str] | None = None, headers: dict[str, str] | None = None
    ) -> FetchResult:
        try:
            resp = self._session.get(url, params=params, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            return FetchResult(status="network", exception=exc)

        status = classify_status(resp.status_code)
        if status != "ok":
            return FetchResult(status=status, status_code=resp.status_code)
        try:
            data = resp.json()
        except ValueError as exc:
            return FetchResult(status="network", exception=exc, status_code=resp.status_code)
        return FetchResult(status="ok", payload=data, status_code=resp.status_code)

    async def _hypixel_get(self, endpoint: str, params: dict[str, str], max_retries: int = 1) -> FetchResult:
        url = f"{HYPIXEL_API_URL}/{endpoint}"
        key = self._rotator.next()
        for attempt in range(max_retries + 1):
            headers = {"API-Key": key} if key else None
            result = await asyncio.to_thread(self._request, url, params=params, headers=headers)
            if result.status == "auth_failed" and attempt < max_retries and len(self._rotator) > 1:
                log.warning(
                    "Hypixel rejected API key for %s, rotating key (attempt %d/%d)",
                    endpoint,
                    attempt + 1,
                    max_retries,
                )
                key = self._rotator.advance()
                continue
            return result
        return result

    async def resolve_identity(self, name: str) -> FetchResult:
        """Resolve a display name to an Identity, cached per lowercase name."""
        cache_key = name.strip().lower()
        cached = self._identity_cache.get(cache_key)
        now = self._clock()
        if cached is not None and cached[1] > now:
            return FetchResult(status="ok", payload=cached[0])

        url = MOJANG_PROFILE_URL.format(name=urllib.parse.quote(name.strip()))
        result = await asyncio.to_thread(self._request, url)
        if not result.ok:
            if result.status == "not_found":
                log.warning("Mojang profile %s not found", name)
            else:
                log.error("Mojang lookup for %s failed: %s", name, result.status)
            return result

        data = result.payload or {}
        if not data.get("id"):
            return FetchResult(status="not_found", status_code=result.status_code)
        identity = Identity(uuid=normalize_uuid(str(data["id"])), name=str(data.get("name", name)))
        self._identity_cache[cache_key] = (identity, now + self._identity_ttl)
        return FetchResult(status="ok", payload=identity, status_code=result.status_code)

    async def fetch_statistics(self, uuid: str) -> FetchResult:
        """Fetch the raw Hypixel player object for `uuid`."""
        result = await self._hypixel_get("player", {"uuid": normalize_uuid(uuid)})
        if not result.ok:
            return result
        player = (result.payload or {}).get("player")
        if not player:
            return FetchResult(status="not_found", status_code=result.status_code)
        return FetchResult(status="ok", payload=player, status_code=result.status_code)

    async def fetch_guild(
        self, *, player_uuid: str | None = None, guild_id: str | None = None
    ) -> FetchResult:
        if guild_id:
            params = {"id": guild_id}
        elif player_uuid:
            params = {"player": normalize_uuid(player_uuid)}
        else:
            raise ValueError("player_uuid or guild_id is required")
        result = await self._hypixel_get("guild", params)
        if not result.ok:
            return result
        guild = (result.payload or {}).get("guild")
        if not guild:
            return FetchResult(status="not_found", status_code=result.status_code)
        return FetchResult(
            status="ok", payload=GuildRoster.from_payload(guild), status_code=result.status_code
        )

    async def fetch_roster(
        self, *, guild_player: str | None = None, guild_id: str | None = None
    ) -> FetchResult:
        """Return the guild roster, found by id or through a member's name."""
        if guild_id:
            return await self.fetch_guild(guild_id=guild_id)
        if not guild_player:
            raise ValueError("guild_player or guild_id is required")
        identity = await self.resolve_identity(guild_player)
        if not identity.ok:
            return identity
        return await self.fetch_guild(player_uuid=identity.payload.uuid)
