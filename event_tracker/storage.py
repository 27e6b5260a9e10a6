from __future__ import annotations

import abc
import json
import logging
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Any, Final

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from .errors import PersistenceError
from .models import (
    DailySummary,
    EventConfig,
    GiveawayRecord,
    PlayerSnapshot,
    is_entity_id,
    normalize_uuid,
)

log: Final = logging.getLogger("event-tracker")

_DAY_FILE = re.compile(r"^day(\d+)\.json$")


class SnapshotBackend(abc.ABC):
    """Keyed storage for event state: config, (entity, day) snapshots and histories."""

    @abc.abstractmethod
    def load_event_config(self) -> EventConfig | None: ...

    @abc.abstractmethod
    def save_event_config(self, config: EventConfig) -> None: ...

    @abc.abstractmethod
    def write_snapshot(self, snapshot: PlayerSnapshot, day_index: int) -> None: ...

    @abc.abstractmethod
    def read_snapshot(self, uuid: str, day_index: int) -> PlayerSnapshot | None: ...

    @abc.abstractmethod
    def list_entities(self, day_index: int) -> list[str]:
        """Entity ids with a snapshot for `day_index`, in a stable order."""

    @abc.abstractmethod
    def load_summaries(self) -> list[DailySummary]: ...

    @abc.abstractmethod
    def save_summaries(self, summaries: list[DailySummary]) -> None: ...

    @abc.abstractmethod
    def load_giveaways(self) -> GiveawayRecord: ...

    @abc.abstractmethod
    def save_giveaways(self, record: GiveawayRecord) -> None: ...

    @abc.abstractmethod
    def clear_event_data(self) -> None:
        """Drop snapshots, summary history and giveaway history (not the config)."""


class JsonFileBackend(SnapshotBackend):
    CONFIG_FILE: Final = "event-config.json"
    SUMMARY_FILE: Final = "overall.json"
    GIVEAWAY_FILE: Final = "giveaway-data.json"

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._dir = Path(root) / "event"

    @property
    def directory(self) -> Path:
        return self._dir

    def _ensure_dir(self, path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Failed to create {path}: {exc}") from exc

    def _write_json(self, path: Path, data: Any) -> None:
        self._ensure_dir(path.parent)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
            os.replace(tmp_name, path)
        except OSError as exc:
            raise PersistenceError(f"Failed to write {path}: {exc}") from exc

    def _read_json(self, path: Path) -> Any | None:
        try:
            with path.open(encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Failed to read {path}: {exc}") from exc

    def _player_dir(self, uuid: str) -> Path:
        return self._dir / normalize_uuid(uuid)

    # ----- Event configuration -----
    def load_event_config(self) -> EventConfig | None:
        data = self._read_json(self._dir / self.CONFIG_FILE)
        if not data:
            return None
        return EventConfig.from_dict(data)

    def save_event_config(self, config: EventConfig) -> None:
        self._write_json(self._dir / self.CONFIG_FILE, config.to_dict())

    # ----- Snapshots -----
    def write_snapshot(self, snapshot: PlayerSnapshot, day_index: int) -> None:
        path = self._player_dir(snapshot.uuid) / f"day{day_index}.json"
        self._write_json(path, snapshot.to_dict())

    def read_snapshot(self, uuid: str, day_index: int) -> PlayerSnapshot | None:
        data = self._read_json(self._player_dir(uuid) / f"day{day_index}.json")
        if data is None:
            return None
        return PlayerSnapshot.from_dict(data)

    def list_entities(self, day_index: int) -> list[str]:
        if not self._dir.is_dir():
            return []
        try:
            entries = sorted(self._dir.iterdir(), key=lambda entry: entry.name)
        except OSError as exc:
            raise PersistenceError(f"Failed to list {self._dir}: {exc}") from exc
        return [
            entry.name
            for entry in entries
            if entry.is_dir()
            and is_entity_id(entry.name)
            and (entry / f"day{day_index}.json").is_file()
        ]

    # ----- Histories -----
    def load_summaries(self) -> list[DailySummary]:
        data = self._read_json(self._dir / self.SUMMARY_FILE) or []
        return [DailySummary.from_dict(item) for item in data]

    def save_summaries(self, summaries: list[DailySummary]) -> None:
        self._write_json(self._dir / self.SUMMARY_FILE, [s.to_dict() for s in summaries])

    def load_giveaways(self) -> GiveawayRecord:
        data = self._read_json(self._dir / self.GIVEAWAY_FILE)
        if not data:
            return GiveawayRecord()
        return GiveawayRecord.from_dict(data)

    def save_giveaways(self, record: GiveawayRecord) -> None:
        self._write_json(self._dir / self.GIVEAWAY_FILE, record.to_dict())

    def clear_event_data(self) -> None:
        if not self._dir.is_dir():
            return
        try:
            for entry in self._dir.iterdir():
                if entry.is_dir():
                    shutil.rmtree(entry)
            for name in (self.SUMMARY_FILE, self.GIVEAWAY_FILE):
                (self._dir / name).unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Failed to clear event data: {exc}") from exc
        log.info("Cleared old event data and giveaway data")


class DynamoBackend(SnapshotBackend):
    """Single-table layout keyed by `pk`/`sk` with JSON payloads."""

    EVENT_PK: Final = "EVENT"
    PLAYER_PK_TEMPLATE: Final = "PLAYER#%s"
    DAY_SK_TEMPLATE: Final = "DAY#%04d"

    def __init__(self, table) -> None:
        self._table = table

    def ensure_table(self) -> None:
        if self._table is None:
            raise PersistenceError("Event table is not configured")

    def _get(self, pk: str, sk: str) -> Any | None:
        self.ensure_table()
        try:
            resp = self._table.get_item(Key={"pk": pk, "sk": sk})
        except (ClientError, BotoCoreError) as exc:
            raise PersistenceError(f"get_item {pk}/{sk} failed: {exc}") from exc
        item = resp.get("Item")
        if not item:
            return None
        try:
            return json.loads(item["payload"])
        except (KeyError, ValueError) as exc:
            raise PersistenceError(f"Corrupt payload for {pk}/{sk}") from exc

    def _put(self, pk: str, sk: str, payload: Any, **extra: str) -> None:
        self.ensure_table()
        item = {"pk": pk, "sk": sk, "payload": json.dumps(payload), **extra}
        try:
            self._table.put_item(Item=item)
        except (ClientError, BotoCoreError) as exc:
            raise PersistenceError(f"put_item {pk}/{sk} failed: {exc}") from exc

    def _scan(self, **kwargs) -> list[dict[str, Any]]:
        self.ensure_table()
        items: list[dict[str, Any]] = []
        scan_kwargs = dict(kwargs)
        while True:
            try:
                resp = self._table.scan(**scan_kwargs)
            except (ClientError, BotoCoreError) as exc:
                raise PersistenceError(f"scan failed: {exc}") from exc
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return items
            scan_kwargs["ExclusiveStartKey"] = last_key

    def load_event_config(self) -> EventConfig | None:
        data = self._get(self.EVENT_PK, "CONFIG")
        return EventConfig.from_dict(data) if data else None

    def save_event_config(self, config: EventConfig) -> None:
        self._put(self.EVENT_PK, "CONFIG", config.to_dict())

    def write_snapshot(self, snapshot: PlayerSnapshot, day_index: int) -> None:
        self._put(
            self.PLAYER_PK_TEMPLATE % normalize_uuid(snapshot.uuid),
            self.DAY_SK_TEMPLATE % day_index,
            snapshot.to_dict(),
        )

    def read_snapshot(self, uuid: str, day_index: int) -> PlayerSnapshot | None:
        data = self._get(
            self.PLAYER_PK_TEMPLATE % normalize_uuid(uuid), self.DAY_SK_TEMPLATE % day_index
        )
        return PlayerSnapshot.from_dict(data) if data else None

    def list_entities(self, day_index: int) -> list[str]:
        items = self._scan(
            FilterExpression=Attr("sk").eq(self.DAY_SK_TEMPLATE % day_index)
            & Attr("pk").begins_with("PLAYER#"),
            ProjectionExpression="pk",
        )
        return sorted({str(item["pk"]).split("#", 1)[1] for item in items})

    def load_summaries(self) -> list[DailySummary]:
        data = self._get(self.EVENT_PK, "SUMMARIES") or []
        return [DailySummary.from_dict(item) for item in data]

    def save_summaries(self, summaries: list[DailySummary]) -> None:
        self._put(self.EVENT_PK, "SUMMARIES", [s.to_dict() for s in summaries])

    def load_giveaways(self) -> GiveawayRecord:
        data = self._get(self.EVENT_PK, "GIVEAWAYS")
        return GiveawayRecord.from_dict(data) if data else GiveawayRecord()

    def save_giveaways(self, record: GiveawayRecord) -> None:
        self._put(self.EVENT_PK, "GIVEAWAYS", record.to_dict())

    def clear_event_data(self) -> None:
        items = self._scan(
            FilterExpression=Attr("pk").begins_with("PLAYER#")
            | Attr("sk").is_in(["SUMMARIES", "GIVEAWAYS"]),
            ProjectionExpression="pk, sk",
        )
        try:
            with self._table.batch_writer() as batch:
                for item in items:
                    batch.delete_item(Key={"pk": item["pk"], "sk": item["sk"]})
        except (ClientError, BotoCoreError) as exc:
            raise PersistenceError(f"Failed to clear event data: {exc}") from exc
        log.info("Cleared %d event records", len(items))


__all__ = ["SnapshotBackend", "JsonFileBackend", "DynamoBackend"]
