"""
Point-in-time snapshots of the startup entry set.

One JSON document per capture, named ``backup_<yyyyMMdd_HHmmss>.json`` after
the UTC capture time. Records are written through a temp file and renamed
into place, so a reader never sees a half-written snapshot.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Optional, Set, Tuple
import logging, os, re, tempfile

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from StartupMind.entries import LocationKind, StartupEntry, UNKNOWN_PUBLISHER
from StartupMind.errors import InvalidFormat, IOFailure, NotFound

log = logging.getLogger(__name__)

PREFIX = "backup_"
STAMP_FORMAT = "%Y%m%d_%H%M%S"
ID_PATTERN = re.compile(r"^backup_\d{8}_\d{6}(?:_\d+)?$")


class SnapshotEntryRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    publisher: str = UNKNOWN_PUBLISHER
    enabled: bool = True
    location_type: LocationKind = Field(alias="locationType")
    path: str = ""
    is_system: bool = Field(default=False, alias="isSystem")

    @classmethod
    def from_entry(cls, entry: StartupEntry) -> "SnapshotEntryRecord":
        return cls(
            name=entry.name,
            publisher=entry.publisher,
            enabled=entry.enabled,
            location_type=entry.location,
            path=entry.path,
            is_system=entry.is_privileged,
        )

    def to_entry(self) -> StartupEntry:
        return StartupEntry(
            name=self.name,
            publisher=self.publisher or UNKNOWN_PUBLISHER,
            enabled=self.enabled,
            location=self.location_type,
            path=self.path,
            is_privileged=self.is_system,
        )


class SnapshotRecord(BaseModel):
    timestamp: datetime
    entries: List[SnapshotEntryRecord] = Field(default_factory=list)


@dataclass(frozen=True)
class BackupSnapshot:
    snapshot_id: str
    timestamp: datetime
    entries: tuple


@dataclass(frozen=True)
class SnapshotSummary:
    snapshot_id: str
    timestamp: datetime
    entry_count: int
    path: str


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class SnapshotStore:
    def __init__(self, directory, clock=None):
        self.directory = Path(directory)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _path_for(self, snapshot_id: str) -> Path:
        return self.directory / f"{snapshot_id}.json"

    def _new_id(self, ts: datetime) -> str:
        base = PREFIX + ts.strftime(STAMP_FORMAT)
        snapshot_id, n = base, 0
        while self._path_for(snapshot_id).exists():
            n += 1
            snapshot_id = f"{base}_{n}"
        return snapshot_id

    def capture(self, entries: Iterable[StartupEntry]) -> str:
        """Write a new snapshot of ``entries`` and return its identifier."""
        ts = _utc(self._clock()).replace(microsecond=0)
        record = SnapshotRecord(
            timestamp=ts,
            entries=[SnapshotEntryRecord.from_entry(e) for e in entries],
        )
        payload = record.model_dump_json(by_alias=True, indent=2)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            snapshot_id = self._new_id(ts)
            fd, tmp = tempfile.mkstemp(prefix=".tmp_", suffix=".json", dir=self.directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                # the name was free when we picked it; do not clobber a racing writer
                if self._path_for(snapshot_id).exists():
                    snapshot_id = self._new_id(ts)
                os.replace(tmp, self._path_for(snapshot_id))
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise IOFailure(f"could not write snapshot to {self.directory}: {e}") from e
        log.info("snapshot %s: %d entries", snapshot_id, len(record.entries))
        return snapshot_id

    def _load(self, path: Path) -> SnapshotRecord:
        return SnapshotRecord.model_validate_json(path.read_text(encoding="utf-8"))

    def list(self) -> List[SnapshotSummary]:
        """Readable snapshots, newest first. Unparseable files are skipped."""
        if not self.directory.is_dir():
            return []
        out: List[SnapshotSummary] = []
        for p in self.directory.glob(f"{PREFIX}*.json"):
            if not ID_PATTERN.match(p.stem):
                continue
            try:
                record = self._load(p)
            except (OSError, ValueError) as e:
                log.debug("skipping unreadable snapshot %s: %s", p.name, e)
                continue
            out.append(SnapshotSummary(p.stem, _utc(record.timestamp), len(record.entries), str(p)))
        out.sort(key=lambda s: (s.timestamp, s.snapshot_id), reverse=True)
        return out

    def latest(self) -> Optional[SnapshotSummary]:
        found = self.list()
        return found[0] if found else None

    def restore(self, snapshot_id: str) -> BackupSnapshot:
        if not snapshot_id or not ID_PATTERN.match(snapshot_id):
            raise NotFound(f"no snapshot named {snapshot_id!r}")
        path = self._path_for(snapshot_id)
        if not path.is_file():
            raise NotFound(f"no snapshot named {snapshot_id!r}")
        try:
            record = self._load(path)
        except ValidationError as e:
            raise InvalidFormat(f"snapshot {snapshot_id} is not a valid backup: {e}") from e
        except ValueError as e:
            raise InvalidFormat(f"snapshot {snapshot_id} is not readable: {e}") from e
        except OSError as e:
            raise IOFailure(f"could not read snapshot {snapshot_id}: {e}") from e
        return BackupSnapshot(
            snapshot_id=snapshot_id,
            timestamp=_utc(record.timestamp),
            entries=tuple(r.to_entry() for r in record.entries),
        )


DISABLED_FILE = "disabled.json"


class DisabledKeyRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    location_type: LocationKind = Field(alias="locationType")


class DisabledKeysRecord(BaseModel):
    entries: List[DisabledKeyRecord] = Field(default_factory=list)


class DisabledKeyStore:
    """The (location, name) keys the user has disabled, kept beside the snapshots.

    Enable/disable never touches the OS registration, so this file is what
    carries the flag from one session to the next.
    """

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Set[Tuple[LocationKind, str]]:
        try:
            record = DisabledKeysRecord.model_validate_json(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return set()
        except (OSError, ValueError) as e:
            log.warning("ignoring unreadable %s: %s", self.path, e)
            return set()
        return {(r.location_type, r.name) for r in record.entries}

    def save(self, keys: Iterable[Tuple[Any, str]]) -> None:
        records = []
        for location, name in sorted(keys, key=lambda k: (str(getattr(k[0], "value", k[0])), k[1])):
            kind = LocationKind.parse(location)
            if kind is not None:
                records.append(DisabledKeyRecord(name=name, location_type=kind))
        payload = DisabledKeysRecord(entries=records).model_dump_json(by_alias=True, indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=".tmp_", suffix=".json", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise IOFailure(f"could not write {self.path}: {e}") from e
