"""
In-memory owner of the discovered startup entries.

Callers (CLI, HTTP server, UI) go through one StartupSession; every read of
the entry set and every mutation takes the session lock, so mutations are
serialized relative to each other.
"""
from typing import Any, Dict, Iterable, List, Optional
import logging, threading

from StartupMind.aggregate import Aggregator
from StartupMind.backup import DISABLED_FILE, BackupSnapshot, DisabledKeyStore, SnapshotStore
from StartupMind.config import Settings, load_settings
from StartupMind.entries import StartupEntry
from StartupMind.errors import IOFailure, NotFound, failure
from StartupMind.router import MutationRouter
from StartupMind.tools.startup import default_adapters

log = logging.getLogger(__name__)


def filter_entries(entries: Iterable[StartupEntry], search: str = "",
                   enabled_only: bool = False, disabled_only: bool = False,
                   include_system: bool = True) -> List[StartupEntry]:
    q = (search or "").strip().lower()
    out = []
    for e in entries:
        if q and q not in e.name.lower() and q not in (e.publisher or "").lower():
            continue
        if enabled_only and not e.enabled:
            continue
        if disabled_only and e.enabled:
            continue
        if not include_system and e.is_privileged:
            continue
        out.append(e)
    return out


class StartupSession:
    def __init__(self, aggregator: Aggregator, router: MutationRouter, store: SnapshotStore,
                 disabled_store: Optional[DisabledKeyStore] = None):
        self.aggregator = aggregator
        self.router = router
        self.store = store
        self._entries: List[StartupEntry] = []
        self.disabled_store = disabled_store
        self._disabled = disabled_store.load() if disabled_store is not None else set()
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, registry=None) -> "StartupSession":
        settings = settings or load_settings()
        adapters = default_adapters(settings, registry=registry)
        return cls(Aggregator(adapters), MutationRouter(adapters), SnapshotStore(settings.backup_dir),
                   DisabledKeyStore(settings.backup_dir / DISABLED_FILE))

    @property
    def entries(self) -> List[StartupEntry]:
        with self._lock:
            return list(self._entries)

    def refresh(self) -> List[StartupEntry]:
        found = self.aggregator.discover_all()
        with self._lock:
            for e in found:
                if e.key in self._disabled:
                    e.enabled = False
            self._entries = found
            return list(found)

    def summary(self) -> Dict[str, int]:
        with self._lock:
            enabled = sum(1 for e in self._entries if e.enabled)
            return {"total": len(self._entries), "enabled": enabled, "disabled": len(self._entries) - enabled}

    def find(self, location, name: str) -> Optional[StartupEntry]:
        with self._lock:
            for e in self._entries:
                if e.location == location and e.name == name:
                    return e
        return None

    def _persist(self) -> Optional[Dict[str, Any]]:
        if self.disabled_store is None:
            return None
        try:
            self.disabled_store.save(self._disabled)
        except IOFailure as e:
            log.warning("disabled entries not saved: %s", e)
            return failure(IOFailure.code, str(e))
        return None

    def _track(self, entry: StartupEntry) -> Optional[Dict[str, Any]]:
        if (entry.key in self._disabled) != entry.enabled:
            return None
        if entry.enabled:
            self._disabled.discard(entry.key)
        else:
            self._disabled.add(entry.key)
        return self._persist()

    def add(self, entry: StartupEntry) -> Dict[str, Any]:
        with self._lock:
            out = self.router.add(entry)
            if out.get("ok") and self.find(entry.location, entry.name) is None:
                self._entries.append(entry)
                self._track(entry)
            return out

    def remove(self, entry: StartupEntry) -> Dict[str, Any]:
        with self._lock:
            out = self.router.remove(entry)
            if out.get("ok"):
                self._entries = [e for e in self._entries if e.key != entry.key]
                if entry.key in self._disabled:
                    self._disabled.discard(entry.key)
                    self._persist()
            return out

    def set_enabled(self, entry: StartupEntry, enabled: bool) -> Dict[str, Any]:
        with self._lock:
            out = self.router.enable(entry) if enabled else self.router.disable(entry)
            current = self.find(entry.location, entry.name)
            if current is not None and current is not entry:
                current.enabled = enabled
            return self._track(entry) or out

    def _each(self, entries: Iterable[StartupEntry], fn) -> List[Dict[str, Any]]:
        results = []
        for e in list(entries):
            try:
                out = fn(e)
            except Exception as exc:
                log.warning("mutation on %r failed: %s", e.name, exc)
                out = {"ok": False, "code": IOFailure.code, "error": str(exc)}
            out.setdefault("name", e.name)
            out.setdefault("location", getattr(e.location, "value", str(e.location)))
            results.append(out)
        return results

    def remove_many(self, entries: Iterable[StartupEntry]) -> List[Dict[str, Any]]:
        return self._each(entries, self.remove)

    def set_enabled_many(self, entries: Iterable[StartupEntry], enabled: bool) -> List[Dict[str, Any]]:
        return self._each(entries, lambda e: self.set_enabled(e, enabled))

    def backup(self) -> str:
        with self._lock:
            return self.store.capture(self._entries)

    def restore(self, snapshot_id: Optional[str] = None, apply: bool = False) -> Dict[str, Any]:
        """Replace the entry set with a snapshot (latest when no id is given).

        With ``apply``, enabled entries missing from the OS are registered
        again, one independent add per entry.
        """
        if snapshot_id is None:
            latest = self.store.latest()
            if latest is None:
                raise NotFound("no snapshots available")
            snapshot_id = latest.snapshot_id
        snapshot: BackupSnapshot = self.store.restore(snapshot_id)

        applied: List[Dict[str, Any]] = []
        with self._lock:
            if apply:
                present = {e.key for e in self.aggregator.discover_all()}
                missing = [e for e in snapshot.entries if e.enabled and e.key not in present]
                applied = self._each(missing, self.router.add)
            self._entries = [e.copy() for e in snapshot.entries]
            self._disabled = {e.key for e in self._entries if not e.enabled}
            self._persist()
        log.info("restored %s (%d entries)", snapshot_id, len(snapshot.entries))
        return {"ok": True, "snapshot_id": snapshot_id, "count": len(snapshot.entries), "applied": applied}
