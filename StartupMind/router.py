from typing import Any, Dict
import logging

from StartupMind.entries import LocationKind, StartupEntry
from StartupMind.errors import IOFailure, UnsupportedLocation, failure

log = logging.getLogger(__name__)


class MutationRouter:
    """Routes add/remove to the adapter that owns an entry's location.

    enable/disable only flip the entry's in-memory flag; the registration on
    disk is left as it is.
    """

    def __init__(self, adapters: Dict[LocationKind, Any]):
        self.adapters = dict(adapters)

    def _adapter_for(self, entry: StartupEntry):
        kind = LocationKind.parse(getattr(entry, "location", None))
        if kind is None:
            return None
        return self.adapters.get(kind)

    def _dispatch(self, verb: str, entry: StartupEntry) -> Dict[str, Any]:
        adapter = self._adapter_for(entry)
        if adapter is None:
            log.error("%s %r: no adapter for location %r", verb, entry.name, entry.location)
            return failure(UnsupportedLocation.code, f"unsupported location: {entry.location!r}", name=entry.name)
        try:
            out = getattr(adapter, verb)(entry)
        except Exception as e:
            log.warning("%s %r failed: %s", verb, entry.name, e)
            return failure(IOFailure.code, f"{verb} failed: {e.__class__.__name__}: {e}", name=entry.name)
        return out

    def add(self, entry: StartupEntry) -> Dict[str, Any]:
        return self._dispatch("add", entry)

    def remove(self, entry: StartupEntry) -> Dict[str, Any]:
        return self._dispatch("remove", entry)

    def enable(self, entry: StartupEntry) -> Dict[str, Any]:
        entry.enabled = True
        return {"ok": True, "name": entry.name, "enabled": True}

    def disable(self, entry: StartupEntry) -> Dict[str, Any]:
        entry.enabled = False
        return {"ok": True, "name": entry.name, "enabled": False}

