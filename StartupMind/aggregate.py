"""
Discovery across every registered location adapter.

Each adapter is read on its own worker; an adapter that raises or returns
nothing only shrinks the result, it never hides another adapter's entries.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List
import logging

from StartupMind.entries import LocationKind, RawRecord, StartupEntry, make_entry
from StartupMind.tools.publisher import resolve_publisher
from StartupMind.tools.startup import extract_executable_path

log = logging.getLogger(__name__)


class Aggregator:
    def __init__(self, adapters: Dict[LocationKind, Any],
                 resolver: Callable[[str], str] = resolve_publisher,
                 parallel: bool = True):
        self.adapters = adapters
        self.resolver = resolver
        self.parallel = parallel

    def _read(self, kind: LocationKind, adapter) -> List[RawRecord]:
        try:
            return list(adapter.enumerate())
        except Exception as e:
            log.warning("%s: enumeration failed: %s: %s", kind.value, e.__class__.__name__, e)
            return []

    def _normalize(self, kind: LocationKind, rec: RawRecord) -> StartupEntry:
        path = extract_executable_path(rec.command) if kind.is_registry else rec.command
        try:
            publisher = self.resolver(path)
        except Exception as e:
            log.debug("publisher resolver raised for %s: %s", path, e)
            publisher = None
        return make_entry(rec.name, path, kind, publisher=publisher)

    def discover_location(self, kind: LocationKind) -> List[StartupEntry]:
        adapter = self.adapters.get(kind)
        if adapter is None:
            return []
        return [self._normalize(kind, r) for r in self._read(kind, adapter)]

    def discover_all(self) -> List[StartupEntry]:
        kinds = list(self.adapters)
        if self.parallel and len(kinds) > 1:
            with ThreadPoolExecutor(max_workers=len(kinds), thread_name_prefix="discover") as pool:
                batches = list(pool.map(self.discover_location, kinds))
        else:
            batches = [self.discover_location(k) for k in kinds]

        out: List[StartupEntry] = []
        for kind, batch in zip(kinds, batches):
            log.debug("%s: %d entries", kind.value, len(batch))
            out.extend(batch)
        return out
