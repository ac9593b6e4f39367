from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional

UNKNOWN_PUBLISHER = "Unknown"


class LocationKind(str, Enum):
    """Provenance tag: which auto-launch mechanism an entry came from."""
    USER_REGISTRY = "Registry (Current User)"
    MACHINE_REGISTRY = "Registry (Local Machine)"
    USER_FOLDER = "Startup Folder (User)"
    MACHINE_FOLDER = "Startup Folder (Common)"

    @property
    def is_privileged(self) -> bool:
        return self in (LocationKind.MACHINE_REGISTRY, LocationKind.MACHINE_FOLDER)

    @property
    def is_registry(self) -> bool:
        return self in (LocationKind.USER_REGISTRY, LocationKind.MACHINE_REGISTRY)

    @classmethod
    def parse(cls, value: Any) -> Optional["LocationKind"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class RawRecord:
    """What an adapter reads off the OS before normalization."""
    name: str
    command: str    # registry value data, or the file path for folder entries
    source: str     # key path or folder the record was read from


@dataclass
class StartupEntry:
    name: str
    publisher: str
    enabled: bool
    location: LocationKind
    path: str
    is_privileged: bool

    @property
    def key(self):
        # uniqueness is scoped to (location, name)
        return (self.location, self.name)

    @property
    def status(self) -> str:
        return "Enabled" if self.enabled else "Disabled"

    def copy(self, **changes) -> "StartupEntry":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "publisher": self.publisher,
            "enabled": self.enabled,
            "locationType": self.location.value,
            "path": self.path,
            "isSystem": self.is_privileged,
        }


def make_entry(name: str, path: str, location: LocationKind,
               publisher: str = UNKNOWN_PUBLISHER, enabled: bool = True) -> StartupEntry:
    return StartupEntry(
        name=name,
        publisher=publisher or UNKNOWN_PUBLISHER,
        enabled=enabled,
        location=location,
        path=path,
        is_privileged=location.is_privileged,
    )
