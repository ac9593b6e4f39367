from typing import List, Dict, Any
import logging, ntpath, re, shutil
from pathlib import Path

from StartupMind.config import RUN_KEY, Settings
from StartupMind.entries import LocationKind, RawRecord, StartupEntry
from StartupMind.errors import NotFound, failure, os_failure

try:
    import winreg
except ImportError:  # registry only exists on Windows
    winreg = None

log = logging.getLogger(__name__)

# shell metadata the Explorer drops into startup folders
SKIP_FILES = {"desktop.ini"}


def extract_executable_path(value: str) -> str:
    """Executable part of a run-key command line.

    '"C:\\a b\\x.exe" --flag' -> 'C:\\a b\\x.exe'
    'C:\\a.exe --flag'       -> 'C:\\a.exe'
    'C:\\a.exe'              -> 'C:\\a.exe'
    """
    if not value or not value.strip():
        return value
    if value.startswith('"'):
        end = value.find('"', 1)
        if end > 0:
            return value[1:end]
    space = value.find(" ")
    if space > 0:
        return value[:space]
    return value


def _basename(path: str) -> str:
    # entry paths are Windows paths regardless of the host we run on
    return re.split(r"[\\/]", path.rstrip("\\/"))[-1]


class RegistryRunKey:
    """Run-key values under one hive."""

    def __init__(self, location: LocationKind, hive: str, key_path: str = RUN_KEY, registry=None):
        self.location = location
        self.hive = hive
        self.key_path = key_path
        self._reg = registry if registry is not None else winreg

    def __repr__(self):
        return f"RegistryRunKey({self.hive}\\{self.key_path})"

    def _root(self):
        return getattr(self._reg, self.hive)

    def _unavailable(self) -> Dict[str, Any]:
        return failure("unsupported_platform", "Windows registry is not available on this host")

    def enumerate(self) -> List[RawRecord]:
        if self._reg is None:
            log.debug("%r: registry unavailable, nothing to enumerate", self)
            return []
        out: List[RawRecord] = []
        source = f"{self.hive}\\{self.key_path}"
        try:
            with self._reg.OpenKey(self._root(), self.key_path, 0, self._reg.KEY_READ) as key:
                count = self._reg.QueryInfoKey(key)[1]
                for i in range(count):
                    try:
                        name, value, vtype = self._reg.EnumValue(key, i)
                    except OSError as e:
                        log.warning("%r: skipping unreadable value #%d: %s", self, i, e)
                        continue
                    if not isinstance(value, str) or not value.strip():
                        continue
                    if vtype == self._reg.REG_EXPAND_SZ:
                        value = ntpath.expandvars(value)
                    out.append(RawRecord(name=name, command=value, source=source))
        except FileNotFoundError:
            log.debug("%r: run key does not exist", self)
            return []
        except OSError as e:
            log.warning("%r: cannot read run key: %s", self, e)
            return out
        return out

    def add(self, entry: StartupEntry) -> Dict[str, Any]:
        if self._reg is None:
            return self._unavailable()
        value = entry.path or ""
        if " " in value and not value.startswith('"'):
            value = f'"{value}"'
        try:
            with self._reg.CreateKeyEx(self._root(), self.key_path, 0, self._reg.KEY_SET_VALUE) as key:
                self._reg.SetValueEx(key, entry.name, 0, self._reg.REG_SZ, value)
        except OSError as e:
            log.warning("%r: failed to add %r: %s", self, entry.name, e)
            return os_failure(e, f"add {entry.name!r} to {self.hive}")
        return {"ok": True, "name": entry.name, "value": value}

    def remove(self, entry: StartupEntry) -> Dict[str, Any]:
        if self._reg is None:
            return self._unavailable()
        try:
            with self._reg.OpenKey(self._root(), self.key_path, 0, self._reg.KEY_SET_VALUE) as key:
                self._reg.DeleteValue(key, entry.name)
        except FileNotFoundError:
            log.debug("%r: %r already absent", self, entry.name)
            return {"ok": True, "name": entry.name, "absent": True}
        except OSError as e:
            log.warning("%r: failed to remove %r: %s", self, entry.name, e)
            return os_failure(e, f"remove {entry.name!r} from {self.hive}")
        return {"ok": True, "name": entry.name}


class StartupFolder:
    """Files inside one Startup directory."""

    def __init__(self, location: LocationKind, folder):
        self.location = location
        self.folder = Path(folder)

    def __repr__(self):
        return f"StartupFolder({self.folder})"

    def enumerate(self) -> List[RawRecord]:
        if not self.folder.is_dir():
            log.debug("%r: folder does not exist", self)
            return []
        try:
            children = sorted(self.folder.iterdir(), key=lambda p: p.name.lower())
        except OSError as e:
            log.warning("%r: cannot list folder: %s", self, e)
            return []
        out: List[RawRecord] = []
        for p in children:
            try:
                if not p.is_file():
                    continue
            except OSError as e:
                log.warning("%r: skipping %s: %s", self, p.name, e)
                continue
            if p.name.lower() in SKIP_FILES:
                continue
            out.append(RawRecord(name=p.stem, command=str(p), source=str(self.folder)))
        return out

    def add(self, entry: StartupEntry) -> Dict[str, Any]:
        if not entry.path or not entry.path.strip():
            return failure(NotFound.code, f"{entry.name!r} has no source path to copy")
        dest = self.folder / _basename(entry.path)
        skipped = {"ok": True, "skipped": True, "path": str(dest)}
        try:
            self.folder.mkdir(parents=True, exist_ok=True)
            if dest.exists():
                log.debug("%r: %s already present, not overwriting", self, dest.name)
                return skipped
            with open(entry.path, "rb") as src:
                try:
                    dst = open(dest, "xb")
                except FileExistsError:
                    return skipped
                try:
                    with dst:
                        shutil.copyfileobj(src, dst)
                except OSError:
                    dest.unlink(missing_ok=True)
                    raise
        except OSError as e:
            log.warning("%r: failed to copy %s: %s", self, entry.path, e)
            return os_failure(e, f"copy {entry.path!r} into {self.folder}")
        try:
            shutil.copystat(entry.path, dest)
        except OSError as e:
            log.debug("%r: copied %s without its timestamps: %s", self, dest.name, e)
        return {"ok": True, "path": str(dest)}

    def remove(self, entry: StartupEntry) -> Dict[str, Any]:
        target = self.folder / (_basename(entry.path) if entry.path and entry.path.strip() else entry.name)
        try:
            target.unlink()
        except FileNotFoundError:
            log.debug("%r: %s already absent", self, target.name)
            return {"ok": True, "path": str(target), "absent": True}
        except OSError as e:
            log.warning("%r: failed to delete %s: %s", self, target, e)
            return os_failure(e, f"delete {target}")
        return {"ok": True, "path": str(target)}


def default_adapters(settings: Settings, registry=None) -> Dict[LocationKind, Any]:
    """One adapter per location kind, in discovery order."""
    return {
        LocationKind.USER_REGISTRY: RegistryRunKey(
            LocationKind.USER_REGISTRY, "HKEY_CURRENT_USER", settings.run_key, registry),
        LocationKind.MACHINE_REGISTRY: RegistryRunKey(
            LocationKind.MACHINE_REGISTRY, "HKEY_LOCAL_MACHINE", settings.run_key, registry),
        LocationKind.USER_FOLDER: StartupFolder(LocationKind.USER_FOLDER, settings.user_startup_dir),
        LocationKind.MACHINE_FOLDER: StartupFolder(LocationKind.MACHINE_FOLDER, settings.common_startup_dir),
    }
