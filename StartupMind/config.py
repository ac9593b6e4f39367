import os
from dataclasses import dataclass
from pathlib import Path

RUN_KEY = r"SOFTWARE\Microsoft\Windows\CurrentVersion\Run"
USER_STARTUP_SUBPATH = r"Microsoft\Windows\Start Menu\Programs\Startup"
COMMON_STARTUP_SUBPATH = r"Microsoft\Windows\Start Menu\Programs\StartUp"
APP_DIR_NAME = "StartupMind"


@dataclass(frozen=True)
class Settings:
    debug: bool
    backup_dir: Path
    user_startup_dir: Path
    common_startup_dir: Path
    run_key: str = RUN_KEY


def _default_backup_dir() -> Path:
    appdata = os.environ.get("APPDATA")
    if appdata:
        return Path(appdata) / APP_DIR_NAME / "Backups"
    return Path.home() / ".startupmind" / "backups"


def _user_startup_dir() -> Path:
    override = os.environ.get("STARTUPMIND_USER_STARTUP")
    if override:
        return Path(override)
    return Path(os.environ.get("APPDATA", "")) / USER_STARTUP_SUBPATH


def _common_startup_dir() -> Path:
    override = os.environ.get("STARTUPMIND_COMMON_STARTUP")
    if override:
        return Path(override)
    return Path(os.environ.get("ProgramData", "C:\\ProgramData")) / COMMON_STARTUP_SUBPATH


def load_settings() -> Settings:
    backup = os.environ.get("STARTUPMIND_BACKUP_DIR")
    return Settings(
        debug=os.getenv("STARTUPMIND_DEBUG", "0") == "1",
        backup_dir=Path(backup) if backup else _default_backup_dir(),
        user_startup_dir=_user_startup_dir(),
        common_startup_dir=_common_startup_dir(),
    )
