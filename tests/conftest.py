import pytest

from StartupMind.config import RUN_KEY, Settings
from StartupMind.tools.startup import default_adapters

from fakes import FakeRegistry


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        debug=False,
        backup_dir=tmp_path / "backups",
        user_startup_dir=tmp_path / "user_startup",
        common_startup_dir=tmp_path / "common_startup",
        run_key=RUN_KEY,
    )


@pytest.fixture
def adapters(settings, registry):
    return default_adapters(settings, registry=registry)
