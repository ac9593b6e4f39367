from StartupMind.config import RUN_KEY
from StartupMind.entries import LocationKind, StartupEntry, make_entry
from StartupMind.router import MutationRouter


def test_add_and_remove_route_by_location(registry, settings, adapters, tmp_path):
    router = MutationRouter(adapters)
    reg_entry = make_entry("Tool", "C:\\tool.exe", LocationKind.MACHINE_REGISTRY)
    assert router.add(reg_entry)["ok"] is True
    assert ("HKLM", RUN_KEY) in registry.keys
    assert ("HKCU", RUN_KEY) not in registry.keys

    src = tmp_path / "notes.exe"
    src.write_bytes(b"MZ")
    folder_entry = make_entry("notes", str(src), LocationKind.MACHINE_FOLDER)
    assert router.add(folder_entry)["ok"] is True
    assert (settings.common_startup_dir / "notes.exe").exists()
    assert not settings.user_startup_dir.exists()

    assert router.remove(reg_entry)["ok"] is True
    assert registry.keys[("HKLM", RUN_KEY)] == {}


def test_unknown_location_fails_closed(adapters):
    router = MutationRouter(adapters)
    bogus = StartupEntry(name="x", publisher="Unknown", enabled=True,
                         location="Scheduled Task", path="C:\\x.exe", is_privileged=False)
    for verb in (router.add, router.remove):
        out = verb(bogus)
        assert out["ok"] is False
        assert out["code"] == "unsupported_location"


def test_location_without_adapter_fails_closed(adapters):
    del adapters[LocationKind.MACHINE_FOLDER]
    out = MutationRouter(adapters).add(make_entry("x", "C:\\x.exe", LocationKind.MACHINE_FOLDER))
    assert out["code"] == "unsupported_location"


def test_adapter_exception_becomes_failed_result():
    class Exploding:
        def add(self, entry):
            raise RuntimeError("kaboom")

    router = MutationRouter({LocationKind.USER_REGISTRY: Exploding()})
    out = router.add(make_entry("x", "C:\\x.exe", LocationKind.USER_REGISTRY))
    assert out["ok"] is False
    assert out["code"] == "io_failure"


def test_enable_disable_touch_only_the_flag(registry, adapters):
    registry.seed("HKCU", RUN_KEY, {"Tool": "C:\\tool.exe"})
    router = MutationRouter(adapters)
    entry = make_entry("Tool", "C:\\tool.exe", LocationKind.USER_REGISTRY)
    assert router.disable(entry)["enabled"] is False
    assert entry.enabled is False
    assert "Tool" in registry.keys[("HKCU", RUN_KEY)]
    router.enable(entry)
    assert entry.enabled is True

