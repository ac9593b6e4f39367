from datetime import datetime, timedelta, timezone

import pytest

from StartupMind.aggregate import Aggregator
from StartupMind.backup import SnapshotStore
from StartupMind.config import RUN_KEY
from StartupMind.entries import LocationKind, StartupEntry, make_entry
from StartupMind.errors import NotFound
from StartupMind.router import MutationRouter
from StartupMind.session import StartupSession, filter_entries


@pytest.fixture
def session(registry, settings, adapters):
    registry.seed("HKCU", RUN_KEY, {"Chat": "C:\\chat.exe", "Mail": "C:\\mail.exe"})
    registry.seed("HKLM", RUN_KEY, {"Agent": "C:\\agent.exe"})
    ticks = iter(range(100))
    start = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
    store = SnapshotStore(settings.backup_dir, clock=lambda: start + timedelta(seconds=next(ticks)))
    s = StartupSession(Aggregator(adapters, resolver=lambda p: "Unknown"), MutationRouter(adapters), store)
    s.refresh()
    return s


def test_refresh_and_summary(session):
    assert {e.name for e in session.entries} == {"Chat", "Mail", "Agent"}
    assert session.summary() == {"total": 3, "enabled": 3, "disabled": 0}


def test_disabled_flag_survives_refresh(session):
    chat = session.find(LocationKind.USER_REGISTRY, "Chat")
    session.set_enabled(chat, False)
    session.refresh()
    assert session.find(LocationKind.USER_REGISTRY, "Chat").enabled is False
    assert session.summary() == {"total": 3, "enabled": 2, "disabled": 1}
    session.set_enabled(session.find(LocationKind.USER_REGISTRY, "Chat"), True)
    session.refresh()
    assert session.summary()["disabled"] == 0


def test_disable_does_not_touch_the_registry(session, registry):
    session.set_enabled(session.find(LocationKind.USER_REGISTRY, "Chat"), False)
    assert "Chat" in registry.keys[("HKCU", RUN_KEY)]


def test_remove_many_accumulates_independent_results(session, registry):
    registry.denied.add("HKLM")
    selected = [session.find(LocationKind.MACHINE_REGISTRY, "Agent"),
                session.find(LocationKind.USER_REGISTRY, "Chat")]
    results = session.remove_many(selected)
    assert [(r["name"], r["ok"]) for r in results] == [("Agent", False), ("Chat", True)]
    assert results[0]["code"] == "access_denied"
    assert {e.name for e in session.entries} == {"Agent", "Mail"}
    assert "Chat" not in registry.keys[("HKCU", RUN_KEY)]


def test_add_appends_entry(session, registry):
    out = session.add(make_entry("Sync", "C:\\sync.exe", LocationKind.USER_REGISTRY))
    assert out["ok"] is True
    assert session.find(LocationKind.USER_REGISTRY, "Sync") is not None
    assert registry.keys[("HKCU", RUN_KEY)]["Sync"][0] == "C:\\sync.exe"


def test_backup_and_restore_replace_wholesale(session):
    session.set_enabled(session.find(LocationKind.USER_REGISTRY, "Mail"), False)
    snapshot_id = session.backup()
    session.remove(session.find(LocationKind.USER_REGISTRY, "Chat"))
    session.add(make_entry("Sync", "C:\\sync.exe", LocationKind.USER_REGISTRY))

    out = session.restore(snapshot_id)
    assert out["count"] == 3
    assert out["applied"] == []
    assert {e.name for e in session.entries} == {"Chat", "Mail", "Agent"}
    assert session.find(LocationKind.USER_REGISTRY, "Mail").enabled is False


def test_restore_defaults_to_latest(session):
    session.backup()
    session.remove(session.find(LocationKind.USER_REGISTRY, "Chat"))
    latest = session.backup()
    assert session.restore()["snapshot_id"] == latest
    assert {e.name for e in session.entries} == {"Mail", "Agent"}


def test_restore_without_snapshots_is_not_found(session):
    with pytest.raises(NotFound):
        session.restore()


def test_restore_apply_reregisters_missing_enabled_entries(session, registry):
    session.set_enabled(session.find(LocationKind.USER_REGISTRY, "Mail"), False)
    snapshot_id = session.backup()
    session.remove_many([session.find(LocationKind.USER_REGISTRY, "Chat"),
                         session.find(LocationKind.USER_REGISTRY, "Mail")])

    out = session.restore(snapshot_id, apply=True)
    assert [(r["name"], r["ok"]) for r in out["applied"]] == [("Chat", True)]
    assert "Chat" in registry.keys[("HKCU", RUN_KEY)]
    assert "Mail" not in registry.keys[("HKCU", RUN_KEY)]


def test_filter_entries(session):
    session.set_enabled(session.find(LocationKind.USER_REGISTRY, "Mail"), False)
    entries = session.entries
    assert [e.name for e in filter_entries(entries, search="AG")] == ["Agent"]
    assert {e.name for e in filter_entries(entries, enabled_only=True)} == {"Chat", "Agent"}
    assert [e.name for e in filter_entries(entries, disabled_only=True)] == ["Mail"]
    assert {e.name for e in filter_entries(entries, include_system=False)} == {"Chat", "Mail"}
    assert filter_entries(entries, search="unknown") == entries


def test_from_settings_wires_default_adapters(settings, registry):
    registry.seed("HKCU", RUN_KEY, {"Chat": "C:\\chat.exe"})
    s = StartupSession.from_settings(settings, registry=registry)
    assert [e.name for e in s.refresh()] == ["Chat"]
    assert s.store.directory == settings.backup_dir


def test_batch_continues_past_unsupported_location(session, registry):
    stray = StartupEntry(name="Nightly", publisher="Unknown", enabled=True,
                         location="Scheduled Task", path="C:\\nightly.exe", is_privileged=False)
    chat = session.find(LocationKind.USER_REGISTRY, "Chat")
    results = session.remove_many([stray, chat])
    assert [(r["name"], r["ok"]) for r in results] == [("Nightly", False), ("Chat", True)]
    assert results[0]["code"] == "unsupported_location"
    assert results[0]["location"] == "Scheduled Task"
    assert "Chat" not in registry.keys[("HKCU", RUN_KEY)]

    toggled = session.set_enabled_many([stray, session.find(LocationKind.USER_REGISTRY, "Mail")], False)
    assert [r["name"] for r in toggled] == ["Nightly", "Mail"]
    assert session.find(LocationKind.USER_REGISTRY, "Mail").enabled is False


def test_disabled_keys_carry_over_to_a_new_session(settings, registry):
    registry.seed("HKCU", RUN_KEY, {"Chat": "C:\\chat.exe", "Mail": "C:\\mail.exe"})
    first = StartupSession.from_settings(settings, registry=registry)
    first.refresh()
    first.set_enabled(first.find(LocationKind.USER_REGISTRY, "Chat"), False)

    second = StartupSession.from_settings(settings, registry=registry)
    second.refresh()
    assert second.find(LocationKind.USER_REGISTRY, "Chat").enabled is False
    assert second.find(LocationKind.USER_REGISTRY, "Mail").enabled is True
    assert second.store.list() == []

    second.set_enabled(second.find(LocationKind.USER_REGISTRY, "Chat"), True)
    third = StartupSession.from_settings(settings, registry=registry)
    assert third.summary() == {"total": 0, "enabled": 0, "disabled": 0}
    third.refresh()
    assert third.summary()["disabled"] == 0


def test_removing_a_disabled_entry_forgets_it(settings, registry):
    registry.seed("HKCU", RUN_KEY, {"Chat": "C:\\chat.exe"})
    s = StartupSession.from_settings(settings, registry=registry)
    s.refresh()
    s.set_enabled(s.find(LocationKind.USER_REGISTRY, "Chat"), False)
    s.remove(s.find(LocationKind.USER_REGISTRY, "Chat"))
    assert s.disabled_store.load() == set()
