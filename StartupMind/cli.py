import argparse, sys
from typing import Any, Dict, List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from StartupMind.config import load_settings
from StartupMind.entries import StartupEntry, make_entry
from StartupMind.errors import StartupMindError
from StartupMind.log import setup_logging
from StartupMind.session import StartupSession, filter_entries
from StartupMind.utils.arg_normalize import normalize_args

console = Console()


def _entries_table(entries: List[StartupEntry], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Name", style="bold")
    table.add_column("Publisher")
    table.add_column("Status")
    table.add_column("Location")
    table.add_column("Path", overflow="fold")
    for e in entries:
        status = "[green]Enabled[/green]" if e.enabled else "[red]Disabled[/red]"
        location = e.location.value + (" [yellow]*[/yellow]" if e.is_privileged else "")
        table.add_row(escape(e.name), escape(e.publisher), status, location, escape(e.path))
    return table


def _print_results(results: List[Dict[str, Any]]) -> int:
    failed = 0
    for r in results:
        label = f"{escape(str(r.get('name')))} [dim]({r.get('location', '')})[/dim]"
        if r.get("ok"):
            note = " (already present, left untouched)" if r.get("skipped") else ""
            note = note or (" (was already absent)" if r.get("absent") else "")
            console.print(f"[green]✔[/green] {label}{note}")
        else:
            failed += 1
            console.print(f"[red]✘[/red] {label}: " + escape(f"[{r.get('code')}] {r.get('error')}"))
    return 1 if failed else 0


def _select(session: StartupSession, name: str, location) -> List[StartupEntry]:
    return [e for e in session.entries
            if e.name == name and (location is None or e.location == location)]


def cmd_list(session, args) -> int:
    opts = normalize_args("list", {
        "search": args.search,
        "enabled_only": args.enabled,
        "disabled_only": args.disabled,
        "include_system": not args.hide_system,
    })
    session.refresh()
    shown = filter_entries(session.entries, opts["search"], opts.get("enabled_only", False),
                           opts.get("disabled_only", False), opts["include_system"])
    console.print(_entries_table(shown, "Startup entries"))
    s = session.summary()
    console.print(f"Total {s['total']}   Enabled {s['enabled']}   Disabled {s['disabled']}"
                  "   [yellow]*[/yellow] machine-wide, may need elevation")
    return 0


def cmd_add(session, args) -> int:
    a = normalize_args("add", {"name": args.name, "path": args.path, "location": args.location})
    entry = make_entry(a["name"], a["path"], a["location"])
    out = session.add(entry)
    out.setdefault("name", entry.name)
    out.setdefault("location", entry.location.value)
    return _print_results([out])


def _by_name(session, args, fn) -> int:
    a = normalize_args(args.command, {"name": args.name, **({"location": args.location} if args.location else {})})
    session.refresh()
    selected = _select(session, a["name"], a.get("location"))
    if not selected:
        console.print(f"[yellow]No startup entry named {a['name']!r}.[/yellow]")
        return 1
    return _print_results(fn(selected))


def cmd_remove(session, args) -> int:
    return _by_name(session, args, session.remove_many)


def cmd_enable(session, args) -> int:
    rc = _by_name(session, args, lambda sel: session.set_enabled_many(sel, True))
    console.print("[dim]Saved to the disabled list and recorded in later backups; the registration itself is unchanged.[/dim]")
    return rc


def cmd_disable(session, args) -> int:
    rc = _by_name(session, args, lambda sel: session.set_enabled_many(sel, False))
    console.print("[dim]Saved to the disabled list and recorded in later backups; the registration itself is unchanged.[/dim]")
    return rc


def cmd_backup(session, args) -> int:
    session.refresh()
    snapshot_id = session.backup()
    console.print(f"[green]Backup created:[/green] {snapshot_id} ({len(session.entries)} entries)")
    return 0


def cmd_backups(session, args) -> int:
    table = Table(title="Backups")
    table.add_column("Id", style="bold")
    table.add_column("Taken (UTC)")
    table.add_column("Entries", justify="right")
    for s in session.store.list():
        table.add_row(s.snapshot_id, s.timestamp.strftime("%Y-%m-%d %H:%M:%S"), str(s.entry_count))
    console.print(table)
    return 0


def cmd_restore(session, args) -> int:
    out = session.restore(args.snapshot_id, apply=normalize_args("restore", {"apply": args.apply})["apply"])
    console.print(f"[green]Restored[/green] {out['snapshot_id']} ({out['count']} entries)")
    console.print(_entries_table(session.entries, f"Entries from {out['snapshot_id']}"))
    if out["applied"]:
        return _print_results(out["applied"])
    return 0


COMMANDS = {
    "list": cmd_list,
    "add": cmd_add,
    "remove": cmd_remove,
    "enable": cmd_enable,
    "disable": cmd_disable,
    "backup": cmd_backup,
    "backups": cmd_backups,
    "restore": cmd_restore,
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="startupmind", description="Inspect and manage Windows startup entries.")
    sub = p.add_subparsers(dest="command", required=True)

    ls = sub.add_parser("list", help="show startup entries from all locations")
    ls.add_argument("--search", default="", help="match name or publisher")
    only = ls.add_mutually_exclusive_group()
    only.add_argument("--enabled", action="store_true")
    only.add_argument("--disabled", action="store_true")
    ls.add_argument("--hide-system", action="store_true", help="hide machine-wide entries")

    add = sub.add_parser("add", help="register a program to start at login")
    add.add_argument("name")
    add.add_argument("path")
    add.add_argument("--location", default="user-registry",
                     help="user-registry | machine-registry | user-folder | machine-folder")

    for verb in ("remove", "enable", "disable"):
        sp = sub.add_parser(verb, help=f"{verb} entries with this name")
        sp.add_argument("name")
        sp.add_argument("--location", default=None)

    sub.add_parser("backup", help="snapshot the current entries")
    sub.add_parser("backups", help="list snapshots")
    rs = sub.add_parser("restore", help="load a snapshot (latest by default)")
    rs.add_argument("snapshot_id", nargs="?", default=None)
    rs.add_argument("--apply", action="store_true", help="re-register enabled entries missing from the system")
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    setup_logging(settings.debug)
    session = StartupSession.from_settings(settings)
    try:
        return COMMANDS[args.command](session, args)
    except (StartupMindError, ValueError) as e:
        console.print(f"[bold red]{args.command} failed:[/bold red] {escape(str(e))}")
        return 2

if __name__ == "__main__":
    sys.exit(main())
