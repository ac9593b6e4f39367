from typing import Any, Dict, Optional

from StartupMind.entries import LocationKind

LOCATION_ALIASES = {
    "user-registry": LocationKind.USER_REGISTRY,
    "hkcu": LocationKind.USER_REGISTRY,
    "machine-registry": LocationKind.MACHINE_REGISTRY,
    "hklm": LocationKind.MACHINE_REGISTRY,
    "user-folder": LocationKind.USER_FOLDER,
    "machine-folder": LocationKind.MACHINE_FOLDER,
    "common-folder": LocationKind.MACHINE_FOLDER,
}

def _coerce_bool(v):
    if isinstance(v, bool): return v
    if isinstance(v, (int, float)): return bool(v)
    if isinstance(v, str):
        s = v.strip().lower()
        if s in ("true","1","yes","on"): return True
        if s in ("false","0","no","off"): return False
    return v

def parse_location(v: Any) -> Optional[LocationKind]:
    # Accept: enum, persisted label ("Registry (Current User)"), short alias, any case
    if isinstance(v, LocationKind): return v
    if not isinstance(v, str): return None
    s = v.strip().strip('"').strip("'")
    kind = LocationKind.parse(s)
    if kind: return kind
    s = s.lower().replace("_", "-").replace(" ", "-")
    if s in LOCATION_ALIASES: return LOCATION_ALIASES[s]
    for k in LocationKind:
        if k.value.lower() == v.strip().lower():
            return k
    return None

def _clean_path(p: Any) -> str:
    if not isinstance(p, str): return ""
    return p.strip().strip('"').strip("'")

def normalize_args(action: str, args: Dict[str, Any]) -> Dict[str, Any]:
    a = dict(args or {})
    for k in list(a.keys()):
        if k in ("enabled","enabled_only","disabled_only","include_system","apply"):
            a[k] = _coerce_bool(a[k])

    if "location" in a:
        kind = parse_location(a["location"])
        if kind is None:
            raise ValueError(f"unknown location: {a['location']!r}")
        a["location"] = kind

    if "path" in a:
        a["path"] = _clean_path(a["path"])

    if "name" in a and isinstance(a["name"], str):
        a["name"] = a["name"].strip()

    if action == "add":
        if not a.get("name"):
            raise ValueError("name is required")
        if "location" not in a:
            a["location"] = LocationKind.USER_REGISTRY

    if action == "list":
        a.setdefault("search", "")
        a.setdefault("include_system", True)
        if a.get("enabled_only") is True and a.get("disabled_only") is True:
            raise ValueError("enabled_only and disabled_only are mutually exclusive")

    return a
