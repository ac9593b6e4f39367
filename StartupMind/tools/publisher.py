from typing import List
import ctypes, logging, os, struct

from StartupMind.entries import UNKNOWN_PUBLISHER

log = logging.getLogger(__name__)

# language/codepage blocks to try when the translation table is missing
FALLBACK_CODEPAGES = ["040904B0", "040904E4", "000004B0"]


def _query_string(version, buffer, block: str) -> str:
    from ctypes import wintypes
    ptr = ctypes.c_void_p()
    length = wintypes.UINT()
    if version.VerQueryValueW(buffer, block, ctypes.byref(ptr), ctypes.byref(length)) and length.value:
        return ctypes.wstring_at(ptr, length.value - 1)
    return ""


def _translations(version, buffer) -> List[str]:
    from ctypes import wintypes
    ptr = ctypes.c_void_p()
    length = wintypes.UINT()
    if not version.VerQueryValueW(buffer, "\\VarFileInfo\\Translation", ctypes.byref(ptr), ctypes.byref(length)):
        return []
    raw = ctypes.string_at(ptr, length.value)
    out = []
    for off in range(0, len(raw) - 3, 4):
        lang, codepage = struct.unpack_from("<HH", raw, off)
        out.append(f"{lang:04X}{codepage:04X}")
    return out


def read_company_name(path: str) -> str:
    """CompanyName from the file's version resource; '' when there is none."""
    version = ctypes.windll.version
    size = version.GetFileVersionInfoSizeW(path, None)
    if not size:
        return ""
    buffer = ctypes.create_string_buffer(size)
    if not version.GetFileVersionInfoW(path, 0, size, buffer):
        return ""
    for cp in _translations(version, buffer) + FALLBACK_CODEPAGES:
        company = _query_string(version, buffer, f"\\StringFileInfo\\{cp}\\CompanyName")
        if company.strip():
            return company
    return ""


def resolve_publisher(path: str, reader=read_company_name) -> str:
    """Best-effort vendor name for an executable. Never raises."""
    if not path or not path.strip():
        return UNKNOWN_PUBLISHER
    try:
        if not os.path.isfile(path):
            return UNKNOWN_PUBLISHER
        company = reader(path)
    except Exception as e:
        # includes AttributeError for ctypes.windll off Windows
        log.debug("publisher lookup failed for %s: %s", path, e)
        return UNKNOWN_PUBLISHER
    if not company or not company.strip():
        return UNKNOWN_PUBLISHER
    return company.strip()
