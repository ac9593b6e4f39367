from typing import Any, Dict


class StartupMindError(Exception):
    code = "error"


class AccessDenied(StartupMindError):
    code = "access_denied"


class NotFound(StartupMindError):
    code = "not_found"


class InvalidFormat(StartupMindError):
    code = "invalid_format"


class UnsupportedLocation(StartupMindError):
    code = "unsupported_location"


class IOFailure(StartupMindError):
    code = "io_failure"


def os_error_code(exc: BaseException) -> str:
    if isinstance(exc, PermissionError):
        return AccessDenied.code
    if isinstance(exc, FileNotFoundError):
        return NotFound.code
    return IOFailure.code


def failure(code: str, error: str, **extra: Any) -> Dict[str, Any]:
    out = {"ok": False, "code": code, "error": error}
    out.update(extra)
    return out


def os_failure(exc: BaseException, what: str, **extra: Any) -> Dict[str, Any]:
    return failure(os_error_code(exc), f"{what}: {exc.__class__.__name__}: {exc}", **extra)
