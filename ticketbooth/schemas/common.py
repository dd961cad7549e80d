from typing import Any


def success_response(data: Any = None, **extra: Any) -> dict:
    """Wrap a payload in the standard success envelope."""
    body = {"success": True, "data": data}
    body.update(extra)
    return body


def error_response(code: str, message: str, data: Any = None) -> dict:
    body = {"success": False, "error": {"code": code, "message": message}}
    if data is not None:
        body["data"] = data
    return body
