# app/schemas/envelope.py
from typing import Any


def mobile_ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    """Success envelope for mobile routes: {success, data?, message?}."""
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body
