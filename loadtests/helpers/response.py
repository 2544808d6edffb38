"""Response error extraction for load test observability.

Parses checkout API error responses into human-readable messages.
Handles three response shapes:

- Pydantic validation (422): {"detail": [{"loc": [...], "msg": "...", "type": "..."}]}
- HTTP errors (401): {"detail": "msg"}
- Checkout errors (400/404/5xx): {"error": "msg", "details": ..., "step": "CompleteCart"}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response


def extract_error_detail(response: Response) -> str:
    """Extract a human-readable error message from an API error response.

    Returns a compact string suitable for Locust failure messages and log lines.
    """
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    if not isinstance(body, dict):
        return str(body)[:300]

    if "detail" in body:
        detail = body["detail"]
        if isinstance(detail, list):
            parts = []
            for err in detail:
                loc = ".".join(str(p) for p in err.get("loc", []))
                msg = err.get("msg", str(err))
                parts.append(f"{loc}: {msg}" if loc else msg)
            return " | ".join(parts)
        return str(detail)

    if "error" in body:
        message = str(body["error"])
        details = body.get("details")
        if isinstance(details, dict):
            message += " (" + " | ".join(f"{k}: {v}" for k, v in details.items()) + ")"
        if body.get("step"):
            message = f"[{body['step']}] {message}"
        return message

    return str(body)[:300]
