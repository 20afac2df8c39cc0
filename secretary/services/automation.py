from __future__ import annotations

from typing import Any, Dict

import httpx
from loguru import logger

from ..config import settings
from ..errors import ExternalServiceError

CALLBACK_PATH = "/api/webhook/n8n-callback"


def callback_url() -> str:
    return f"{settings.backend_url}{CALLBACK_PATH}"


async def forward_meeting_end(payload: Dict[str, Any]) -> Any:
    """Relay a meeting-end event to the n8n workflow and return its reply."""
    body = dict(payload)
    body["callback_url"] = callback_url()
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_sec) as client:
            resp = await client.post(settings.n8n_webhook_url, json=body)
            resp.raise_for_status()
        return resp.json() if resp.content else {}
    except (httpx.HTTPError, ValueError) as exc:
        logger.bind(tag="webhook.relay").warning(
            "n8n forward failed", meeting_id=payload.get("meeting_id"), error=str(exc)
        )
        raise ExternalServiceError("Automation relay failed") from exc
