"""
Meshy text-to-3D provider.

Creates preview generation tasks over the Meshy REST API with
``httpx.AsyncClient``. A task is only queued here; Meshy finishes it
asynchronously, so the caller gets back the task id and its first status.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from forgekit.core.logging_config import get_logger
from forgekit.errors import ProviderError
from forgekit.server.core.config import Settings

from .base import ModelTask

logger = get_logger(__name__)

MESHY_BASE_URL = "https://api.meshy.ai/openapi/v2"

_STATUS_MAP = {
    "pending": "pending",
    "queued": "pending",
    "in_progress": "processing",
    "processing": "processing",
    "succeeded": "completed",
    "completed": "completed",
    "failed": "failed",
    "error": "failed",
}


def map_status(meshy_status: Optional[str]) -> str:
    """Meshy task status in our vocabulary; anything unknown is still pending."""
    return _STATUS_MAP.get((meshy_status or "").lower(), "pending")


class MeshyProvider:
    """3D model generation provider backed by the Meshy API."""

    name = "meshy"

    def __init__(
        self,
        api_key: str,
        base_url: str = MESHY_BASE_URL,
        ai_model: str = "meshy-5",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = ai_model
        self._http = client or httpx.AsyncClient(timeout=30.0)

    @classmethod
    def from_settings(cls, config: Settings) -> Optional["MeshyProvider"]:
        """Build a provider from settings, or ``None`` when no Meshy key is set."""
        meshy = config.meshy
        if not meshy.enabled:
            logger.warning("No MESHY_API_KEY configured, 3D model generation disabled")
            return None
        return cls(api_key=meshy.api_key or "", base_url=meshy.base_url, ai_model=meshy.ai_model)

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}

    async def text_to_model(
        self,
        prompt: str,
        art_style: str = "realistic",
        negative_prompt: str = "",
        topology: str = "quad",
        target_polycount: int = 30000,
    ) -> ModelTask:
        payload = {
            "mode": "preview",
            "prompt": prompt,
            "art_style": art_style,
            "negative_prompt": negative_prompt,
            "ai_model": self.model,
            "topology": topology,
            "target_polycount": target_polycount,
        }
        try:
            response = await self._http.post(f"{self.base_url}/text-to-3d", json=payload, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response)
            logger.error(f"Meshy text-to-3d failed with {e.response.status_code}: {message}")
            raise ProviderError(self.name, message) from e
        except httpx.HTTPError as e:
            logger.error(f"Meshy text-to-3d request failed: {e}")
            raise ProviderError(self.name, str(e) or e.__class__.__name__) from e

        data: Dict[str, Any] = response.json()
        # v2 returns the task id in "result"
        task_id = data.get("result") or data.get("id") or data.get("task_id")
        if not task_id:
            raise ProviderError(self.name, "Meshy returned no task id")
        return ModelTask(task_id=str(task_id), status=map_status(data.get("status")), model=self.model)

    async def close(self) -> None:
        await self._http.aclose()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or response.reason_phrase)
    return response.reason_phrase or f"HTTP {response.status_code}"
