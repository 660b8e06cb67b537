import logging
from typing import List, Optional

import httpx

from .errors import Internal

logger = logging.getLogger(__name__)


class MessageIndex:
    """Client of the Elasticsearch wrapper service.

    Writes are best effort: the store stays the source of truth, so a failed
    index call is logged and dropped. Searching needs the service and raises
    ``Internal`` when it is missing or failing.
    """

    def __init__(self, base_url: Optional[str], timeout: float = 5.0):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return self.base_url is not None

    async def index_message(self, conversation_id: str, message: dict) -> None:
        await self._best_effort(
            "POST",
            "/index",
            json={"conversation_id": conversation_id, "message": message},
        )

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._best_effort("DELETE", f"/conversations/{conversation_id}")

    async def delete_user(self, user_id: str) -> None:
        await self._best_effort("DELETE", f"/users/{user_id}")

    async def search(self, conversation_id: str, q: str) -> List[dict]:
        if not self.enabled:
            raise Internal("Message search is not configured")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(
                    f"{self.base_url}/search",
                    params={"conversation_id": conversation_id, "q": q},
                )
                resp.raise_for_status()
                # [{ "conversation_id":..., "id":..., "text":..., "timestamp":..., "sender_id":..., "receiver_id":... }, ...]
                return resp.json()
        except httpx.HTTPError as exc:
            logger.warning("Search service failed for %s: %s", conversation_id, exc)
            raise Internal("Message search failed") from exc

    async def _best_effort(self, method: str, path: str, **kwargs) -> None:
        if not self.enabled:
            return
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(method, f"{self.base_url}{path}", **kwargs)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Search index %s %s failed: %s", method, path, exc)
