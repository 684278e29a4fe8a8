# pos_edge/domain/sync/client.py
import logging
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from pos_edge.core.errors import TransportError
from .schemas import PullResponse

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 10.0


class RemoteSyncClient:
    """HTTP client for the remote sync authority.

    ``POST {endpoint}/sync/push`` with ``{"operations": [...]}`` and
    ``GET {endpoint}/sync/pull?collection=&since=&limit=``. Every failure,
    including non-2xx answers and unparseable bodies, is a ``TransportError``.
    """

    def __init__(self, endpoint: str, timeout: float = HTTP_TIMEOUT, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.endpoint, timeout=self.timeout, transport=self.transport)

    async def push(self, operations: List[dict]) -> None:
        try:
            async with self._client() as client:
                response = await client.post("/sync/push", json={"operations": operations})
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Push failed: {e.response.status_code}", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Push failed: {e}") from e
        logger.debug("Pushed %s operation(s)", len(operations))

    async def pull(self, collection: str, since: Any, limit: int) -> PullResponse:
        params = {"collection": collection, "since": "" if since is None else since, "limit": limit}
        try:
            async with self._client() as client:
                response = await client.get("/sync/pull", params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Pull failed: {e.response.status_code}", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Pull failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"Pull returned invalid JSON: {e}") from e

        try:
            return PullResponse.model_validate(data)
        except ValidationError as e:
            raise TransportError(f"Pull returned an invalid body: {e}") from e
