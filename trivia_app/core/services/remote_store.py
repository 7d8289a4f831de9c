"""Async clients for the authoritative remote document store."""

from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from trivia_app.constants.network_constants import DEFAULT_REMOTE_TIMEOUT_SECONDS
from trivia_app.core.errors import RemoteUnavailable

logger = logging.getLogger(__name__)


class RemoteStore(Protocol):
    async def list_documents(self, collection: str) -> list[dict[str, Any]]: ...

    async def put_document(self, collection: str, document_id: str, document: dict[str, Any]) -> None: ...

    async def delete_document(self, collection: str, document_id: str) -> None: ...


class HttpRemoteStore:
    """Talks to a document store exposing ``/collections/{name}/documents``.

    Every transport failure, timeout or non-2xx response surfaces as
    :class:`RemoteUnavailable`.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = DEFAULT_REMOTE_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds)

    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        response = await self._request("GET", self._collection_path(collection))
        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteUnavailable(f"Remote returned invalid JSON for {collection}.") from exc
        documents = body.get("documents") if isinstance(body, dict) else body
        if not isinstance(documents, list):
            raise RemoteUnavailable(f"Remote returned an unexpected payload for {collection}.")
        return documents

    async def put_document(self, collection: str, document_id: str, document: dict[str, Any]) -> None:
        await self._request("PUT", self._document_path(collection, document_id), json=document)

    async def delete_document(self, collection: str, document_id: str) -> None:
        await self._request("DELETE", self._document_path(collection, document_id), allow_missing=True)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        allow_missing: bool = False,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            raise RemoteUnavailable(f"{method} {path} timed out.") from exc
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"{method} {path} failed: {exc}") from exc

        if allow_missing and response.status_code == 404:
            return response
        if response.is_error:
            raise RemoteUnavailable(f"{method} {path} returned HTTP {response.status_code}.")
        return response

    @staticmethod
    def _collection_path(collection: str) -> str:
        return f"/collections/{quote(collection, safe='')}/documents"

    @classmethod
    def _document_path(cls, collection: str, document_id: str) -> str:
        return f"{cls._collection_path(collection)}/{quote(document_id, safe='')}"


class OfflineRemoteStore:
    """Remote used when no store URL is configured; every call is unavailable."""

    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        raise RemoteUnavailable("No remote store is configured.")

    async def put_document(self, collection: str, document_id: str, document: dict[str, Any]) -> None:
        raise RemoteUnavailable("No remote store is configured.")

    async def delete_document(self, collection: str, document_id: str) -> None:
        raise RemoteUnavailable("No remote store is configured.")
