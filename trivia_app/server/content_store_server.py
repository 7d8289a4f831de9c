"""In-memory document store speaking the remote store REST protocol."""

from __future__ import annotations

from threading import Lock
from typing import Any

from fastapi import FastAPI, HTTPException, Response
import uvicorn


class DocumentCollections:
    """Thread-safe map of collection name to ``{document_id: document}``."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    def list(self, collection: str) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(document) for document in self._collections.get(collection, {}).values()]

    def put(self, collection: str, document_id: str, document: dict[str, Any]) -> bool:
        with self._lock:
            documents = self._collections.setdefault(collection, {})
            created = document_id not in documents
            documents[document_id] = dict(document)
            return created

    def delete(self, collection: str, document_id: str) -> bool:
        with self._lock:
            return self._collections.get(collection, {}).pop(document_id, None) is not None

    def ids(self, collection: str) -> list[str]:
        with self._lock:
            return sorted(self._collections.get(collection, {}))


def create_content_store_app(collections: DocumentCollections | None = None) -> FastAPI:
    """Create a FastAPI document store; pass ``collections`` to inspect it in tests."""
    store = collections if collections is not None else DocumentCollections()
    app = FastAPI(title="Trivia Content Store", version="0.1.0")
    app.state.collections = store

    @app.get("/collections/{collection}/documents")
    def list_documents(collection: str) -> dict[str, object]:
        return {"documents": store.list(collection)}

    @app.put("/collections/{collection}/documents/{document_id}")
    def put_document(collection: str, document_id: str, document: dict[str, Any], response: Response) -> dict[str, object]:
        created = store.put(collection, document_id, document)
        response.status_code = 201 if created else 200
        return {"id": document_id, "created": created}

    @app.delete("/collections/{collection}/documents/{document_id}", status_code=204)
    def delete_document(collection: str, document_id: str) -> Response:
        if not store.delete(collection, document_id):
            raise HTTPException(status_code=404, detail="Document not found.")
        return Response(status_code=204)

    return app


def run_content_store(host: str = "127.0.0.1", port: int = 8100) -> None:
    uvicorn.run(create_content_store_app(), host=host, port=port, log_level="info")
