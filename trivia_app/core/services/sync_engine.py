"""Reconciles the content cache with the remote store and propagates local writes.

Startup sync per entity kind: an empty remote collection is seeded from the
bundled dataset, a populated one replaces the local copy. Local mutations are
applied to the cache first and then written to the remote store in detached
background tasks; a failed remote write is logged and never rolls back the
local change.
"""

from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import Any, Coroutine, Iterable

from trivia_app.core.errors import RemoteUnavailable
from trivia_app.core.services.content_cache import (
    SCHEMAS,
    ContentCache,
    Entity,
    EntityKind,
    decode_documents,
)
from trivia_app.core.services.remote_store import RemoteStore

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SYNCING = "syncing"
    SYNCED = "synced"
    FAILED = "failed"


class SyncEngine:
    """One sync attempt per kind per start; no background retry."""

    def __init__(self, cache: ContentCache, remote: RemoteStore) -> None:
        self._cache = cache
        self._remote = remote
        self._states: dict[EntityKind, SyncState] = {kind: SyncState.UNINITIALIZED for kind in EntityKind}
        self._locks: dict[EntityKind, asyncio.Lock] = {kind: asyncio.Lock() for kind in EntityKind}
        self._pending: set[asyncio.Task[None]] = set()
        # Latest remote write per document; a newer write waits for it so writes land in order.
        self._tails: dict[tuple[str, str], asyncio.Task[None]] = {}

    def state(self, kind: EntityKind) -> SyncState:
        return self._states[kind]

    def states(self) -> dict[EntityKind, SyncState]:
        return dict(self._states)

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    # --- Startup sync ---

    async def sync_all(self, kinds: Iterable[EntityKind] | None = None) -> dict[EntityKind, SyncState]:
        selected = list(kinds) if kinds is not None else list(EntityKind)
        await asyncio.gather(*(self.sync_kind(kind) for kind in selected))
        return {kind: self._states[kind] for kind in selected}

    async def sync_kind(self, kind: EntityKind) -> SyncState:
        schema = SCHEMAS[kind]
        async with self._locks[kind]:
            self._states[kind] = SyncState.SYNCING
            try:
                documents = await self._remote.list_documents(schema.collection)
                if documents:
                    entities = decode_documents(kind, documents)
                    self._cache.replace_all(kind, entities)
                    logger.info("Pulled %d %s from remote", len(entities), kind.value)
                else:
                    seed = self._cache.seed_entities(kind)
                    for entity in seed:
                        await self._remote.put_document(schema.collection, entity.id, schema.to_dict(entity))
                    self._cache.replace_all(kind, seed)
                    logger.info("Remote %s was empty; seeded %d bundled entries", kind.value, len(seed))
            except RemoteUnavailable as exc:
                self._states[kind] = SyncState.FAILED
                logger.warning("Sync of %s abandoned, keeping local copy: %s", kind.value, exc)
                return SyncState.FAILED
            self._states[kind] = SyncState.SYNCED
            return SyncState.SYNCED

    # --- Write-through mutations ---

    async def put(self, kind: EntityKind, entity: Entity) -> None:
        """Apply an add or full replacement locally, then push it to the remote."""
        schema = SCHEMAS[kind]
        async with self._locks[kind]:
            self._cache.put(kind, entity)
        self.write_through(schema.collection, entity.id, schema.to_dict(entity))

    async def remove(self, kind: EntityKind, entity_id: str) -> bool:
        async with self._locks[kind]:
            removed = self._cache.remove(kind, entity_id)
        self.delete_through(SCHEMAS[kind].collection, entity_id)
        return removed

    def write_through(
        self, collection: str, document_id: str, document: dict[str, Any]
    ) -> asyncio.Task[None] | None:
        return self._spawn(
            self._remote.put_document(collection, document_id, document),
            f"write {collection}/{document_id}",
            (collection, document_id),
        )

    def delete_through(self, collection: str, document_id: str) -> asyncio.Task[None] | None:
        return self._spawn(
            self._remote.delete_document(collection, document_id),
            f"delete {collection}/{document_id}",
            (collection, document_id),
        )

    async def drain(self) -> None:
        """Wait for every pending remote write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # --- Background task monitoring ---

    def _spawn(
        self, operation: Coroutine[Any, Any, None], description: str, key: tuple[str, str]
    ) -> asyncio.Task[None] | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            operation.close()
            logger.warning("No event loop running; remote %s skipped", description)
            return None
        previous = self._tails.get(key)
        task = loop.create_task(self._guarded(operation, description, previous), name=description)
        self._tails[key] = task
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)
        task.add_done_callback(lambda done: self._release_tail(key, done))
        return task

    def _release_tail(self, key: tuple[str, str], task: asyncio.Task[None]) -> None:
        if self._tails.get(key) is task:
            del self._tails[key]

    async def _guarded(
        self, operation: Coroutine[Any, Any, None], description: str, previous: asyncio.Task[None] | None
    ) -> None:
        if previous is not None and not previous.done():
            try:
                await asyncio.wait([previous])
            except asyncio.CancelledError:
                operation.close()
                raise
        try:
            await operation
        except RemoteUnavailable as exc:
            logger.warning("Remote %s failed; local copy kept: %s", description, exc)
        else:
            logger.debug("Remote %s succeeded", description)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Remote task %s crashed", task.get_name(), exc_info=exc)
