from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import sqlite3
from typing import Any, Generic, TypeVar

from photomirror.errors import IdentityResolutionError
from photomirror.store import EntityStore
from photomirror.util.time import Clock

logger = logging.getLogger(__name__)

E = TypeVar("E")
K = TypeVar("K")


class UpsertResult(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    NOCHANGE = "nochange"

    def merge(self, other: UpsertResult) -> UpsertResult:
        """Combine the results of writes made for one observed entity."""
        return other if self is UpsertResult.NOCHANGE else self


@dataclass(slots=True)
class EntityStats:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    marked_for_deletion: int = 0
    deleted: int = 0

    def record(self, result: UpsertResult) -> None:
        if result is UpsertResult.INSERT:
            self.inserted += 1
        elif result is UpsertResult.UPDATE:
            self.updated += 1
        else:
            self.unchanged += 1


class Reconciler(Generic[E, K]):
    """Merges one pass of observed entities into the persisted mirror.

    Every observed key is remembered so that ``mark_missing`` can tombstone
    the live rows the pass never saw. References to other entity kinds are
    only satisfied by keys the resolving reconciler has upserted in this same
    pass.
    """

    def __init__(self, conn: sqlite3.Connection, store: EntityStore[E, K], clock: Clock):
        self.conn = conn
        self.store = store
        self.clock = clock
        self.stats = EntityStats()
        self._observed: set[K] = set()
        self._upserted: set[K] = set()
        self._resolvers: dict[str, Reconciler[Any, Any]] = {}
        self._observing = True

    def resolve_with(self, kind: str, other: Reconciler[Any, Any]) -> None:
        self._resolvers[kind] = other

    def observe(self, key: K) -> None:
        if not self._observing:
            raise RuntimeError(f"{self.store.kind} observation already finished")
        self._observed.add(key)

    def has_upserted(self, key: Any) -> bool:
        return key in self._upserted

    def skip(self, key: K | None = None, record: bool = True) -> None:
        if key is not None:
            self.observe(key)
        if record:
            self.stats.skipped += 1

    def _check_references(self, entity: E, key: K) -> None:
        for kind, ref in self.store.references(entity):
            resolver = self._resolvers.get(kind)
            if resolver is not None and not resolver.has_upserted(ref):
                raise IdentityResolutionError(self.store.kind, str(key), kind, ref)

    def upsert(self, entity: E, record: bool = True) -> UpsertResult:
        key = self.store.key(entity)
        self.observe(key)
        self._check_references(entity, key)

        current = self.store.get(self.conn, key)
        if current is None:
            self.store.insert(self.conn, entity)
            self.conn.commit()
            result = UpsertResult.INSERT
            logger.debug("%s %s inserted", self.store.kind, key)
        else:
            merged = self.store.merge(current, entity)
            diff = self.store.diff(current, merged)
            if diff.is_same:
                result = UpsertResult.NOCHANGE
            else:
                self.store.update(self.conn, current, merged, self.clock.now())
                self.conn.commit()
                result = UpsertResult.UPDATE
                logger.debug("%s %s updated: %s", self.store.kind, key, diff)

        self._upserted.add(key)
        if record:
            self.stats.record(result)
        return result

    def finish_observing(self) -> None:
        self._observing = False

    def mark_missing(self) -> int:
        if self._observing:
            raise RuntimeError(f"{self.store.kind} observation must finish before marking missing rows")
        missing = self.store.live_ids(self.conn) - self._observed
        now = self.clock.now()
        marked = 0
        for key in sorted(missing):
            if self.store.mark_deleted(self.conn, key, now):
                self.conn.commit()
                marked += 1
                logger.debug("%s %s marked for deletion", self.store.kind, key)
        self.stats.marked_for_deletion += marked
        return marked

    @property
    def observed_count(self) -> int:
        return len(self._observed)
