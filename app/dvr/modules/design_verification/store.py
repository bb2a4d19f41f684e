"""
Record store: sole owner of Design and Approval state.

No business rules live here. The store only guarantees that a transaction
over a set of keys runs alone on those keys and lands all-or-nothing.
"""
from __future__ import annotations

import json
import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from app.dvr.audit import AuditEntry
from app.dvr.models import AuditEvent

from .models import DesignApprovalRecord, DesignRecord
from .records import Approval, ApprovalKey, Design, Identity

LockKey = tuple[str, ...]


class RecordStoreError(RuntimeError):
    pass


class DuplicateRecordError(RecordStoreError):
    """A commit collided with a row written by someone else (unique key violation)."""


def design_lock_key(design_id: str) -> LockKey:
    return ("design", design_id)


def approval_lock_key(design_id: str, approver: Identity) -> LockKey:
    return ("approval", design_id, approver)


class KeyedLocks:
    """
    One mutex per key, created on demand and dropped once nobody holds or waits on it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[LockKey, list[Any]] = {}  # key -> [lock, users]

    def _checkout(self, key: LockKey) -> threading.Lock:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._entries[key] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: LockKey) -> None:
        with self._guard:
            entry = self._entries[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    @contextmanager
    def hold(self, *keys: LockKey) -> Iterator[None]:
        # Sorted acquisition keeps multi-key holders from deadlocking each other.
        held: list[tuple[LockKey, threading.Lock]] = []
        try:
            for key in sorted(set(keys)):
                lock = self._checkout(key)
                try:
                    lock.acquire()
                except BaseException:
                    self._checkin(key)
                    raise
                held.append((key, lock))
            yield
        finally:
            for key, lock in reversed(held):
                lock.release()
                self._checkin(key)


class StoreTransaction:
    def get_design(self, design_id: str, *, for_update: bool = False) -> Design | None:
        raise NotImplementedError

    def get_approval(self, design_id: str, approver: Identity) -> Approval | None:
        raise NotImplementedError

    def put_design(self, design: Design) -> None:
        raise NotImplementedError

    def put_approval(self, approval: Approval) -> None:
        raise NotImplementedError

    def add_event(self, entry: AuditEntry) -> None:
        raise NotImplementedError


class RecordStore:
    def transaction(self, *keys: LockKey) -> AbstractContextManager[StoreTransaction]:
        raise NotImplementedError

    def get_design(self, design_id: str) -> Design | None:
        raise NotImplementedError

    def get_approval(self, design_id: str, approver: Identity) -> Approval | None:
        raise NotImplementedError

    def put_design(self, design: Design) -> None:
        with self.transaction(design_lock_key(design.design_id)) as tx:
            tx.put_design(design)

    def put_approval(self, approval: Approval) -> None:
        with self.transaction(approval_lock_key(approval.design_id, approval.approver)) as tx:
            tx.put_approval(approval)

    def audit_events(self, entity_id: str | None = None) -> list[AuditEntry]:
        raise NotImplementedError


class _MemoryTransaction(StoreTransaction):
    def __init__(self, store: "MemoryRecordStore") -> None:
        self._store = store
        self.designs: dict[str, Design] = {}
        self.approvals: dict[ApprovalKey, Approval] = {}
        self.events: list[AuditEntry] = []

    def get_design(self, design_id: str, *, for_update: bool = False) -> Design | None:
        if design_id in self.designs:
            return self.designs[design_id]
        return self._store.get_design(design_id)

    def get_approval(self, design_id: str, approver: Identity) -> Approval | None:
        key = (design_id, approver)
        if key in self.approvals:
            return self.approvals[key]
        return self._store.get_approval(design_id, approver)

    def put_design(self, design: Design) -> None:
        self.designs[design.design_id] = design

    def put_approval(self, approval: Approval) -> None:
        self.approvals[approval.key] = approval

    def add_event(self, entry: AuditEntry) -> None:
        self.events.append(entry)


class MemoryRecordStore(RecordStore):
    """Process-local store for tests and single-process tools."""

    def __init__(self) -> None:
        self._designs: dict[str, Design] = {}
        self._approvals: dict[ApprovalKey, Approval] = {}
        self._events: list[AuditEntry] = []
        self._locks = KeyedLocks()
        self._apply_lock = threading.Lock()

    @contextmanager
    def transaction(self, *keys: LockKey) -> Iterator[StoreTransaction]:
        with self._locks.hold(*keys):
            tx = _MemoryTransaction(self)
            yield tx
            # Only reached when the block exits cleanly; otherwise staged writes are dropped.
            with self._apply_lock:
                self._designs.update(tx.designs)
                self._approvals.update(tx.approvals)
                self._events.extend(tx.events)

    def get_design(self, design_id: str) -> Design | None:
        with self._apply_lock:
            return self._designs.get(design_id)

    def get_approval(self, design_id: str, approver: Identity) -> Approval | None:
        with self._apply_lock:
            return self._approvals.get((design_id, approver))

    def audit_events(self, entity_id: str | None = None) -> list[AuditEntry]:
        with self._apply_lock:
            return [e for e in self._events if entity_id is None or e.entity_id == entity_id]


def _design_from_row(row: DesignRecord) -> Design:
    return Design(
        design_id=row.design_id,
        name=row.name,
        version=row.version,
        specifications=row.specifications,
        status=row.status,
        verified_by=row.verified_by,
        timestamp=row.timestamp,
    )


def _approval_from_row(row: DesignApprovalRecord) -> Approval:
    return Approval(
        design_id=row.design_id,
        approver=row.approver,
        approved=row.approved,
        comments=row.comments,
        timestamp=row.timestamp,
    )


def _entry_from_row(row: AuditEvent) -> AuditEntry:
    return AuditEntry(
        actor=row.actor,
        action=row.action,
        created_at=row.created_at,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        metadata=json.loads(row.metadata_json) if row.metadata_json else {},
    )


class _SqlTransaction(StoreTransaction):
    def __init__(self, s: Session) -> None:
        self._s = s
        # Ids this transaction read as missing; writing one must be a plain INSERT
        # so a concurrent insert from another process fails the commit instead of being overwritten.
        self._absent_designs: set[str] = set()

    def get_design(self, design_id: str, *, for_update: bool = False) -> Design | None:
        row = self._s.get(DesignRecord, design_id, with_for_update=True if for_update else None)
        if row is None:
            self._absent_designs.add(design_id)
            return None
        return _design_from_row(row)

    def get_approval(self, design_id: str, approver: Identity) -> Approval | None:
        row = self._s.get(DesignApprovalRecord, (design_id, approver))
        return _approval_from_row(row) if row else None

    def put_design(self, design: Design) -> None:
        if design.design_id in self._absent_designs:
            self._absent_designs.discard(design.design_id)
            self._s.add(DesignRecord(**design.to_dict()))
            return
        self._s.merge(DesignRecord(**design.to_dict()))

    def put_approval(self, approval: Approval) -> None:
        self._s.merge(DesignApprovalRecord(**approval.to_dict()))

    def add_event(self, entry: AuditEntry) -> None:
        self._s.add(
            AuditEvent(
                created_at=entry.created_at,
                actor=entry.actor,
                action=entry.action,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                metadata_json=entry.metadata_json(),
            )
        )


class SqlRecordStore(RecordStore):
    """
    SQLAlchemy-backed store. One session per transaction: commit on success, rollback on error.

    The keyed locks serialize transactions inside this process; the primary keys
    catch collisions with other processes at commit time.
    """

    def __init__(self, sm: sessionmaker[Session]) -> None:
        self._sessionmaker = sm
        self._locks = KeyedLocks()

    @contextmanager
    def transaction(self, *keys: LockKey) -> Iterator[StoreTransaction]:
        with self._locks.hold(*keys):
            s: Session = self._sessionmaker()
            try:
                yield _SqlTransaction(s)
                s.commit()
            except IntegrityError as e:
                s.rollback()
                raise DuplicateRecordError(str(e.orig)) from e
            except Exception:
                s.rollback()
                raise
            finally:
                s.close()

    def get_design(self, design_id: str) -> Design | None:
        with self._sessionmaker() as s:
            row = s.get(DesignRecord, design_id)
            return _design_from_row(row) if row else None

    def get_approval(self, design_id: str, approver: Identity) -> Approval | None:
        with self._sessionmaker() as s:
            row = s.get(DesignApprovalRecord, (design_id, approver))
            return _approval_from_row(row) if row else None

    def audit_events(self, entity_id: str | None = None) -> list[AuditEntry]:
        stmt = select(AuditEvent).order_by(AuditEvent.id.asc())
        if entity_id is not None:
            stmt = stmt.where(AuditEvent.entity_id == entity_id)
        with self._sessionmaker() as s:
            return [_entry_from_row(row) for row in s.scalars(stmt).all()]


def record_store_from_config(config: dict, sm: sessionmaker[Session] | None = None) -> RecordStore:
    backend = (config.get("RECORD_STORE") or "sql").strip().lower()
    if backend == "memory":
        return MemoryRecordStore()
    if backend == "sql":
        if sm is None:
            raise ValueError("RECORD_STORE=sql requires a database sessionmaker.")
        return SqlRecordStore(sm)
    raise ValueError(f"Unsupported RECORD_STORE: {backend!r}")
