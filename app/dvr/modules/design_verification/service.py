"""
Design verification service layer.
Handles registration, per-reviewer decisions, and authority-gated status changes.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable

from app.dvr.audit import record_event
from app.dvr.constants import KNOWN_STATUSES, STATUS_PENDING

from .records import Approval, Design, ErrorCode, Identity, Outcome
from .store import DuplicateRecordError, RecordStore, approval_lock_key, design_lock_key

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def system_clock() -> int:
    return int(time.time())


class DesignRegistry:
    """
    Registry operations over a RecordStore.

    `authority` is fixed at construction and is the only identity allowed to
    change a design's status. Callers are passed explicitly to every operation.
    """

    def __init__(self, store: RecordStore, *, authority: Identity, clock: Clock | None = None) -> None:
        if not authority or not authority.strip():
            raise ValueError("authority identity is required")
        self._store = store
        self._authority = authority
        self._clock = clock or system_clock

    @property
    def authority(self) -> Identity:
        return self._authority

    @property
    def store(self) -> RecordStore:
        return self._store

    def register(
        self,
        design_id: str,
        name: str,
        version: str,
        specifications: str,
        caller: Identity,
    ) -> Outcome:
        try:
            with self._store.transaction(design_lock_key(design_id)) as tx:
                if tx.get_design(design_id) is not None:
                    logger.warning("design.register rejected: %s already exists (caller=%s)", design_id, caller)
                    return Outcome.failure(ErrorCode.ALREADY_EXISTS)

                now = self._clock()
                tx.put_design(
                    Design(
                        design_id=design_id,
                        name=name,
                        version=version,
                        specifications=specifications,
                        status=STATUS_PENDING,
                        verified_by=caller,
                        timestamp=now,
                    )
                )
                record_event(
                    tx,
                    actor=caller,
                    action="design.register",
                    created_at=now,
                    entity_type="Design",
                    entity_id=design_id,
                    metadata={"name": name, "version": version},
                )
        except DuplicateRecordError:
            # Another writer committed the same id between our read and our commit.
            logger.warning("design.register lost insert race for %s (caller=%s)", design_id, caller)
            return Outcome.failure(ErrorCode.ALREADY_EXISTS)

        logger.info("design.register %s version=%s by %s", design_id, version, caller)
        return Outcome.success()

    def approve(self, design_id: str, comments: str, caller: Identity) -> Outcome:
        return self._decide(design_id, comments, caller, approved=True)

    def reject(self, design_id: str, comments: str, caller: Identity) -> Outcome:
        return self._decide(design_id, comments, caller, approved=False)

    def _decide(self, design_id: str, comments: str, caller: Identity, *, approved: bool) -> Outcome:
        action = "design.approve" if approved else "design.reject"
        try:
            return self._write_decision(action, design_id, comments, caller, approved)
        except DuplicateRecordError:
            # Another process inserted the same (design, approver) row first; the retry sees it and overwrites.
            logger.warning("%s lost insert race for %s (caller=%s), retrying", action, design_id, caller)
            return self._write_decision(action, design_id, comments, caller, approved)

    def _write_decision(
        self, action: str, design_id: str, comments: str, caller: Identity, approved: bool
    ) -> Outcome:
        # Designs are never deleted, so the approval key alone is enough to lock.
        with self._store.transaction(approval_lock_key(design_id, caller)) as tx:
            if tx.get_design(design_id) is None:
                logger.warning("%s rejected: %s not found (caller=%s)", action, design_id, caller)
                return Outcome.failure(ErrorCode.NOT_FOUND)

            now = self._clock()
            previous = tx.get_approval(design_id, caller)
            tx.put_approval(
                Approval(
                    design_id=design_id,
                    approver=caller,
                    approved=approved,
                    comments=comments,
                    timestamp=now,
                )
            )
            record_event(
                tx,
                actor=caller,
                action=action,
                created_at=now,
                entity_type="Design",
                entity_id=design_id,
                metadata={
                    "approved": approved,
                    "replaced": previous is not None,
                },
            )

        logger.info("%s %s by %s", action, design_id, caller)
        return Outcome.success()

    def update_status(self, design_id: str, new_status: str, caller: Identity) -> Outcome:
        with self._store.transaction(design_lock_key(design_id)) as tx:
            design = tx.get_design(design_id, for_update=True)
            # Existence first: an unauthorized caller learns nothing beyond NOT_FOUND.
            if design is None:
                logger.warning("design.status rejected: %s not found (caller=%s)", design_id, caller)
                return Outcome.failure(ErrorCode.NOT_FOUND)
            if caller != self._authority:
                logger.warning("design.status rejected: %s is not the authority (design=%s)", caller, design_id)
                return Outcome.failure(ErrorCode.UNAUTHORIZED)

            if new_status not in KNOWN_STATUSES:
                logger.info("design.status %s: custom status %r", design_id, new_status)
            tx.put_design(design.with_status(new_status))
            record_event(
                tx,
                actor=caller,
                action="design.status",
                created_at=self._clock(),
                entity_type="Design",
                entity_id=design_id,
                metadata={"from": design.status, "to": new_status},
            )

        logger.info("design.status %s %s -> %s", design_id, design.status, new_status)
        return Outcome.success()

    def get_design(self, design_id: str) -> Design | None:
        return self._store.get_design(design_id)

    def get_approval(self, design_id: str, approver: Identity) -> Approval | None:
        return self._store.get_approval(design_id, approver)


def registry_from_config(config: dict, store: RecordStore, clock: Clock | None = None) -> DesignRegistry:
    authority = (config.get("AUTHORITY_IDENTITY") or "").strip()
    if not authority:
        raise RuntimeError("AUTHORITY_IDENTITY must be set to the principal allowed to change design status.")
    return DesignRegistry(store, authority=authority, clock=clock)
