from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class AuditEntry:
    actor: str
    action: str
    created_at: int
    entity_type: str | None = None
    entity_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def metadata_json(self) -> str | None:
        return json.dumps(self.metadata, sort_keys=True) if self.metadata else None


class AuditSink(Protocol):
    def add_event(self, entry: AuditEntry) -> None: ...


def record_event(
    sink: AuditSink,
    *,
    actor: str,
    action: str,
    created_at: int,
    entity_type: str | None = None,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEntry:
    """
    Append-only audit event helper.
    The sink is the open store transaction, so the event commits or rolls back with the change it describes.
    """
    ev = AuditEntry(
        actor=actor,
        action=action,
        created_at=created_at,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata=dict(metadata or {}),
    )
    sink.add_event(ev)
    return ev
