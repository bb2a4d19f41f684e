"""
Design Verification module.

- A design is registered once per id and starts out pending
- Each reviewer holds one decision per design; a later decision replaces the earlier one
- Only the configured authority changes a design's status, and any status may follow any other
- Successful changes are recorded to the append-only audit trail
"""

from .records import Approval, Design, ErrorCode, Identity, Outcome
from .service import DesignRegistry, registry_from_config
from .store import MemoryRecordStore, RecordStore, SqlRecordStore, record_store_from_config

__all__ = [
    "Approval",
    "Design",
    "DesignRegistry",
    "ErrorCode",
    "Identity",
    "MemoryRecordStore",
    "Outcome",
    "RecordStore",
    "SqlRecordStore",
    "record_store_from_config",
    "registry_from_config",
]
