"""
Central constants for the design verification registry.
"""
from __future__ import annotations

# Every design starts here.
STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

# Well-known lifecycle values. Status is an open string; the authority may set others.
KNOWN_STATUSES = frozenset({STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED})

RECORD_STORE_BACKENDS = frozenset({"sql", "memory"})
