from __future__ import annotations

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class AuditEvent(Base):
    """
    Append-only audit trail event.
    Keep this table intentionally generic; module-specific tables can refer to it by entity id.
    """

    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[int] = mapped_column(Integer, nullable=False)  # seconds since epoch

    actor: Mapped[str] = mapped_column(Text, nullable=False)  # caller identity
    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "design.register"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "Design"
    entity_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)

    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
import app.dvr.modules.design_verification.models  # noqa: E402,F401
