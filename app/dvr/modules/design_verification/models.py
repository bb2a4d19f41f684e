from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.dvr.models import Base


# Ids, identities and statuses are caller-supplied free-form text: no length caps.
class DesignRecord(Base):
    __tablename__ = "designs"

    design_id: Mapped[str] = mapped_column(Text, primary_key=True)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[str] = mapped_column(Text, nullable=False)
    specifications: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # pending -> (any status the authority sets)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default="pending", server_default="pending", index=True
    )

    verified_by: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[int] = mapped_column(Integer, nullable=False)  # seconds since epoch


class DesignApprovalRecord(Base):
    __tablename__ = "design_approvals"

    design_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("designs.design_id", ondelete="RESTRICT"),
        primary_key=True,
    )
    approver: Mapped[str] = mapped_column(Text, primary_key=True)

    approved: Mapped[bool] = mapped_column(Boolean, nullable=False)
    comments: Mapped[str] = mapped_column(Text, nullable=False, default="")
    timestamp: Mapped[int] = mapped_column(Integer, nullable=False)
