from __future__ import annotations

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType


class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)

    status: Mapped[str] = mapped_column(String(30), nullable=False, server_default="pending")

    input: Mapped[dict] = mapped_column(JSONType, nullable=False)
    output: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    error: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    # Compare-and-swap stamp; bumped on every successful update.
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_jobs_kind_status_created", "kind", "status", "created_at"),
        Index("idx_jobs_owner", "owner"),
    )
