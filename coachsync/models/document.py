from datetime import datetime
from sqlalchemy import String, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from coachsync.database import Base
from coachsync.utils.timestamps import utcnow


class StoredDocument(Base):
    """One JSON document of the local store, addressed by (kind, key)."""

    __tablename__ = "documents"

    kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    # Owning entity id (player id for adjustments), used for lookups
    owner_id: Mapped[str | None] = mapped_column(String(128))
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_documents_kind_owner", "kind", "owner_id"),
    )
