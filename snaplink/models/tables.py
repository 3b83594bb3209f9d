"""
Database models.

Design principles:
  - Links are mutable (can be deactivated, edited, deleted by their owner)
  - click_count only ever moves up, via a storage-level increment
  - click_events is append-only; rows are never updated
"""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


class Link(Base):
    __tablename__ = "links"

    id = Column(Uuid, primary_key=True, default=uuid4)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    destination_url = Column(Text, nullable=False)
    title = Column(String(255), nullable=True)

    # --- Access policy (all optional) ---
    password = Column(String(255), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    max_clicks = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    click_count = Column(Integer, default=0, nullable=False)

    # Owner lives in the account system; no FK from this service
    owner_id = Column(Uuid, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    clicks = relationship("ClickEvent", back_populates="link", passive_deletes=True)


class ClickEvent(Base):
    """
    One row per counted click. Written by the background accounting step,
    never for blocked or gated requests.
    """
    __tablename__ = "click_events"

    id = Column(Uuid, primary_key=True, default=uuid4)
    link_id = Column(Uuid, ForeignKey("links.id", ondelete="CASCADE"), nullable=False)

    ip_hash = Column(String(64), nullable=False)             # truncated sha256, never the raw address

    # --- Denormalized classification (fast group-by, no FKs) ---
    device = Column(String(20), nullable=False)              # mobile, tablet, desktop
    browser = Column(String(50), nullable=False)
    os = Column(String(50), nullable=False)
    country = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)

    referrer = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)

    # Enrichment completion time, not request time
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    link = relationship("Link", back_populates="clicks")

    __table_args__ = (
        Index("ix_click_events_dedupe", "link_id", "ip_hash", "created_at"),
        Index("ix_click_events_link_created", "link_id", "created_at"),
    )
