"""
Incoming webhook endpoint model
"""
from typing import Optional
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from handshake.core.database import Base
from uuid import uuid4


class Webhook(Base):
    """
    Webhook endpoint registered before the code host knows about it.
    The UUID is part of the public webhook URL (/.api/webhooks/<uuid>).
    """

    __tablename__ = "webhooks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(String(36), unique=True, index=True, nullable=False, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String, nullable=False)
    code_host_kind: Mapped[str] = mapped_column(String, nullable=False)  # e.g. "GITHUB"
    code_host_urn: Mapped[str] = mapped_column(String, nullable=False)  # e.g. https://github.com/
    secret: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # encrypted
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    def __repr__(self):
        return f"<Webhook {self.name} ({self.uuid})>"
