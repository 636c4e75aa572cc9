"""
State model backing the GitHub App handshake token store
"""
from datetime import datetime
from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from handshake.core.database import Base


class GitHubAppState(Base):
    """Single-use state token and the serialized context bound to it"""

    __tablename__ = "github_app_states"

    state: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<GitHubAppState {self.state[:8]}...>"
