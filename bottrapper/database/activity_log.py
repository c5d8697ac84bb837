"""Append-only audit trail of privileged changes."""

import datetime
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, MappedAsDataclass, mapped_column

from .base import Base, utcnow


class ActivityLog(MappedAsDataclass, Base):
    """A single audited action. A null guild means the action was global."""

    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True, init=False)
    action: Mapped[str] = mapped_column(sa.String(length=50))
    actor_id: Mapped[Optional[int]] = mapped_column(sa.BigInteger, nullable=True, default=None)
    target_id: Mapped[Optional[int]] = mapped_column(sa.BigInteger, nullable=True, default=None)
    guild_id: Mapped[Optional[int]] = mapped_column(sa.BigInteger, nullable=True, default=None, index=True)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(sa.JSON, nullable=True, default=None)
    created_at: Mapped[datetime.datetime] = mapped_column(
        sa.DateTime(timezone=True), insert_default=utcnow, init=False
    )
