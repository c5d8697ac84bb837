import datetime

import sqlalchemy as sa
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.orm import Mapped, MappedAsDataclass, mapped_column

from .base import Base, JSONList, utcnow


class CommandPermissionRule(MappedAsDataclass, Base):
    """Explicit command allow and deny lists for a single role in a guild."""

    __tablename__ = "command_permissions"

    guild_id: Mapped[int] = mapped_column(sa.BigInteger, primary_key=True, autoincrement=False)
    role_id: Mapped[int] = mapped_column(sa.BigInteger, primary_key=True, autoincrement=False)
    allowed_commands: Mapped[list[str]] = mapped_column(
        MutableList.as_mutable(JSONList), nullable=False, default_factory=list
    )
    denied_commands: Mapped[list[str]] = mapped_column(
        MutableList.as_mutable(JSONList), nullable=False, default_factory=list
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        sa.DateTime(timezone=True), insert_default=utcnow, onupdate=utcnow, init=False
    )
