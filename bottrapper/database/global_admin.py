import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, MappedAsDataclass, mapped_column, validates

from bottrapper.errors import InvalidAdminLevel

from .base import Base, utcnow


MIN_ADMIN_LEVEL = 1
MAX_ADMIN_LEVEL = 3


class GlobalAdmin(MappedAsDataclass, Base):
    """Represents a user with bot-wide administrative privileges."""

    __tablename__ = "global_admins"

    user_id: Mapped[int] = mapped_column(sa.BigInteger, primary_key=True, autoincrement=False)
    username: Mapped[str] = mapped_column(sa.String(length=100))
    level: Mapped[int] = mapped_column(sa.SmallInteger, default=1)
    granted_by: Mapped[Optional[int]] = mapped_column(sa.BigInteger, nullable=True, default=None)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, server_default=sa.true(), nullable=False)
    granted_at: Mapped[datetime.datetime] = mapped_column(
        sa.DateTime(timezone=True), insert_default=utcnow, init=False
    )

    @validates("level")
    def validate_level(self, key: str, level: int) -> int:
        """Admin levels go from 1 to 3, higher being more privileged."""
        if not MIN_ADMIN_LEVEL <= level <= MAX_ADMIN_LEVEL:
            raise InvalidAdminLevel(level)
        return level
