import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.ext.mutable import MutableDict, MutableList
from sqlalchemy.orm import Mapped, MappedAsDataclass, mapped_column

from bottrapper.constants import Feature

from .base import Base, JSONList, utcnow


class GuildConfig(MappedAsDataclass, Base):
    """Represents a guild's enabled features and its opaque settings."""

    __tablename__ = "guild_config"

    guild_id: Mapped[int] = mapped_column(sa.BigInteger, primary_key=True, autoincrement=False)
    # unknown names are skipped by `features`
    feature_names: Mapped[list[str]] = mapped_column(
        MutableList.as_mutable(JSONList),
        name="enabled_features",
        nullable=False,
        default_factory=list,
    )
    settings: Mapped[dict[str, Any]] = mapped_column(
        MutableDict.as_mutable(sa.JSON),
        nullable=False,
        default_factory=dict,
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        sa.DateTime(timezone=True), insert_default=utcnow, init=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        sa.DateTime(timezone=True), insert_default=utcnow, onupdate=utcnow, init=False
    )

    @property
    def features(self) -> frozenset[Feature]:
        """The enabled features, skipping any stored name this deployment doesn't know about."""
        known = {f.value: f for f in Feature}
        return frozenset(known[name] for name in self.feature_names if name in known)
